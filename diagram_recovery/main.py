from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
from dotenv import load_dotenv

from diagram_recovery.config import get_recovery_config
from diagram_recovery.routers.diagrams import router as diagrams_router

# Load environment variables
load_dotenv()

# Set up logging
logging.basicConfig(level=getattr(logging, get_recovery_config().log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Diagram Recovery Service")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include diagram recovery router
app.include_router(diagrams_router)


@app.get("/")
async def root():
    return {"message": "Diagram Recovery API", "status": "running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))

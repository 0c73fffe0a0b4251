"""
Diagram Recovery API Endpoints

REST endpoints that run raw, model-produced Mermaid text through the recovery
pipeline and return a rendered, degraded or failed outcome.
"""

import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from diagram_recovery.config import get_recovery_config
from diagram_recovery.error_presenter import get_error_presenter
from diagram_recovery.performance_logger import get_metrics
from diagram_recovery.render_controller import RenderAttemptController
from diagram_recovery.render_outcome import Degraded
from diagram_recovery.schemas import (
    DiagramRenderResponse,
    HealthResponse,
    RenderRequest,
    RepairRequest,
    RepairResponse,
    StatsResponse,
)
from diagram_recovery.tools.mermaid_cli import NodeMermaidBackend

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/diagrams", tags=["diagrams"])

_controller = None


def _log_render_error(message: str) -> None:
    logger.warning(f"⚠️ Diagram degraded: {message}")


def get_render_controller() -> RenderAttemptController:
    """Process-wide controller backed by the local Node.js mermaid install"""
    global _controller
    if _controller is None:
        config = get_recovery_config()
        _controller = RenderAttemptController(
            NodeMermaidBackend(config), config=config, on_error=_log_render_error
        )
    return _controller


@router.post("/render", response_model=DiagramRenderResponse,
             summary="Repair, validate and render a Mermaid diagram")
async def render_diagram(
    request: RenderRequest,
    controller: RenderAttemptController = Depends(get_render_controller),
) -> DiagramRenderResponse:
    """
    Render raw Mermaid text, falling back to a simplified diagram or an error
    block when the text cannot be drawn as-is.

    Args:
        request: Raw text and the id of the diagram slot

    Returns:
        The committed outcome; `superseded` if newer input for the same id won
    """
    try:
        outcome = await controller.run(request.text, request.diagram_id)
    except Exception as e:
        logger.error(f"Diagram render failed unexpectedly: {e}")
        raise HTTPException(status_code=500, detail=f"Render failed: {str(e)}")

    notice = None
    if isinstance(outcome, Degraded):
        notice = get_error_presenter().present_notice(outcome.reason, outcome.original_text)
    return DiagramRenderResponse.from_outcome(request.diagram_id, outcome, notice)


@router.post("/repair", response_model=RepairResponse,
             summary="Clean up Mermaid text without rendering it")
async def repair_diagram(
    request: RepairRequest,
    controller: RenderAttemptController = Depends(get_render_controller),
) -> RepairResponse:
    try:
        repair = controller.repair(request.text)
    except Exception as e:
        logger.error(f"Diagram repair failed unexpectedly: {e}")
        raise HTTPException(status_code=500, detail=f"Repair failed: {str(e)}")

    return RepairResponse(
        cleaned_text=repair.cleaned_text,
        diagram_type=repair.diagram_type.value,
        fixes_applied=repair.fixes_applied,
    )


@router.get("/health", response_model=HealthResponse, summary="Check diagram service health")
async def health_check(
    controller: RenderAttemptController = Depends(get_render_controller),
) -> HealthResponse:
    is_available = getattr(controller.backend, "is_available", None)
    backend = is_available() if callable(is_available) else {}
    healthy = all(backend.values()) if backend else True
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        backend=backend,
        config={**controller.config.summary(), "timestamp": datetime.now().isoformat()},
    )


@router.get("/stats", response_model=StatsResponse, summary="Cache and stage timing statistics")
async def get_stats(
    controller: RenderAttemptController = Depends(get_render_controller),
) -> StatsResponse:
    timings: Dict[str, Any] = get_metrics().get_summary()
    return StatsResponse(
        cache=controller.cache.get_cache_stats(),
        validator={**controller.validator.get_stats(), **controller.get_stats()},
        timings=timings,
    )

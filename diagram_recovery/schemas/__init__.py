"""
API and display schemas for the diagram recovery service

Usage:
    from diagram_recovery.schemas import DiagramRenderResponse, DiagramErrorBlock

    response = DiagramRenderResponse.from_outcome("mermaid-diagram", outcome)
"""

from .diagram_schemas import (
    DegradedNoticeBlock,
    DiagramErrorBlock,
    DiagramRenderResponse,
    FailureReasonModel,
    HealthResponse,
    RenderRequest,
    RenderStatus,
    RepairRequest,
    RepairResponse,
    StatsResponse,
)

__all__ = [
    "DegradedNoticeBlock",
    "DiagramErrorBlock",
    "DiagramRenderResponse",
    "FailureReasonModel",
    "HealthResponse",
    "RenderRequest",
    "RenderStatus",
    "RepairRequest",
    "RepairResponse",
    "StatsResponse",
]

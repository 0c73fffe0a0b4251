"""
Diagram Recovery API Schemas

Pydantic models for the HTTP boundary of the recovery service and for the
display blocks a UI shows when a diagram degrades or fails. Each block maps to
a single UI component, mirroring how the rest of the response is rendered.

Design Principles:
- Validation-first: request data is validated at the boundary
- Display blocks keep raw text verbatim and escape it only in to_html()
- Self-documenting: field descriptions feed the OpenAPI docs
"""

from __future__ import annotations

import html
import re
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from diagram_recovery.render_outcome import (
    Degraded,
    EmptyOutcome,
    Failed,
    FailureReason,
    Rendered,
    RenderOutcome,
    Superseded,
)

DIAGRAM_ID_RE = re.compile(r'^[A-Za-z][A-Za-z0-9_-]{0,63}$')


class RenderStatus(str, Enum):
    """Terminal status of a render attempt as seen by API clients"""
    RENDERED = "rendered"
    DEGRADED = "degraded"
    FAILED = "failed"
    EMPTY = "empty"
    SUPERSEDED = "superseded"


class DiagramErrorBlock(BaseModel):
    """
    Error display for a diagram that could not be drawn at all.

    Shows a short diagnostic and keeps the raw markup behind a collapsible
    "details" control so users can still read or copy it.
    """
    block_type: Literal["diagram_error"] = "diagram_error"
    title: str = Field(
        default="Diagram could not be rendered",
        description="Heading shown above the diagnostic"
    )
    message: str = Field(..., description="Human-readable diagnostic")
    error_type: str = Field(default="unknown", description="Classified error category")
    line_number: Optional[int] = Field(None, description="Line the renderer complained about, if known")
    suggested_fix: Optional[str] = Field(None, description="Hint for fixing the markup")
    original_code: str = Field(default="", description="Raw diagram text as received")
    details_label: str = Field(default="Show raw diagram text")

    def to_html(self) -> str:
        """Safe HTML fragment with the raw text inside a <details> element"""
        parts = [
            '<div class="mermaid-error" role="alert">',
            f'<p class="mermaid-error-title">{html.escape(self.title)}</p>',
            f'<p class="mermaid-error-message">{html.escape(self.message)}</p>',
        ]
        if self.original_code:
            parts.append(
                f'<details><summary>{html.escape(self.details_label)}</summary>'
                f'<pre><code>{html.escape(self.original_code)}</code></pre></details>'
            )
        parts.append('</div>')
        return "".join(parts)


class DegradedNoticeBlock(BaseModel):
    """Non-blocking notice shown above a simplified (fallback) diagram"""
    block_type: Literal["diagram_notice"] = "diagram_notice"
    severity: Literal["info", "warning"] = "warning"
    message: str = Field(..., description="Why the simplified diagram is shown")
    original_code: str = Field(default="", description="Raw diagram text as received")


class FailureReasonModel(BaseModel):
    kind: str
    detail: str
    error_type: str
    line_number: Optional[int] = None
    suggested_fix: Optional[str] = None
    user_message: str

    @classmethod
    def from_reason(cls, reason: FailureReason) -> FailureReasonModel:
        return cls(
            kind=reason.kind.value,
            detail=reason.detail,
            error_type=reason.error_type.value,
            line_number=reason.line_number,
            suggested_fix=reason.suggested_fix,
            user_message=reason.user_message(),
        )


class RenderRequest(BaseModel):
    """Raw diagram text plus the id of the diagram slot it belongs to"""
    text: str = Field(default="", description="Raw Mermaid text, possibly fenced or escaped")
    diagram_id: str = Field(
        default="mermaid-diagram",
        description="Stable id of the diagram slot; repeated renders of one slot supersede each other"
    )

    @field_validator('diagram_id')
    @classmethod
    def validate_diagram_id(cls, v):
        if not DIAGRAM_ID_RE.match(v):
            raise ValueError('diagram_id must start with a letter and contain only letters, digits, "-" or "_"')
        return v


class RepairRequest(BaseModel):
    text: str = Field(default="", description="Raw Mermaid text to clean up without rendering")


class RepairResponse(BaseModel):
    cleaned_text: str
    diagram_type: str
    fixes_applied: List[str] = Field(default_factory=list)


class DiagramRenderResponse(BaseModel):
    """Outcome of one render attempt, flattened for JSON clients"""
    status: RenderStatus
    diagram_id: str
    svg: Optional[str] = Field(None, description="Rendered visual for rendered/degraded outcomes")
    cleaned_text: Optional[str] = Field(None, description="Markup that was actually drawn")
    diagram_type: Optional[str] = None
    reason: Optional[FailureReasonModel] = None
    notice: Optional[DegradedNoticeBlock] = None
    error: Optional[DiagramErrorBlock] = None

    @classmethod
    def from_outcome(cls, diagram_id: str, outcome: RenderOutcome,
                     notice: Optional[DegradedNoticeBlock] = None) -> DiagramRenderResponse:
        if isinstance(outcome, Rendered):
            return cls(status=RenderStatus.RENDERED, diagram_id=diagram_id, svg=outcome.visual,
                       cleaned_text=outcome.text, diagram_type=outcome.diagram_type.value)
        if isinstance(outcome, Degraded):
            return cls(status=RenderStatus.DEGRADED, diagram_id=diagram_id, svg=outcome.visual,
                       cleaned_text=outcome.text, diagram_type="flowchart",
                       reason=FailureReasonModel.from_reason(outcome.reason), notice=notice)
        if isinstance(outcome, Failed):
            return cls(status=RenderStatus.FAILED, diagram_id=diagram_id,
                       reason=FailureReasonModel.from_reason(outcome.reason),
                       error=outcome.display)
        if isinstance(outcome, Superseded):
            return cls(status=RenderStatus.SUPERSEDED, diagram_id=diagram_id)
        if isinstance(outcome, EmptyOutcome):
            return cls(status=RenderStatus.EMPTY, diagram_id=diagram_id)
        raise TypeError(f"Unknown render outcome: {outcome!r}")


class HealthResponse(BaseModel):
    status: str
    backend: dict
    config: dict


class StatsResponse(BaseModel):
    cache: dict
    validator: dict
    timings: dict

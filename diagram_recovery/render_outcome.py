#!/usr/bin/env python3
"""
Render Outcome Data Model

Types shared by every stage of the diagram recovery pipeline: the diagram type
taxonomy, the minimal node/edge model used for fallback synthesis, the failure
taxonomy, and the tagged union describing how a single render attempt ended.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class MermaidDiagramType(Enum):
    """Diagram families the pipeline knows how to classify"""
    FLOWCHART = "flowchart"
    SEQUENCE = "sequence"
    CLASS = "class"
    STATE = "state"
    ER = "er"
    JOURNEY = "journey"
    GANTT = "gantt"
    PIE = "pie"
    GITGRAPH = "gitGraph"
    UNKNOWN = "unknown"

    @property
    def is_flowchart(self) -> bool:
        return self is MermaidDiagramType.FLOWCHART


@dataclass
class DiagramNode:
    """A named vertex; an empty label falls back to the id"""
    id: str
    label: str = ""

    def __post_init__(self):
        if not self.label:
            self.label = self.id


@dataclass(frozen=True)
class DiagramEdge:
    """A directed relationship between two node ids"""
    source: str
    target: str
    label: Optional[str] = None


@dataclass
class RepairResult:
    """Artifact handed to the validator"""
    cleaned_text: str
    diagram_type: MermaidDiagramType
    fixes_applied: List[str] = field(default_factory=list)


class ErrorType(Enum):
    """Classification of validation error types"""
    SYNTAX = "syntax"
    STRUCTURE = "structure"
    SEMANTIC = "semantic"
    FORMAT = "format"
    UNKNOWN = "unknown"


class FailureKind(Enum):
    """Which tier of the pipeline produced a failure"""
    SYNTAX_ERROR = "syntax_error"
    RENDER_ERROR = "render_error"
    FALLBACK_EXHAUSTED = "fallback_exhausted"


class DiagramRecoveryError(Exception):
    """Base class for failures raised inside the recovery pipeline"""
    kind = FailureKind.SYNTAX_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class DiagramSyntaxError(DiagramRecoveryError):
    """The renderer's parse step rejected the markup"""
    kind = FailureKind.SYNTAX_ERROR


class DiagramRenderError(DiagramRecoveryError):
    """The renderer accepted the markup but failed to draw it"""
    kind = FailureKind.RENDER_ERROR


class FallbackExhaustedError(DiagramRecoveryError):
    """Even the synthesized fallback skeleton could not be drawn"""
    kind = FailureKind.FALLBACK_EXHAUSTED


@dataclass(frozen=True)
class FailureReason:
    """Structured information about why a render attempt did not fully succeed"""
    kind: FailureKind
    detail: str
    error_type: ErrorType = ErrorType.UNKNOWN
    line_number: Optional[int] = None
    suggested_fix: Optional[str] = None

    @classmethod
    def from_error(cls, error: DiagramRecoveryError) -> 'FailureReason':
        """Create a failure reason from a pipeline exception"""
        return cls.from_message(error.kind, error.detail)

    @classmethod
    def from_message(cls, kind: FailureKind, message: str) -> 'FailureReason':
        error_type = cls._classify_error(message)
        return cls(
            kind=kind,
            detail=message,
            error_type=error_type,
            line_number=cls._extract_line_number(message),
            suggested_fix=cls._generate_suggested_fix(message),
        )

    @staticmethod
    def _classify_error(error_message: str) -> ErrorType:
        """Classify error type based on error message"""
        error_lower = error_message.lower()

        if any(keyword in error_lower for keyword in [
            'unbalanced', 'missing end', 'graph declaration', 'subgraph', 'no diagram type'
        ]):
            return ErrorType.STRUCTURE
        elif any(keyword in error_lower for keyword in [
            'syntax', 'parse error', 'invalid character', 'unexpected token', 'expecting'
        ]):
            return ErrorType.SYNTAX
        elif any(keyword in error_lower for keyword in [
            'node reference', 'circular', 'dependency', 'relationship'
        ]):
            return ErrorType.SEMANTIC
        elif any(keyword in error_lower for keyword in [
            'format', 'encoding', 'ampersand', 'quote'
        ]):
            return ErrorType.FORMAT
        return ErrorType.UNKNOWN

    @staticmethod
    def _extract_line_number(error_message: str) -> Optional[int]:
        """Extract line number from error message if present"""
        line_match = re.search(r'line\s+(\d+)', error_message, re.IGNORECASE)
        return int(line_match.group(1)) if line_match else None

    @staticmethod
    def _generate_suggested_fix(error_message: str) -> Optional[str]:
        error_lower = error_message.lower()

        if 'missing end' in error_lower:
            return "Close every subgraph with an 'end' line"
        elif 'graph declaration' in error_lower or 'no diagram type' in error_lower:
            return "Start the diagram with a type declaration such as 'flowchart TD'"
        elif 'ampersand' in error_lower:
            return "Escape ampersands in labels"
        elif 'quote' in error_lower:
            return "Quote labels containing special characters"
        return None

    def user_message(self) -> str:
        """Human-readable diagnostic, distinct from the raw renderer exception"""
        if self.kind is FailureKind.FALLBACK_EXHAUSTED:
            headline = "The diagram could not be drawn, even in simplified form"
        elif self.kind is FailureKind.RENDER_ERROR:
            headline = "The diagram could not be drawn and was replaced by a simplified version"
        else:
            headline = "The diagram had a {} error and was replaced by a simplified version".format(
                self.error_type.value if self.error_type is not ErrorType.UNKNOWN else "syntax"
            )

        parts = [headline]
        if self.line_number:
            parts.append(f"(near line {self.line_number})")
        message = " ".join(parts) + "."
        if self.suggested_fix:
            message += f" Hint: {self.suggested_fix}."
        return message


@dataclass(frozen=True)
class Rendered:
    """Primary text validated and rendered"""
    visual: str
    text: str
    diagram_type: MermaidDiagramType
    status: str = "rendered"


@dataclass(frozen=True)
class Degraded:
    """Fallback skeleton validated and rendered in place of the primary text"""
    visual: str
    reason: FailureReason
    text: str
    original_text: str
    status: str = "degraded"


@dataclass(frozen=True)
class Failed:
    """Nothing renderable; the caller shows the raw text on demand"""
    reason: FailureReason
    original_text: str
    display: object = None
    status: str = "failed"


@dataclass(frozen=True)
class EmptyOutcome:
    """Nothing to render; not an error"""
    status: str = "empty"


@dataclass(frozen=True)
class Superseded:
    """Returned to a caller whose run was overtaken by newer input"""
    generation: int
    status: str = "superseded"


RenderOutcome = Union[Rendered, Degraded, Failed, EmptyOutcome, Superseded]

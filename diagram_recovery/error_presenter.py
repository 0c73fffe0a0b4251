"""
Error Presenter

Turns a failed or degraded render into something a user can act on: a short
diagnostic plus the raw text behind a collapsible control. The raw text is
always kept verbatim; escaping happens only when a block is turned into HTML.
"""

import logging
from typing import Optional

from diagram_recovery.render_outcome import FailureReason
from diagram_recovery.schemas.diagram_schemas import DegradedNoticeBlock, DiagramErrorBlock

logger = logging.getLogger(__name__)


class ErrorPresenter:

    def present(self, original_text: str, reason: FailureReason,
                message: Optional[str] = None) -> DiagramErrorBlock:
        """Error block for a diagram that could not be drawn at all"""
        return DiagramErrorBlock(
            message=message or reason.user_message(),
            error_type=reason.error_type.value,
            line_number=reason.line_number,
            suggested_fix=reason.suggested_fix,
            original_code=original_text or "",
        )

    def present_notice(self, reason: FailureReason, original_text: str = "") -> DegradedNoticeBlock:
        """Notice shown above a simplified diagram"""
        return DegradedNoticeBlock(message=reason.user_message(), original_code=original_text or "")


# Singleton instance for reuse
_presenter = None


def get_error_presenter() -> ErrorPresenter:
    """Get singleton ErrorPresenter instance"""
    global _presenter
    if _presenter is None:
        _presenter = ErrorPresenter()
    return _presenter

"""
Tests for user-facing error and notice blocks.
"""

from diagram_recovery.error_presenter import ErrorPresenter
from diagram_recovery.render_outcome import FailureKind, FailureReason


class TestErrorPresenter:

    def test_present_keeps_raw_text_and_escapes_html(self):
        raw = 'graph TD\nA[<script>alert("x")</script>] --> B & C'
        reason = FailureReason.from_message(FailureKind.FALLBACK_EXHAUSTED, "Parse error on line 2")

        block = ErrorPresenter().present(raw, reason)
        html = block.to_html()

        assert block.original_code == raw
        assert block.line_number == 2
        assert block.message == reason.user_message()
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "&amp;" in html
        assert "<details>" in html

    def test_present_custom_message(self):
        reason = FailureReason.from_message(FailureKind.SYNTAX_ERROR, "boom")
        block = ErrorPresenter().present("x", reason, message="Diagram unavailable")
        assert block.message == "Diagram unavailable"

    def test_empty_original_omits_details(self):
        reason = FailureReason.from_message(FailureKind.RENDER_ERROR, "boom")
        assert "<details>" not in ErrorPresenter().present("", reason).to_html()

    def test_notice_for_degraded_render(self):
        reason = FailureReason.from_message(FailureKind.SYNTAX_ERROR, "Parse error on line 3: Expecting 'SEMI'")
        notice = ErrorPresenter().present_notice(reason, "raw")
        assert notice.severity == "warning"
        assert "simplified" in notice.message
        assert "line 3" in notice.message
        assert notice.original_code == "raw"


class TestFailureReason:

    def test_classification_and_hints(self):
        reason = FailureReason.from_message(FailureKind.SYNTAX_ERROR, "No diagram type detected")
        assert reason.error_type.value == "structure"
        assert reason.suggested_fix is not None
        assert "Hint:" in reason.user_message()

    def test_user_message_differs_from_raw_detail(self):
        reason = FailureReason.from_message(FailureKind.RENDER_ERROR, "TypeError: x is undefined")
        assert reason.user_message() != reason.detail
        assert "simplified version" in reason.user_message()

    def test_exhausted_message(self):
        reason = FailureReason.from_message(FailureKind.FALLBACK_EXHAUSTED, "still broken")
        assert reason.user_message().startswith("The diagram could not be drawn, even in simplified form")

#!/usr/bin/env python3
"""
Tests for Mermaid normalization and diagram-type classification.
"""

import pytest

from diagram_recovery.config import RecoveryConfig
from diagram_recovery.mermaid_utils import DiagramClassifier, DiagramNormalizer
from diagram_recovery.render_outcome import MermaidDiagramType


@pytest.fixture
def normalizer(config):
    return DiagramNormalizer(config)


@pytest.fixture
def classifier(config):
    return DiagramClassifier(config)


class TestDiagramNormalizer:
    """Test stripping of transport artifacts from model output."""

    def test_empty_and_whitespace_input(self, normalizer):
        """Empty input is a terminal case, not an error."""
        assert normalizer.normalize("") == ""
        assert normalizer.normalize("   \n\t ") == ""
        assert normalizer.normalize(None) == ""

    def test_strips_mermaid_fence(self, normalizer):
        """A ```mermaid fenced block yields just its body."""
        raw = "```mermaid\ngraph TD\nA-->B\n```"
        assert normalizer.normalize(raw) == "graph TD\nA-->B"

    def test_strips_plain_fence(self, normalizer):
        raw = "```\nsequenceDiagram\nAlice->>Bob: Hi\n```"
        assert normalizer.normalize(raw) == "sequenceDiagram\nAlice->>Bob: Hi"

    def test_extracts_fence_surrounded_by_prose(self, normalizer):
        """Explanatory text around the fence is dropped."""
        raw = "Here is the diagram:\n```mermaid\ngraph TD\nA-->B\n```\nHope this helps!"
        assert normalizer.normalize(raw) == "graph TD\nA-->B"

    def test_missing_closing_fence(self, normalizer):
        raw = "```mermaid\ngraph TD\nA-->B"
        assert normalizer.normalize(raw) == "graph TD\nA-->B"

    def test_unwraps_json_encoded_string(self, normalizer):
        """A JSON-style string with escaped quotes and newlines is decoded."""
        raw = '"graph TD\\nA[\\"x\\"] --> B"'
        assert normalizer.normalize(raw) == 'graph TD\nA["x"] --> B'

    def test_keeps_literal_backslash_n_in_multiline_text(self, normalizer):
        """Literal \\n is only treated as a line break when there are no real ones."""
        raw = 'graph TD\nA["one\\ntwo"] --> B'
        assert normalizer.normalize(raw) == raw

    def test_does_not_unwrap_quotes_that_belong_to_content(self, normalizer):
        raw = '"A" --> "B"'
        assert normalizer.normalize(raw) == raw

    def test_truncates_long_input_at_line_boundary(self):
        normalizer = DiagramNormalizer(RecoveryConfig(max_input_length=100))
        raw = "graph TD\n" + "\n".join("A --> B" for _ in range(40))

        result = normalizer.normalize(raw)

        assert len(result) <= 100
        assert result.endswith("A --> B")


class TestDiagramClassifier:
    """Test header detection, inference and header tidying."""

    def test_declared_flowchart_unchanged(self, classifier):
        text = "graph LR\nA-->B"
        result = classifier.classify(text)
        assert result.diagram_type == MermaidDiagramType.FLOWCHART
        assert result.text == text
        assert result.header_added is False

    def test_header_after_comment(self, classifier):
        text = "%% generated\nflowchart TD\nA-->B"
        assert classifier.classify(text).diagram_type == MermaidDiagramType.FLOWCHART

    @pytest.mark.parametrize("text,expected", [
        ("sequenceDiagram\nAlice->>Bob: Hi", MermaidDiagramType.SEQUENCE),
        ("classDiagram\nAnimal <|-- Duck", MermaidDiagramType.CLASS),
        ("stateDiagram-v2\n[*] --> Still", MermaidDiagramType.STATE),
        ("erDiagram\nCUSTOMER ||--o{ ORDER : places", MermaidDiagramType.ER),
        ("pie title Pets\n\"Dogs\" : 386", MermaidDiagramType.PIE),
        ("gantt\ntitle Plan", MermaidDiagramType.GANTT),
        ("gitGraph\ncommit", MermaidDiagramType.GITGRAPH),
        ("journey\ntitle My day", MermaidDiagramType.JOURNEY),
    ])
    def test_declared_types(self, classifier, text, expected):
        result = classifier.classify(text)
        assert result.diagram_type == expected
        assert result.header_added is False

    def test_unsupported_header_passes_through(self, classifier):
        text = "mindmap\n  root((Idea))"
        result = classifier.classify(text)
        assert result.diagram_type == MermaidDiagramType.UNKNOWN
        assert result.text == text

    def test_infers_flowchart_and_prepends_header(self, classifier):
        result = classifier.classify("X --> Y")
        assert result.diagram_type == MermaidDiagramType.FLOWCHART
        assert result.text == "flowchart TD\nX --> Y"
        assert result.header_added is True

    def test_infers_sequence_from_messages(self, classifier):
        result = classifier.classify("Alice->>Bob: Hello")
        assert result.diagram_type == MermaidDiagramType.SEQUENCE
        assert result.text == "sequenceDiagram\nAlice->>Bob: Hello"

    def test_infers_class_diagram(self, classifier):
        result = classifier.classify("class Animal\nAnimal : +name")
        assert result.diagram_type == MermaidDiagramType.CLASS
        assert result.text.startswith("classDiagram\n")

    def test_prose_defaults_to_flowchart(self, classifier):
        result = classifier.classify("This is not a diagram at all")
        assert result.diagram_type == MermaidDiagramType.FLOWCHART
        assert result.text.startswith("flowchart TD\n")

    def test_uses_configured_direction(self):
        classifier = DiagramClassifier(RecoveryConfig(default_direction="lr"))
        assert classifier.classify("A --> B").text == "flowchart LR\nA --> B"

    def test_splits_glued_sequence_header(self, classifier):
        result = classifier.classify("sequenceDiagram participant A\nA->>B: Hi")
        assert result.text == "sequenceDiagram\nparticipant A\nA->>B: Hi"

    def test_splits_glued_participants(self, classifier):
        result = classifier.classify("sequenceDiagram\nparticipant Aparticipant B\nA->>B: Hi")
        assert result.text == "sequenceDiagram\nparticipant A\nparticipant B\nA->>B: Hi"

#!/usr/bin/env python3
"""
Mermaid Diagram Utilities

Normalization and diagram-type classification for Mermaid markup produced by
a language model. These are the first two stages of the recovery pipeline:
they never fail, they only return new strings.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional

from diagram_recovery.config import RecoveryConfig, get_recovery_config
from diagram_recovery.render_outcome import MermaidDiagramType

logger = logging.getLogger(__name__)


# ``` or ```mermaid on its own line; the closing fence may be glued, missing or followed by prose
_FENCE_BLOCK_RE = re.compile(r'```[ \t]*[\w-]*[ \t]*\r?\n(.*?)(?:\r?\n[ \t]*```|```|$)', re.DOTALL)


@dataclass
class ClassificationResult:
    """Classifier output: possibly-prefixed text plus its diagram type"""
    text: str
    diagram_type: MermaidDiagramType
    header_added: bool = False


class DiagramNormalizer:
    """
    Strips transport artifacts from raw model output.

    Handles markdown fences, a single layer of wrapping quotes and escape
    sequences that leak through from JSON-encoded responses. Empty input is a
    valid terminal case and comes back as an empty string.
    """

    def __init__(self, config: Optional[RecoveryConfig] = None):
        self.config = config or get_recovery_config()

    def normalize(self, raw: str) -> str:
        if not raw:
            return ""

        text = raw.strip()
        text = self._strip_wrapping_quotes(text)
        text = self._unescape(text)
        text = self._strip_fences(text).strip()

        if len(text) > self.config.max_input_length:
            logger.warning(
                f"Mermaid text too long ({len(text)} > {self.config.max_input_length}), truncating"
            )
            cut = text.rfind("\n", 0, self.config.max_input_length)
            text = text[:cut if cut > 0 else self.config.max_input_length].rstrip()

        return text

    def _strip_wrapping_quotes(self, text: str) -> str:
        if len(text) < 2 or text[0] not in "\"'" or text[-1] != text[0]:
            return text
        quote = text[0]
        inner = text[1:-1]
        # Only unwrap when every inner quote of the same kind is escaped
        if re.search(r'(?<!\\)' + re.escape(quote), inner):
            return text
        return inner.strip()

    def _unescape(self, text: str) -> str:
        text = text.replace('\\"', '"').replace("\\'", "'")
        # Literal \n only means "newline" when the payload has no real ones
        if "\n" not in text and "\\n" in text:
            text = text.replace("\\r\\n", "\n").replace("\\n", "\n").replace("\\t", "    ")
        return text

    def _strip_fences(self, text: str) -> str:
        if "```" not in text:
            return text

        match = _FENCE_BLOCK_RE.search(text)
        if match:
            if not text.startswith("```"):
                logger.debug("Extracted fenced block from surrounding prose")
            return match.group(1)

        # Fence markers with no line break at all, e.g. ```graph TD```
        return text.strip("`")


class DiagramClassifier:
    """
    Determines the declared diagram type, or infers one from the content and
    prepends the matching header.

    Flowchart is the fallback type because its syntax is the most permissive
    and the easiest to repair.
    """

    # First-line keyword -> diagram type
    HEADER_PATTERNS = [
        (re.compile(r'^(?:flowchart|graph)\b', re.IGNORECASE), MermaidDiagramType.FLOWCHART),
        (re.compile(r'^sequenceDiagram\b', re.IGNORECASE), MermaidDiagramType.SEQUENCE),
        (re.compile(r'^classDiagram(?:-v2)?\b', re.IGNORECASE), MermaidDiagramType.CLASS),
        (re.compile(r'^stateDiagram(?:-v2)?\b', re.IGNORECASE), MermaidDiagramType.STATE),
        (re.compile(r'^erDiagram\b', re.IGNORECASE), MermaidDiagramType.ER),
        (re.compile(r'^journey\b', re.IGNORECASE), MermaidDiagramType.JOURNEY),
        (re.compile(r'^gantt\b', re.IGNORECASE), MermaidDiagramType.GANTT),
        (re.compile(r'^pie\b', re.IGNORECASE), MermaidDiagramType.PIE),
        (re.compile(r'^gitGraph\b', re.IGNORECASE), MermaidDiagramType.GITGRAPH),
    ]

    # Declared by the renderer but outside our taxonomy; passed through untouched
    OTHER_HEADER_RE = re.compile(
        r'^(?:mindmap|timeline|quadrantChart|requirementDiagram|C4Context|C4Container|'
        r'C4Component|C4Dynamic|C4Deployment|xychart-beta|block-beta|sankey-beta|'
        r'packet-beta|kanban|architecture-beta)\b',
        re.IGNORECASE,
    )

    SEQUENCE_HINT_RE = re.compile(r'-{1,2}>>|-{1,2}\)|^\s*(?:participant|actor)\b', re.MULTILINE)
    FLOWCHART_HINT_RE = re.compile(r'\w\s*(?:\[|\(|\{)|-->|---|==>|-\.->')
    CLASS_HINT_RE = re.compile(r'\bclass\b')

    # Types whose header must sit alone on its line
    SPLIT_HEADER_RE = re.compile(
        r'^(\s*(?:sequenceDiagram|classDiagram(?:-v2)?|stateDiagram(?:-v2)?|erDiagram))[ \t]+(\S[^\n]*)$',
        re.IGNORECASE | re.MULTILINE,
    )
    GLUED_PARTICIPANT_RE = re.compile(r'(participant\s+[^\n]+?)(?=participant\s)')

    def __init__(self, config: Optional[RecoveryConfig] = None):
        self.config = config or get_recovery_config()

    def classify(self, text: str) -> ClassificationResult:
        first_line = self._first_meaningful_line(text)

        for pattern, diagram_type in self.HEADER_PATTERNS:
            if pattern.match(first_line):
                return ClassificationResult(self._tidy_header(text, diagram_type), diagram_type)

        if self.OTHER_HEADER_RE.match(first_line):
            logger.debug(f"Passing through unsupported diagram type: {first_line.split()[0]}")
            return ClassificationResult(text, MermaidDiagramType.UNKNOWN)

        diagram_type, header = self._infer_type(text)
        logger.info(f"🔍 No diagram header found, inferred '{diagram_type.value}' from content")
        prefixed = f"{header}\n{text}" if text else header
        return ClassificationResult(self._tidy_header(prefixed, diagram_type), diagram_type, header_added=True)

    def _infer_type(self, text: str):
        flowchart_header = f"flowchart {self.config.default_direction}"

        if self.SEQUENCE_HINT_RE.search(text):
            return MermaidDiagramType.SEQUENCE, "sequenceDiagram"
        if self.FLOWCHART_HINT_RE.search(text):
            return MermaidDiagramType.FLOWCHART, flowchart_header
        if self.CLASS_HINT_RE.search(text):
            return MermaidDiagramType.CLASS, "classDiagram"
        return MermaidDiagramType.FLOWCHART, flowchart_header

    def _tidy_header(self, text: str, diagram_type: MermaidDiagramType) -> str:
        """Put the header on its own line and split glued sequence declarations"""
        if diagram_type in (MermaidDiagramType.SEQUENCE, MermaidDiagramType.CLASS,
                            MermaidDiagramType.STATE, MermaidDiagramType.ER):
            text = self.SPLIT_HEADER_RE.sub(lambda m: f"{m.group(1)}\n{m.group(2).strip()}", text, count=1)
        if diagram_type is MermaidDiagramType.SEQUENCE:
            text = self.GLUED_PARTICIPANT_RE.sub(lambda m: f"{m.group(1).rstrip()}\n", text)
        return text

    @staticmethod
    def _first_meaningful_line(text: str) -> str:
        for line in text.splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("%%"):
                return stripped
        return ""

"""
Fallback Graph Builder

Last-resort synthesis of a minimal flowchart from whatever node ids and
arrows can be scraped out of arbitrary text. The result trades fidelity for
guaranteed syntactic validity: plain ids, every label quoted, one statement
per line, and a placeholder node when nothing at all could be recovered.
"""

import re
import logging
from typing import Dict, List, Optional, Tuple

from diagram_recovery.config import RecoveryConfig, get_recovery_config
from diagram_recovery.render_outcome import DiagramEdge, DiagramNode

logger = logging.getLogger(__name__)

# Node-like ids start with an uppercase letter
_ID = r'[A-Z][A-Za-z0-9_]*'

# ID[...], ID(...) or ID{...}, not nested inside another bracket
NODE_DEF_RE = re.compile(r'(?<![\w\[\(\{])(' + _ID + r')\s*[\[\(\{]')

# Source, optional shape, flowchart or sequence arrow, optional |label|, target
EDGE_RE = re.compile(
    r'(?<![\w\[\(\{])(' + _ID + r')\s*'
    r'(?:\[[^\]]*\]|\([^)]*\)|\{[^}]*\})?\s*'
    r'(?:-{2,}>>?|->>?|={2,}>|-\.+->|-{3,})\s*'
    r'(?:\|([^|]*)\|\s*)?'
    r'(?=(' + _ID + r'))'
)

_QUOTED_RE = re.compile(r'"[^"]*"')
_HEADER_RE = re.compile(
    r'^\s*(?:flowchart|graph|sequenceDiagram|classDiagram|stateDiagram|erDiagram|'
    r'journey|gantt|pie|gitGraph)\b', re.IGNORECASE
)


class FallbackGraphBuilder:
    """Builds a guaranteed-simple flowchart from node and edge scraps"""

    def __init__(self, config: Optional[RecoveryConfig] = None):
        self.config = config or get_recovery_config()

    def build_fallback(self, text: str) -> str:
        nodes, edges = self.extract(text or "")

        if not nodes:
            logger.info("🪹 No recoverable nodes, emitting placeholder diagram")
            nodes = [DiagramNode("EmptyDiagram", self.config.placeholder_label)]
            edges = []

        return self.render(nodes, edges)

    def extract(self, text: str) -> Tuple[List[DiagramNode], List[DiagramEdge]]:
        """Scrape node ids and directed edges, in order of first appearance"""
        seen: Dict[str, DiagramNode] = {}
        edges: List[DiagramEdge] = []
        max_nodes = self.config.fallback_max_nodes

        def add_node(node_id: str) -> bool:
            if node_id in seen:
                return True
            if len(seen) >= max_nodes:
                return False
            seen[node_id] = DiagramNode(node_id)
            return True

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("%%") or _HEADER_RE.match(line):
                continue
            # Blank quoted strings so label words never look like ids
            skeleton = _QUOTED_RE.sub('""', line)

            for match in NODE_DEF_RE.finditer(skeleton):
                add_node(match.group(1))

            for match in EDGE_RE.finditer(skeleton):
                source, target = match.group(1), match.group(3)
                if add_node(source) and add_node(target):
                    if any(e.source == source and e.target == target for e in edges):
                        continue
                    label = (match.group(2) or "").strip().strip('"') or None
                    edges.append(DiagramEdge(source, target, label))

        if len(seen) >= max_nodes:
            logger.warning(f"⚠️ Fallback graph capped at {max_nodes} nodes")
        return list(seen.values()), edges

    def render(self, nodes: List[DiagramNode], edges: List[DiagramEdge]) -> str:
        lines = [f"flowchart {self.config.default_direction}"]
        for node in nodes:
            lines.append(f'    {node.id}["{self._escape_label(node.label)}"]')
        for edge in edges:
            lines.append(f"    {edge.source} --> {edge.target}")
        return "\n".join(lines)

    @staticmethod
    def _escape_label(label: str) -> str:
        return label.replace('"', "#quot;").replace("\n", " ")

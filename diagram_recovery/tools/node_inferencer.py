"""
Node Inferencer

Makes every edge endpoint in a flowchart an explicitly declared node. An id
that only ever appears as a bare link endpoint gets a declaration of the form
ID["ID"] inserted right after the line where it was first referenced.
"""

import logging
from typing import Iterable, List, Optional, Set

from diagram_recovery.tools.flowchart_tokenizer import (
    SUBGRAPH_ID_RE,
    LinkToken,
    NodeToken,
    TextToken,
    Token,
    is_statement_line,
    tokenize_statement,
)

logger = logging.getLogger(__name__)

# Keywords that cannot be declared as node ids
RESERVED_IDS = {"end", "graph", "flowchart", "subgraph"}


class NodeInferencer:

    def infer_missing_nodes(self, lines: Iterable[str]) -> List[str]:
        lines = list(lines)
        tokenized: List[Optional[List[Token]]] = [
            tokenize_statement(line).tokens if is_statement_line(line) else None
            for line in lines
        ]

        declared = self._declared_ids(lines, tokenized)
        result: List[str] = []
        inserted = 0

        for line, tokens in zip(lines, tokenized):
            result.append(line)
            if not tokens:
                continue
            indent = line[:len(line) - len(line.lstrip())]
            for node_id in self._bare_endpoints(tokens):
                if node_id in declared:
                    continue
                declared.add(node_id)
                result.append(f'{indent}{node_id}["{node_id}"]')
                inserted += 1

        if inserted:
            logger.debug(f"🧩 Declared {inserted} implicit nodes")
        return result

    def infer_text(self, text: str) -> str:
        return "\n".join(self.infer_missing_nodes(text.splitlines()))

    @staticmethod
    def _declared_ids(lines: List[str], tokenized: List[Optional[List[Token]]]) -> Set[str]:
        declared = set(RESERVED_IDS)
        for line, tokens in zip(lines, tokenized):
            if tokens is None:
                subgraph = SUBGRAPH_ID_RE.match(line.strip())
                if subgraph:
                    declared.add(subgraph.group(1))
                continue
            declared.update(t.node_id for t in tokens
                            if isinstance(t, NodeToken) and not t.is_bare)
        return declared

    @staticmethod
    def _bare_endpoints(tokens: List[Token]) -> List[str]:
        """Bare node ids adjacent to a link, including `&` groups, in order"""
        positions: Set[int] = set()
        for i, token in enumerate(tokens):
            if not isinstance(token, LinkToken):
                continue
            for step in (-1, 1):
                j = i + step
                while 0 <= j < len(tokens):
                    neighbour = tokens[j]
                    if isinstance(neighbour, NodeToken):
                        positions.add(j)
                    elif not (isinstance(neighbour, TextToken) and neighbour.kind == "amp"):
                        break
                    j += step
                    # A node is followed by either `&` or the end of the group
                    if isinstance(neighbour, NodeToken) and not (
                        0 <= j < len(tokens)
                        and isinstance(tokens[j], TextToken) and tokens[j].kind == "amp"
                    ):
                        break

        endpoints: List[str] = []
        for j in sorted(positions):
            node = tokens[j]
            if node.is_bare and node.node_id not in endpoints:
                endpoints.append(node.node_id)
        return endpoints

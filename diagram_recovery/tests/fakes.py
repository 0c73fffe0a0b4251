"""
Fake Mermaid backends for tests.

FakeMermaidBackend stands in for the Node.js mermaid install. Its parser is
deliberately strict about the mistakes the pipeline is supposed to repair, so
a passing test means the repair stages really fixed the markup.
"""

import asyncio
import re

HEADER_RE = re.compile(
    r'^(?:flowchart|graph|sequenceDiagram|classDiagram|stateDiagram|erDiagram|'
    r'journey|gantt|pie|gitGraph|mindmap|timeline)\b'
)
FLOW_DIRECTIVE_RE = re.compile(r'^(?:subgraph\b|end\b|classDef\b|class\s|style\s|linkStyle\b|click\s|direction\s|%%)')
FLOW_LINK_RE = re.compile(r'-->|---|==>|-\.->')
FLOW_NODE_RE = re.compile(r'^[A-Za-z0-9_]+(?:\[[^\]]*\]|\([^)]*\)|\{[^}]*\})?(?::::\w+)?$')


def strict_parse(text: str) -> None:
    """Small Mermaid-like parser that rejects common model mistakes"""
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines or not HEADER_RE.match(lines[0].strip()):
        raise ValueError("No diagram type detected")

    is_flowchart = lines[0].strip().startswith(("flowchart", "graph"))
    for number, line in enumerate(lines[1:], start=2):
        body = line.strip()
        if body.count('"') % 2:
            raise ValueError(f"Parse error on line {number}: unbalanced quote")
        for opener, closer in ("[]", "()", "{}"):
            if body.count(opener) != body.count(closer):
                raise ValueError(f"Parse error on line {number}: unbalanced brackets")
        if not is_flowchart or FLOW_DIRECTIVE_RE.match(body):
            continue
        if not FLOW_LINK_RE.search(body) and not FLOW_NODE_RE.match(body):
            raise ValueError(f"Parse error on line {number}: Expecting 'SEMI', 'NEWLINE', got 'NODE_STRING'")
        for label in re.findall(r'\[([^\]]*)\]', body):
            if label and not label.startswith('"') and not re.match(r'^[A-Za-z0-9_]+$', label):
                raise ValueError(f"Parse error on line {number}: unquoted label")


def always_reject(text: str) -> None:
    raise ValueError("Parse error on line 1: renderer unavailable")


class FakeMermaidBackend:
    """Synchronous backend recording every call"""

    def __init__(self, parse_fn=strict_parse, fail_render=False):
        self.parse_fn = parse_fn
        self.fail_render = fail_render
        self.parse_calls = []
        self.render_calls = []

    def parse(self, text):
        self.parse_calls.append(text)
        self.parse_fn(text)

    def render(self, text, element_id):
        self.render_calls.append((text, element_id))
        if self.fail_render:
            raise RuntimeError("Could not measure text bounding box")
        return f'<svg id="{element_id}">{len(text)}</svg>'

    @property
    def call_count(self):
        return len(self.parse_calls) + len(self.render_calls)


class PrimaryRenderFailsBackend(FakeMermaidBackend):
    """Parses everything but can only draw the fallback skeleton"""

    def render(self, text, element_id):
        self.render_calls.append((text, element_id))
        if not element_id.endswith("-fallback"):
            raise RuntimeError("Could not measure text bounding box")
        return "<svg>fallback</svg>"


class GatedMermaidBackend(FakeMermaidBackend):
    """Async backend whose parse blocks until the test opens a gate for that text"""

    def __init__(self):
        super().__init__()
        self.gates = {}

    def gate(self, marker: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[marker] = event
        return event

    async def parse(self, text):
        self.parse_calls.append(text)
        for marker, event in self.gates.items():
            if marker in text:
                await event.wait()
        strict_parse(text)

    async def render(self, text, element_id):
        self.render_calls.append((text, element_id))
        return f'<svg id="{element_id}"></svg>'

"""
Flowchart Tokenizer

A small, forgiving tokenizer over the subset of the Mermaid flowchart grammar
that LLM output actually breaks: node references, bracketed shapes, quoted
strings, links (arrows) with pipe or inline labels, `&` groups and comments.

The tokenizer never fails. Where the markup is malformed (a quote that never
closes, a bracket left open) it picks the most plausible boundary, closes the
construct there and records a short description in `fixes`. Rendering the
tokens back into text is the LineRepairer's job.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

# Node ids: letters, digits and underscores, with single inner hyphens (api-gw)
ID_RE = re.compile(r'[A-Za-z0-9_]+(?:-[A-Za-z0-9_]+)*')

# Complete links, longest alternatives first
ARROW_RE = re.compile(r'<?(?:-{2,}>|={2,}>|-\.+->|-{3,}|={3,}|-\.+-|--[ox]\b|==[ox]\b|~~~)')

# Openers of inline edge labels (A -- text --> B) and the links that close them
INLINE_LABEL_RE = re.compile(r'--|==|-\.')
INLINE_LABEL_CLOSERS = {
    '--': re.compile(r'-{2,}>|-{3,}|--[ox]\b'),
    '==': re.compile(r'={2,}>|={3,}'),
    '-.': re.compile(r'\.-+>|\.-+'),
}

# Shape opener -> accepted closers, longest openers first
SHAPES = [
    ('[[', (']]',)),
    ('[(', (')]',)),
    ('[/', ('/]', '\\]')),
    ('[\\', ('\\]', '/]')),
    ('([', ('])',)),
    ('((', ('))',)),
    ('{{', ('}}',)),
    ('[', (']',)),
    ('(', (')',)),
    ('{', ('}',)),
    ('>', (']',)),
]
SHAPE_OPENERS = tuple(opener for opener, _ in SHAPES)

_MATCHING_OPEN = {']': '[', ')': '(', '}': '{'}
_CLASS_SUFFIX_RE = re.compile(r':::[\w-]+')

HEADER_RE = re.compile(r'^(flowchart|graph)\b(?:\s+([A-Za-z]{2})\b)?(.*)$', re.IGNORECASE)
DIRECTIVE_RE = re.compile(
    r'^(?:subgraph\b|end\b|classDef\b|class\s|style\s|linkStyle\b|click\s|direction\s|'
    r'%%|accTitle\b|accDescr\b|title\b)'
)
SUBGRAPH_ID_RE = re.compile(r'^subgraph\s+([A-Za-z0-9_]+(?:-[A-Za-z0-9_]+)*)')


@dataclass
class Shape:
    """Bracketed node body such as ["label"] or {label}"""
    opener: str
    closer: str
    label: str
    quoted: bool = False


@dataclass
class NodeToken:
    node_id: str
    shape: Optional[Shape] = None
    suffix: str = ""

    @property
    def is_bare(self) -> bool:
        return self.shape is None


@dataclass
class LinkToken:
    arrow: str
    label: Optional[str] = None
    label_style: str = ""  # "pipe" | "inline"
    opener: str = ""
    quoted: bool = False


@dataclass
class TextToken:
    text: str
    kind: str = "text"  # "text" | "amp" | "string" | "comment"


Token = Union[NodeToken, LinkToken, TextToken]


@dataclass
class TokenizedLine:
    tokens: List[Token] = field(default_factory=list)
    fixes: List[str] = field(default_factory=list)


def is_header_line(line: str) -> bool:
    return bool(HEADER_RE.match(line.strip()))


def is_directive_line(line: str) -> bool:
    return bool(DIRECTIVE_RE.match(line.strip()))


def is_statement_line(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not is_header_line(stripped) and not is_directive_line(stripped)


def tokenize_statement(line: str) -> TokenizedLine:
    """Tokenize one flowchart statement (no header, no directive)"""
    return _Scanner(line.strip()).scan()


def unwrap_quoted(raw: str) -> Tuple[str, bool, bool]:
    """
    Split a label into (text, quoted, repaired).

    A label that opens a quote without closing it counts as quoted and
    repaired; the missing quote is implied.
    """
    text = raw.strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1], True, False
    if text.startswith('"'):
        return text[1:], True, True
    return text, False, False


class _Scanner:

    def __init__(self, line: str):
        self.line = line
        self.pos = 0
        self.result = TokenizedLine()

    @property
    def tokens(self) -> List[Token]:
        return self.result.tokens

    def fix(self, description: str) -> None:
        self.result.fixes.append(description)

    def scan(self) -> TokenizedLine:
        line = self.line
        while self.pos < len(line):
            ch = line[self.pos]
            if ch.isspace():
                self.pos += 1
                continue
            if line.startswith('%%', self.pos):
                self.tokens.append(TextToken(line[self.pos:].rstrip(), kind="comment"))
                break

            arrow = ARROW_RE.match(line, self.pos)
            if arrow:
                self._scan_link(arrow)
                continue

            opener = INLINE_LABEL_RE.match(line, self.pos)
            if opener and self._scan_inline_label(opener):
                continue

            if ch == '"':
                self._scan_string()
            elif ch == '&':
                self.tokens.append(TextToken('&', kind="amp"))
                self.pos += 1
            else:
                ident = ID_RE.match(line, self.pos)
                if ident:
                    self._scan_node(ident)
                else:
                    self._scan_text()
        return self.result

    def _next_arrow_at(self, start: int) -> int:
        arrow = ARROW_RE.search(self.line, start)
        return arrow.start() if arrow else len(self.line)

    def _scan_link(self, arrow) -> None:
        line = self.line
        token = LinkToken(arrow=arrow.group(0))
        self.pos = arrow.end()

        j = self.pos
        while j < len(line) and line[j] == ' ':
            j += 1
        if j < len(line) and line[j] == '|':
            search_from = j + 1
            if line.startswith('"', j + 1):
                closing_quote = line.find('"', j + 2)
                if closing_quote != -1:
                    search_from = closing_quote
            close = line.find('|', search_from)
            if close != -1:
                token.label, token.quoted, repaired = unwrap_quoted(line[j + 1:close])
                token.label_style = "pipe"
                if repaired:
                    self.fix("Closed unterminated edge label quote")
                self.pos = close + 1
        self.tokens.append(token)

    def _scan_inline_label(self, opener) -> bool:
        line = self.line
        start = opener.end()
        closer_re = INLINE_LABEL_CLOSERS[opener.group(0)]

        search_from = start
        stripped_start = len(line) - len(line[start:].lstrip())
        if line.startswith('"', stripped_start):
            closing_quote = line.find('"', stripped_start + 1)
            if closing_quote != -1:
                search_from = closing_quote + 1

        closer = closer_re.search(line, search_from)
        if not closer:
            return False

        label, quoted, repaired = unwrap_quoted(line[start:closer.start()])
        if repaired:
            self.fix("Closed unterminated edge label quote")
        arrow = closer.group(0)
        if label.strip():
            self.tokens.append(LinkToken(arrow=arrow, label=label, label_style="inline",
                                         opener=opener.group(0), quoted=quoted))
        else:
            self.tokens.append(LinkToken(arrow=_plain_arrow(opener.group(0), arrow)))
            self.fix("Dropped empty edge label")
        self.pos = closer.end()
        return True

    def _scan_string(self) -> None:
        line = self.line
        close = line.find('"', self.pos + 1)
        if close != -1:
            self.tokens.append(TextToken(line[self.pos:close + 1], kind="string"))
            self.pos = close + 1
            return

        end = self._next_arrow_at(self.pos + 1)
        content = line[self.pos + 1:end].rstrip()
        self.pos = end
        if content:
            self.tokens.append(TextToken(f'"{content}"', kind="string"))
            self.fix("Closed unterminated quoted string")
        else:
            self.fix("Dropped stray quote")

    def _scan_node(self, ident) -> None:
        node = NodeToken(ident.group(0))
        self.pos = ident.end()

        if self.line.startswith(SHAPE_OPENERS, self.pos):
            node.shape = self._scan_shape()

        suffix = _CLASS_SUFFIX_RE.match(self.line, self.pos)
        if suffix:
            node.suffix = suffix.group(0)
            self.pos = suffix.end()
        self.tokens.append(node)

    def _scan_shape(self) -> Shape:
        candidates = [(opener, closers) for opener, closers in SHAPES
                      if self.line.startswith(opener, self.pos)]

        # Compound openers only win when they close properly on this line
        for opener, closers in candidates:
            found = self._match_shape(opener, closers, lenient=False)
            if found:
                shape, end = found
                self.pos = end
                return shape

        opener, closers = candidates[-1]
        shape, end = self._match_shape(opener, closers, lenient=True)
        self.pos = end
        return shape

    def _match_shape(self, opener: str, closers: Tuple[str, ...], lenient: bool):
        line = self.line
        start = self.pos + len(opener)
        arrow_at = self._next_arrow_at(start)

        if start < len(line) and line[start] == '"':
            found = self._match_quoted_shape(opener, closers, start, arrow_at, lenient)
        else:
            found = self._match_bare_shape(opener, closers, start, arrow_at, lenient)
        if not found:
            return None

        shape, end = found
        # A stray quote right after the closer belongs to this label: B[End]"
        if end < len(line) and line[end] == '"' and line.count('"', end) % 2 == 1:
            shape.quoted = True
            end += 1
            self.fix(f"Absorbed stray quote after {shape.opener}{shape.closer} shape")
        return shape, end

    def _match_quoted_shape(self, opener, closers, start, arrow_at, lenient):
        line = self.line
        best = None
        for closer in closers:
            match = re.compile(r'"\s*' + re.escape(closer)).search(line, start + 1)
            if match and (best is None or match.start() < best[0].start()):
                best = (match, closer)
        if best:
            match, closer = best
            inner = line[start + 1:match.start()]
            # A quote inside means the match ran into a neighbouring node
            if '"' not in inner:
                return Shape(opener, closer, inner, quoted=True), match.end()

        closer, close_at = _first_closer(line, start + 1, closers)
        if close_at != -1 and close_at < arrow_at:
            inner, end = line[start + 1:close_at], close_at + len(closer)
        elif not lenient:
            return None
        else:
            closer = closers[0]
            inner, end = line[start + 1:arrow_at], arrow_at
            self.fix(f"Closed unterminated {opener}{closer} node definition")

        inner = inner.rstrip()
        if inner.endswith('"'):
            inner = inner[:-1]
        else:
            self.fix("Closed unterminated label quote")
        return Shape(opener, closer, inner, quoted=True), end

    def _match_bare_shape(self, opener, closers, start, arrow_at, lenient):
        line = self.line
        closer, close_at = _first_closer(line, start, closers, nested=True)
        if close_at != -1 and close_at < arrow_at:
            return Shape(opener, closer, line[start:close_at]), close_at + len(closer)
        if not lenient:
            return None
        closer = closers[0]
        self.fix(f"Closed unterminated {opener}{closer} node definition")
        return Shape(opener, closer, line[start:arrow_at].rstrip()), arrow_at

    def _scan_text(self) -> None:
        line = self.line
        start = self.pos
        while self.pos < len(line) and not line[self.pos].isspace():
            if self.pos > start and (line[self.pos] == '"' or ARROW_RE.match(line, self.pos)):
                break
            self.pos += 1
        self.tokens.append(TextToken(line[start:self.pos]))


def _first_closer(line: str, start: int, closers: Tuple[str, ...], nested: bool = False):
    """Earliest closer after start; single-char closers respect nesting when asked"""
    best_closer, best_at = closers[0], -1
    for closer in closers:
        if nested and len(closer) == 1:
            at = _find_balanced(line, start, closer)
        else:
            at = line.find(closer, start)
        if at != -1 and (best_at == -1 or at < best_at):
            best_closer, best_at = closer, at
    return best_closer, best_at


def _find_balanced(line: str, start: int, closer: str) -> int:
    open_char = _MATCHING_OPEN[closer]
    depth = 1
    for i in range(start, len(line)):
        if line[i] == open_char:
            depth += 1
        elif line[i] == closer:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _plain_arrow(opener: str, closer: str) -> str:
    """Arrow equivalent to an inline-label link with the label removed"""
    return '-' + closer if opener == '-.' else closer

"""
Line Repairer

Line-by-line repair of flowchart markup. Each statement is tokenized, the
malformed bits are closed or escaped, and the tokens are written back in a
canonical spacing. Running the repairer over its own output changes nothing.
"""

import re
import logging
from typing import List, Optional, Tuple

from diagram_recovery.config import RecoveryConfig, get_recovery_config
from diagram_recovery.tools.flowchart_tokenizer import (
    HEADER_RE,
    LinkToken,
    NodeToken,
    Token,
    is_directive_line,
    is_header_line,
    tokenize_statement,
)

logger = logging.getLogger(__name__)

VALID_DIRECTIONS = ("TD", "TB", "LR", "RL", "BT")

# Typographic characters models like to emit, mapped to their ASCII syntax
TRANSLITERATIONS = [
    (re.compile('[\u2010\u2011\u2012\u2013\u2014\u2015\u2212]'), '-'),
    (re.compile('[\u2018\u2019\u201a\u201b\u2032]'), "'"),
    (re.compile('[\u201c\u201d\u201e\u201f\u2033]'), '"'),
    (re.compile('\u2026'), '...'),
    (re.compile('[\u2192\u27f6\u21d2]'), '-->'),
    (re.compile('[\u00a0\u2002\u2003\u2009\u200b]'), ' '),
    (re.compile('\t'), '    '),
]
NON_PRINTABLE_RE = re.compile(r'[^\x20-\x7e]')

GLUED_HEADER_RE = re.compile(r'^(\s*(?:flowchart|graph)\s+(?:TD|TB|LR|RL|BT))\s+(\S.*)$', re.IGNORECASE)
LABEL_BREAK_RE = re.compile(r'(?:\\n|\s)+')
OPENERS_BEFORE_QUOTE_RE = re.compile(r'[\[\(\{]|-->|---|==>')


class LineRepairer:
    """Token-based repair for flowchart diagrams"""

    def __init__(self, config: Optional[RecoveryConfig] = None):
        self.config = config or get_recovery_config()
        self._safe_label_re = re.compile(self.config.safe_label_pattern)

    def repair_lines(self, text: str) -> str:
        repaired, _ = self.repair_with_report(text)
        return repaired

    def repair_with_report(self, text: str) -> Tuple[str, List[str]]:
        """Repair flowchart text and describe every change that was made"""
        fixes: List[str] = []

        lines = [self._sanitize_characters(line, fixes) for line in text.splitlines()]
        lines = self._join_wrapped_labels(lines, fixes)
        lines = self._split_statements(lines, fixes)

        repaired = []
        for number, line in enumerate(lines, start=1):
            statements = self._repair_statement(line, number, fixes)
            if statements:
                repaired.extend(statements)
            elif line.strip():
                fixes.append(f"Line {number}: Dropped line with no content")

        if fixes:
            logger.debug(f"🔧 Line repair applied {len(fixes)} fixes")
        return "\n".join(repaired), fixes

    def _sanitize_characters(self, line: str, fixes: List[str]) -> str:
        original = line
        for pattern, replacement in TRANSLITERATIONS:
            line = pattern.sub(replacement, line)
        line = NON_PRINTABLE_RE.sub('', line)
        if line != original and line.strip() != original.strip():
            fixes.append("Replaced non-ASCII characters")
        return line.rstrip()

    def _join_wrapped_labels(self, lines: List[str], fixes: List[str]) -> List[str]:
        """Re-join a quoted label that a line break split in two"""
        joined: List[str] = []
        i = 0
        while i < len(lines):
            line = lines[i]
            if (i + 1 < len(lines) and line.count('"') % 2 == 1
                    and self._continues_label(lines[i + 1])):
                line = f"{line.rstrip()} {lines[i + 1].strip()}"
                fixes.append("Joined label wrapped across lines")
                i += 1
            joined.append(line)
            i += 1
        return joined

    @staticmethod
    def _continues_label(line: str) -> bool:
        if line.count('"') % 2 == 0:
            return False
        before_quote = line[:line.index('"')]
        return not OPENERS_BEFORE_QUOTE_RE.search(before_quote)

    def _split_statements(self, lines: List[str], fixes: List[str]) -> List[str]:
        result: List[str] = []
        for line in lines:
            indent = line[:len(line) - len(line.lstrip())]
            parts = _split_on_semicolons(line.strip())
            if len(parts) > 1:
                fixes.append("Split statements separated by ';'")
            for part in parts:
                glued = GLUED_HEADER_RE.match(part)
                if glued:
                    fixes.append("Moved statement off the header line")
                    result.append(indent + glued.group(1).strip())
                    result.append(indent + "    " + glued.group(2).strip())
                else:
                    result.append(indent + part)
        return result

    def _repair_statement(self, line: str, number: int, fixes: List[str]) -> List[str]:
        """Repair one line, splitting again on any ';' the repair left outside quotes"""
        fixed = self._repair_line(line, number, fixes)
        if not fixed.strip():
            return []

        indent = fixed[:len(fixed) - len(fixed.lstrip())]
        parts = _split_on_semicolons(fixed.strip())
        if len(parts) == 1:
            return [fixed]

        # A stray quote hid the ';' from the first split
        fixes.append(f"Line {number}: Split statements separated by ';'")
        statements: List[str] = []
        for part in parts:
            statements.extend(self._repair_statement(indent + part, number, fixes))
        return statements

    def _repair_line(self, line: str, number: int, fixes: List[str]) -> str:
        indent = line[:len(line) - len(line.lstrip())]
        body = line.strip()
        if body.endswith(';'):
            body = body.rstrip(';').rstrip()
            fixes.append(f"Line {number}: Removed trailing semicolon")
        if not body:
            return ""

        if is_header_line(body):
            return indent + self._repair_header(body)
        if is_directive_line(body):
            return indent + body

        tokenized = tokenize_statement(body)
        fixes.extend(f"Line {number}: {fix}" for fix in tokenized.fixes)
        return indent + " ".join(self._render_token(token) for token in tokenized.tokens)

    @staticmethod
    def _repair_header(body: str) -> str:
        match = HEADER_RE.match(body)
        keyword, direction, rest = match.group(1).lower(), match.group(2), match.group(3)
        if direction is None:
            return f"{keyword}{rest}".rstrip()
        if direction.upper() in VALID_DIRECTIONS:
            direction = direction.upper()
        return f"{keyword} {direction}{rest}".rstrip()

    def _render_token(self, token: Token) -> str:
        if isinstance(token, NodeToken):
            text = token.node_id
            if token.shape is not None:
                label = self._format_label(token.shape.label, token.shape.quoted, token.node_id)
                text += f"{token.shape.opener}{label}{token.shape.closer}"
            return text + token.suffix

        if isinstance(token, LinkToken):
            if token.label is None or not token.label.strip():
                return token.arrow
            label = self._format_label(token.label, token.quoted)
            if token.label_style == "pipe":
                return f"{token.arrow}|{label}|"
            return f"{token.opener} {label} {token.arrow}"

        return token.text

    def _format_label(self, label: str, quoted: bool, node_id: Optional[str] = None) -> str:
        label = LABEL_BREAK_RE.sub(' ', label).strip()
        label = label.replace('"', '#quot;')
        if not label and node_id:
            label, quoted = node_id, True
        if quoted or not self._safe_label_re.match(label):
            return f'"{label}"'
        return label


def _split_on_semicolons(body: str) -> List[str]:
    """Split on ';' outside quotes, brackets and pipe labels"""
    if ';' not in body or body.startswith('%%'):
        return [body]

    parts: List[str] = []
    depth = 0
    in_quote = in_pipe = False
    start = 0
    for i, ch in enumerate(body):
        if ch == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif ch in '[({':
            depth += 1
        elif ch in '])}':
            depth = max(depth - 1, 0)
        elif ch == '|' and depth == 0:
            in_pipe = not in_pipe
        elif ch == '%' and body.startswith('%%', i):
            break
        elif ch == ';' and depth == 0 and not in_pipe:
            parts.append(body[start:i])
            start = i + 1
    parts.append(body[start:])

    statements = [part.strip() for part in parts[:-1] if part.strip()]
    tail = parts[-1].strip()
    if not statements:
        return [body]
    if tail:
        statements.append(tail)
    else:
        # Keep the trailing ';' for the per-line pass to report
        statements[-1] += ';'
    return statements

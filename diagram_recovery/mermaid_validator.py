#!/usr/bin/env python3
"""
Mermaid Validation

Validates Mermaid markup against the renderer's own parser. The renderer is
an injected backend (a Node.js mermaid install in production, a fake in
tests), so validation agrees exactly with what will later be drawn.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from diagram_recovery.performance_logger import time_function

logger = logging.getLogger(__name__)


class MermaidBackend(Protocol):
    """
    Renderer capability the pipeline depends on.

    Both methods may be plain functions or coroutines. `parse` raises on
    invalid markup; `render` returns an SVG (or any visual payload) and
    raises when drawing fails.
    """

    def parse(self, text: str) -> Any:
        ...

    def render(self, text: str, element_id: str) -> Any:
        ...


@dataclass
class ValidationResult:
    """Result of Mermaid syntax validation"""
    ok: bool
    error: Optional[str] = None


async def call_backend(result: Any) -> Any:
    """Await backend results that are awaitable, pass plain values through"""
    if inspect.isawaitable(result):
        return await result
    return result


class MermaidValidator:
    """
    Thin wrapper over the backend's parse step.

    Any exception raised by the parser counts as a syntax error. Validation is
    the only stage that touches the backend before rendering, and it never
    mutates the text it is given.
    """

    def __init__(self, backend: MermaidBackend):
        self.backend = backend
        self.validations = 0
        self.failures = 0

    @time_function("validate")
    async def validate(self, text: str) -> ValidationResult:
        self.validations += 1
        try:
            await call_backend(self.backend.parse(text))
        except Exception as e:
            self.failures += 1
            message = getattr(e, "detail", None) or str(e) or e.__class__.__name__
            logger.info(f"❌ Mermaid parse rejected diagram: {message}")
            return ValidationResult(ok=False, error=message)
        return ValidationResult(ok=True)

    def get_stats(self) -> dict:
        return {
            "validations": self.validations,
            "failures": self.failures,
        }

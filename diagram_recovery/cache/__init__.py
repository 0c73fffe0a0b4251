"""
Cache module for the diagram recovery service.

Holds the per-diagram render outcome cache used by the render controller.
"""

from .render_cache import RenderOutcomeCache

__all__ = [
    'RenderOutcomeCache',
]

"""
Diagram Recovery

Turns raw, frequently malformed Mermaid text produced by a language model
into something drawable: a faithful render, a simplified fallback diagram,
or a readable error with the original text.
"""

__version__ = "1.0.0"

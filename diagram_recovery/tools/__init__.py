"""
Diagram Recovery Tools Package

Deterministic repair stages for Mermaid markup: the flowchart tokenizer, the
line repairer, node inference, fallback graph synthesis and the Node.js
mermaid backend. Each stage is a pure text transformation except the backend.
"""

__version__ = "1.0.0"

# Defer imports so individual tools can be imported on their own
__all__ = [
    "flowchart_tokenizer",
    "line_repairer",
    "node_inferencer",
    "fallback_builder",
    "mermaid_cli",
]

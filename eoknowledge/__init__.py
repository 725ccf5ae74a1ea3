"""
Executive Order Knowledge Extraction & Cross-Source Fusion

Turns executive-order text into typed, confidence-scored knowledge items
and fuses what several sources say about the same order into one
unified knowledge record.
"""

__version__ = "0.1.0"
__all__ = [
    "config",
    "models",
    "patterns",
    "extractors",
    "orchestrator",
    "fusion",
    "utils",
]

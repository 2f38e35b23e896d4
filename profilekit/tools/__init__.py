"""Tool registry, availability probing and fallback selection.

This module keeps the catalogue of wrapped tools, detects which of them are
installed and picks alternatives for the missing ones.
"""

from .detector import ToolDetector, DetectedTool, ToolStatus
from .registry import ToolRegistry, ToolInfo, ToolCategory
from .fallback import FallbackResolver

__all__ = [
    # Detector
    "ToolDetector",
    "DetectedTool",
    "ToolStatus",
    # Registry
    "ToolRegistry",
    "ToolInfo",
    "ToolCategory",
    # Fallback
    "FallbackResolver",
]

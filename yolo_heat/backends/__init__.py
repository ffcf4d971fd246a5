"""
Optional model-execution backends for yolo_heat.

Each backend imports its runtime lazily so pre/post-processing and heatmaps stay
usable without any inference runtime installed.
"""

from __future__ import annotations

__all__ = []

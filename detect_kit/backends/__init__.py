"""
Optional inference backends for detect_kit.

Backends are kept in a separate module so core functionality (decode, NMS,
mapping) stays lightweight and can be used without installing inference
runtimes.
"""

from __future__ import annotations

__all__ = []

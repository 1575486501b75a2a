"""
Rendering Layer
===============

Bounded Context: Display-only transforms.

Responsibilities:
- Reference frame correction for regional map tiles
- NEVER used on the validation path
"""

from territory_geo.rendering.converter import CoordinateConverter

__all__ = [
    "CoordinateConverter",
]

"""
Core circuit-construction and simulation components.
"""

from .registers import AncillaPool, ScopedAncilla

__all__ = [
    'AncillaPool',
    'ScopedAncilla',
]

"""Price computation for winning rules."""

from .calculator import PriceCalculator, resolve_tier

__all__ = [
    'PriceCalculator',
    'resolve_tier'
]

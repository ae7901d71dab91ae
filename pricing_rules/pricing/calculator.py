"""Final price computation for the winning pricing rule."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Optional, Tuple
import logging

from ..core.models import PricingRule, RuleType, BulkDiscountTier, to_decimal

logger = logging.getLogger(__name__)

ONE = Decimal('1')
HUNDRED = Decimal('100')


def _apply_discount(base_price: Decimal, percentage: Decimal) -> Decimal:
    return base_price * (ONE - percentage / HUNDRED)


def resolve_tier(rule: PricingRule, quantity: int) -> Optional[BulkDiscountTier]:
    """Tier with the largest threshold not above quantity, if any"""
    chosen = None
    for tier in sorted(rule.tiers, key=lambda t: t.threshold_quantity):
        if tier.threshold_quantity > quantity:
            break
        chosen = tier
    return chosen


def _markup(rule: PricingRule, base_price: Decimal, quantity: int) -> Decimal:
    return base_price * (ONE + rule.value / HUNDRED)


def _percentage_off(rule: PricingRule, base_price: Decimal, quantity: int) -> Decimal:
    return _apply_discount(base_price, rule.value)


def _fixed_price(rule: PricingRule, base_price: Decimal, quantity: int) -> Decimal:
    return rule.value


def _bulk_discount(rule: PricingRule, base_price: Decimal, quantity: int) -> Decimal:
    tier = resolve_tier(rule, quantity)
    if tier is None:
        # below the first threshold, or no tiers configured
        return _apply_discount(base_price, rule.value)
    return _apply_discount(base_price, tier.discount_percentage)


_HANDLERS: Dict[RuleType, Callable[[PricingRule, Decimal, int], Decimal]] = {
    RuleType.MARKUP: _markup,
    RuleType.MARKDOWN: _percentage_off,
    RuleType.PERCENTAGE_DISCOUNT: _percentage_off,
    RuleType.FIXED_PRICE: _fixed_price,
    RuleType.BULK_DISCOUNT: _bulk_discount,
}

assert set(_HANDLERS) == set(RuleType), "Every rule type needs a price handler"


class PriceCalculator:
    """Computes (final_price, discount_amount) for a rule, or for no rule."""

    def __init__(self, rounding_places: int = 2):
        if rounding_places < 0:
            raise ValueError(f"Rounding places must be non-negative, got {rounding_places}")
        self.rounding_places = rounding_places
        self._quantum = ONE.scaleb(-rounding_places)

    def compute_final_price(self, rule: Optional[PricingRule], base_price,
                            quantity: int) -> Tuple[Decimal, Decimal]:
        base_price = to_decimal(base_price)
        raw_price = self._raw_price(rule, base_price, quantity)

        final_price = self.round_amount(max(raw_price, Decimal('0')))
        discount_amount = self.round_amount(max(base_price - final_price, Decimal('0')))
        return final_price, discount_amount

    def round_amount(self, amount: Decimal) -> Decimal:
        """Round half-up to the configured currency precision"""
        return amount.quantize(self._quantum, rounding=ROUND_HALF_UP)

    def _raw_price(self, rule: Optional[PricingRule], base_price: Decimal, quantity: int) -> Decimal:
        if rule is None:
            return base_price

        handler = _HANDLERS.get(rule.rule_type) if isinstance(rule.rule_type, RuleType) else None
        if handler is None:
            logger.warning(
                f"Data integrity: rule {rule.id} has unrecognized type "
                f"{rule.rule_type!r}; pricing as if no rule applied"
            )
            return base_price

        return handler(rule, base_price, quantity)

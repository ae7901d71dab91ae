"""Picks the single rule that governs a request."""

from datetime import timezone
from typing import List, Optional, Sequence, Tuple
import logging

from ..core.models import PricingRule

logger = logging.getLogger(__name__)


def _created_at_key(rule: PricingRule) -> Tuple[int, float]:
    """Rules without a creation time sort after every dated rule"""
    if rule.created_at is None:
        return (1, 0.0)
    created = rule.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (0, created.timestamp())


class RuleSelector:
    """Orders applicable rules and returns the winner.

    Ordering: priority (high first), then target specificity (product, then
    category, then global), then creation time (oldest first), then id. The
    order is total, so the winner does not depend on input order. Rules never
    stack.
    """

    @staticmethod
    def sort_key(rule: PricingRule):
        return (
            -rule.priority,
            -rule.specificity.value,
            _created_at_key(rule),
            rule.id
        )

    def rank(self, rules: Sequence[PricingRule]) -> List[PricingRule]:
        return sorted(rules, key=self.sort_key)

    def select(self, rules: Sequence[PricingRule]) -> Optional[PricingRule]:
        if not rules:
            return None

        winner = min(rules, key=self.sort_key)
        logger.debug(
            f"Selected rule {winner.id} (priority {winner.priority}, "
            f"{winner.specificity.name.lower()}) from {len(rules)} applicable"
        )
        return winner

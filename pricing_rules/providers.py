"""Rule sources the evaluator can draw candidate rules from."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional
import logging

from .core.models import PricingRule

logger = logging.getLogger(__name__)


class RuleProvider(ABC):
    """Supplies candidate rule snapshots for an evaluation.

    Implementations must be inclusive: returning extra rules is harmless
    because the rule filter drops them, but a missing rule silently loses
    the adjustment it would have applied.
    """

    @abstractmethod
    def get_candidate_rules(self, tenant_id: str, location_id: str,
                            product_id: Optional[str], category_id: Optional[str],
                            as_of: datetime) -> List[PricingRule]:
        """Return every rule structurally relevant to the target"""


class InMemoryRuleProvider(RuleProvider):
    """Provider over a fixed list of rules held in memory"""

    def __init__(self, rules: Iterable[PricingRule] = ()):
        self._rules = tuple(rules)
        logger.info(f"In-memory rule provider initialized with {len(self._rules)} rules")

    @property
    def rules(self) -> List[PricingRule]:
        return list(self._rules)

    def get_candidate_rules(self, tenant_id: str, location_id: str,
                            product_id: Optional[str], category_id: Optional[str],
                            as_of: datetime) -> List[PricingRule]:
        # Only scope and target are narrowed here; dates and status stay with the filter
        return [
            rule for rule in self._rules
            if rule.tenant_id == tenant_id
            and rule.location_id == location_id
            and (rule.is_global
                 or (rule.product_id is not None and rule.product_id == product_id)
                 or (rule.category_id is not None and rule.category_id == category_id))
        ]

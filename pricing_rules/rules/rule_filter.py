"""Applicability checks deciding which candidate rules may price a request."""

from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple, Iterable
import logging

from ..core.models import PricingRule, EvaluationRequest
from ..core.exceptions import DataIntegrityWarning
from ..utils.validation import RuleValidator
from .conditions import ConditionEvaluator

logger = logging.getLogger(__name__)


class RuleFilter:
    """Narrows candidate rules to those applicable to one request."""

    def __init__(self, condition_evaluator: Optional[ConditionEvaluator] = None,
                 validator: Optional[RuleValidator] = None):
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()
        self.validator = validator or RuleValidator()

    def is_applicable(self, rule: PricingRule, request: EvaluationRequest,
                      context: Optional[Dict[str, Any]] = None) -> bool:
        """True iff the rule is usable, well-formed and matches the request."""
        if not self.is_usable(rule):
            return False
        if self.validator.integrity_warnings(rule):
            return False
        return self._matches(rule, request, context)

    def filter_rules(self, rules: Iterable[PricingRule],
                     request: EvaluationRequest) -> Tuple[List[PricingRule], List[DataIntegrityWarning]]:
        """Split candidates into applicable rules, collecting integrity warnings.

        Status is checked first so inactive rules are pruned before anything
        else; malformed rules among the remainder are dropped with a warning.
        """
        context = request.condition_context()
        applicable = []
        warnings = []

        for rule in rules:
            if not self.is_usable(rule):
                logger.debug(f"Rule {rule.id} skipped: not active")
                continue

            rule_warnings = self.validator.integrity_warnings(rule)
            if rule_warnings:
                for warning in rule_warnings:
                    logger.warning(f"Excluding malformed pricing rule {warning}")
                warnings.extend(rule_warnings)
                continue

            if self._matches(rule, request, context):
                applicable.append(rule)

        return applicable, warnings

    @staticmethod
    def is_usable(rule: PricingRule) -> bool:
        return rule.is_usable

    @staticmethod
    def matches_target(rule: PricingRule, request: EvaluationRequest) -> bool:
        if rule.is_global:
            return True
        if rule.product_id is not None:
            return rule.product_id == request.product_id
        return rule.category_id == request.category_id

    @staticmethod
    def within_dates(rule: PricingRule, as_of: datetime) -> bool:
        """Both bounds inclusive"""
        if rule.start_date is not None and as_of < rule.start_date:
            return False
        if rule.end_date is not None and as_of > rule.end_date:
            return False
        return True

    @staticmethod
    def within_quantity(rule: PricingRule, quantity: int) -> bool:
        """Both bounds inclusive"""
        if rule.min_quantity is not None and quantity < rule.min_quantity:
            return False
        if rule.max_quantity is not None and quantity > rule.max_quantity:
            return False
        return True

    def _matches(self, rule: PricingRule, request: EvaluationRequest,
                 context: Optional[Dict[str, Any]]) -> bool:
        if not self.matches_target(rule, request):
            logger.debug(f"Rule {rule.id} skipped: target mismatch")
            return False

        try:
            in_window = self.within_dates(rule, request.as_of)
        except TypeError:
            logger.warning(
                f"Rule {rule.id} skipped: validity window and evaluation time "
                f"mix timezone-aware and naive timestamps"
            )
            return False
        if not in_window:
            logger.debug(f"Rule {rule.id} skipped: outside validity window")
            return False

        if not self.within_quantity(rule, request.quantity):
            logger.debug(f"Rule {rule.id} skipped: quantity {request.quantity} outside window")
            return False

        if context is None:
            context = request.condition_context()
        if not self.condition_evaluator.evaluate_all(rule.conditions, context):
            logger.debug(f"Rule {rule.id} skipped: conditions not met")
            return False

        return True

from typing import List, Tuple
from datetime import datetime
from decimal import Decimal
import logging

from .. import RULE_VALUE_LIMITS
from ..core.models import PricingRule, RuleType, RuleCondition, ConditionOperator, EvaluationRequest
from ..core.exceptions import DataIntegrityWarning


logger = logging.getLogger(__name__)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def check_condition(condition: RuleCondition) -> List[str]:
    """Problems that make a condition impossible to evaluate"""
    problems = []

    if not isinstance(condition.parameters, dict):
        problems.append(f"Condition parameters must be a mapping, got {condition.parameters!r}")

    path = condition.field_path
    if not isinstance(path, str) or not path:
        problems.append(f"Condition field is required, got {path!r}")

    try:
        op = ConditionOperator(condition.operator)
    except ValueError:
        problems.append(f"Unknown condition operator: {condition.operator!r}")
        return problems

    if op in (ConditionOperator.IN, ConditionOperator.NOT_IN) and \
            not isinstance(condition.value, (list, tuple, set, frozenset)):
        problems.append(f"'{op.value}' condition on {path} needs a list of values")

    return problems


class RuleValidator:
    """Integrity checks for pricing rules and evaluation requests"""

    MIN_VALUE = RULE_VALUE_LIMITS['min_value']
    MAX_PERCENTAGE = RULE_VALUE_LIMITS['max_percentage']
    MIN_REQUEST_QUANTITY = RULE_VALUE_LIMITS['min_quantity']

    def validate_rule(self, rule: PricingRule) -> Tuple[bool, List[str]]:
        """Check a rule against every structural invariant"""
        problems = []

        if not isinstance(rule.rule_type, RuleType):
            problems.append(f"Unrecognized rule type: {rule.rule_type!r}")

        if not isinstance(rule.value, Decimal):
            problems.append(f"Value must be a decimal number, got {rule.value!r}")

        if not _is_int(rule.priority):
            problems.append(f"Priority must be an integer, got {rule.priority!r}")

        for name in ('start_date', 'end_date', 'created_at'):
            stamp = getattr(rule, name)
            if stamp is not None and not isinstance(stamp, datetime):
                problems.append(f"{name} must be a datetime, got {stamp!r}")

        # Range checks below assume the field types are sound
        if problems:
            return False, problems

        problems.extend(self._check_value(rule))
        problems.extend(self._check_targeting(rule))
        problems.extend(self._check_quantity_window(rule))
        problems.extend(self._check_date_window(rule))
        problems.extend(self._check_conditions(rule))

        if rule.rule_type is RuleType.BULK_DISCOUNT:
            problems.extend(self._check_tiers(rule))

        return len(problems) == 0, problems

    def integrity_warnings(self, rule: PricingRule) -> List[DataIntegrityWarning]:
        """Same checks as validate_rule, as warning records"""
        _, problems = self.validate_rule(rule)
        return [DataIntegrityWarning(rule_id=rule.id, reason=problem) for problem in problems]

    def validate_request(self, request: EvaluationRequest) -> Tuple[bool, List[str]]:
        """Check the caller side of the evaluation contract"""
        problems = []

        quantity = request.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, (int, Decimal)):
            problems.append(f"Quantity must be an integer, got {quantity!r}")
        elif isinstance(quantity, Decimal) and not quantity.is_finite():
            problems.append(f"Quantity must be a finite number, got {quantity}")
        elif quantity != int(quantity):
            problems.append(f"Quantity must be a whole number, got {quantity}")
        elif quantity < self.MIN_REQUEST_QUANTITY:
            problems.append(f"Quantity {quantity} below minimum {self.MIN_REQUEST_QUANTITY}")

        base_price = request.base_price
        if not base_price.is_finite():
            problems.append(f"Base price must be a finite number, got {base_price}")
        elif base_price < 0:
            problems.append(f"Base price ${base_price} is negative")

        if not isinstance(request.as_of, datetime):
            problems.append(f"Evaluation timestamp is missing or not a datetime: {request.as_of!r}")

        return len(problems) == 0, problems

    def _check_value(self, rule: PricingRule) -> List[str]:
        errors = []
        value = rule.value

        if not value.is_finite():
            return [f"Value must be a finite number, got {value}"]

        if value < self.MIN_VALUE:
            errors.append(f"Value {value} is negative")

        if isinstance(rule.rule_type, RuleType) and rule.rule_type.is_percentage:
            if value > self.MAX_PERCENTAGE:
                errors.append(
                    f"Percentage {value}% above maximum {self.MAX_PERCENTAGE}% "
                    f"for {rule.rule_type.value} rule"
                )

        return errors

    def _check_targeting(self, rule: PricingRule) -> List[str]:
        if rule.product_id is not None and rule.category_id is not None:
            return [
                f"Rule targets both product {rule.product_id} "
                f"and category {rule.category_id}"
            ]
        return []

    def _check_quantity_window(self, rule: PricingRule) -> List[str]:
        errors = []
        low, high = rule.min_quantity, rule.max_quantity

        for bound in (low, high):
            if bound is not None and not _is_int(bound):
                return [f"Quantity bounds must be integers, got {bound!r}"]

        if low is not None and low < 0:
            errors.append(f"Minimum quantity {low} is negative")
        if high is not None and high < 0:
            errors.append(f"Maximum quantity {high} is negative")
        if low is not None and high is not None and low > high:
            errors.append(f"Minimum quantity {low} exceeds maximum quantity {high}")

        return errors

    def _check_date_window(self, rule: PricingRule) -> List[str]:
        start, end = rule.start_date, rule.end_date
        if start is None or end is None:
            return []

        try:
            if start > end:
                return [f"Start date {start.isoformat()} is after end date {end.isoformat()}"]
        except TypeError:
            return ["Start and end dates mix timezone-aware and naive timestamps"]

        return []

    def _check_conditions(self, rule: PricingRule) -> List[str]:
        if not isinstance(rule.conditions, (list, tuple)):
            return [f"Conditions must be a list, got {rule.conditions!r}"]

        errors = []
        for condition in rule.conditions:
            if not isinstance(condition, RuleCondition):
                errors.append(f"Condition must be a RuleCondition, got {condition!r}")
                continue
            errors.extend(check_condition(condition))

        return errors

    def _check_tiers(self, rule: PricingRule) -> List[str]:
        errors = []
        seen = set()

        for tier in rule.tiers:
            if not _is_int(tier.threshold_quantity):
                errors.append(f"Tier threshold must be an integer, got {tier.threshold_quantity!r}")
                continue
            if tier.threshold_quantity < 0:
                errors.append(f"Tier threshold {tier.threshold_quantity} is negative")
            if not tier.discount_percentage.is_finite() or not (
                    self.MIN_VALUE <= tier.discount_percentage <= self.MAX_PERCENTAGE):
                errors.append(
                    f"Tier discount {tier.discount_percentage}% outside "
                    f"{self.MIN_VALUE}-{self.MAX_PERCENTAGE}%"
                )
            if tier.threshold_quantity in seen:
                errors.append(f"Duplicate tier threshold {tier.threshold_quantity}")
            seen.add(tier.threshold_quantity)

        return errors

"""Validated construction of pricing rules."""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Any, Union, Iterable, Tuple
import logging

from ..core.models import (
    PricingRule, RuleType, RuleStatus, RuleCondition, ConditionOperator,
    BulkDiscountTier, to_decimal
)
from ..core.exceptions import RuleConstructionError
from ..utils.validation import RuleValidator, check_condition

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]


class RuleBuilder:
    """Fluent builder for pricing rules; build() refuses invalid rules."""

    def __init__(self, validator: Optional[RuleValidator] = None):
        self.validator = validator or RuleValidator()
        self._reset()

    def _reset(self):
        """Reset builder state."""
        self._rule_id: Optional[str] = None
        self._tenant_id: Optional[str] = None
        self._location_id: Optional[str] = None
        self._name: str = ""
        self._description: str = ""
        self._rule_type: Optional[RuleType] = None
        self._value: Optional[Number] = None
        self._product_id: Optional[str] = None
        self._category_id: Optional[str] = None
        self._min_quantity: Optional[int] = None
        self._max_quantity: Optional[int] = None
        self._start_date: Optional[datetime] = None
        self._end_date: Optional[datetime] = None
        self._priority: int = 0
        self._conditions: List[RuleCondition] = []
        self._tiers: List[BulkDiscountTier] = []
        self._status: RuleStatus = RuleStatus.ACTIVE
        self._is_active: bool = True
        self._created_by: Optional[str] = None
        self._created_at: Optional[datetime] = None
        self._updated_by: Optional[str] = None
        self._updated_at: Optional[datetime] = None
        self._metadata: Dict[str, Any] = {}

    def with_id(self, rule_id: str) -> 'RuleBuilder':
        self._rule_id = rule_id
        return self

    def for_location(self, tenant_id: str, location_id: str) -> 'RuleBuilder':
        """Scope the rule to a tenant's location."""
        self._tenant_id = tenant_id
        self._location_id = location_id
        return self

    def with_name(self, name: str, description: str = "") -> 'RuleBuilder':
        self._name = name
        self._description = description
        return self

    def with_type(self, rule_type: RuleType, value: Number) -> 'RuleBuilder':
        """Set rule type and its value (percentage, or amount for fixed price)."""
        self._rule_type = rule_type
        self._value = value
        return self

    def with_priority(self, priority: int) -> 'RuleBuilder':
        self._priority = priority
        return self

    def for_product(self, product_id: str) -> 'RuleBuilder':
        self._product_id = product_id
        return self

    def for_category(self, category_id: str) -> 'RuleBuilder':
        self._category_id = category_id
        return self

    def for_quantity(self, min_quantity: Optional[int] = None,
                     max_quantity: Optional[int] = None) -> 'RuleBuilder':
        """Restrict to an inclusive quantity window."""
        self._min_quantity = min_quantity
        self._max_quantity = max_quantity
        return self

    def valid_between(self, start: Optional[datetime], end: Optional[datetime]) -> 'RuleBuilder':
        """Set inclusive validity period."""
        self._start_date = start
        self._end_date = end
        return self

    def when(self, field: str, operator: Union[ConditionOperator, str], value: Any,
             **parameters) -> 'RuleBuilder':
        """Add a condition on a request context field."""
        self._conditions.append(RuleCondition(field, operator, value, dict(parameters)))
        return self

    def when_customer_segment(self, *segments: str) -> 'RuleBuilder':
        return self.when('customer_segment', ConditionOperator.IN, list(segments))

    def with_tier(self, threshold_quantity: int, discount_percentage: Number) -> 'RuleBuilder':
        """Add a bulk discount tier."""
        self._tiers.append(BulkDiscountTier(threshold_quantity, discount_percentage))
        return self

    def with_status(self, status: RuleStatus, is_active: bool = True) -> 'RuleBuilder':
        self._status = status
        self._is_active = is_active
        return self

    def created(self, at: datetime, by: Optional[str] = None) -> 'RuleBuilder':
        self._created_at = at
        self._created_by = by
        return self

    def updated(self, at: datetime, by: Optional[str] = None) -> 'RuleBuilder':
        self._updated_at = at
        self._updated_by = by
        return self

    def with_metadata(self, key: str, value: Any) -> 'RuleBuilder':
        self._metadata[key] = value
        return self

    def build(self) -> PricingRule:
        """Build the rule, raising RuleConstructionError if any invariant fails."""
        problems = []

        if not self._rule_id:
            problems.append("Rule ID is required")
        if not self._tenant_id or not self._location_id:
            problems.append("Tenant and location are required")
        if self._rule_type is None:
            problems.append("Rule type is required")
        if self._value is None:
            problems.append("Rule value is required")

        conditions, condition_problems = _normalize_conditions(self._conditions)
        problems.extend(condition_problems)

        if problems:
            rule_id = self._rule_id
            self._reset()
            raise RuleConstructionError(problems, rule_id)

        try:
            value = to_decimal(self._value)
        except InvalidOperation:
            rule_id, raw_value = self._rule_id, self._value
            self._reset()
            raise RuleConstructionError([f"Rule value {raw_value!r} is not a number"], rule_id)

        rule = PricingRule(
            id=self._rule_id,
            tenant_id=self._tenant_id,
            location_id=self._location_id,
            rule_type=self._rule_type,
            value=value,
            name=self._name,
            description=self._description,
            product_id=self._product_id,
            category_id=self._category_id,
            min_quantity=self._min_quantity,
            max_quantity=self._max_quantity,
            start_date=self._start_date,
            end_date=self._end_date,
            priority=self._priority,
            conditions=conditions,
            tiers=sorted(self._tiers, key=lambda t: t.threshold_quantity),
            status=self._status,
            is_active=self._is_active,
            created_by=self._created_by,
            updated_by=self._updated_by,
            created_at=self._created_at,
            updated_at=self._updated_at,
            metadata=self._metadata
        )

        self._reset()
        return validated(rule, self.validator)


def validated(rule: PricingRule, validator: Optional[RuleValidator] = None) -> PricingRule:
    """Return the rule unchanged, or raise RuleConstructionError."""
    validator = validator or RuleValidator()
    is_valid, problems = validator.validate_rule(rule)
    if not is_valid:
        raise RuleConstructionError(problems, rule.id)
    return rule


def _normalize_conditions(conditions: Iterable[RuleCondition]) -> Tuple[List[RuleCondition], List[str]]:
    normalized = []
    problems = []

    for condition in conditions:
        issues = check_condition(condition)
        if issues:
            problems.extend(issues)
            continue
        op = ConditionOperator(condition.operator)
        normalized.append(RuleCondition(condition.type, op, condition.value, dict(condition.parameters)))

    return normalized, problems


def _parse_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise RuleConstructionError([f"{field_name} is not an ISO timestamp: {value!r}"])


def rule_from_dict(data: Dict[str, Any]) -> PricingRule:
    """Build a validated rule from a decoded rule-store record."""
    rule_id = data.get('id')
    try:
        rule_type = RuleType(data['rule_type'])
        status = RuleStatus(data.get('status', RuleStatus.ACTIVE.value))
    except KeyError as e:
        raise RuleConstructionError([f"Missing field {e.args[0]}"], rule_id)
    except ValueError as e:
        raise RuleConstructionError([str(e)], rule_id)

    conditions, problems = _normalize_conditions(
        RuleCondition(
            type=c.get('type'),
            operator=c.get('operator'),
            value=c.get('value'),
            parameters=c.get('parameters') or {}
        )
        for c in data.get('conditions', [])
    )
    if problems:
        raise RuleConstructionError(problems, rule_id)

    try:
        tiers = [
            BulkDiscountTier(int(t['threshold_quantity']), t['discount_percentage'])
            for t in data.get('tiers', [])
        ]
        rule = PricingRule(
            id=data['id'],
            tenant_id=data['tenant_id'],
            location_id=data['location_id'],
            rule_type=rule_type,
            value=data['value'],
            name=data.get('name', ''),
            description=data.get('description', ''),
            product_id=data.get('product_id'),
            category_id=data.get('category_id'),
            min_quantity=data.get('min_quantity'),
            max_quantity=data.get('max_quantity'),
            start_date=_parse_datetime(data.get('start_date'), 'start_date'),
            end_date=_parse_datetime(data.get('end_date'), 'end_date'),
            priority=int(data.get('priority', 0)),
            conditions=conditions,
            tiers=sorted(tiers, key=lambda t: t.threshold_quantity),
            status=status,
            is_active=data.get('is_active', True),
            created_by=data.get('created_by'),
            updated_by=data.get('updated_by'),
            created_at=_parse_datetime(data.get('created_at'), 'created_at'),
            updated_at=_parse_datetime(data.get('updated_at'), 'updated_at'),
            metadata=data.get('metadata', {})
        )
    except RuleConstructionError:
        raise
    except KeyError as e:
        raise RuleConstructionError([f"Missing field {e.args[0]}"], rule_id)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise RuleConstructionError([f"Malformed field value: {e}"], rule_id)

    return validated(rule)


class RuleTemplates:
    """Pre-built rule shapes for common location pricing setups."""

    @staticmethod
    def bulk_discount_rule(tenant_id: str, location_id: str, product_id: str,
                           tiers: List[Tuple[int, Number]], priority: int = 0) -> PricingRule:
        """Quantity-tiered discount on one product."""
        builder = (RuleBuilder()
                   .with_id(f"bulk_{product_id}")
                   .for_location(tenant_id, location_id)
                   .with_name(f"Bulk discount {product_id}",
                              f"{len(tiers)} quantity tiers")
                   .with_type(RuleType.BULK_DISCOUNT, 0)
                   .with_priority(priority)
                   .for_product(product_id))
        for threshold, percentage in tiers:
            builder.with_tier(threshold, percentage)
        return builder.build()

    @staticmethod
    def clearance_rule(tenant_id: str, location_id: str, category_id: str,
                       markdown: Number, start: datetime, end: datetime,
                       priority: int = 0) -> PricingRule:
        """Time-boxed category markdown."""
        return (RuleBuilder()
                .with_id(f"clearance_{category_id}_{start:%Y%m%d}")
                .for_location(tenant_id, location_id)
                .with_name(f"Clearance {category_id}", f"{markdown}% off until {end:%Y-%m-%d}")
                .with_type(RuleType.MARKDOWN, markdown)
                .with_priority(priority)
                .for_category(category_id)
                .valid_between(start, end)
                .build())

    @staticmethod
    def segment_discount_rule(tenant_id: str, location_id: str, segment: str,
                              percentage: Number, priority: int = 0) -> PricingRule:
        """Location-wide discount for one customer segment."""
        return (RuleBuilder()
                .with_id(f"segment_{segment}")
                .for_location(tenant_id, location_id)
                .with_name(f"{segment.title()} customer discount")
                .with_type(RuleType.PERCENTAGE_DISCOUNT, percentage)
                .with_priority(priority)
                .when_customer_segment(segment)
                .build())

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple
from enum import Enum


class RuleType(Enum):
    MARKUP = "markup"
    MARKDOWN = "markdown"
    FIXED_PRICE = "fixed_price"
    PERCENTAGE_DISCOUNT = "percentage_discount"
    BULK_DISCOUNT = "bulk_discount"

    @property
    def is_percentage(self) -> bool:
        """Whether `value` is read as a 0-100 percentage for this type"""
        return self is not RuleType.FIXED_PRICE


class RuleStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SCHEDULED = "scheduled"  # set by the external scheduler, never derived here
    EXPIRED = "expired"


class ConditionOperator(Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_OR_EQUAL = "greaterOrEqual"
    LESS_OR_EQUAL = "lessOrEqual"
    IN = "in"
    NOT_IN = "notIn"


class TargetSpecificity(Enum):
    GLOBAL = 0
    CATEGORY = 1
    PRODUCT = 2


def to_decimal(value: Any) -> Decimal:
    """Convert numeric input to Decimal without float artefacts"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class RuleCondition:
    """Auxiliary predicate attached to a pricing rule"""
    type: str  # context field the condition reads, e.g. "customer_segment"
    operator: Any  # ConditionOperator, or a raw string from the rule store
    value: Any
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def field_path(self) -> Any:
        parameters = self.parameters if isinstance(self.parameters, dict) else {}
        return parameters.get('field') or self.type


@dataclass
class BulkDiscountTier:
    """Quantity threshold and the discount it unlocks"""
    threshold_quantity: int
    discount_percentage: Decimal

    def __post_init__(self):
        self.discount_percentage = to_decimal(self.discount_percentage)


@dataclass
class PricingRule:
    """Tenant-configured pricing adjustment for one location.

    Instances are snapshots owned by the rule store. The engine reads them and
    never writes back; integrity is re-checked on every evaluation because
    snapshots can be built without going through the rule builder.
    """
    id: str
    tenant_id: str
    location_id: str
    rule_type: RuleType
    value: Decimal
    name: str = ""
    description: str = ""
    product_id: Optional[str] = None
    category_id: Optional[str] = None
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    priority: int = 0
    conditions: List[RuleCondition] = field(default_factory=list)
    tiers: List[BulkDiscountTier] = field(default_factory=list)
    status: RuleStatus = RuleStatus.ACTIVE
    is_active: bool = True
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.value = to_decimal(self.value)

    @property
    def is_global(self) -> bool:
        return self.product_id is None and self.category_id is None

    @property
    def specificity(self) -> TargetSpecificity:
        """How narrowly the rule is targeted"""
        if self.product_id is not None:
            return TargetSpecificity.PRODUCT
        if self.category_id is not None:
            return TargetSpecificity.CATEGORY
        return TargetSpecificity.GLOBAL

    @property
    def is_usable(self) -> bool:
        return self.is_active and self.status == RuleStatus.ACTIVE


@dataclass
class EvaluationRequest:
    """A product/location/quantity/moment to price"""
    tenant_id: str
    location_id: str
    quantity: int
    base_price: Decimal
    as_of: datetime
    product_id: Optional[str] = None
    category_id: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)  # caller extension fields

    def __post_init__(self):
        self.base_price = to_decimal(self.base_price)

    def condition_context(self) -> Dict[str, Any]:
        """Flat field map that rule conditions are evaluated against"""
        context = dict(self.context)
        context.update({
            'tenant_id': self.tenant_id,
            'location_id': self.location_id,
            'product_id': self.product_id,
            'category_id': self.category_id,
            'quantity': self.quantity,
            'base_price': self.base_price,
            'as_of': self.as_of
        })
        return context


@dataclass(frozen=True)
class AppliedRule:
    """Summary of the winning rule as it affected one evaluation"""
    rule_id: str
    rule_name: str
    rule_type: RuleType
    value: Decimal
    discount_amount: Decimal
    tier: Optional[BulkDiscountTier] = None


@dataclass(frozen=True)
class PriceBreakdownStep:
    step: str
    description: str
    amount: Decimal
    running_total: Decimal


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of pricing one request; owned by the caller"""
    base_price: Decimal
    final_price: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    applied_rule_id: Optional[str] = None
    considered_rule_ids: Tuple[str, ...] = ()
    applied_rule: Optional[AppliedRule] = None
    breakdown: Tuple[PriceBreakdownStep, ...] = ()
    warnings: Tuple[Any, ...] = ()  # DataIntegrityWarning records

    @property
    def rule_applied(self) -> bool:
        return self.applied_rule_id is not None


@dataclass(frozen=True)
class EvaluationFailure:
    """Error value occupying a batch slot whose request could not be priced"""
    index: int
    request: EvaluationRequest
    error_type: str
    message: str

    @property
    def rule_applied(self) -> bool:
        return False

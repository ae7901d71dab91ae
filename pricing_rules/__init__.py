"""Location Pricing Rules - Evaluation Engine"""

from decimal import Decimal

__version__ = "1.0.0"

# Engine behaviour defaults, overridable per evaluator instance
ENGINE_DEFAULTS = {
    'rounding_places': 2,  # currency precision for final price and discount
    'max_workers': 1,  # >1 evaluates batches on a thread pool
    'collect_warnings': True  # attach integrity warnings to each result
}

# Semantic value ranges for rule values
RULE_VALUE_LIMITS = {
    'min_value': Decimal('0'),
    'max_percentage': Decimal('100'),
    'min_quantity': 1
}

assert RULE_VALUE_LIMITS['min_value'] < RULE_VALUE_LIMITS['max_percentage'], \
    "Percentage range must not be empty"

from .core.models import (  # noqa: E402
    RuleType,
    RuleStatus,
    ConditionOperator,
    RuleCondition,
    BulkDiscountTier,
    PricingRule,
    EvaluationRequest,
    EvaluationResult,
    EvaluationFailure,
)
from .core.exceptions import (  # noqa: E402
    PricingEngineError,
    InputValidationError,
    RuleConstructionError,
    DataIntegrityWarning,
)
from .orchestrator import PricingRuleEvaluator  # noqa: E402
from .providers import RuleProvider, InMemoryRuleProvider  # noqa: E402

__all__ = [
    'ENGINE_DEFAULTS',
    'RULE_VALUE_LIMITS',
    'RuleType',
    'RuleStatus',
    'ConditionOperator',
    'RuleCondition',
    'BulkDiscountTier',
    'PricingRule',
    'EvaluationRequest',
    'EvaluationResult',
    'EvaluationFailure',
    'PricingEngineError',
    'InputValidationError',
    'RuleConstructionError',
    'DataIntegrityWarning',
    'PricingRuleEvaluator',
    'RuleProvider',
    'InMemoryRuleProvider',
]

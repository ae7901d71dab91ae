"""Core data model and error types."""

from .models import (
    RuleType,
    RuleStatus,
    ConditionOperator,
    TargetSpecificity,
    RuleCondition,
    BulkDiscountTier,
    PricingRule,
    EvaluationRequest,
    EvaluationResult,
    EvaluationFailure,
    AppliedRule,
    PriceBreakdownStep,
)
from .exceptions import (
    PricingEngineError,
    InputValidationError,
    RuleConstructionError,
    DataIntegrityWarning,
)

__all__ = [
    'RuleType',
    'RuleStatus',
    'ConditionOperator',
    'TargetSpecificity',
    'RuleCondition',
    'BulkDiscountTier',
    'PricingRule',
    'EvaluationRequest',
    'EvaluationResult',
    'EvaluationFailure',
    'AppliedRule',
    'PriceBreakdownStep',
    'PricingEngineError',
    'InputValidationError',
    'RuleConstructionError',
    'DataIntegrityWarning'
]

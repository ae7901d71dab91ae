"""Rule filtering, selection and construction."""

from .conditions import ConditionEvaluator
from .rule_filter import RuleFilter
from .rule_selector import RuleSelector
from .rule_builder import RuleBuilder, RuleTemplates, rule_from_dict, validated

__all__ = [
    'ConditionEvaluator',
    'RuleFilter',
    'RuleSelector',
    'RuleBuilder',
    'RuleTemplates',
    'rule_from_dict',
    'validated'
]

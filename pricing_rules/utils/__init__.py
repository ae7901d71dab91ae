"""Pricing Rule Utilities"""

from .validation import RuleValidator
from .reporting import BatchEvaluationReport, results_to_frame

__all__ = [
    'RuleValidator',
    'BatchEvaluationReport',
    'results_to_frame'
]

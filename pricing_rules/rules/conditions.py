"""Evaluation of auxiliary rule conditions against a request context."""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Tuple
import logging
import operator

from ..core.models import ConditionOperator, RuleCondition

logger = logging.getLogger(__name__)

_MISSING = object()

_COMPARATORS = {
    ConditionOperator.EQUALS: operator.eq,
    ConditionOperator.NOT_EQUALS: operator.ne,
    ConditionOperator.GREATER_THAN: operator.gt,
    ConditionOperator.LESS_THAN: operator.lt,
    ConditionOperator.GREATER_OR_EQUAL: operator.ge,
    ConditionOperator.LESS_OR_EQUAL: operator.le,
}

_MEMBERSHIP = (ConditionOperator.IN, ConditionOperator.NOT_IN)

assert set(_COMPARATORS) | set(_MEMBERSHIP) == set(ConditionOperator), \
    "Every condition operator needs an evaluation branch"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


class ConditionEvaluator:
    """Evaluates rule conditions; a condition that cannot be evaluated is false."""

    def evaluate(self, condition: RuleCondition, context: Dict[str, Any]) -> bool:
        """Evaluate one condition against the context."""
        op = self._parse_operator(condition.operator)
        if op is None:
            logger.warning(f"Unknown condition operator: {condition.operator!r}")
            return False

        path = condition.field_path
        if not isinstance(path, str) or not path:
            logger.warning(f"Condition has no field to read: {condition!r}")
            return False

        field_value = self.resolve_field(context, path)
        if field_value is _MISSING:
            logger.debug(f"Condition field '{path}' not present in context")
            return False

        try:
            if op in _MEMBERSHIP:
                return self._evaluate_membership(op, field_value, condition.value)
            left, right = self._coerce_pair(field_value, condition.value)
            return bool(_COMPARATORS[op](left, right))
        except (TypeError, ArithmeticError) as e:
            # NaN operands make Decimal ordering raise InvalidOperation
            logger.warning(
                f"Cannot compare '{path}'={field_value!r} "
                f"with {condition.value!r} using {op.value}: {e}"
            )
            return False

    def evaluate_all(self, conditions: Iterable[RuleCondition], context: Dict[str, Any]) -> bool:
        """AND over all conditions; an empty list holds."""
        for condition in conditions:
            if not self.evaluate(condition, context):
                return False
        return True

    @staticmethod
    def resolve_field(context: Dict[str, Any], path: str) -> Any:
        """Walk a dotted path through mappings and attributes."""
        value: Any = context
        for part in path.split('.'):
            if isinstance(value, dict):
                value = value.get(part, _MISSING)
            elif not part.startswith('_') and hasattr(value, part):
                value = getattr(value, part)
            else:
                return _MISSING
            if value is _MISSING:
                return _MISSING
        return value

    @staticmethod
    def _parse_operator(raw: Any):
        if isinstance(raw, ConditionOperator):
            return raw
        try:
            return ConditionOperator(raw)
        except ValueError:
            return None

    def _evaluate_membership(self, op: ConditionOperator, field_value: Any, candidates: Any) -> bool:
        if not isinstance(candidates, (list, tuple, set, frozenset)):
            logger.warning(f"'{op.value}' condition needs a collection, got {candidates!r}")
            return False

        found = any(
            operator.eq(*self._coerce_pair(field_value, candidate))
            for candidate in candidates
        )
        return found if op is ConditionOperator.IN else not found

    @staticmethod
    def _coerce_pair(left: Any, right: Any) -> Tuple[Any, Any]:
        """Bring numeric and timestamp operands to a common type."""
        if _is_number(left) and (_is_number(right) or isinstance(right, str)):
            try:
                return Decimal(str(left)), Decimal(str(right))
            except InvalidOperation:
                return left, right
        if isinstance(left, datetime) and isinstance(right, str):
            try:
                return left, datetime.fromisoformat(right)
            except ValueError:
                return left, right
        return left, right

"""Error taxonomy for rule evaluation."""

from dataclasses import dataclass
from typing import List, Optional


class PricingEngineError(Exception):
    """Base class for engine errors."""


class InputValidationError(PricingEngineError, ValueError):
    """The caller passed a request that breaks the evaluation contract."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class RuleConstructionError(PricingEngineError, ValueError):
    """A rule could not be built because it violates its invariants."""

    def __init__(self, problems: List[str], rule_id: Optional[str] = None):
        self.problems = list(problems)
        self.rule_id = rule_id
        prefix = f"Invalid rule {rule_id}: " if rule_id else "Invalid rule: "
        super().__init__(prefix + "; ".join(self.problems))


@dataclass(frozen=True)
class DataIntegrityWarning:
    """Non-fatal record of a rule excluded for carrying out-of-range data."""
    rule_id: str
    reason: str

    def __str__(self) -> str:
        return f"{self.rule_id}: {self.reason}"

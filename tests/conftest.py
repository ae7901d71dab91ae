from datetime import datetime
from decimal import Decimal

import pytest

from pricing_rules import PricingRule, EvaluationRequest, RuleType, PricingRuleEvaluator

TENANT = "tenant-1"
LOCATION = "loc-1"
NOW = datetime(2026, 3, 14, 12, 0, 0)


def build_rule(rule_id="r1", rule_type=RuleType.PERCENTAGE_DISCOUNT, value=10, **overrides):
    fields = dict(
        id=rule_id,
        tenant_id=TENANT,
        location_id=LOCATION,
        rule_type=rule_type,
        value=value,
        name=f"Rule {rule_id}",
        created_at=datetime(2026, 1, 1),
    )
    fields.update(overrides)
    return PricingRule(**fields)


def build_request(base_price="100", quantity=1, **overrides):
    fields = dict(
        tenant_id=TENANT,
        location_id=LOCATION,
        product_id="prod-1",
        category_id="cat-1",
        quantity=quantity,
        base_price=base_price,
        as_of=NOW,
    )
    fields.update(overrides)
    return EvaluationRequest(**fields)


@pytest.fixture
def make_rule():
    return build_rule


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def evaluator():
    return PricingRuleEvaluator()


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))

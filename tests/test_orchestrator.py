import json
import random
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from pricing_rules import (
    PricingRuleEvaluator, InMemoryRuleProvider, InputValidationError,
    PricingEngineError, RuleType, RuleStatus, BulkDiscountTier, EvaluationResult
)
from pricing_rules.core.models import RuleCondition

from .conftest import NOW, build_rule


class TestScenarios:
    def test_markup(self, evaluator, make_rule, make_request):
        rule = make_rule(rule_type=RuleType.MARKUP, value=10)
        result = evaluator.evaluate(make_request(base_price=100), [rule])
        assert result.final_price == Decimal("110")
        assert result.discount_amount == Decimal("0")
        assert result.applied_rule_id == "r1"

    def test_percentage_discount_with_min_quantity(self, evaluator, make_rule, make_request):
        rule = make_rule(rule_type=RuleType.PERCENTAGE_DISCOUNT, value=20, min_quantity=5)
        result = evaluator.evaluate(make_request(base_price=100, quantity=10), [rule])
        assert result.final_price == Decimal("80")
        assert result.discount_amount == Decimal("20")
        assert result.discount_percentage == Decimal("20")

    def test_fixed_price(self, evaluator, make_rule, make_request):
        rule = make_rule(rule_type=RuleType.FIXED_PRICE, value=40)
        result = evaluator.evaluate(make_request(base_price=50), [rule])
        assert result.final_price == Decimal("40")
        assert result.discount_amount == Decimal("10")

    def test_higher_priority_selected(self, evaluator, make_rule, make_request):
        rule_a = make_rule("A", value=5, priority=5)
        rule_b = make_rule("B", value=15, priority=10)
        result = evaluator.evaluate(make_request(), [rule_a, rule_b])
        assert result.applied_rule_id == "B"
        assert result.final_price == Decimal("85")

    def test_expired_window_returns_base_price(self, evaluator, make_rule, make_request):
        rule = make_rule(end_date=NOW - timedelta(days=1))
        result = evaluator.evaluate(make_request(base_price="64.50"), [rule])
        assert result.final_price == Decimal("64.50")
        assert result.applied_rule_id is None
        assert result.considered_rule_ids == ()


class TestProperties:
    def test_no_rules_keeps_base_price(self, evaluator, make_request):
        result = evaluator.evaluate(make_request(base_price="12.34"), [])
        assert result.final_price == Decimal("12.34")
        assert result.discount_amount == 0
        assert result.applied_rule_id is None
        assert result.applied_rule is None
        assert [step.step for step in result.breakdown] == ["base_price"]

    def test_final_price_never_negative(self, evaluator, make_request):
        rules = [
            build_rule("full", rule_type=RuleType.PERCENTAGE_DISCOUNT, value=100, priority=3),
            build_rule("zero", rule_type=RuleType.FIXED_PRICE, value=0, priority=2),
        ]
        for base_price in ("0", "0.01", "999.99"):
            result = evaluator.evaluate(make_request(base_price=base_price), rules)
            assert result.final_price >= 0

    def test_idempotent(self, evaluator, make_rule, make_request):
        rules = [make_rule("a", value=5), make_rule("b", value=7, product_id="prod-1")]
        request = make_request()
        assert evaluator.evaluate(request, rules) == evaluator.evaluate(request, rules)

    def test_priority_independent_of_order(self, evaluator, make_rule, make_request):
        rules = [make_rule(f"r{i}", priority=i) for i in range(6)]
        for _ in range(10):
            random.shuffle(rules)
            assert evaluator.evaluate(make_request(), rules).applied_rule_id == "r5"

    def test_created_at_tie_break_reproducible(self, evaluator, make_rule, make_request):
        rules = [
            make_rule("newer", created_at=datetime(2025, 5, 2)),
            make_rule("older", created_at=datetime(2025, 5, 1)),
            make_rule("newest", created_at=datetime(2025, 5, 3)),
        ]
        for _ in range(10):
            random.shuffle(rules)
            assert evaluator.evaluate(make_request(), rules).applied_rule_id == "older"

    def test_quantity_boundary(self, evaluator, make_rule, make_request):
        rule = make_rule(min_quantity=5)
        assert evaluator.evaluate(make_request(quantity=5), [rule]).rule_applied
        assert not evaluator.evaluate(make_request(quantity=4), [rule]).rule_applied

    def test_date_boundary(self, evaluator, make_rule, make_request):
        rule = make_rule(end_date=NOW)
        assert evaluator.evaluate(make_request(as_of=NOW), [rule]).rule_applied
        assert not evaluator.evaluate(make_request(as_of=NOW + timedelta(days=1)), [rule]).rule_applied

    def test_rules_never_stack(self, evaluator, make_rule, make_request):
        rules = [make_rule("a", value=10, priority=2), make_rule("b", value=10, priority=1)]
        result = evaluator.evaluate(make_request(base_price=100), rules)
        assert result.final_price == Decimal("90")
        assert result.considered_rule_ids == ("a", "b")

    def test_result_is_immutable(self, evaluator, make_request):
        result = evaluator.evaluate(make_request(), [])
        with pytest.raises(AttributeError):
            result.final_price = Decimal("1")


class TestIntegrityHandling:
    def test_malformed_rule_excluded_others_apply(self, evaluator, make_rule, make_request):
        bad = make_rule("bad", value=250, priority=99)
        good = make_rule("good", value=10, priority=1)
        result = evaluator.evaluate(make_request(base_price=100), [bad, good])

        assert result.applied_rule_id == "good"
        assert result.final_price == Decimal("90")
        assert "bad" not in result.considered_rule_ids
        assert [w.rule_id for w in result.warnings] == ["bad"]

    @pytest.mark.parametrize("condition", [
        RuleCondition('quantity', 'greaterThan', 'NaN'),
        RuleCondition('quantity', 'equals', 'sNaN'),
        RuleCondition('quantity', 'in', ['sNaN']),
    ])
    def test_uncomparable_condition_does_not_abort(self, evaluator, make_rule, make_request, condition):
        bad = make_rule("bad", value=50, priority=9, conditions=[condition])
        good = make_rule("good", value=10, priority=1)
        result = evaluator.evaluate(make_request(base_price=100, quantity=3), [bad, good])

        assert result.applied_rule_id == "good"
        assert result.final_price == Decimal("90")
        assert result.warnings == ()

    @pytest.mark.parametrize("condition", [
        RuleCondition(None, 'equals', 1),
        RuleCondition('quantity', 'equals', 1, parameters=None),
    ])
    def test_malformed_condition_excluded_with_warning(self, evaluator, make_rule, make_request, condition):
        bad = make_rule("bad", value=50, priority=9, conditions=[condition])
        good = make_rule("good", value=10, priority=1)
        result = evaluator.evaluate(make_request(base_price=100), [bad, good])

        assert result.applied_rule_id == "good"
        assert "bad" not in result.considered_rule_ids
        assert [w.rule_id for w in result.warnings] == ["bad"]

    def test_warnings_can_be_suppressed(self, make_rule, make_request):
        evaluator = PricingRuleEvaluator(config={'collect_warnings': False})
        result = evaluator.evaluate(make_request(), [make_rule("bad", value=-1)])
        assert result.warnings == ()
        assert result.applied_rule_id is None


class TestInputValidation:
    @pytest.mark.parametrize("overrides", [
        {'base_price': "-0.01"},
        {'quantity': 0},
        {'quantity': -3},
        {'quantity': 2.5},
        {'quantity': True},
        {'as_of': None},
    ])
    def test_contract_violations_raise(self, evaluator, make_request, overrides):
        with pytest.raises(InputValidationError):
            evaluator.evaluate(make_request(**overrides), [])

    def test_input_error_is_value_error(self, evaluator, make_request):
        with pytest.raises(ValueError):
            evaluator.evaluate(make_request(quantity=0), [])

    def test_zero_base_price_allowed(self, evaluator, make_rule, make_request):
        result = evaluator.evaluate(make_request(base_price=0), [make_rule(rule_type=RuleType.MARKUP, value=50)])
        assert result.final_price == Decimal("0")
        assert result.discount_percentage == Decimal("0")


class TestConfiguration:
    def test_unknown_setting_rejected(self):
        with pytest.raises(ValueError):
            PricingRuleEvaluator(config={'rounding': 2})

    def test_invalid_worker_count_rejected(self):
        with pytest.raises(ValueError):
            PricingRuleEvaluator(config={'max_workers': 0})

    def test_rounding_places_override(self, make_rule, make_request):
        evaluator = PricingRuleEvaluator(config={'rounding_places': 3})
        rule = make_rule(rule_type=RuleType.PERCENTAGE_DISCOUNT, value=33)
        result = evaluator.evaluate(make_request(base_price="1.555"), [rule])
        assert result.final_price == Decimal("1.042")


class TestBreakdownAndAudit:
    def test_breakdown_records_rule_step(self, evaluator, make_rule, make_request):
        rule = make_rule("promo", value=25, name="Spring promo")
        result = evaluator.evaluate(make_request(base_price=80), [rule])

        base_step, rule_step = result.breakdown
        assert base_step.running_total == Decimal("80")
        assert rule_step.step == "rule_promo"
        assert rule_step.amount == Decimal("-20")
        assert rule_step.running_total == Decimal("60")
        assert "Spring promo" in rule_step.description

    @pytest.mark.parametrize("rule_type,value,expected", [
        (RuleType.FIXED_PRICE, 80, Decimal("0")),
        (RuleType.MARKUP, 10, Decimal("8")),
    ])
    def test_breakdown_records_winner_without_discount(self, evaluator, make_rule, make_request,
                                                       rule_type, value, expected):
        rule = make_rule("flat", rule_type=rule_type, value=value)
        result = evaluator.evaluate(make_request(base_price=80), [rule])

        assert result.discount_amount == Decimal("0")
        assert [step.step for step in result.breakdown] == ["base_price", "rule_flat"]
        assert result.breakdown[-1].amount == expected

    def test_bulk_tier_in_applied_rule(self, evaluator, make_rule, make_request):
        rule = make_rule("bulk", rule_type=RuleType.BULK_DISCOUNT, value=0,
                         tiers=[BulkDiscountTier(10, 5), BulkDiscountTier(20, 10)])
        result = evaluator.evaluate(make_request(base_price=10, quantity=20), [rule])

        assert result.final_price == Decimal("9")
        assert result.applied_rule.tier.threshold_quantity == 20
        assert "tier 20+" in result.breakdown[-1].description

    def test_audit_log_is_json_ready(self, evaluator, make_rule, make_request):
        request = make_request()
        result = evaluator.evaluate(request, [make_rule("ok"), make_rule("bad", value=101)])
        audit_log = evaluator.generate_audit_log(result, request)

        decoded = json.loads(json.dumps(audit_log))
        assert decoded['applied_rule_id'] == "ok"
        assert decoded['price']['final'] == "90.00"
        assert decoded['applied_rule']['rule_type'] == "percentage_discount"
        assert decoded['integrity_warnings'][0]['rule_id'] == "bad"
        assert decoded['request']['as_of'] == NOW.isoformat()


class TestRuleProvider:
    def test_evaluate_with_provider(self, make_request):
        provider = InMemoryRuleProvider([
            build_rule("other-tenant", tenant_id="tenant-2", value=50, priority=9),
            build_rule("other-location", location_id="loc-2", value=40, priority=9),
            build_rule("other-product", product_id="prod-2", value=30, priority=9),
            build_rule("category", category_id="cat-1", value=20, priority=5),
            build_rule("inactive", value=60, priority=9, status=RuleStatus.INACTIVE),
        ])
        evaluator = PricingRuleEvaluator(rule_provider=provider)
        result = evaluator.evaluate_with_provider(make_request(base_price=100))

        assert result.applied_rule_id == "category"
        assert result.final_price == Decimal("80")

    def test_provider_returns_scope_matches(self):
        provider = InMemoryRuleProvider([
            build_rule("global"),
            build_rule("product", product_id="prod-1"),
            build_rule("category", category_id="cat-1"),
            build_rule("elsewhere", location_id="loc-9"),
        ])
        candidates = provider.get_candidate_rules("tenant-1", "loc-1", "prod-1", None, NOW)
        assert sorted(r.id for r in candidates) == ["global", "product"]

    def test_missing_provider_raises(self, evaluator, make_request):
        with pytest.raises(PricingEngineError):
            evaluator.evaluate_with_provider(make_request())


def test_evaluate_returns_result_type(evaluator, make_request):
    assert isinstance(evaluator.evaluate(make_request(), []), EvaluationResult)

"""Pricing Rule Evaluation Orchestrator

Runs candidate rules through filtering, selection and price calculation.
Each call is a pure function of its arguments; the evaluator holds no
per-request state, so one instance can serve concurrent callers.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union, Any, Iterable
import logging

from . import ENGINE_DEFAULTS
from .core.models import (
    PricingRule, RuleType, EvaluationRequest, EvaluationResult, EvaluationFailure,
    AppliedRule, PriceBreakdownStep
)
from .core.exceptions import InputValidationError, PricingEngineError, DataIntegrityWarning
from .pricing.calculator import PriceCalculator, resolve_tier
from .providers import RuleProvider
from .rules.conditions import ConditionEvaluator
from .rules.rule_filter import RuleFilter
from .rules.rule_selector import RuleSelector
from .utils.validation import RuleValidator

logger = logging.getLogger(__name__)

BatchOutcome = Union[EvaluationResult, EvaluationFailure]


class PricingRuleEvaluator:
    """Public entry point for single and batch price evaluation"""

    def __init__(self, config: Optional[Dict] = None,
                 rule_provider: Optional[RuleProvider] = None,
                 condition_evaluator: Optional[ConditionEvaluator] = None):
        """Initialize evaluator with optional configuration overrides"""
        self.config = ENGINE_DEFAULTS.copy()

        if config:
            unknown = set(config) - set(ENGINE_DEFAULTS)
            if unknown:
                raise ValueError(f"Unknown evaluator settings: {sorted(unknown)}")
            self.config.update(config)

        if int(self.config['max_workers']) < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.config['max_workers']}")

        self.validator = RuleValidator()
        self.rule_filter = RuleFilter(condition_evaluator, self.validator)
        self.selector = RuleSelector()
        self.calculator = PriceCalculator(int(self.config['rounding_places']))
        self.rule_provider = rule_provider

        logger.info(
            f"Pricing rule evaluator initialized "
            f"(rounding {self.config['rounding_places']} places, "
            f"{self.config['max_workers']} batch workers)"
        )

    def evaluate(self, request: EvaluationRequest,
                 candidate_rules: Iterable[PricingRule]) -> EvaluationResult:
        """Price one request against a snapshot of candidate rules"""
        is_valid, problems = self.validator.validate_request(request)
        if not is_valid:
            raise InputValidationError(problems)

        applicable, warnings = self.rule_filter.filter_rules(candidate_rules, request)
        winner = self.selector.select(applicable)

        final_price, discount_amount = self.calculator.compute_final_price(
            winner, request.base_price, request.quantity
        )

        result = self._build_result(
            request, winner, self.selector.rank(applicable),
            final_price, discount_amount, warnings
        )

        logger.debug(
            f"Priced {request.product_id or request.category_id or 'item'} "
            f"x{request.quantity} at {request.location_id}: "
            f"{request.base_price} -> {result.final_price} "
            f"(rule {result.applied_rule_id or 'none'})"
        )
        return result

    def evaluate_with_provider(self, request: EvaluationRequest) -> EvaluationResult:
        """Fetch candidates from the configured rule provider, then evaluate"""
        if self.rule_provider is None:
            raise PricingEngineError("No rule provider configured for this evaluator")

        candidates = self.rule_provider.get_candidate_rules(
            request.tenant_id,
            request.location_id,
            request.product_id,
            request.category_id,
            request.as_of
        )
        return self.evaluate(request, candidates)

    def evaluate_batch(self, requests: Sequence[EvaluationRequest],
                       rules_by_request: Sequence[Iterable[PricingRule]]) -> List[BatchOutcome]:
        """Evaluate requests independently; outcomes line up with the inputs.

        A request that cannot be priced yields an EvaluationFailure in its own
        slot and leaves the other slots untouched.
        """
        requests = list(requests)
        rules_by_request = list(rules_by_request)

        if len(requests) != len(rules_by_request):
            raise ValueError(
                f"Got {len(requests)} requests but {len(rules_by_request)} rule sets"
            )

        indices = range(len(requests))
        workers = min(int(self.config['max_workers']), len(requests))

        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                outcomes = list(pool.map(self._evaluate_slot, indices, requests, rules_by_request))
        else:
            outcomes = [
                self._evaluate_slot(index, request, rules)
                for index, request, rules in zip(indices, requests, rules_by_request)
            ]

        failures = sum(1 for outcome in outcomes if isinstance(outcome, EvaluationFailure))
        logger.info(f"Batch evaluated: {len(outcomes)} requests, {failures} failed")
        return outcomes

    def generate_audit_log(self, result: EvaluationResult,
                           request: Optional[EvaluationRequest] = None) -> Dict[str, Any]:
        """Generate JSON-ready audit record for an evaluation"""
        audit_log = {
            'price': {
                'base': str(result.base_price),
                'final': str(result.final_price),
                'discount_amount': str(result.discount_amount),
                'discount_pct': str(result.discount_percentage)
            },
            'applied_rule_id': result.applied_rule_id,
            'considered_rule_ids': list(result.considered_rule_ids),
            'breakdown': [
                {
                    'step': step.step,
                    'description': step.description,
                    'amount': str(step.amount),
                    'running_total': str(step.running_total)
                }
                for step in result.breakdown
            ]
        }

        if result.applied_rule is not None:
            applied = result.applied_rule
            audit_log['applied_rule'] = {
                'rule_id': applied.rule_id,
                'name': applied.rule_name,
                'rule_type': applied.rule_type.value,
                'value': str(applied.value),
                'discount_amount': str(applied.discount_amount)
            }
            if applied.tier is not None:
                audit_log['applied_rule']['tier'] = {
                    'threshold_quantity': applied.tier.threshold_quantity,
                    'discount_pct': str(applied.tier.discount_percentage)
                }

        if result.warnings:
            audit_log['integrity_warnings'] = [
                {'rule_id': w.rule_id, 'reason': w.reason} for w in result.warnings
            ]

        if request is not None:
            audit_log['request'] = {
                'tenant_id': request.tenant_id,
                'location_id': request.location_id,
                'product_id': request.product_id,
                'category_id': request.category_id,
                'quantity': request.quantity,
                'as_of': request.as_of.isoformat()
            }

        return audit_log

    def _evaluate_slot(self, index: int, request: EvaluationRequest,
                       rules: Optional[Iterable[PricingRule]]) -> BatchOutcome:
        try:
            return self.evaluate(request, rules or ())
        except Exception as e:
            # A bad slot must not abort the batch
            logger.error(f"Error pricing batch request {index}: {e}")
            return EvaluationFailure(
                index=index,
                request=request,
                error_type=type(e).__name__,
                message=str(e)
            )

    def _build_result(self, request: EvaluationRequest, winner: Optional[PricingRule],
                      ranked: List[PricingRule], final_price: Decimal,
                      discount_amount: Decimal,
                      warnings: List[DataIntegrityWarning]) -> EvaluationResult:
        base_price = request.base_price

        if base_price > 0:
            discount_percentage = self.calculator.round_amount(
                discount_amount / base_price * Decimal('100')
            )
        else:
            discount_percentage = self.calculator.round_amount(Decimal('0'))

        breakdown = [
            PriceBreakdownStep(
                step='base_price',
                description='Original base price',
                amount=base_price,
                running_total=base_price
            )
        ]

        applied_rule = None
        if winner is not None:
            tier = None
            if winner.rule_type is RuleType.BULK_DISCOUNT:
                tier = resolve_tier(winner, request.quantity)

            applied_rule = AppliedRule(
                rule_id=winner.id,
                rule_name=winner.name,
                rule_type=winner.rule_type,
                value=winner.value,
                discount_amount=discount_amount,
                tier=tier
            )

            description = f"Applied {winner.name or winner.id} ({winner.rule_type.value})"
            if tier is not None:
                description += f" at tier {tier.threshold_quantity}+"

            breakdown.append(PriceBreakdownStep(
                step=f"rule_{winner.id}",
                description=description,
                amount=final_price - base_price,
                running_total=final_price
            ))

        return EvaluationResult(
            base_price=base_price,
            final_price=final_price,
            discount_amount=discount_amount,
            discount_percentage=discount_percentage,
            applied_rule_id=winner.id if winner is not None else None,
            considered_rule_ids=tuple(rule.id for rule in ranked),
            applied_rule=applied_rule,
            breakdown=tuple(breakdown),
            warnings=tuple(warnings) if self.config['collect_warnings'] else ()
        )

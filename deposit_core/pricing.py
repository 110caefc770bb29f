"""
Pricing Rule Resolution Module

Selects the governing pricing rule for a principal amount and derives the
rate, fee and discount applied to a new deposit.
"""

from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass
from typing import Optional

from .products import Product, PricingRule
from .errors import NoApplicableRate


RATE_QUANTUM = Decimal('0.01')


@dataclass(frozen=True)
class PricingResolution:
    """Outcome of pricing a principal against a product"""
    rate: Decimal  # Annual percent, two decimal places
    fee: Decimal
    discount_pct: Decimal
    rule_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "rate": str(self.rate),
            "fee": str(self.fee),
            "discount_pct": str(self.discount_pct),
            "rule_id": self.rule_id
        }


class PricingRuleResolver:
    """
    Resolves the active pricing rule with the lowest priority order whose
    threshold band contains the principal. Ties go to the lowest rule id.
    """

    def resolve(self, product: Product, principal: Decimal,
                tenure_months: Optional[int] = None) -> PricingResolution:
        if not product.is_active:
            raise NoApplicableRate(
                f"Product {product.code} is not active",
                {"product_code": product.code}
            )
        if not product.principal_in_range(principal):
            raise NoApplicableRate(
                f"Principal {principal} is outside product {product.code} limits",
                {"product_code": product.code, "principal": principal}
            )

        base_rate = product.base_rate(tenure_months)
        rule = self.select_rule(product, principal)
        if rule is None:
            return PricingResolution(
                rate=base_rate,
                fee=Decimal('0'),
                discount_pct=Decimal('0')
            )

        return PricingResolution(
            rate=self._applied_rate(rule, base_rate),
            fee=rule.fee_amount,
            discount_pct=rule.discount_percentage,
            rule_id=rule.id
        )

    def select_rule(self, product: Product, principal: Decimal) -> Optional[PricingRule]:
        candidates = [rule for rule in product.pricing_rules if rule.matches(principal)]
        if not candidates:
            return None
        return min(candidates, key=lambda rule: (rule.priority_order, rule.id))

    def _applied_rate(self, rule: PricingRule, base_rate: Decimal) -> Decimal:
        if rule.interest_rate is not None and rule.interest_rate > 0:
            rate = rule.interest_rate
        elif rule.discount_percentage > 0:
            # Discount is a percentage of the base rate
            rate = base_rate - base_rate * rule.discount_percentage / Decimal('100')
            rate = max(rate, Decimal('0'))
        else:
            rate = base_rate
        return rate.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)

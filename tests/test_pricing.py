"""
Tests for products and pricing rule resolution
"""

import json
import pytest
from decimal import Decimal

from deposit_core.currency import Currency
from deposit_core.errors import NoApplicableRate, NotFound
from deposit_core.pricing import PricingRuleResolver
from deposit_core.products import (
    Product, PricingRule, ProductCatalog, CompoundingConvention, product_from_dict
)


def make_product(rules=None, **overrides):
    fields = dict(
        code="FD-STD",
        name="Standard Fixed Deposit",
        currency=Currency.KWD,
        min_amount=Decimal('100'),
        max_amount=Decimal('1000000'),
        min_term_months=3,
        max_term_months=120,
        min_interest_rate=Decimal('4.00'),
        max_interest_rate=Decimal('8.00'),
        compounding=CompoundingConvention.QUARTERLY,
        premature_penalty_rate=Decimal('0.02'),
        premature_penalty_grace_days=30,
        pricing_rules=rules or []
    )
    fields.update(overrides)
    return Product(**fields)


def rule(rule_id, min_threshold, max_threshold=None, **kwargs):
    return PricingRule(
        id=rule_id,
        product_code="FD-STD",
        min_threshold=Decimal(min_threshold),
        max_threshold=Decimal(max_threshold) if max_threshold is not None else None,
        **kwargs
    )


class TestProductBaseRate:
    """Tenure-banded base rate between the product's min and max"""

    def test_bands(self):
        product = make_product()
        assert product.base_rate() == Decimal('4.00')
        assert product.base_rate(6) == Decimal('4.00')
        assert product.base_rate(12) == Decimal('6.00')
        assert product.base_rate(36) == Decimal('7.00')
        assert product.base_rate(60) == Decimal('8.00')

    def test_invalid_penalty_rate(self):
        with pytest.raises(ValueError, match="premature_penalty_rate"):
            make_product(premature_penalty_rate=Decimal('1.5'))


class TestPricingRuleResolver:
    """Rule selection and fallbacks"""

    def setup_method(self):
        self.resolver = PricingRuleResolver()

    def test_no_rules_falls_back_to_base_rate(self):
        resolution = self.resolver.resolve(make_product(), Decimal('5000'), 12)
        assert resolution.rate == Decimal('6.00')
        assert resolution.fee == Decimal('0')
        assert resolution.discount_pct == Decimal('0')
        assert resolution.rule_id is None

    def test_matching_rule_overrides_rate(self):
        product = make_product([
            rule(1, '1000', '10000', interest_rate=Decimal('7.25'), fee_amount=Decimal('5'))
        ])
        resolution = self.resolver.resolve(product, Decimal('5000'))
        assert resolution.rate == Decimal('7.25')
        assert resolution.fee == Decimal('5')
        assert resolution.rule_id == 1

    def test_threshold_upper_bound_is_exclusive(self):
        product = make_product([rule(1, '1000', '10000', interest_rate=Decimal('7.25'))])
        resolution = self.resolver.resolve(product, Decimal('10000'))
        assert resolution.rule_id is None

    def test_threshold_lower_bound_is_inclusive(self):
        product = make_product([rule(1, '1000', '10000', interest_rate=Decimal('7.25'))])
        assert self.resolver.resolve(product, Decimal('1000')).rule_id == 1

    def test_open_ended_rule(self):
        product = make_product([rule(1, '50000', interest_rate=Decimal('7.50'))])
        assert self.resolver.resolve(product, Decimal('900000')).rule_id == 1

    def test_lowest_priority_wins(self):
        product = make_product([
            rule(1, '0', priority_order=5, interest_rate=Decimal('5.00')),
            rule(2, '0', priority_order=1, interest_rate=Decimal('6.00')),
        ])
        assert self.resolver.resolve(product, Decimal('500')).rule_id == 2

    def test_priority_tie_broken_by_lowest_id(self):
        product = make_product([
            rule(9, '0', priority_order=1, interest_rate=Decimal('5.00')),
            rule(3, '0', priority_order=1, interest_rate=Decimal('6.00')),
        ])
        assert self.resolver.resolve(product, Decimal('500')).rule_id == 3

    def test_inactive_rule_is_ignored(self):
        product = make_product([
            rule(1, '0', priority_order=0, interest_rate=Decimal('9.00'), is_active=False),
            rule(2, '0', priority_order=1, interest_rate=Decimal('6.00')),
        ])
        assert self.resolver.resolve(product, Decimal('500')).rule_id == 2

    def test_discount_reduces_base_rate(self):
        product = make_product([rule(1, '0', discount_percentage=Decimal('10'))])
        resolution = self.resolver.resolve(product, Decimal('500'), 12)
        assert resolution.rate == Decimal('5.40')
        assert resolution.discount_pct == Decimal('10')

    def test_discount_never_goes_negative(self):
        product = make_product([rule(1, '0', discount_percentage=Decimal('150'))])
        assert self.resolver.resolve(product, Decimal('500')).rate == Decimal('0.00')

    def test_inactive_product_raises(self):
        with pytest.raises(NoApplicableRate, match="not active"):
            self.resolver.resolve(make_product(is_active=False), Decimal('500'))

    def test_principal_outside_product_limits_raises(self):
        with pytest.raises(NoApplicableRate, match="outside product"):
            self.resolver.resolve(make_product(), Decimal('50'))


class TestProductCatalog:

    def test_get_missing_product(self):
        with pytest.raises(NotFound):
            ProductCatalog().get("NOPE")

    def test_list_active_only(self):
        catalog = ProductCatalog([
            make_product(code="A"),
            make_product(code="B", is_active=False),
        ])
        assert [p.code for p in catalog.list_products(active_only=True)] == ["A"]

    def test_from_file(self, tmp_path):
        path = tmp_path / "products.json"
        path.write_text(json.dumps([{
            "code": "FD-GOLD",
            "currency": "kwd",
            "min_amount": "1000",
            "max_amount": "500000",
            "min_term_months": 6,
            "max_term_months": 60,
            "min_interest_rate": "5",
            "max_interest_rate": "7.5",
            "compounding": "SEMI_ANNUAL",
            "premature_penalty_rate": "0.01",
            "premature_penalty_grace_days": 15,
            "pricing_rules": [
                {"id": 1, "min_threshold": "100000", "interest_rate": "7.75"}
            ]
        }]))
        product = ProductCatalog.from_file(str(path)).get("FD-GOLD")
        assert product.compounding == CompoundingConvention.SEMI_ANNUAL
        assert product.currency == Currency.KWD
        assert product.pricing_rules[0].max_threshold is None

    def test_compounding_labels(self):
        assert CompoundingConvention.from_label("Annually") == CompoundingConvention.ANNUAL
        assert CompoundingConvention.from_label("semi-annual") == CompoundingConvention.SEMI_ANNUAL

    def test_product_from_dict_defaults(self):
        product = product_from_dict({
            "code": "X", "min_amount": 1, "max_amount": 10,
            "min_term_months": 1, "max_term_months": 12,
            "min_interest_rate": 1, "max_interest_rate": 2
        })
        assert product.compounding == CompoundingConvention.QUARTERLY
        assert product.premature_penalty_rate == Decimal('0')

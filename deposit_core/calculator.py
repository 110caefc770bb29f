"""
FD Calculation Module

Answers "what would this deposit be worth" queries by composing pricing
resolution with interest accrual over the requested tenure. Pure: nothing
is persisted and the ledger is never touched.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Optional

from .clock import SystemClock, get_clock
from .currency import round_money
from .errors import InvalidRequest
from .interest import AccrualCalculator, add_months, compounding_periods, term_years
from .pricing import PricingRuleResolver
from .products import ProductCatalog, CompoundingConvention


@dataclass(frozen=True)
class FdCalculation:
    product_code: str
    currency: str
    principal_amount: Decimal
    tenure_months: int
    interest_rate: Decimal
    interest_earned: Decimal
    maturity_amount: Decimal
    effective_rate: Decimal
    compounding: CompoundingConvention
    compounding_frequency: int  # Periods per year, 0 for simple interest
    start_date: datetime
    maturity_date: datetime
    pricing_rule_id: Optional[int] = None
    fee: Decimal = Decimal('0')


class FdCalculator:
    """Fixed deposit maturity calculator"""

    def __init__(
        self,
        catalog: ProductCatalog,
        resolver: Optional[PricingRuleResolver] = None,
        calculator: Optional[AccrualCalculator] = None,
        clock: Optional[SystemClock] = None
    ):
        self.catalog = catalog
        self.resolver = resolver or PricingRuleResolver()
        self.calculator = calculator or AccrualCalculator()
        self.clock = clock or get_clock()

    def calculate(
        self,
        product_code: str,
        principal: Decimal,
        tenure_months: int,
        compounding: Optional[CompoundingConvention] = None
    ) -> FdCalculation:
        """
        Project interest and maturity value for a prospective deposit

        Args:
            product_code: Product to price against
            principal: Principal amount
            tenure_months: Term in months
            compounding: Overrides the product's convention when given

        Raises:
            NotFound: If the product does not exist
            InvalidRequest: If principal or tenure fall outside product bounds
            NoApplicableRate: If the product is inactive
        """
        product = self.catalog.get(product_code)
        if principal <= 0:
            raise InvalidRequest("Principal amount must be positive")
        if tenure_months <= 0:
            raise InvalidRequest("Tenure must be positive")
        if principal < product.min_amount:
            raise InvalidRequest(f"Principal amount must be at least {product.min_amount}")
        if principal > product.max_amount:
            raise InvalidRequest(f"Principal amount cannot exceed {product.max_amount}")
        if tenure_months < product.min_term_months:
            raise InvalidRequest(f"Tenure must be at least {product.min_term_months} months")
        if tenure_months > product.max_term_months:
            raise InvalidRequest(f"Tenure cannot exceed {product.max_term_months} months")

        pricing = self.resolver.resolve(product, principal, tenure_months)
        convention = compounding or product.compounding

        # Horizon is tenure_months / 12 years regardless of calendar days
        years = term_years(tenure_months)
        start = self.clock.now()
        end = add_months(start, tenure_months)
        interest = self.calculator.interest_for_years(
            principal, pricing.rate, convention, years, product.currency
        )
        effective = self.calculator.effective_rate_for_years(
            principal, pricing.rate, convention, years
        )

        return FdCalculation(
            product_code=product.code,
            currency=product.currency.code,
            principal_amount=principal,
            tenure_months=tenure_months,
            interest_rate=pricing.rate,
            interest_earned=interest,
            maturity_amount=round_money(principal + interest, product.currency),
            effective_rate=effective,
            compounding=convention,
            compounding_frequency=compounding_periods(convention) or 0,
            start_date=start,
            maturity_date=end,
            pricing_rule_id=pricing.rule_id,
            fee=pricing.fee
        )

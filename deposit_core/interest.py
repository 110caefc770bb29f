"""
Interest Accrual Module

Computes interest earned between two instants under the supported
compounding conventions. All arithmetic runs in Decimal at high precision
and is rounded once, at the reported amount.
"""

from decimal import Decimal, localcontext
from datetime import datetime
from typing import Optional
import calendar

from .currency import Currency, round_money
from .products import CompoundingConvention


DAYS_PER_YEAR = Decimal('365')
SECONDS_PER_DAY = Decimal('86400')
CALCULATION_PRECISION = 40

_PERIODS_PER_YEAR = {
    CompoundingConvention.DAILY: 365,
    CompoundingConvention.MONTHLY: 12,
    CompoundingConvention.QUARTERLY: 4,
    CompoundingConvention.SEMI_ANNUAL: 2,
    CompoundingConvention.ANNUAL: 1,
}


def compounding_periods(convention: CompoundingConvention) -> Optional[int]:
    """Periods per year, or None for simple interest"""
    return _PERIODS_PER_YEAR.get(convention)


def years_between(from_instant: datetime, to_instant: datetime) -> Decimal:
    """Elapsed time in years on an actual/365 basis, including fractional days"""
    if to_instant <= from_instant:
        return Decimal('0')
    elapsed = to_instant - from_instant
    seconds = Decimal(elapsed.days) * SECONDS_PER_DAY + Decimal(elapsed.seconds) \
        + Decimal(elapsed.microseconds) / Decimal('1000000')
    with localcontext() as ctx:
        ctx.prec = CALCULATION_PRECISION
        return seconds / SECONDS_PER_DAY / DAYS_PER_YEAR


def add_months(instant: datetime, months: int) -> datetime:
    """Calendar-month addition; the day is clamped to the target month's end"""
    month_index = instant.month - 1 + months
    year = instant.year + month_index // 12
    month = month_index % 12 + 1
    day = min(instant.day, calendar.monthrange(year, month)[1])
    return instant.replace(year=year, month=month, day=day)


def term_years(tenure_months: int) -> Decimal:
    """A term of whole months as years, each month being a twelfth of a year"""
    with localcontext() as ctx:
        ctx.prec = CALCULATION_PRECISION
        return Decimal(tenure_months) / Decimal('12')


class AccrualCalculator:
    """
    Interest accrual under SIMPLE and periodic compounding conventions.

    Rates are annual percentages (7 means 7%).
    """

    def _raw_interest(self, principal: Decimal, annual_rate_percent: Decimal,
                      compounding: CompoundingConvention, years: Decimal) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = CALCULATION_PRECISION
            rate = Decimal(annual_rate_percent) / Decimal('100')
            periods = compounding_periods(compounding)
            if periods is None:
                return principal * rate * years

            n = Decimal(periods)
            growth = (Decimal('1') + rate / n) ** (n * years)
            return principal * (growth - Decimal('1'))

    def interest_earned(
        self,
        principal: Decimal,
        annual_rate_percent: Decimal,
        compounding: CompoundingConvention,
        from_instant: datetime,
        to_instant: datetime,
        currency: Optional[Currency] = None
    ) -> Decimal:
        """
        Interest earned on `principal` between two instants.

        Args:
            principal: Deposit principal
            annual_rate_percent: Nominal annual rate in percent
            compounding: Compounding convention
            from_instant: Start of the accrual window
            to_instant: End of the accrual window
            currency: Rounds to the currency's precision when given, else 2 places

        Returns:
            Interest rounded half-up; zero for an empty or inverted window
        """
        if to_instant <= from_instant:
            return round_money(Decimal('0'), currency)
        years = years_between(from_instant, to_instant)
        raw = self._raw_interest(principal, annual_rate_percent, compounding, years)
        return round_money(raw, currency)

    def maturity_amount(
        self,
        principal: Decimal,
        annual_rate_percent: Decimal,
        compounding: CompoundingConvention,
        from_instant: datetime,
        to_instant: datetime,
        currency: Optional[Currency] = None
    ) -> Decimal:
        interest = self.interest_earned(
            principal, annual_rate_percent, compounding, from_instant, to_instant, currency
        )
        return round_money(principal + interest, currency)

    def interest_for_years(
        self,
        principal: Decimal,
        annual_rate_percent: Decimal,
        compounding: CompoundingConvention,
        years: Decimal,
        currency: Optional[Currency] = None
    ) -> Decimal:
        """Interest over a fixed horizon in years, independent of the calendar"""
        if years <= 0:
            return round_money(Decimal('0'), currency)
        raw = self._raw_interest(principal, annual_rate_percent, compounding, years)
        return round_money(raw, currency)

    def effective_rate(
        self,
        principal: Decimal,
        annual_rate_percent: Decimal,
        compounding: CompoundingConvention,
        from_instant: datetime,
        to_instant: datetime
    ) -> Decimal:
        """Annualized percent actually earned; the nominal rate for an empty window"""
        return self.effective_rate_for_years(
            principal, annual_rate_percent, compounding,
            years_between(from_instant, to_instant)
        )

    def effective_rate_for_years(
        self,
        principal: Decimal,
        annual_rate_percent: Decimal,
        compounding: CompoundingConvention,
        years: Decimal
    ) -> Decimal:
        if years <= 0 or principal <= 0:
            return round_money(Decimal(annual_rate_percent))
        interest = self.interest_for_years(principal, annual_rate_percent, compounding, years)
        with localcontext() as ctx:
            ctx.prec = CALCULATION_PRECISION
            rate = interest / principal / years * Decimal('100')
        return round_money(rate)

    def interest_for_term(
        self,
        principal: Decimal,
        annual_rate_percent: Decimal,
        compounding: CompoundingConvention,
        start: datetime,
        tenure_months: int,
        currency: Optional[Currency] = None
    ) -> Decimal:
        """Interest over a calendar-month term starting at `start`"""
        return self.interest_earned(
            principal, annual_rate_percent, compounding,
            start, add_months(start, tenure_months), currency
        )

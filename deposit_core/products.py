"""
Product Read Model Module

Fixed-deposit products and their pricing rules. Products are created and
edited by external product administration; the settlement core only reads
them through a ProductCatalog.
"""

import json
import threading
from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum

from .currency import Currency
from .errors import NotFound


class CompoundingConvention(Enum):
    """How often interest compounds"""
    SIMPLE = "simple"
    DAILY = "daily"              # 365 times per year
    MONTHLY = "monthly"          # 12 times per year
    QUARTERLY = "quarterly"      # 4 times per year
    SEMI_ANNUAL = "semi_annual"  # 2 times per year
    ANNUAL = "annual"            # 1 time per year

    @classmethod
    def from_label(cls, label: str) -> 'CompoundingConvention':
        """Accept enum names or values in any case"""
        normalized = label.strip().lower().replace("-", "_")
        aliases = {"annually": "annual", "semi_annually": "semi_annual", "yearly": "annual"}
        normalized = aliases.get(normalized, normalized)
        return cls(normalized)


@dataclass
class PricingRule:
    """
    Rate, fee and discount override for a principal band [min, max).

    A max_threshold of None leaves the band open-ended.
    """
    id: int
    product_code: str
    min_threshold: Decimal
    max_threshold: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None  # Annual percent
    fee_amount: Decimal = Decimal('0')
    discount_percentage: Decimal = Decimal('0')
    priority_order: int = 0
    is_active: bool = True

    def matches(self, principal: Decimal) -> bool:
        if not self.is_active:
            return False
        if principal < self.min_threshold:
            return False
        return self.max_threshold is None or principal < self.max_threshold


@dataclass
class Product:
    """Deposit offering. Amounts are in the product currency."""
    code: str
    name: str
    currency: Currency
    min_amount: Decimal
    max_amount: Decimal
    min_term_months: int
    max_term_months: int
    min_interest_rate: Decimal  # Annual percent
    max_interest_rate: Decimal  # Annual percent
    compounding: CompoundingConvention = CompoundingConvention.QUARTERLY
    premature_penalty_rate: Decimal = Decimal('0')  # Fraction of principal, 0-1
    premature_penalty_grace_days: int = 0
    is_active: bool = True
    pricing_rules: List[PricingRule] = field(default_factory=list)

    def __post_init__(self):
        if self.min_amount > self.max_amount:
            raise ValueError("min_amount cannot exceed max_amount")
        if self.min_term_months > self.max_term_months:
            raise ValueError("min_term_months cannot exceed max_term_months")
        if not (Decimal('0') <= self.premature_penalty_rate <= Decimal('1')):
            raise ValueError("premature_penalty_rate must be between 0 and 1")

    def base_rate(self, tenure_months: Optional[int] = None) -> Decimal:
        """
        Default rate when no pricing rule applies. Longer tenures move the
        rate from the product minimum towards its maximum.
        """
        low = self.min_interest_rate
        high = self.max_interest_rate
        if tenure_months is None:
            rate = low
        elif tenure_months >= 60:
            rate = high
        elif tenure_months >= 36:
            rate = low + (high - low) * Decimal('0.75')
        elif tenure_months >= 12:
            rate = low + (high - low) * Decimal('0.5')
        else:
            rate = low
        return rate.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    def principal_in_range(self, principal: Decimal) -> bool:
        return self.min_amount <= principal <= self.max_amount

    def term_in_range(self, tenure_months: int) -> bool:
        return self.min_term_months <= tenure_months <= self.max_term_months


class ProductCatalog:
    """In-memory product registry populated by product administration"""

    def __init__(self, products: Optional[List[Product]] = None):
        self._lock = threading.Lock()
        self._products: Dict[str, Product] = {}
        for product in products or []:
            self.register(product)

    def register(self, product: Product) -> None:
        with self._lock:
            self._products[product.code] = product

    def get(self, code: str) -> Product:
        with self._lock:
            product = self._products.get(code)
        if product is None:
            raise NotFound(f"Product {code} not found", {"product_code": code})
        return product

    def list_products(self, active_only: bool = False) -> List[Product]:
        with self._lock:
            products = list(self._products.values())
        if active_only:
            products = [p for p in products if p.is_active]
        return sorted(products, key=lambda p: p.code)

    @classmethod
    def from_file(cls, path: str) -> 'ProductCatalog':
        """Load a catalog from a JSON list of product documents"""
        with open(path, "r", encoding="utf-8") as f:
            documents = json.load(f)
        return cls([product_from_dict(doc) for doc in documents])


def _decimal(value, default: str = '0') -> Decimal:
    if value is None:
        return Decimal(default)
    return Decimal(str(value))


def product_from_dict(data: Dict[str, Any]) -> Product:
    """Map a product administration document onto a Product"""
    rules = [
        PricingRule(
            id=int(rule['id']),
            product_code=data['code'],
            min_threshold=_decimal(rule.get('min_threshold')),
            max_threshold=_decimal(rule['max_threshold']) if rule.get('max_threshold') is not None else None,
            interest_rate=_decimal(rule['interest_rate']) if rule.get('interest_rate') is not None else None,
            fee_amount=_decimal(rule.get('fee_amount')),
            discount_percentage=_decimal(rule.get('discount_percentage')),
            priority_order=int(rule.get('priority_order', 0)),
            is_active=bool(rule.get('is_active', True))
        )
        for rule in data.get('pricing_rules', [])
    ]
    return Product(
        code=data['code'],
        name=data.get('name', data['code']),
        currency=Currency.from_code(data.get('currency', 'KWD')),
        min_amount=_decimal(data['min_amount']),
        max_amount=_decimal(data['max_amount']),
        min_term_months=int(data['min_term_months']),
        max_term_months=int(data['max_term_months']),
        min_interest_rate=_decimal(data['min_interest_rate']),
        max_interest_rate=_decimal(data['max_interest_rate']),
        compounding=CompoundingConvention.from_label(data.get('compounding', 'quarterly')),
        premature_penalty_rate=_decimal(data.get('premature_penalty_rate')),
        premature_penalty_grace_days=int(data.get('premature_penalty_grace_days', 0)),
        is_active=bool(data.get('is_active', True)),
        pricing_rules=rules
    )

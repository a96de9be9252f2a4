"""
Checkout totals.

    sub_total = sum(unit price x quantity) over eligible lines
    shipping  = 0 when sub_total >= threshold, else the flat rate
    tax       = sub_total x rate, rounded half-up to cents once
    total     = sub_total + shipping + tax - discount

Nothing here touches the database: callers hand in the cart lines and the
products they currently resolve to.
"""
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from shared.utils import Settings, settings
from storefront.cart import CartLine
from storefront.models import Product

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class ExclusionReason(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    INSUFFICIENT_STOCK = "insufficient_stock"


class PricedLine(BaseModel):
    product_id: int
    name: str
    sku: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class ExcludedLine(BaseModel):
    product_id: int
    name: Optional[str] = None
    quantity: int
    available: int = 0
    reason: ExclusionReason


class CheckoutTotals(BaseModel):
    lines: List[PricedLine] = []
    excluded: List[ExcludedLine] = []
    sub_total: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total_amount: Decimal = ZERO

    @property
    def has_exclusions(self) -> bool:
        return bool(self.excluded)


def shipping_for(sub_total: Decimal, config: Settings = settings) -> Decimal:
    if sub_total >= config.FREE_SHIPPING_THRESHOLD:
        return ZERO
    return to_cents(config.FLAT_SHIPPING_COST)


def tax_for(sub_total: Decimal, config: Settings = settings) -> Decimal:
    return to_cents(sub_total * config.TAX_RATE)


def check_line(line: CartLine, product: Optional[Product]) -> Optional[ExcludedLine]:
    if product is None:
        return ExcludedLine(product_id=line.product_id, quantity=line.quantity, reason=ExclusionReason.NOT_FOUND)
    if not product.is_active:
        return ExcludedLine(
            product_id=line.product_id, name=product.name, quantity=line.quantity,
            available=product.stock_quantity, reason=ExclusionReason.INACTIVE,
        )
    if product.stock_quantity < line.quantity:
        return ExcludedLine(
            product_id=line.product_id, name=product.name, quantity=line.quantity,
            available=product.stock_quantity, reason=ExclusionReason.INSUFFICIENT_STOCK,
        )
    return None


def price_lines(
    lines: Iterable[CartLine],
    products: Dict[int, Product],
    discount: Decimal = ZERO,
    config: Settings = settings,
) -> CheckoutTotals:
    """Price the eligible lines and flag the rest instead of pricing stale data."""
    totals = CheckoutTotals()
    sub_total = Decimal("0")

    for line in lines:
        product = products.get(line.product_id)
        excluded = check_line(line, product)
        if excluded is not None:
            totals.excluded.append(excluded)
            continue
        unit_price = product.effective_price
        line_total = unit_price * line.quantity
        sub_total += line_total
        totals.lines.append(PricedLine(
            product_id=product.id,
            name=product.name,
            sku=product.sku,
            quantity=line.quantity,
            unit_price=unit_price,
            line_total=line_total,
        ))

    if not totals.lines:
        return totals

    totals.sub_total = sub_total
    totals.shipping_cost = shipping_for(sub_total, config)
    totals.tax_amount = tax_for(sub_total, config)
    totals.discount_amount = min(to_cents(discount), sub_total) if discount > 0 else ZERO
    totals.total_amount = totals.sub_total + totals.shipping_cost + totals.tax_amount - totals.discount_amount
    return totals

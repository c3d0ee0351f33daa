"""
Cart pricing - cart line builder, totals aggregator and cart operations.

A cart is a tuple of CartLine values, one per SKU, in scan order. Every
change returns a new tuple built from fresh CartLines; nothing is mutated
in place.

Tax policy: tax is charged on the discounted line amount. Order-level
discounts are applied one after the other against what is left of the
subtotal, and the summed line tax is then scaled by the share of the
subtotal that survives them.
"""
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Sequence, Tuple

from ravenpos.exceptions import ValidationError, InsufficientStockError
from ravenpos.services.discount_service import (
    Discount, DiscountScope, calculate_discount_amount, to_decimal, ZERO
)
from ravenpos.services.tax_service import TaxRateTable

CENT = Decimal('0.01')


def round2(value: Decimal) -> Decimal:
    """Round half-up to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CartLine:
    """One scanned item at a quantity, priced."""
    item: Any
    quantity: int
    line_total: Decimal
    tax_amount: Decimal
    discounted_line_total: Decimal
    discounted_tax_amount: Decimal
    discount: Optional[Discount] = None

    @property
    def sku(self) -> str:
        return self.item.sku

    @property
    def discount_amount(self) -> Decimal:
        return self.discount.calculated_amount if self.discount else ZERO


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax_total: Decimal
    total: Decimal
    item_discount_total: Decimal
    order_discount_total: Decimal
    discount_total: Decimal
    order_discounts: Tuple[Discount, ...] = ()


def build_cart_line(item, quantity: int, rates: TaxRateTable, discount: Optional[Discount] = None) -> CartLine:
    """
    Price `quantity` units of `item`.

    Stock is not checked here; see add_item / update_quantity. Any
    calculated_amount already on `discount` is ignored and recomputed
    against the line total.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f'Quantity must be a whole number, got {quantity!r}')
    if quantity < 1:
        raise ValidationError('Quantity must be at least 1')

    price = to_decimal(item.price, 'price')
    rate = rates.rate_for(item.category)

    line_total = round2(price * quantity)
    tax_amount = round2(line_total * rate)

    if discount is not None:
        amount = round2(calculate_discount_amount(discount.type, discount.value, line_total))
        discount = replace(discount, scope=DiscountScope.ITEM, calculated_amount=amount)
        discounted_line_total = round2(max(ZERO, line_total - amount))
        discounted_tax_amount = round2(discounted_line_total * rate)
    else:
        discounted_line_total = line_total
        discounted_tax_amount = tax_amount

    return CartLine(
        item=item,
        quantity=quantity,
        line_total=line_total,
        tax_amount=tax_amount,
        discounted_line_total=discounted_line_total,
        discounted_tax_amount=discounted_tax_amount,
        discount=discount,
    )


def apply_order_discounts(base: Decimal, discounts: Iterable[Discount]) -> Tuple[Tuple[Discount, ...], Decimal]:
    """
    Apply order discounts in sequence, each against the remainder left by
    the previous ones. Returns the refreshed discounts and their unrounded
    total.
    """
    remainder = base
    total = ZERO
    refreshed = []
    for discount in discounts:
        amount = calculate_discount_amount(discount.type, discount.value, remainder)
        total += amount
        remainder = max(ZERO, remainder - amount)
        refreshed.append(replace(discount, scope=DiscountScope.ORDER, calculated_amount=amount))
    return tuple(refreshed), total


def calculate_cart_totals(lines: Sequence[CartLine], order_discounts: Iterable[Discount] = ()) -> CartTotals:
    """
    Totals for a cart.

    Line values are already rounded and summed as is; everything derived
    here keeps full precision until the result is built.
    """
    original_subtotal = sum((line.line_total for line in lines), ZERO)
    item_discount_total = sum((line.discount_amount for line in lines), ZERO)
    subtotal_after_items = sum((line.discounted_line_total for line in lines), ZERO)

    refreshed, order_discount_total = apply_order_discounts(subtotal_after_items, order_discounts)

    final_subtotal = max(ZERO, subtotal_after_items - order_discount_total)
    item_tax_total = sum((line.discounted_tax_amount for line in lines), ZERO)

    if order_discount_total > 0 and subtotal_after_items > 0:
        tax_total = item_tax_total * (final_subtotal / subtotal_after_items)
    else:
        tax_total = item_tax_total

    total = final_subtotal + tax_total

    return CartTotals(
        subtotal=round2(original_subtotal),
        tax_total=round2(tax_total),
        total=round2(total),
        item_discount_total=round2(item_discount_total),
        order_discount_total=round2(order_discount_total),
        discount_total=round2(item_discount_total + order_discount_total),
        order_discounts=tuple(
            replace(d, calculated_amount=round2(d.calculated_amount)) for d in refreshed
        ),
    )


# =====================================================
# CART OPERATIONS
# =====================================================

def find_line(lines: Sequence[CartLine], sku: str) -> Optional[int]:
    """Index of the line holding `sku`, or None."""
    for index, line in enumerate(lines):
        if line.sku == sku:
            return index
    return None


def add_item(lines: Sequence[CartLine], item, rates: TaxRateTable, quantity: int = 1) -> Tuple[CartLine, ...]:
    """Add a scanned item, merging into its existing line by SKU."""
    index = find_line(lines, item.sku)
    if index is None:
        if quantity > item.quantity:
            raise InsufficientStockError(item.name, quantity, item.quantity)
        return tuple(lines) + (build_cart_line(item, quantity, rates),)

    existing = lines[index]
    return update_quantity(lines, index, existing.quantity + quantity, rates)


def update_quantity(lines: Sequence[CartLine], index: int, quantity: int, rates: TaxRateTable) -> Tuple[CartLine, ...]:
    """Change a line's quantity; zero or less removes the line."""
    if quantity <= 0:
        return remove_line(lines, index)

    line = _line_at(lines, index)
    if quantity > line.item.quantity:
        raise InsufficientStockError(line.item.name, quantity, line.item.quantity)

    updated = build_cart_line(line.item, quantity, rates, line.discount)
    return _replace_at(lines, index, updated)


def set_line_discount(lines: Sequence[CartLine], index: int, discount: Optional[Discount], rates: TaxRateTable) -> Tuple[CartLine, ...]:
    """Apply (or clear, with None) an item-level discount."""
    line = _line_at(lines, index)
    updated = build_cart_line(line.item, line.quantity, rates, discount)
    return _replace_at(lines, index, updated)


def remove_line(lines: Sequence[CartLine], index: int) -> Tuple[CartLine, ...]:
    _line_at(lines, index)
    return tuple(line for i, line in enumerate(lines) if i != index)


def _line_at(lines: Sequence[CartLine], index: int) -> CartLine:
    if index < 0 or index >= len(lines):
        raise ValidationError(f'No cart line at position {index}')
    return lines[index]


def _replace_at(lines: Sequence[CartLine], index: int, new_line: CartLine) -> Tuple[CartLine, ...]:
    return tuple(new_line if i == index else line for i, line in enumerate(lines))

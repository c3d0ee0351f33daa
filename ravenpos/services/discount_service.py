"""Discount calculation utilities."""
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Tuple, Union

from ravenpos.exceptions import ValidationError

Number = Union[Decimal, int, float, str]

HUNDRED = Decimal('100')
ZERO = Decimal('0')


class DiscountType:
    """Discount kinds, as stored in sale_items.discount_type."""
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'

    ALL = (PERCENTAGE, FIXED)


class DiscountScope:
    ITEM = 'item'
    ORDER = 'order'


def to_decimal(value: Number, field: str = 'value') -> Decimal:
    """Convert a user or JSON supplied number to Decimal."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f'Invalid number for {field}: {value!r}')
    if not result.is_finite():
        raise ValidationError(f'Invalid number for {field}: {value!r}')
    return result


@dataclass(frozen=True)
class Discount:
    """
    A percentage or fixed-amount discount on a cart line or the whole order.

    calculated_amount is only ever an output: pricing functions recompute it
    from type, value and the current base and return a refreshed copy.
    """
    type: str
    value: Decimal
    scope: str = DiscountScope.ITEM
    reason: Optional[str] = None
    calculated_amount: Decimal = ZERO

    def __post_init__(self):
        if self.type not in DiscountType.ALL:
            raise ValidationError(f'Unknown discount type: {self.type}')
        value = to_decimal(self.value, 'discount value')
        if value < 0:
            raise ValidationError('Discount value cannot be negative')
        object.__setattr__(self, 'value', value)
        object.__setattr__(self, 'calculated_amount', to_decimal(self.calculated_amount, 'calculated amount'))

    def to_snapshot(self) -> dict:
        """JSON-friendly record stored on the sale."""
        return {
            'type': self.type,
            'value': float(self.value),
            'reason': self.reason,
            'calculatedAmount': float(self.calculated_amount),
        }


def calculate_discount_amount(discount_type: str, value: Number, base: Number) -> Decimal:
    """
    Monetary amount taken off `base`.

    Never exceeds the base and is not rounded; callers round where the
    amount is used.
    """
    value = to_decimal(value, 'discount value')
    base = to_decimal(base, 'base amount')
    if value < 0:
        raise ValidationError('Discount value cannot be negative')
    if base <= 0:
        return ZERO

    if discount_type == DiscountType.PERCENTAGE:
        return min(base * (value / HUNDRED), base)
    if discount_type == DiscountType.FIXED:
        return min(value, base)
    raise ValidationError(f'Unknown discount type: {discount_type}')


def recalculate_discount(discount: Discount, base: Number) -> Discount:
    """Copy of the discount with calculated_amount set against a new base."""
    amount = calculate_discount_amount(discount.type, discount.value, base)
    return replace(discount, calculated_amount=amount)


def sum_discounts(discounts: Iterable[Discount]) -> Decimal:
    return sum((d.calculated_amount for d in discounts), ZERO)


def validate_discount_value(discount_type: str, value: Number, max_amount: Number) -> Tuple[bool, Optional[str], Optional[Decimal]]:
    """
    Check a value typed by the cashier.

    Returns (valid, message, adjusted_value); adjusted_value is the nearest
    acceptable value when the input is over the limit.
    """
    value = to_decimal(value)
    max_amount = to_decimal(max_amount, 'max amount')

    if value <= 0:
        return False, 'Discount value must be greater than 0', None

    if discount_type == DiscountType.PERCENTAGE:
        if value > HUNDRED:
            return False, 'Percentage cannot exceed 100%', HUNDRED
        return True, None, None

    if value > max_amount:
        return False, f'Discount cannot exceed ${max_amount:.2f}', max_amount

    return True, None, None


def format_discount_label(discount: Discount) -> str:
    """'10% off' or '$5.00 off'."""
    if discount.type == DiscountType.PERCENTAGE:
        return f'{discount.value.normalize():f}% off'
    return f'${discount.value:.2f} off'


def format_discount_summary(discount: Discount) -> str:
    """Receipt line, e.g. 'Order Discount (10%) - Loyalty'."""
    if discount.type == DiscountType.PERCENTAGE:
        label = f'{discount.value.normalize():f}%'
    else:
        label = f'${discount.value:.2f}'

    scope = 'Order Discount' if discount.scope == DiscountScope.ORDER else 'Item Discount'
    reason = f' - {discount.reason}' if discount.reason else ''
    return f'{scope} ({label}){reason}'

"""POS checkout API - prices carts and completes sales."""
from decimal import Decimal
from typing import List, Optional, Tuple
from flask import Blueprint, request, jsonify, current_app
from ravenpos.database import get_session
from ravenpos.models import Customer, Item, PaymentMethod, Sale, SaleItem
from ravenpos.exceptions import ValidationError, NotFoundError
from ravenpos.services import cart_service
from ravenpos.services.cart_service import CartLine, CartTotals
from ravenpos.services.discount_service import Discount, DiscountScope, format_discount_label, to_decimal
from ravenpos.services.sale_store import SaleStore
from ravenpos.services.sales_service import complete_sale, get_sale_with_items, get_todays_sales
from ravenpos.services.shopify_client import get_shopify_client
from ravenpos.services.tax_service import get_tax_rates

pos_bp = Blueprint('pos', __name__, url_prefix='/pos/api')


def _money(value: Decimal) -> str:
    return f'{value:.2f}'


def _parse_discount(data, scope: str):
    if not data:
        return None
    if not isinstance(data, dict):
        raise ValidationError('Discount must be an object')
    return Discount(
        type=data.get('type'),
        value=data.get('value', 0),
        scope=scope,
        reason=data.get('reason') or None,
    )


def _parse_quantity(value) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'Quantity must be a whole number, got {value!r}')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid quantity: {value!r}')


def _parse_customer_id(value) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f'Invalid customer_id: {value!r}')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid customer_id: {value!r}')


def _build_cart(db_session, payload) -> Tuple[Tuple[CartLine, ...], List[Discount]]:
    """Turn a JSON cart into priced lines and order discounts."""
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')

    raw_lines = payload.get('lines') or []
    if not isinstance(raw_lines, list):
        raise ValidationError('lines must be a list')

    rates = get_tax_rates()
    lines: Tuple[CartLine, ...] = ()

    for raw in raw_lines:
        if not isinstance(raw, dict):
            raise ValidationError('Each line must be an object')
        sku = str(raw.get('sku', '')).strip()
        if not sku:
            raise ValidationError('Each line needs a sku')

        item = db_session.query(Item).filter(Item.sku == sku).first()
        if not item:
            raise NotFoundError(f'Item not found: {sku}')

        lines = cart_service.add_item(lines, item, rates, _parse_quantity(raw.get('quantity', 1)))

        discount = _parse_discount(raw.get('discount'), DiscountScope.ITEM)
        if discount is not None:
            index = cart_service.find_line(lines, sku)
            lines = cart_service.set_line_discount(lines, index, discount, rates)

    order_discounts = [
        _parse_discount(d, DiscountScope.ORDER) for d in (payload.get('order_discounts') or [])
    ]
    return lines, [d for d in order_discounts if d is not None]


def _serialize_line(line: CartLine) -> dict:
    data = {
        'sku': line.sku,
        'name': line.item.display_name,
        'category': line.item.category,
        'price': _money(Decimal(str(line.item.price))),
        'quantity': line.quantity,
        'line_total': _money(line.line_total),
        'tax_amount': _money(line.tax_amount),
        'discounted_line_total': _money(line.discounted_line_total),
        'discounted_tax_amount': _money(line.discounted_tax_amount),
        'discount': None,
    }
    if line.discount:
        data['discount'] = {
            'type': line.discount.type,
            'value': str(line.discount.value),
            'reason': line.discount.reason,
            'amount': _money(line.discount.calculated_amount),
            'label': format_discount_label(line.discount),
        }
    return data


def _serialize_totals(totals: CartTotals) -> dict:
    return {
        'subtotal': _money(totals.subtotal),
        'tax_total': _money(totals.tax_total),
        'total': _money(totals.total),
        'item_discount_total': _money(totals.item_discount_total),
        'order_discount_total': _money(totals.order_discount_total),
        'discount_total': _money(totals.discount_total),
        'order_discounts': [
            {
                'type': d.type,
                'value': str(d.value),
                'reason': d.reason,
                'amount': _money(d.calculated_amount),
                'label': format_discount_label(d),
            }
            for d in totals.order_discounts
        ],
    }


@pos_bp.route('/totals', methods=['POST'])
def cart_totals():
    """Price a cart without recording anything."""
    db_session = get_session()
    lines, order_discounts = _build_cart(db_session, request.get_json(silent=True))
    totals = cart_service.calculate_cart_totals(lines, order_discounts)

    return jsonify({
        'status': 'ok',
        'lines': [_serialize_line(line) for line in lines],
        'totals': _serialize_totals(totals),
    })


def _optional_money(value):
    return _money(value) if value is not None else None


def _serialize_sale(sale: Sale) -> dict:
    return {
        'id': sale.id,
        'completed_at': sale.completed_at.isoformat() if sale.completed_at else None,
        'customer_id': sale.customer_id,
        'subtotal': _money(sale.subtotal),
        'tax_amount': _money(sale.tax_amount),
        'total': _money(sale.total),
        'discount_total': _money(sale.discount_total),
        'discounts': sale.discounts or [],
        'payment_method': sale.payment_method,
        'cash_tendered': _optional_money(sale.cash_tendered),
        'change_given': _optional_money(sale.change_given),
        'payment_reference': sale.stripe_payment_intent_id,
    }


def _serialize_sale_item(sale_item: SaleItem) -> dict:
    return {
        'id': sale_item.id,
        'item_id': sale_item.item_id,
        'consignor_id': sale_item.consignor_id,
        'sku': sale_item.sku,
        'name': sale_item.name,
        'price': _money(sale_item.price),
        'quantity': sale_item.quantity,
        'commission_split': str(sale_item.commission_split),
        'discount_type': sale_item.discount_type,
        'discount_value': str(sale_item.discount_value) if sale_item.discount_value is not None else None,
        'discount_amount': _money(sale_item.discount_amount),
        'discount_reason': sale_item.discount_reason,
    }


@pos_bp.route('/sales', methods=['POST'])
def create_sale():
    """
    Complete a sale.

    Amounts are recomputed from the cart on the server; cash change is
    derived from cash_tendered.
    """
    db_session = get_session()
    payload = request.get_json(silent=True)
    lines, order_discounts = _build_cart(db_session, payload)
    totals = cart_service.calculate_cart_totals(lines, order_discounts)

    payment_method = str(payload.get('payment_method', PaymentMethod.CASH.value)).lower()
    cash_tendered = Decimal('0')
    change_given = Decimal('0')
    if payment_method == PaymentMethod.CASH.value:
        cash_tendered = to_decimal(payload.get('cash_tendered', 0), 'cash_tendered')
        change_given = cash_tendered - totals.total

    customer_id = _parse_customer_id(payload.get('customer_id'))
    if customer_id is not None and db_session.get(Customer, customer_id) is None:
        raise NotFoundError(f'Customer not found: {customer_id}')

    store = SaleStore(db_session, current_app.config.get('DEFAULT_COMMISSION_SPLIT', '0.60'))
    result = complete_sale(
        store,
        lines,
        totals.subtotal,
        totals.tax_total,
        totals.total,
        cash_tendered=cash_tendered,
        change_given=change_given,
        customer_id=customer_id,
        payment_method=payment_method,
        payment_reference=payload.get('payment_reference'),
        order_discounts=order_discounts,
        sync=get_shopify_client(),
    )

    sale = result.sale
    if result.has_warnings:
        current_app.logger.warning(
            f"Sale #{sale.id} completed with {len(result.inventory_errors)} stock "
            f"and {len(result.sync_errors)} sync issue(s)"
        )

    return jsonify({
        'status': 'ok',
        'sale': _serialize_sale(sale),
        'warnings': len(result.inventory_errors) + len(result.sync_errors),
        'totals': _serialize_totals(totals),
    }), 201


@pos_bp.route('/sales/<int:sale_id>', methods=['GET'])
def sale_detail(sale_id):
    """Sale with its sold lines (receipt reprint)."""
    sale, items = get_sale_with_items(get_session(), sale_id)

    return jsonify({
        'status': 'ok',
        'sale': _serialize_sale(sale),
        'items': [_serialize_sale_item(i) for i in items],
    })


@pos_bp.route('/sales/today', methods=['GET'])
def todays_sales():
    """Sales completed today, with the day's total."""
    sales = get_todays_sales(get_session())

    return jsonify({
        'status': 'ok',
        'count': len(sales),
        'total': _money(sum((s.total for s in sales), Decimal('0'))),
        'sales': [_serialize_sale(s) for s in sales],
    })

"""
Sales service - completes a checkout.

Handles the sale record, sale items, stock decrements and the Shopify push.

Steps run strictly in order:
    1. Insert sale (with the order discount snapshot)   - fatal
    2. Insert sale items (with commission snapshot)     - fatal
    3. Decrement stock, line by line                    - non-fatal per line
    4. Mark local sync origin, then push to Shopify     - non-fatal per line

Steps 1 and 2 commit separately: if step 2 fails the sale row from step 1
stays behind with no items. Once step 2 succeeds the customer has paid, so
later failures are collected on the result and logged, never raised.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from ravenpos.exceptions import (
    ValidationError, NotFoundError, FatalPersistenceError, NonFatalInventoryError, NonFatalSyncError
)
from ravenpos.models import Sale, SaleItem, PaymentMethod, SyncDirection
from ravenpos.services.cart_service import CartLine, calculate_cart_totals, round2
from ravenpos.services.discount_service import Discount, to_decimal
from ravenpos.services.sale_store import SaleStore

logger = logging.getLogger(__name__)


@dataclass
class SaleCompletion:
    """Outcome of a completed sale, with any background failures."""
    sale: Sale
    inventory_errors: List[NonFatalInventoryError] = field(default_factory=list)
    sync_errors: List[NonFatalSyncError] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.inventory_errors or self.sync_errors)


def complete_sale(
    store: SaleStore,
    cart_lines: Sequence[CartLine],
    subtotal,
    tax_total,
    total,
    cash_tendered=0,
    change_given=0,
    customer_id: Optional[int] = None,
    payment_method: str = PaymentMethod.CASH.value,
    payment_reference: Optional[str] = None,
    order_discounts: Iterable[Discount] = (),
    sync=None,
) -> SaleCompletion:
    """
    Record a paid cart.

    Args:
        store: Persistence store (SaleStore)
        cart_lines: Priced cart lines
        subtotal, tax_total, total: Amounts shown to the customer
        cash_tendered, change_given: Cash sales only
        customer_id: Optional customer
        payment_method: 'cash' or 'card'
        payment_reference: Stripe PaymentIntent ID for card sales
        order_discounts: Order-level discounts (amounts are recomputed)
        sync: Object with adjust_inventory(inventory_item_id, delta), or None
              when Shopify sync is not configured

    Returns:
        SaleCompletion

    Raises:
        ValidationError: Before any write, for an unusable request
        FatalPersistenceError: If the sale or its items could not be saved
    """
    lines = list(cart_lines)
    order_discounts = list(order_discounts)

    # Validate before writing anything
    if not lines:
        raise ValidationError('Cart is empty')

    if payment_method not in (PaymentMethod.CASH.value, PaymentMethod.CARD.value):
        raise ValidationError(f'Invalid payment method: {payment_method}')

    subtotal = round2(to_decimal(subtotal, 'subtotal'))
    tax_total = round2(to_decimal(tax_total, 'tax total'))
    total = round2(to_decimal(total, 'total'))

    is_cash = payment_method == PaymentMethod.CASH.value
    if is_cash:
        cash_tendered = round2(to_decimal(cash_tendered or 0, 'cash tendered'))
        change_given = round2(to_decimal(change_given or 0, 'change given'))
        if cash_tendered < total:
            raise ValidationError('Insufficient cash')
    else:
        cash_tendered = None
        change_given = None

    totals = calculate_cart_totals(lines, order_discounts)

    # Captured now: later steps change these rows
    starting_quantities = {line.item.id: line.item.quantity for line in lines}

    # 1. Sale
    try:
        sale = store.insert_sale(
            completed_at=datetime.now(timezone.utc),
            subtotal=subtotal,
            tax_amount=tax_total,
            total=total,
            payment_method=payment_method,
            cash_tendered=cash_tendered,
            change_given=change_given,
            stripe_payment_intent_id=payment_reference or None,
            customer_id=customer_id or None,
            discounts=[d.to_snapshot() for d in totals.order_discounts],
            discount_total=totals.discount_total,
        )
    except Exception as e:
        logger.error(f"[SALE] Failed to record sale: {e}")
        raise FatalPersistenceError(f'Failed to complete sale: {e}')

    sale_id = sale.id

    # 2. Sale items
    try:
        store.insert_sale_items([_sale_item_row(store, sale_id, line) for line in lines])
    except Exception as e:
        logger.error(f"[SALE] Sale #{sale_id} recorded but its items failed: {e}")
        raise FatalPersistenceError(f'Failed to record items for sale #{sale_id}: {e}', sale_id=sale_id)

    result = SaleCompletion(sale=sale)
    decremented = set()

    # 3. Stock
    for index, line in enumerate(lines):
        item_id, sku = line.item.id, line.item.sku
        try:
            store.decrement_item_quantity(item_id, line.quantity)
            decremented.add(index)
        except Exception as e:
            logger.warning(f"[SALE] Failed to update quantity for item {item_id} ({sku}): {e}")
            result.inventory_errors.append(NonFatalInventoryError(
                item_id=item_id, sku=sku, quantity=line.quantity, message=str(e)
            ))

    # 4. Shopify
    synced_lines = [(index, line) for index, line in enumerate(lines) if _syncs_to_shopify(line.item)]
    if synced_lines and sync is None:
        logger.info(f"[SYNC] Shopify not configured; {len(synced_lines)} line(s) of sale #{sale_id} not pushed")
    elif synced_lines:
        for index, line in synced_lines:
            error = _push_line(
                store, sync, line, starting_quantities.get(line.item.id), index in decremented
            )
            if error:
                result.sync_errors.append(error)

    logger.info(
        f"[SALE] Sale #{sale_id} completed: total={total} method={payment_method} "
        f"lines={len(lines)} stock_errors={len(result.inventory_errors)} "
        f"sync_errors={len(result.sync_errors)}"
    )
    return result


# =====================================================
# LOOKUPS
# =====================================================

def get_sale_with_items(session, sale_id: int) -> Tuple[Sale, List[SaleItem]]:
    """
    Load a sale and its sold lines, e.g. to reprint a receipt.

    Raises:
        NotFoundError: If the sale does not exist
    """
    sale = session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError(f"Sale #{sale_id} not found")

    items = (
        session.query(SaleItem)
        .filter(SaleItem.sale_id == sale_id)
        .order_by(SaleItem.id)
        .all()
    )
    return sale, items


def get_todays_sales(session, now: Optional[datetime] = None) -> List[Sale]:
    """Sales completed since local midnight, oldest first."""
    now = now or datetime.now().astimezone()
    if now.tzinfo is None:
        now = now.astimezone()
    # Stored timestamps are UTC
    start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo).astimezone(timezone.utc)

    return (
        session.query(Sale)
        .filter(Sale.completed_at >= start)
        .order_by(Sale.completed_at, Sale.id)
        .all()
    )


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _sale_item_row(store: SaleStore, sale_id: int, line: CartLine) -> dict:
    item = line.item
    discount = line.discount
    return {
        'sale_id': sale_id,
        'item_id': item.id,
        'consignor_id': getattr(item, 'consignor_id', None),
        'sku': item.sku,
        'name': item.name + (f' - {item.variant}' if getattr(item, 'variant', None) else ''),
        'price': to_decimal(item.price, 'price'),
        'quantity': line.quantity,
        'commission_split': store.commission_split_for(item),
        'discount_type': discount.type if discount else None,
        'discount_value': discount.value if discount else None,
        'discount_amount': discount.calculated_amount if discount else Decimal('0'),
        'discount_reason': discount.reason if discount else None,
    }


def _syncs_to_shopify(item) -> bool:
    return bool(getattr(item, 'sync_enabled', False) and getattr(item, 'shopify_inventory_item_id', None))


def _push_line(
    store: SaleStore,
    sync,
    line: CartLine,
    old_quantity: Optional[int],
    decremented: bool = True
) -> Optional[NonFatalSyncError]:
    """
    Mark the item as locally changed, then push the adjustment.

    The sync log records the local quantity after step 3; when the local
    decrement failed that is the starting quantity.
    """
    item = line.item
    item_id = item.id
    sku = item.sku
    inventory_item_id = item.shopify_inventory_item_id
    adjustment = -line.quantity
    if old_quantity is None or not decremented:
        new_quantity = old_quantity
    else:
        new_quantity = old_quantity + adjustment

    try:
        # Marker must be stored before the push so the echo webhook sees it
        store.mark_local_sync(item_id)
        sync.adjust_inventory(inventory_item_id, adjustment)
    except Exception as e:
        logger.error(f"[SYNC] Push to Shopify failed for {sku}: {e}")
        _log_sync(store, item_id, old_quantity, new_quantity, success=False, error_message=str(e))
        return NonFatalSyncError(
            item_id=item_id, sku=sku, adjustment=adjustment,
            message=str(e), inventory_item_id=inventory_item_id
        )

    logger.info(f"[SYNC] Pushed {sku} to Shopify: {old_quantity} -> {new_quantity}")
    _log_sync(store, item_id, old_quantity, new_quantity, success=True)
    return None


def _log_sync(store: SaleStore, item_id, old_quantity, new_quantity, success, error_message=None):
    try:
        store.log_sync(
            item_id=item_id,
            direction=SyncDirection.PUSH_TO_SHOPIFY,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            success=success,
            error_message=error_message,
        )
    except Exception as e:
        logger.warning(f"[SYNC] Could not write sync log for item {item_id}: {e}")

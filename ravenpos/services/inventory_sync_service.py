"""
Inbound inventory sync - applies Shopify inventory levels locally.

Loop prevention: before pushing a change to Shopify, sale completion stores
last_sync_source='local' with a timestamp on the item. Shopify then sends
an inventory webhook for our own change. A webhook arriving within the echo
window of a local marker is treated as that echo and ignored. The window is
a heuristic: a genuine Shopify-side change landing inside it is dropped too.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from ravenpos.models import Item, SyncLog, SyncSource, SyncDirection

logger = logging.getLogger(__name__)

DEFAULT_ECHO_WINDOW_SECONDS = 10


class InboundResult:
    """Status values returned by apply_inbound_level."""
    UPDATED = 'updated'
    ITEM_NOT_FOUND = 'item_not_found'
    SYNC_DISABLED = 'sync_disabled'
    ECHO_SKIPPED = 'echo_skipped'
    UNCHANGED = 'unchanged'


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_echo(item: Item, now: Optional[datetime] = None, window_seconds: int = DEFAULT_ECHO_WINDOW_SECONDS) -> bool:
    """True when the item was pushed from here within the echo window."""
    if item.last_sync_source != SyncSource.LOCAL or not item.last_synced_at:
        return False
    now = now or datetime.now(timezone.utc)
    elapsed = _as_utc(now) - _as_utc(item.last_synced_at)
    return elapsed < timedelta(seconds=window_seconds)


def apply_inbound_level(
    session,
    inventory_item_id: str,
    available: int,
    now: Optional[datetime] = None,
    window_seconds: int = DEFAULT_ECHO_WINDOW_SECONDS
) -> str:
    """
    Apply an 'available' level reported by Shopify to the matching item.

    Returns one of the InboundResult values.
    """
    now = now or datetime.now(timezone.utc)

    item = session.query(Item).filter(
        Item.shopify_inventory_item_id == str(inventory_item_id)
    ).first()

    if not item:
        logger.info(f"[SYNC] Item not found for inventory_item_id {inventory_item_id}")
        return InboundResult.ITEM_NOT_FOUND

    if not item.sync_enabled:
        logger.info(f"[SYNC] Sync disabled for item {item.sku}")
        return InboundResult.SYNC_DISABLED

    if is_echo(item, now, window_seconds):
        logger.info(f"[SYNC] Skipping webhook for {item.sku}: echo of local push")
        return InboundResult.ECHO_SKIPPED

    if item.quantity == available:
        return InboundResult.UNCHANGED

    old_quantity = item.quantity
    item_id, sku = item.id, item.sku
    try:
        item.quantity = available
        item.last_sync_source = SyncSource.SHOPIFY
        item.last_synced_at = now
        session.add(SyncLog(
            item_id=item_id,
            direction=SyncDirection.WEBHOOK_FROM_SHOPIFY,
            old_quantity=old_quantity,
            new_quantity=available,
            success=True
        ))
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"[SYNC] Failed to apply Shopify level to {inventory_item_id}: {e}")
        session.add(SyncLog(
            item_id=item_id,
            direction=SyncDirection.WEBHOOK_FROM_SHOPIFY,
            old_quantity=old_quantity,
            new_quantity=available,
            success=False,
            error_message=str(e)
        ))
        session.commit()
        raise

    logger.info(f"[SYNC] Updated {sku}: {old_quantity} -> {available}")
    return InboundResult.UPDATED

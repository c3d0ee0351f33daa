"""
Persistence store used by sale completion.

Each write commits on its own: a failed write rolls back only itself and
leaves earlier writes in place.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ravenpos.exceptions import NotFoundError
from ravenpos.models import Consignor, Item, Sale, SaleItem, SyncLog, SyncSource

logger = logging.getLogger(__name__)

DEFAULT_COMMISSION_SPLIT = Decimal('0.60')


class SaleStore:
    """SQLAlchemy implementation of the sale persistence collaborator."""

    def __init__(self, session, default_commission_split: Decimal = DEFAULT_COMMISSION_SPLIT):
        self.session = session
        self.default_commission_split = Decimal(str(default_commission_split))

    def insert_sale(self, **fields) -> Sale:
        sale = Sale(**fields)
        self.session.add(sale)
        self._commit()
        return sale

    def insert_sale_items(self, rows: List[Dict[str, Any]]) -> List[SaleItem]:
        sale_items = [SaleItem(**row) for row in rows]
        self.session.add_all(sale_items)
        self._commit()
        return sale_items

    def commission_split_for(self, item) -> Decimal:
        """The consignor's split as stored right now."""
        consignor_id = getattr(item, 'consignor_id', None)
        if consignor_id is None:
            return self.default_commission_split
        consignor = self.session.get(Consignor, consignor_id)
        if consignor is None or consignor.commission_split is None:
            return self.default_commission_split
        return Decimal(str(consignor.commission_split))

    def decrement_item_quantity(self, item_id: int, quantity: int) -> None:
        """Subtract sold units with a relative UPDATE."""
        result = self._execute(
            update(Item)
            .where(Item.id == item_id)
            .values(quantity=Item.quantity - quantity)
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise NotFoundError(f'Item {item_id} not found')
        self._commit()

    def mark_local_sync(self, item_id: int, at: Optional[datetime] = None) -> datetime:
        """Record that the next inventory change for this item comes from us."""
        at = at or datetime.now(timezone.utc)
        self._execute(
            update(Item)
            .where(Item.id == item_id)
            .values(last_sync_source=SyncSource.LOCAL, last_synced_at=at)
        )
        self._commit()
        return at

    def log_sync(self, **fields) -> SyncLog:
        entry = SyncLog(**fields)
        self.session.add(entry)
        self._commit()
        return entry

    def _execute(self, statement):
        try:
            return self.session.execute(statement)
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

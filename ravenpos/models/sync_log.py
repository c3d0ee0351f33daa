"""Sync log model."""
from sqlalchemy import Column, BigInteger, String, Text, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from ravenpos.database import Base, BigIntegerPK


class SyncDirection:
    """Values stored in SyncLog.direction."""
    PUSH_TO_SHOPIFY = 'push_to_shopify'
    WEBHOOK_FROM_SHOPIFY = 'webhook_from_shopify'


class SyncLog(Base):
    """Audit trail of inventory changes exchanged with Shopify."""

    __tablename__ = 'sync_log'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    item_id = Column(BigInteger, ForeignKey('items.id', ondelete='SET NULL'), nullable=True, index=True)
    direction = Column(String(40), nullable=False)
    old_quantity = Column(Integer, nullable=True)
    new_quantity = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    def __repr__(self):
        return f"<SyncLog(id={self.id}, item_id={self.item_id}, direction='{self.direction}', success={self.success})>"

"""Inventory item model."""
from sqlalchemy import Column, BigInteger, String, Boolean, Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ravenpos.database import Base, BigIntegerPK


class SyncSource:
    """Values stored in Item.last_sync_source."""
    LOCAL = 'local'
    SHOPIFY = 'shopify'


class Item(Base):
    """Consigned inventory item."""

    __tablename__ = 'items'
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='ck_items_quantity_non_negative'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    consignor_id = Column(BigInteger, ForeignKey('consignors.id'), nullable=True)
    sku = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    variant = Column(String(100), nullable=True)
    category = Column(String(100), nullable=False, default='Other')
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    is_listed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Shopify sync
    shopify_product_id = Column(String(50), nullable=True)
    shopify_variant_id = Column(String(50), nullable=True, index=True)
    shopify_inventory_item_id = Column(String(50), nullable=True, index=True)
    sync_enabled = Column(Boolean, nullable=False, default=False)
    last_sync_source = Column(String(20), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    consignor = relationship('Consignor', back_populates='items')

    def __repr__(self):
        return f"<Item(id={self.id}, sku='{self.sku}', quantity={self.quantity})>"

    @property
    def display_name(self):
        """Item name with the variant label appended, as printed on receipts."""
        if self.variant:
            return f"{self.name} - {self.variant}"
        return self.name

    @property
    def syncs_to_shopify(self):
        return bool(self.sync_enabled and self.shopify_inventory_item_id)

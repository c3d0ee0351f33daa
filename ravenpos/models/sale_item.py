"""Sale Item model."""
from sqlalchemy import Column, BigInteger, String, Text, Integer, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from ravenpos.database import Base, BigIntegerPK


class SaleItem(Base):
    """Sold line (one per cart line), with price and commission snapshots."""

    __tablename__ = 'sale_items'
    __table_args__ = (
        CheckConstraint(
            "discount_type IS NULL OR discount_type IN ('percentage', 'fixed')",
            name='ck_sale_items_discount_type'
        ),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sales.id'), nullable=False, index=True)
    item_id = Column(BigInteger, ForeignKey('items.id', ondelete='SET NULL'), nullable=True)
    consignor_id = Column(BigInteger, ForeignKey('consignors.id'), nullable=True)
    sku = Column(String(50), nullable=False)
    name = Column(String(300), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    # Copied from the consignor when the sale happens
    commission_split = Column(Numeric(4, 2), nullable=False)

    discount_type = Column(String(20), nullable=True)
    discount_value = Column(Numeric(10, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_reason = Column(Text, nullable=True)

    # Relationships
    sale = relationship('Sale', back_populates='items')
    item = relationship('Item')

    def __repr__(self):
        return f"<SaleItem(id={self.id}, sale_id={self.sale_id}, sku='{self.sku}', qty={self.quantity})>"

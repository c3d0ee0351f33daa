"""Consignor model."""
from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ravenpos.database import Base, BigIntegerPK


class Consignor(Base):
    """Vendor who supplies items on consignment."""

    __tablename__ = 'consignors'

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    consignor_number = Column(String(20), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    booth_location = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    # Fraction of each sale owed to the consignor (0.60 = 60%)
    commission_split = Column(Numeric(4, 2), nullable=False, default=0.60)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship('Item', back_populates='consignor')

    def __repr__(self):
        return f"<Consignor(id={self.id}, number='{self.consignor_number}', split={self.commission_split})>"

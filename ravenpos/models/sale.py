"""Sale model."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey, CheckConstraint, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ravenpos.database import Base, BigIntegerPK
import enum


class PaymentMethod(str, enum.Enum):
    """Accepted payment methods."""
    CASH = 'cash'
    CARD = 'card'


class Sale(Base):
    """Completed sale."""

    __tablename__ = 'sales'
    __table_args__ = (
        CheckConstraint("payment_method IN ('cash', 'card')", name='ck_sales_payment_method'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    customer_id = Column(BigInteger, ForeignKey('customers.id'), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(10), nullable=False, default=PaymentMethod.CASH.value)

    # Only for cash payments
    cash_tendered = Column(Numeric(10, 2), nullable=True)
    change_given = Column(Numeric(10, 2), nullable=True)

    # Only for card payments (Stripe Terminal)
    stripe_payment_intent_id = Column(String(255), nullable=True)

    # Order-level discounts: [{type, value, reason, calculatedAmount}]
    discounts = Column(JSON, nullable=False, default=list)
    discount_total = Column(Numeric(10, 2), nullable=False, default=0)

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale')

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total}, payment_method={self.payment_method})>"

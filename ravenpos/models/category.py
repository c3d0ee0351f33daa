"""Category model."""
from sqlalchemy import Column, String, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func
from ravenpos.database import Base, BigIntegerPK


class Category(Base):
    """Product category and the sales tax rate it carries."""

    __tablename__ = 'categories'
    __table_args__ = (
        CheckConstraint('tax_rate >= 0 AND tax_rate <= 1', name='ck_categories_tax_rate'),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    tax_rate = Column(Numeric(5, 4), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}', tax_rate={self.tax_rate})>"

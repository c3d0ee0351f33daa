"""Models package - exports all SQLAlchemy models."""
from ravenpos.models.category import Category
from ravenpos.models.consignor import Consignor
from ravenpos.models.customer import Customer
from ravenpos.models.item import Item, SyncSource
from ravenpos.models.sale import Sale, PaymentMethod
from ravenpos.models.sale_item import SaleItem
from ravenpos.models.sync_log import SyncLog, SyncDirection

__all__ = [
    'Category', 'Consignor', 'Customer',
    'Item', 'SyncSource',
    'Sale', 'PaymentMethod', 'SaleItem',
    'SyncLog', 'SyncDirection',
]

import pytest
from decimal import Decimal

from ravenpos import create_app
from ravenpos.database import get_session, create_all, drop_all
from ravenpos.models import Consignor, Item, Category
from ravenpos.services.sale_store import SaleStore
from ravenpos.services.tax_service import TaxRateTable


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session; tables are recreated after each test."""
    session = get_session()
    yield session
    session.rollback()
    session.remove()
    drop_all()
    create_all()


@pytest.fixture(scope='function')
def store(session):
    """Sale persistence store on the test session."""
    return SaleStore(session)


@pytest.fixture
def tax_rates():
    """Default tax table (5.3% everywhere, books exempt)."""
    return TaxRateTable()


@pytest.fixture(scope='function')
def consignor(session):
    """Consignor taking 70% of each sale."""
    consignor = Consignor(
        consignor_number='C-001',
        name='Maple Street Vintage',
        commission_split=Decimal('0.70'),
        is_active=True
    )
    session.add(consignor)
    session.commit()
    return consignor


@pytest.fixture(scope='function')
def jacket(session, consignor):
    """$20 clothing item, 5 on hand."""
    item = Item(
        consignor_id=consignor.id,
        sku='JKT-001',
        name='Denim Jacket',
        category='Clothing',
        price=Decimal('20.00'),
        quantity=5
    )
    session.add(item)
    session.commit()
    return item


@pytest.fixture(scope='function')
def novel(session):
    """$15 book with a variant label and no consignor, 2 on hand."""
    item = Item(
        sku='BK-042',
        name='Paperback Novel',
        variant='Signed',
        category='Books',
        price=Decimal('15.00'),
        quantity=2
    )
    session.add(item)
    session.commit()
    return item


@pytest.fixture(scope='function')
def lamp(session, consignor):
    """$8 item mirrored to Shopify, 10 on hand."""
    item = Item(
        consignor_id=consignor.id,
        sku='LMP-007',
        name='Brass Lamp',
        category='Furniture',
        price=Decimal('8.00'),
        quantity=10,
        sync_enabled=True,
        shopify_inventory_item_id='4001'
    )
    session.add(item)
    session.commit()
    return item


@pytest.fixture(scope='function')
def categories(session):
    """Category rows with their own tax rates."""
    rows = [
        Category(name='Clothing', tax_rate=Decimal('0.0600')),
        Category(name='Books', tax_rate=Decimal('0.0000')),
        Category(name='Art', tax_rate=Decimal('0.0725')),
    ]
    session.add_all(rows)
    session.commit()
    return rows


class RecordingSync:
    """Stand-in for the Shopify client that records each push."""

    def __init__(self, session=None, error=None):
        self.session = session
        self.error = error
        self.calls = []

    def adjust_inventory(self, inventory_item_id, adjustment):
        marker = None
        if self.session is not None:
            # Read straight from the table, not the identity map
            marker = self.session.query(Item.last_sync_source).filter(
                Item.shopify_inventory_item_id == inventory_item_id
            ).scalar()
        self.calls.append((inventory_item_id, adjustment, marker))
        if self.error:
            raise self.error
        return {}


@pytest.fixture
def recording_sync(session):
    return RecordingSync(session)


@pytest.fixture
def failing_sync(session):
    import requests
    return RecordingSync(session, error=requests.ConnectionError('Shopify unreachable'))

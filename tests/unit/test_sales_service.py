"""
Unit tests for sale completion (sale, items, stock, Shopify push).
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.exc import OperationalError

from ravenpos.exceptions import ValidationError, NotFoundError, FatalPersistenceError
from ravenpos.models import Sale, SaleItem, Item, SyncLog, SyncSource, SyncDirection
from ravenpos.services.cart_service import build_cart_line, calculate_cart_totals
from ravenpos.services.discount_service import Discount
from ravenpos.services.sales_service import complete_sale, get_sale_with_items, get_todays_sales


def db_error(*args, **kwargs):
    raise OperationalError('INSERT', {}, Exception('database is locked'))


def checkout(store, lines, order_discounts=(), cash=None, **kwargs):
    """Complete a sale for priced lines, paying the exact total in cash by default."""
    totals = calculate_cart_totals(lines, order_discounts)
    cash_tendered = totals.total if cash is None else Decimal(str(cash))
    return complete_sale(
        store,
        lines,
        totals.subtotal,
        totals.tax_total,
        totals.total,
        cash_tendered=cash_tendered,
        change_given=cash_tendered - totals.total,
        order_discounts=order_discounts,
        **kwargs
    )


def quantity_of(session, item_id):
    return session.query(Item.quantity).filter(Item.id == item_id).scalar()


class TestCompleteSale:
    """Happy path."""

    def test_cash_sale_records_sale_items_and_stock(self, session, store, tax_rates, jacket, novel):
        lines = [
            build_cart_line(jacket, 3, tax_rates),
            build_cart_line(novel, 1, tax_rates),
        ]
        result = checkout(store, lines, cash=100)

        sale = session.query(Sale).one()
        assert result.sale.id == sale.id
        assert result.has_warnings is False
        assert sale.subtotal == Decimal('75.00')
        assert sale.tax_amount == Decimal('3.18')
        assert sale.total == Decimal('78.18')
        assert sale.payment_method == 'cash'
        assert sale.cash_tendered == Decimal('100.00')
        assert sale.change_given == Decimal('21.82')
        assert sale.stripe_payment_intent_id is None
        assert sale.discounts == []
        assert sale.discount_total == Decimal('0')

        items = session.query(SaleItem).order_by(SaleItem.id).all()
        assert [i.sku for i in items] == ['JKT-001', 'BK-042']
        assert items[0].name == 'Denim Jacket'
        assert items[1].name == 'Paperback Novel - Signed'
        assert items[0].quantity == 3
        assert items[0].price == Decimal('20.00')

        assert quantity_of(session, jacket.id) == 2
        assert quantity_of(session, novel.id) == 1

    def test_commission_split_is_snapshotted(self, session, store, tax_rates, jacket, novel, consignor):
        checkout(store, [build_cart_line(jacket, 1, tax_rates), build_cart_line(novel, 1, tax_rates)])

        consignor.commission_split = Decimal('0.50')
        session.commit()

        jacket_line = session.query(SaleItem).filter_by(sku='JKT-001').one()
        novel_line = session.query(SaleItem).filter_by(sku='BK-042').one()
        assert jacket_line.commission_split == Decimal('0.70')
        assert jacket_line.consignor_id == consignor.id
        # No consignor: store default
        assert novel_line.commission_split == Decimal('0.60')

    def test_discount_snapshots(self, session, store, tax_rates, jacket):
        item_discount = Discount(type='fixed', value=Decimal('10'), reason='Loose button')
        lines = [build_cart_line(jacket, 3, tax_rates, item_discount)]
        order_discounts = [Discount(type='percentage', value=Decimal('20'), scope='order', reason='Loyalty')]

        result = checkout(store, lines, order_discounts)

        sale = session.get(Sale, result.sale.id)
        assert sale.total == Decimal('42.12')
        assert sale.discount_total == Decimal('20.00')
        assert sale.discounts == [
            {'type': 'percentage', 'value': 20.0, 'reason': 'Loyalty', 'calculatedAmount': 10.0}
        ]

        sale_item = session.query(SaleItem).one()
        assert sale_item.discount_type == 'fixed'
        assert sale_item.discount_value == Decimal('10')
        assert sale_item.discount_amount == Decimal('10.00')
        assert sale_item.discount_reason == 'Loose button'

    def test_stale_order_discount_amount_not_persisted(self, session, store, tax_rates, jacket):
        lines = [build_cart_line(jacket, 1, tax_rates)]
        stale = Discount(type='fixed', value=Decimal('5'), calculated_amount=Decimal('500'))
        checkout(store, lines, [stale])

        sale = session.query(Sale).one()
        assert sale.discounts[0]['calculatedAmount'] == 5.0

    def test_card_sale(self, session, store, tax_rates, jacket):
        lines = [build_cart_line(jacket, 1, tax_rates)]
        totals = calculate_cart_totals(lines)
        complete_sale(
            store, lines, totals.subtotal, totals.tax_total, totals.total,
            cash_tendered=0, change_given=0,
            payment_method='card', payment_reference='pi_3Nabc'
        )

        sale = session.query(Sale).one()
        assert sale.payment_method == 'card'
        assert sale.stripe_payment_intent_id == 'pi_3Nabc'
        assert sale.cash_tendered is None
        assert sale.change_given is None

    def test_repeat_call_creates_second_sale(self, session, store, tax_rates, jacket):
        lines = [build_cart_line(jacket, 2, tax_rates)]
        checkout(store, lines)
        checkout(store, lines)

        assert session.query(Sale).count() == 2
        assert session.query(SaleItem).count() == 2
        assert quantity_of(session, jacket.id) == 1


class TestValidation:
    """Requests rejected before anything is written."""

    def test_insufficient_cash(self, session, store, tax_rates, jacket):
        lines = [build_cart_line(jacket, 3, tax_rates)]
        with pytest.raises(ValidationError, match='Insufficient cash'):
            checkout(store, lines, cash='63.17')

        assert session.query(Sale).count() == 0
        assert quantity_of(session, jacket.id) == 5

    def test_empty_cart(self, session, store):
        with pytest.raises(ValidationError):
            complete_sale(store, [], 0, 0, 0, cash_tendered=0, change_given=0)
        assert session.query(Sale).count() == 0

    def test_unknown_payment_method(self, session, store, tax_rates, jacket):
        lines = [build_cart_line(jacket, 1, tax_rates)]
        with pytest.raises(ValidationError):
            checkout(store, lines, payment_method='cheque')
        assert session.query(Sale).count() == 0


class TestFatalFailures:
    """Sale and sale item inserts."""

    def test_sale_insert_failure(self, session, store, tax_rates, jacket, monkeypatch):
        monkeypatch.setattr(store, 'insert_sale', db_error)
        lines = [build_cart_line(jacket, 1, tax_rates)]

        with pytest.raises(FatalPersistenceError) as exc_info:
            checkout(store, lines)

        assert exc_info.value.sale_id is None
        assert session.query(Sale).count() == 0
        assert session.query(SaleItem).count() == 0
        assert quantity_of(session, jacket.id) == 5

    def test_sale_items_failure_leaves_orphan_sale(self, session, store, tax_rates, jacket, lamp, recording_sync, monkeypatch):
        monkeypatch.setattr(store, 'insert_sale_items', db_error)
        lines = [build_cart_line(jacket, 1, tax_rates), build_cart_line(lamp, 1, tax_rates)]

        with pytest.raises(FatalPersistenceError) as exc_info:
            checkout(store, lines, sync=recording_sync)

        orphan = session.query(Sale).one()
        assert exc_info.value.sale_id == orphan.id
        assert exc_info.value.to_dict()['sale_id'] == orphan.id
        assert session.query(SaleItem).filter(SaleItem.sale_id == orphan.id).count() == 0
        # Later steps never ran
        assert quantity_of(session, jacket.id) == 5
        assert quantity_of(session, lamp.id) == 10
        assert recording_sync.calls == []


class TestNonFatalFailures:
    """Stock and sync problems after the sale is recorded."""

    def test_one_failed_decrement_does_not_stop_others(self, session, store, tax_rates, jacket, novel, lamp, monkeypatch):
        original = store.decrement_item_quantity

        def flaky(item_id, quantity):
            if item_id == novel.id:
                db_error()
            return original(item_id, quantity)

        monkeypatch.setattr(store, 'decrement_item_quantity', flaky)
        lines = [
            build_cart_line(jacket, 1, tax_rates),
            build_cart_line(novel, 1, tax_rates),
            build_cart_line(lamp, 2, tax_rates),
        ]

        result = checkout(store, lines)

        assert result.sale.id is not None
        assert result.has_warnings is True
        assert [(e.sku, e.quantity) for e in result.inventory_errors] == [('BK-042', 1)]
        assert session.query(SaleItem).count() == 3
        assert quantity_of(session, jacket.id) == 4
        assert quantity_of(session, novel.id) == 2
        assert quantity_of(session, lamp.id) == 8

    def test_oversold_line_is_reported_not_raised(self, session, store, tax_rates, jacket, novel):
        # Builder does not enforce stock; the database refuses negative stock
        lines = [build_cart_line(novel, 3, tax_rates), build_cart_line(jacket, 1, tax_rates)]

        result = checkout(store, lines)

        assert session.query(Sale).count() == 1
        assert [e.sku for e in result.inventory_errors] == ['BK-042']
        assert quantity_of(session, novel.id) == 2
        assert quantity_of(session, jacket.id) == 4

    def test_push_marks_local_origin_before_calling_shopify(self, session, store, tax_rates, jacket, lamp, recording_sync):
        lines = [build_cart_line(jacket, 1, tax_rates), build_cart_line(lamp, 2, tax_rates)]

        result = checkout(store, lines, sync=recording_sync)

        assert result.sync_errors == []
        # Only the synced item is pushed, with a relative adjustment
        assert recording_sync.calls == [('4001', -2, SyncSource.LOCAL)]

        session.expire_all()
        refreshed = session.get(Item, lamp.id)
        assert refreshed.last_sync_source == SyncSource.LOCAL
        assert refreshed.last_synced_at is not None

        log = session.query(SyncLog).one()
        assert log.direction == SyncDirection.PUSH_TO_SHOPIFY
        assert log.success is True
        assert (log.old_quantity, log.new_quantity) == (10, 8)

    def test_oversold_synced_line_logs_unchanged_local_quantity(self, session, store, tax_rates, lamp, recording_sync):
        lines = [build_cart_line(lamp, 11, tax_rates)]

        result = checkout(store, lines, sync=recording_sync)

        assert [e.sku for e in result.inventory_errors] == ['LMP-007']
        assert quantity_of(session, lamp.id) == 10
        # Lines are independent: the push still goes out
        assert recording_sync.calls == [('4001', -11, SyncSource.LOCAL)]

        log = session.query(SyncLog).one()
        assert (log.old_quantity, log.new_quantity) == (10, 10)

    def test_push_failure_is_swallowed(self, session, store, tax_rates, lamp, failing_sync):
        lines = [build_cart_line(lamp, 1, tax_rates)]

        result = checkout(store, lines, sync=failing_sync)

        assert session.query(Sale).count() == 1
        assert quantity_of(session, lamp.id) == 9
        assert len(result.sync_errors) == 1
        error = result.sync_errors[0]
        assert (error.sku, error.adjustment, error.inventory_item_id) == ('LMP-007', -1, '4001')
        assert 'Shopify unreachable' in error.message

        log = session.query(SyncLog).one()
        assert log.success is False
        assert 'Shopify unreachable' in log.error_message

    def test_sync_not_configured(self, session, store, tax_rates, lamp):
        result = checkout(store, [build_cart_line(lamp, 1, tax_rates)], sync=None)

        assert result.sync_errors == []
        assert session.get(Item, lamp.id).last_sync_source is None
        assert session.query(SyncLog).count() == 0


def make_sale(session, completed_at, total='10.00'):
    sale = Sale(
        completed_at=completed_at,
        subtotal=Decimal(total),
        tax_amount=Decimal('0'),
        total=Decimal(total),
        payment_method='card'
    )
    session.add(sale)
    session.commit()
    return sale


class TestSaleLookups:
    """Reading sales back (receipts, today's list)."""

    def test_sale_with_items(self, session, store, tax_rates, jacket, novel):
        lines = [build_cart_line(jacket, 2, tax_rates), build_cart_line(novel, 1, tax_rates)]
        result = checkout(store, lines)

        sale, items = get_sale_with_items(session, result.sale.id)

        assert sale.id == result.sale.id
        assert [i.sku for i in items] == ['JKT-001', 'BK-042']
        assert items[0].quantity == 2

    def test_items_of_other_sales_are_excluded(self, session, store, tax_rates, jacket):
        first = checkout(store, [build_cart_line(jacket, 1, tax_rates)])
        checkout(store, [build_cart_line(jacket, 1, tax_rates)])

        _, items = get_sale_with_items(session, first.sale.id)
        assert len(items) == 1

    def test_unknown_sale(self, session):
        with pytest.raises(NotFoundError):
            get_sale_with_items(session, 999)

    def test_todays_sales(self, session):
        now = datetime(2026, 3, 14, 15, 0, tzinfo=timezone.utc)
        make_sale(session, datetime(2026, 3, 13, 23, 59, tzinfo=timezone.utc), '99.00')
        morning = make_sale(session, datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc), '12.00')
        midnight = make_sale(session, datetime(2026, 3, 14, 0, 0, tzinfo=timezone.utc), '5.00')

        sales = get_todays_sales(session, now=now)

        assert [s.id for s in sales] == [midnight.id, morning.id]

    def test_no_sales_today(self, session):
        now = datetime(2026, 3, 14, 15, 0, tzinfo=timezone.utc)
        make_sale(session, datetime(2026, 3, 12, 10, 0, tzinfo=timezone.utc))

        assert get_todays_sales(session, now=now) == []

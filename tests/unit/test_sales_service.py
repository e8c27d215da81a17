"""
Unit tests for sale submission.
"""

import re
import threading
import pytest
from datetime import datetime
from decimal import Decimal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models import Branch, Product, Sale, SaleItem
from app.services.cart_service import Cart
from app.services.sales_service import (
    PosContext, SubmissionOutcome, generate_receipt_number, submit_sale
)
from app.services.store import DataStore
from app.exceptions import (
    EmptyCart, MissingContext, SaleCreationFailed, LineItemWriteFailed,
    StockDecrementFailed, StoreError, ValidationError
)


class FailingStore(DataStore):
    """DataStore whose inserts into the given tables always fail."""

    def __init__(self, session, fail_tables=()):
        super().__init__(session)
        self.fail_tables = set(fail_tables)

    def insert(self, table, record):
        if table in self.fail_tables:
            raise StoreError(f"Insert into {table} failed: simulated outage")
        return super().insert(table, record)


@pytest.fixture
def context(branch, cashier):
    return PosContext(branch_id=branch.id, cashier_id=cashier.id, currency='KES')


def cart_with(*entries):
    cart = Cart()
    for product, qty in entries:
        cart.add_item(product, qty)
    return cart


class TestSubmitSale:
    """Successful and rejected submissions."""

    def test_single_line_sale_is_committed(self, session, store, context, oil_filter):
        cart = cart_with((oil_filter, 2))

        submission = submit_sale(store, cart, context, 'cash')

        assert submission.outcome is SubmissionOutcome.COMMITTED
        assert submission.is_complete
        assert submission.errors == []
        assert submission.sale['total_amount'] == Decimal('1700.00')
        assert submission.sale['status'] == 'completed'
        assert submission.sale['payment_method'] == 'cash'
        assert submission.sale['currency'] == 'KES'

        items = session.query(SaleItem).filter_by(sale_id=submission.sale['id']).all()
        assert len(items) == 1
        assert items[0].total_price == Decimal('1700.00')

        assert session.get(Product, oil_filter.id).stock_quantity == 8
        assert cart.is_empty()

    def test_multi_line_sale_decrements_each_product(self, session, store, context, oil_filter, brake_pads):
        cart = cart_with((oil_filter, 1), (brake_pads, 3))

        submission = submit_sale(store, cart, context, 'mpesa')

        assert submission.is_complete
        assert submission.sale['total_amount'] == Decimal('8350.00')
        assert submission.sale['payment_method'] == 'mobile-money'
        assert len(submission.line_items) == 2
        assert session.get(Product, oil_filter.id).stock_quantity == 9
        assert session.get(Product, brake_pads.id).stock_quantity == 1

    def test_customer_is_recorded(self, store, context, oil_filter, customer):
        submission = submit_sale(store, cart_with((oil_filter, 1)), context, 'card', customer_id=customer.id)
        assert submission.sale['customer_id'] == customer.id

    def test_empty_cart_writes_nothing(self, session, store, context):
        with pytest.raises(EmptyCart):
            submit_sale(store, Cart(), context, 'cash')
        assert session.query(Sale).count() == 0

    def test_missing_context_is_rejected(self, session, store, oil_filter):
        cart = cart_with((oil_filter, 1))

        with pytest.raises(MissingContext) as exc:
            submit_sale(store, cart, PosContext(branch_id=None, cashier_id=None), 'cash')

        assert exc.value.missing == ['branch_id', 'cashier_id', 'currency']
        assert session.query(Sale).count() == 0
        assert len(cart) == 1

    def test_explicit_currency_fills_context(self, store, branch, cashier, oil_filter):
        context = PosContext(branch_id=branch.id, cashier_id=cashier.id)
        submission = submit_sale(store, cart_with((oil_filter, 1)), context, 'cash', currency='KES')
        assert submission.sale['currency'] == 'KES'

    def test_unknown_payment_method_is_rejected(self, session, store, context, oil_filter):
        with pytest.raises(ValidationError):
            submit_sale(store, cart_with((oil_filter, 1)), context, 'cheque')
        assert session.query(Sale).count() == 0

    def test_on_complete_receives_header(self, store, context, oil_filter):
        seen = []
        submit_sale(store, cart_with((oil_filter, 1)), context, 'cash', on_complete=seen.append)

        assert len(seen) == 1
        assert seen[0]['receipt_number'].startswith('RCP-')

    def test_on_complete_failure_does_not_fail_sale(self, store, context, oil_filter):
        def broken_refresh(sale):
            raise RuntimeError('refresh failed')

        submission = submit_sale(store, cart_with((oil_filter, 1)), context, 'cash', on_complete=broken_refresh)
        assert submission.is_complete


class TestPartialFailures:
    """Header, line item and stock failures are reported distinctly."""

    def test_header_failure_raises_and_keeps_cart(self, session, context, oil_filter):
        store = FailingStore(session, fail_tables={'sale'})
        cart = cart_with((oil_filter, 2))

        with pytest.raises(SaleCreationFailed):
            submit_sale(store, cart, context, 'cash')

        assert session.query(Sale).count() == 0
        assert session.get(Product, oil_filter.id).stock_quantity == 10
        assert cart.get(oil_filter.id).quantity == 2

    def test_line_item_failure_leaves_header_only(self, session, context, oil_filter):
        store = FailingStore(session, fail_tables={'sale_item'})

        submission = submit_sale(store, cart_with((oil_filter, 2)), context, 'cash')

        assert submission.outcome is SubmissionOutcome.HEADER_ONLY
        assert not submission.is_complete
        assert len(submission.errors) == 1
        assert isinstance(submission.errors[0], LineItemWriteFailed)
        assert submission.errors[0].sale_id == submission.sale['id']

        sale = session.get(Sale, submission.sale['id'])
        assert sale is not None
        assert sale.items == []
        # no line items, so stock is left alone
        assert session.get(Product, oil_filter.id).stock_quantity == 10

        payload = submission.to_dict()
        assert payload['outcome'] == 'header_only'
        assert payload['complete'] is False
        assert payload['errors'][0]['error'] == 'LineItemWriteFailed'

    def test_stock_decrement_failure_is_partial(self, session, store, context, oil_filter):
        cart = cart_with((oil_filter, 6))
        # Another till sells 6 of the 10 after this cart was filled
        store.call_procedure('decrease_product_stock', {'product_id': oil_filter.id, 'quantity': 6})

        submission = submit_sale(store, cart, context, 'cash')

        assert submission.outcome is SubmissionOutcome.STOCK_PARTIAL
        assert len(submission.line_items) == 1
        assert isinstance(submission.errors[0], StockDecrementFailed)
        assert submission.errors[0].product_id == oil_filter.id
        assert session.get(Product, oil_filter.id).stock_quantity == 4

    def test_misbehaving_procedure_is_recorded_not_raised(self, session, context, oil_filter):
        class MismatchedProcedureStore(DataStore):
            procedures = {'decrease_product_stock': lambda session, product_id, qty: None}

        cart = cart_with((oil_filter, 1))
        submission = submit_sale(MismatchedProcedureStore(session), cart, context, 'cash')

        assert submission.outcome is SubmissionOutcome.STOCK_PARTIAL
        assert isinstance(submission.errors[0], StockDecrementFailed)
        assert cart.is_empty()
        assert session.get(Product, oil_filter.id).stock_quantity == 10


class TestConcurrentDecrements:
    """Two carts each taking more than half of the stock."""

    def test_second_sale_cannot_drive_stock_negative(self, session, store, context, oil_filter):
        first = cart_with((oil_filter, 6))
        second = cart_with((oil_filter, 6))

        one = submit_sale(store, first, context, 'cash')
        two = submit_sale(store, second, context, 'cash')

        assert one.outcome is SubmissionOutcome.COMMITTED
        assert two.outcome is SubmissionOutcome.STOCK_PARTIAL
        assert session.get(Product, oil_filter.id).stock_quantity == 4

    def test_parallel_decrements_on_shared_database(self, tmp_path):
        # The WHERE stock_quantity >= :q guard holds across separate connections
        engine = create_engine(f"sqlite:///{tmp_path / 'pos.db'}", connect_args={'timeout': 15})

        @event.listens_for(engine, 'connect')
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, 'begin')
        def _begin_immediate(connection):
            connection.exec_driver_sql('BEGIN IMMEDIATE')

        Base.metadata.create_all(engine)
        make_session = sessionmaker(bind=engine)
        with make_session() as setup:
            branch = Branch(name='Mombasa Road', currency='KES')
            setup.add(branch)
            setup.flush()
            product = Product(branch_id=branch.id, name='Fan Belt', price=Decimal('400'), stock_quantity=10)
            setup.add(product)
            setup.commit()
            product_id = product.id

        barrier = threading.Barrier(2)
        results = []

        def sell():
            with make_session() as worker_session:
                store = DataStore(worker_session)
                barrier.wait()
                try:
                    store.call_procedure('decrease_product_stock', {'product_id': product_id, 'quantity': 6})
                    results.append('sold')
                except StockDecrementFailed:
                    results.append('refused')

        workers = [threading.Thread(target=sell) for _ in range(2)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=30)

        with make_session() as check:
            remaining = check.get(Product, product_id).stock_quantity
        engine.dispose()

        assert sorted(results) == ['refused', 'sold']
        assert remaining == 4

    def test_decrement_never_goes_below_zero(self, session, store, oil_filter):
        with pytest.raises(StockDecrementFailed):
            store.call_procedure('decrease_product_stock', {'product_id': oil_filter.id, 'quantity': 11})
        assert session.get(Product, oil_filter.id).stock_quantity == 10


class TestReceiptNumber:

    def test_format(self):
        number = generate_receipt_number('RCP', now=datetime(2026, 1, 12, 15, 30, 5))
        assert re.fullmatch(r'RCP-20260112153005-[0-9A-F]{8}', number)

    def test_unique_within_same_second(self):
        now = datetime(2026, 1, 12, 15, 30, 5)
        numbers = {generate_receipt_number('RCP', now=now) for _ in range(200)}
        assert len(numbers) == 200

"""
Unit tests for catalog, customer and report services.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from app.models import Product, Sale
from app.services import catalog_service, customer_service, report_service
from app.exceptions import BusinessLogicError, NotFoundError, ValidationError


class TestCatalog:

    def test_search_matches_name_part_number_and_brand(self, session, branch, oil_filter, brake_pads, spark_plug):
        def names(term):
            return [p.name for p in catalog_service.list_products(session, branch.id, search=term)]

        assert names('oil') == ['Oil Filter']
        assert names('ms-2398') == ['Brake Pads']
        assert names('masuma') == ['Brake Pads', 'Oil Filter']
        assert names('') == ['Brake Pads', 'Oil Filter', 'Spark Plug']

    def test_category_filter(self, session, branch, oil_filter, brake_pads):
        products = catalog_service.list_products(session, branch.id, category='Brakes')
        assert [p.name for p in products] == ['Brake Pads']
        assert catalog_service.list_categories(session, branch.id) == ['Brakes', 'Filters']

    def test_products_are_branch_scoped(self, session, other_branch, oil_filter):
        assert catalog_service.list_products(session, other_branch.id) == []
        with pytest.raises(NotFoundError):
            catalog_service.get_product(session, oil_filter.id, other_branch.id)

    def test_create_product_parses_amounts(self, session, branch):
        product = catalog_service.create_product(session, branch.id, {
            'name': ' Air Filter ', 'price': '1,250.50', 'stock_quantity': '12', 'sku': 'AF-1'
        })
        assert product.name == 'Air Filter'
        assert product.price == Decimal('1250.50')
        assert product.stock_quantity == 12

    def test_create_product_requires_name_and_price(self, session, branch):
        with pytest.raises(ValidationError):
            catalog_service.create_product(session, branch.id, {'price': '10'})
        with pytest.raises(ValidationError):
            catalog_service.create_product(session, branch.id, {'name': 'No price'})

    def test_create_product_rejects_negative_stock(self, session, branch):
        with pytest.raises(ValidationError):
            catalog_service.create_product(session, branch.id, {'name': 'X', 'price': '1', 'stock_quantity': -2})

    def test_duplicate_sku(self, session, branch, oil_filter):
        with pytest.raises(BusinessLogicError):
            catalog_service.create_product(session, branch.id, {'name': 'Copy', 'price': '1', 'sku': 'OF-001'})

    def test_update_product(self, session, branch, oil_filter):
        product = catalog_service.update_product(session, oil_filter.id, branch.id, {'price': '900'})
        assert product.price == Decimal('900.00')
        assert product.name == 'Oil Filter'

    def test_delete_product_with_sales_is_refused(self, session, store, branch, cashier, oil_filter):
        sale = store.insert('sale', {
            'branch_id': branch.id, 'cashier_id': cashier.id, 'total_amount': Decimal('850'),
            'currency': 'KES', 'payment_method': 'cash', 'status': 'completed', 'receipt_number': 'RCP-X',
        })
        store.insert('sale_item', {
            'sale_id': sale['id'], 'product_id': oil_filter.id, 'quantity': 1,
            'unit_price': Decimal('850'), 'total_price': Decimal('850'),
        })
        with pytest.raises(BusinessLogicError):
            catalog_service.delete_product(session, oil_filter.id, branch.id)

    @pytest.mark.parametrize('stock,minimum,expected', [
        (0, 5, 'critical'),
        (2, 5, 'critical'),
        (4, 5, 'low'),
        (5, 5, 'low'),
        (6, 5, 'in-stock'),
        (8, 0, 'low'),  # falls back to the threshold of 10
    ])
    def test_stock_status(self, stock, minimum, expected):
        product = Product(name='P', price=Decimal('1'), stock_quantity=stock, min_stock_level=minimum)
        assert catalog_service.stock_status(product, threshold=10) == expected

    def test_inventory_summary(self, session, branch, oil_filter, brake_pads, spark_plug):
        summary = catalog_service.inventory_summary(session, branch.id)

        assert summary['product_count'] == 3
        assert summary['total_units'] == 14
        assert summary['total_value'] == Decimal('18500.00')
        assert summary['low_stock_count'] == 2

    def test_low_stock_products_most_critical_first(self, session, branch, oil_filter, brake_pads, spark_plug):
        products = catalog_service.low_stock_products(session, branch.id)
        assert [p.name for p in products] == ['Spark Plug', 'Brake Pads']


class TestCustomers:

    def test_create_requires_name_and_phone(self, session, branch):
        with pytest.raises(ValidationError):
            customer_service.create_customer(session, branch.id, {'name': 'No Phone'})
        with pytest.raises(ValidationError):
            customer_service.create_customer(session, branch.id, {'phone': '0711'})

    def test_tax_pin_is_uppercased(self, session, branch):
        customer = customer_service.create_customer(session, branch.id, {
            'name': 'Kamau', 'phone': '0722', 'kra_pin': 'p051234567x'
        })
        assert customer.kra_pin == 'P051234567X'

    def test_search(self, session, branch, customer):
        assert customer_service.list_customers(session, branch.id, 'wanjiku') == [customer]
        assert customer_service.list_customers(session, branch.id, 'a123456789z') == [customer]
        assert customer_service.list_customers(session, branch.id, 'nobody') == []

    def test_partial_update_keeps_other_fields(self, session, branch, customer):
        updated = customer_service.update_customer(session, customer.id, branch.id, {'email': 'new@example.com'})
        assert updated.email == 'new@example.com'
        assert updated.phone == '+254700000001'

    def test_update_cannot_blank_phone(self, session, branch, customer):
        with pytest.raises(ValidationError):
            customer_service.update_customer(session, customer.id, branch.id, {'phone': '  '})

    def test_stats(self, session, branch, customer):
        customer_service.create_customer(session, branch.id, {'name': 'Walk-in Fleet', 'phone': '0733'})
        assert customer_service.customer_stats(session, branch.id) == {
            'total': 2, 'with_email': 1, 'with_tax_pin': 1
        }


class TestReports:

    def _sale(self, session, branch, cashier, amount, created_at, number, status='completed'):
        session.add(Sale(
            branch_id=branch.id, cashier_id=cashier.id, total_amount=Decimal(amount), currency='KES',
            payment_method='cash', status=status, receipt_number=number, created_at=created_at,
        ))
        session.commit()

    def test_daily_sales(self, session, branch, cashier):
        self._sale(session, branch, cashier, '1700', datetime(2026, 1, 10, 9, 0), 'R1')
        self._sale(session, branch, cashier, '300', datetime(2026, 1, 10, 17, 0), 'R2')
        self._sale(session, branch, cashier, '2500', datetime(2026, 1, 12, 12, 0), 'R3')
        self._sale(session, branch, cashier, '999', datetime(2026, 1, 12, 13, 0), 'R4', status='refunded')
        self._sale(session, branch, cashier, '50', datetime(2026, 1, 20, 13, 0), 'R5')

        series = report_service.daily_sales(session, branch.id, date(2026, 1, 10), date(2026, 1, 12))

        assert [(row['label'], row['amount'], row['transactions']) for row in series] == [
            ('Jan 10', Decimal('2000.00'), 2),
            ('Jan 12', Decimal('2500.00'), 1),
        ]
        totals = report_service.sales_totals(series)
        assert totals['total_amount'] == Decimal('4500.00')
        assert totals['transactions'] == 3
        assert totals['average_value'] == Decimal('1500.00')

    def test_empty_period(self, session, branch):
        series = report_service.daily_sales(session, branch.id, date(2026, 1, 1), date(2026, 1, 31))
        assert series == []
        assert report_service.sales_totals(series)['average_value'] == Decimal('0.00')

    def test_inventory_by_category(self, session, branch, oil_filter, brake_pads, spark_plug):
        rows = report_service.inventory_by_category(session, branch.id)
        assert [(row['category'], row['quantity']) for row in rows] == [
            ('Filters', 10), ('Brakes', 4), ('Ignition', 0)
        ]
        assert rows[0]['value'] == Decimal('8500.00')

    def test_report_text(self, fixed_now):
        series = [{'label': 'Jan 10', 'amount': Decimal('2000'), 'transactions': 2}]
        text = report_service.build_report_text(
            'sales', 'Test Auto Parts', 'Nairobi CBD', 'KES',
            date(2026, 1, 1), date(2026, 1, 31), series, generated_at=fixed_now,
        )
        assert 'SALES REPORT' in text
        assert 'Period: 01/01/2026 - 31/01/2026' in text
        assert 'Branch: Nairobi CBD' in text
        assert 'Jan 10: KES 2,000.00 (2 transactions)' in text
        assert 'Total Sales: KES 2,000.00' in text
        assert 'Average Transaction: KES 1,000.00' in text

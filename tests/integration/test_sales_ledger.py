"""
Integration tests for the sales ledger, receipts and dashboard.
"""

import pytest
from datetime import date, timedelta


@pytest.fixture
def completed_sale(cashier_client, oil_filter, brake_pads, customer):
    cashier_client.post('/pos/cart', json={'product_id': oil_filter.id, 'quantity': 2})
    cashier_client.post('/pos/cart', json={'product_id': brake_pads.id, 'quantity': 1})
    response = cashier_client.post('/pos/checkout', json={
        'payment_method': 'mpesa', 'customer_id': customer.id
    })
    assert response.status_code == 201
    return response.json['sale']


class TestSalesList:

    def test_list_with_items_and_summary(self, cashier_client, completed_sale):
        response = cashier_client.get('/sales')

        assert response.status_code == 200
        sales = response.json['sales']
        assert len(sales) == 1
        assert sales[0]['customer_name'] == 'Jane Wanjiku'
        assert [item['product_name'] for item in sales[0]['items']] == ['Oil Filter', 'Brake Pads']
        assert response.json['summary']['transaction_count'] == 1
        assert response.json['summary']['total_revenue'] == '4200.00'

    def test_search_by_receipt_and_customer(self, cashier_client, completed_sale):
        number = completed_sale['receipt_number']
        assert len(cashier_client.get(f'/sales?q={number}').json['sales']) == 1
        assert len(cashier_client.get('/sales?q=wanjiku').json['sales']) == 1
        assert cashier_client.get('/sales?q=nobody').json['sales'] == []

    def test_status_filter(self, cashier_client, completed_sale):
        assert len(cashier_client.get('/sales?status=completed').json['sales']) == 1
        assert cashier_client.get('/sales?status=refunded').json['sales'] == []
        assert cashier_client.get('/sales?status=void').status_code == 400

    def test_detail(self, cashier_client, completed_sale):
        response = cashier_client.get(f"/sales/{completed_sale['id']}")
        assert response.json['payment_method'] == 'mobile-money'
        assert len(response.json['items']) == 2

    def test_unknown_sale(self, cashier_client):
        assert cashier_client.get('/sales/999').status_code == 404


class TestReceipts:

    def test_text_receipt(self, cashier_client, completed_sale):
        response = cashier_client.get(f"/sales/{completed_sale['id']}/receipt.txt")

        assert response.status_code == 200
        assert response.mimetype == 'text/plain'
        assert 'attachment' in response.headers['Content-Disposition']
        text = response.data.decode()
        assert 'TEST AUTO PARTS' in text
        assert completed_sale['receipt_number'] in text
        assert 'Customer: Jane Wanjiku' in text
        assert 'KES 4,200.00' in text

    def test_html_receipt(self, cashier_client, completed_sale):
        response = cashier_client.get(f"/sales/{completed_sale['id']}/receipt.html")
        assert response.mimetype == 'text/html'
        assert b'Brake Pads' in response.data

    def test_pdf_receipt(self, cashier_client, completed_sale):
        response = cashier_client.get(f"/sales/{completed_sale['id']}/receipt.pdf")
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF-')

    def test_unknown_format(self, cashier_client, completed_sale):
        assert cashier_client.get(f"/sales/{completed_sale['id']}/receipt.docx").status_code == 404


class TestDashboardAndReports:

    def test_dashboard(self, cashier_client, completed_sale, spark_plug):
        response = cashier_client.get('/dashboard')

        assert response.status_code == 200
        data = response.json
        assert data['product_count'] == 3
        assert data['units_in_stock'] == 11
        assert data['customer_count'] == 1
        assert data['recent_sales'][0]['receipt_number'] == completed_sale['receipt_number']
        assert [p['name'] for p in data['low_stock_products']] == ['Spark Plug', 'Brake Pads']

    def test_sales_report(self, client, completed_sale, manager):
        with client.session_transaction() as sess:
            sess['user_id'] = manager.id
        start = (date.today() - timedelta(days=1)).isoformat()
        end = (date.today() + timedelta(days=1)).isoformat()
        response = client.get(f'/reports/sales?start={start}&end={end}')

        assert response.status_code == 200
        assert response.json['totals']['transactions'] == 1
        assert response.json['totals']['total_amount'] == '4200.00'

    def test_sales_report_rejects_bad_dates(self, manager_client):
        assert manager_client.get('/reports/sales?start=12/01/2026').status_code == 400
        assert manager_client.get('/reports/sales?start=2026-02-01&end=2026-01-01').status_code == 400

    def test_inventory_report(self, manager_client, oil_filter, brake_pads):
        response = manager_client.get('/reports/inventory')
        assert [row['category'] for row in response.json['categories']] == ['Filters', 'Brakes']

    def test_report_download(self, manager_client, oil_filter):
        response = manager_client.get('/reports/download?type=inventory')

        assert response.status_code == 200
        assert response.mimetype == 'text/plain'
        text = response.data.decode()
        assert 'INVENTORY REPORT' in text
        assert 'Branch: Nairobi CBD' in text
        assert 'Filters: 10 units' in text

    def test_report_download_unknown_type(self, manager_client):
        assert manager_client.get('/reports/download?type=kra').status_code == 400


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json['database'] == 'connected'
        assert response.json['cache'] == 'disabled'


class TestMetrics:

    def test_receipt_downloads_are_counted(self, client, cashier_client, completed_sale):
        cashier_client.get(f"/sales/{completed_sale['id']}/receipt.html")

        metrics = client.get('/metrics').data.decode()
        assert 'pos_receipts_rendered_total{format="html"}' in metrics
        assert 'pos_sale_submission_seconds_count' in metrics

"""
Dashboard service.
Provides aggregated figures for a branch's dashboard view.
"""

from datetime import datetime, date, time, timedelta
from decimal import Decimal
from sqlalchemy import func
from app.models import Sale, Product, Customer, SaleStatus
from app.services.catalog_service import low_stock_products, stock_status


def get_dashboard_data(session, branch_id: int, start_dt: datetime, end_dt: datetime,
                       threshold: int = 10) -> dict:
    """
    Get all dashboard data for a branch for a specific date range.

    Args:
        session: SQLAlchemy session
        branch_id: Current branch ID
        start_dt: Start datetime (inclusive)
        end_dt: End datetime (exclusive)
        threshold: Minimum stock level for products without their own

    Returns:
        dict with keys:
            - revenue: Decimal, completed sales in range
            - sales_count: int
            - units_in_stock: int
            - product_count: int
            - customer_count: int
            - low_stock_products: list of dicts
            - recent_sales: list of sale dicts
    """
    revenue, sales_count = session.query(
        func.coalesce(func.sum(Sale.total_amount), 0),
        func.count(Sale.id),
    ).filter(
        Sale.branch_id == branch_id,
        Sale.status == SaleStatus.COMPLETED.value,
        Sale.created_at >= start_dt,
        Sale.created_at < end_dt
    ).one()

    product_count, units_in_stock = session.query(
        func.count(Product.id),
        func.coalesce(func.sum(Product.stock_quantity), 0),
    ).filter(Product.branch_id == branch_id).one()

    customer_count = session.query(func.count(Customer.id)).filter(
        Customer.branch_id == branch_id
    ).scalar() or 0

    low_stock_list = [
        {
            'id': p.id,
            'name': p.name,
            'part_number': p.part_number,
            'stock_quantity': p.stock_quantity,
            'min_stock_level': p.min_stock_level or threshold,
            'status': stock_status(p, threshold),
        }
        for p in low_stock_products(session, branch_id, threshold, limit=10)
    ]

    recent_sales = session.query(Sale).filter(
        Sale.branch_id == branch_id,
        Sale.status == SaleStatus.COMPLETED.value
    ).order_by(
        Sale.created_at.desc(), Sale.id.desc()
    ).limit(5).all()

    return {
        'revenue': Decimal(str(revenue)).quantize(Decimal('0.01')),
        'sales_count': int(sales_count or 0),
        'units_in_stock': int(units_in_stock or 0),
        'product_count': int(product_count or 0),
        'customer_count': int(customer_count),
        'low_stock_products': low_stock_list,
        'recent_sales': [sale.to_dict() for sale in recent_sales],
    }


def get_today_datetime_range():
    """
    Get datetime range for today (local server time).

    Returns:
        tuple: (start_dt, end_dt) where start is 00:00 today and end is 00:00 tomorrow
    """
    today = date.today()
    start_dt = datetime.combine(today, time.min)
    end_dt = start_dt + timedelta(days=1)

    return start_dt, end_dt

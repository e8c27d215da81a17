"""Report service - sales and inventory reports for a branch."""
from collections import OrderedDict
from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import func

from app.models import Sale, Product, SaleStatus
from app.utils.formatters import money, date_fmt, datetime_fmt, day_label

logger = logging.getLogger(__name__)

REPORT_TYPES = ('sales', 'inventory')
UNCATEGORIZED = 'Uncategorized'


def report_cache_key(report_type: str, start: date, end: date) -> str:
    return f"{report_type}:{start.isoformat()}:{end.isoformat()}"


def _day_bounds(start: date, end: date):
    """Datetime range covering `start` through `end` inclusive."""
    return datetime.combine(start, time.min), datetime.combine(end, time.min) + timedelta(days=1)


def daily_sales(session, branch_id: int, start: date, end: date) -> List[Dict[str, Any]]:
    """
    Completed sales per day between `start` and `end` (inclusive).

    Returns:
        List of dicts ordered by day with keys:
        - day: ISO date
        - label: 'Jan 12'
        - amount: Decimal
        - transactions: int
    """
    start_dt, end_dt = _day_bounds(start, end)
    rows = session.query(Sale.created_at, Sale.total_amount).filter(
        Sale.branch_id == branch_id,
        Sale.status == SaleStatus.COMPLETED.value,
        Sale.created_at >= start_dt,
        Sale.created_at < end_dt
    ).order_by(Sale.created_at).all()

    days: Dict[date, Dict[str, Any]] = OrderedDict()
    for created_at, amount in rows:
        day = created_at.date()
        bucket = days.setdefault(day, {
            'day': day.isoformat(),
            'label': day_label(day),
            'amount': Decimal('0.00'),
            'transactions': 0,
        })
        bucket['amount'] += Decimal(str(amount))
        bucket['transactions'] += 1

    return list(days.values())


def sales_totals(series: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Totals and average transaction value for a daily series."""
    total = sum((row['amount'] for row in series), Decimal('0.00'))
    transactions = sum(row['transactions'] for row in series)
    average = (total / transactions).quantize(Decimal('0.01')) if transactions else Decimal('0.00')
    return {
        'total_amount': total.quantize(Decimal('0.01')),
        'transactions': transactions,
        'average_value': average,
    }


def inventory_by_category(session, branch_id: int) -> List[Dict[str, Any]]:
    """Units in stock and stock value per category, largest first."""
    category = func.coalesce(Product.category, UNCATEGORIZED)
    rows = session.query(
        category.label('category'),
        func.count(Product.id),
        func.coalesce(func.sum(Product.stock_quantity), 0),
        func.coalesce(func.sum(Product.price * Product.stock_quantity), 0),
    ).filter(
        Product.branch_id == branch_id
    ).group_by(category).all()

    result = [
        {
            'category': name,
            'products': int(count),
            'quantity': int(units),
            'value': Decimal(str(value)).quantize(Decimal('0.01')),
        }
        for name, count, units, value in rows
    ]
    result.sort(key=lambda row: (-row['quantity'], row['category']))
    return result


def build_report_text(report_type: str, business_name: str, branch_name: str, currency: str,
                      start: date, end: date, series: List[Dict[str, Any]],
                      categories: Optional[List[Dict[str, Any]]] = None,
                      generated_at: Optional[datetime] = None) -> str:
    """Plain-text report for download."""
    generated_at = generated_at or datetime.now()
    lines = [
        business_name.upper(),
        f"{report_type.upper()} REPORT",
        f"Period: {date_fmt(start)} - {date_fmt(end)}",
        '',
        f"Generated: {datetime_fmt(generated_at)}",
        f"Branch: {branch_name}",
        f"Currency: {currency}",
        '',
        'Sales Summary:',
    ]
    for row in series:
        lines.append(f"{row['label']}: {money(row['amount'], currency)} ({row['transactions']} transactions)")
    if not series:
        lines.append('No sales in this period.')

    totals = sales_totals(series)
    lines += [
        '',
        f"Total Sales: {money(totals['total_amount'], currency)}",
        f"Total Transactions: {totals['transactions']}",
        f"Average Transaction: {money(totals['average_value'], currency)}",
    ]

    if categories:
        lines += ['', 'Inventory by Category:']
        for row in categories:
            lines.append(f"{row['category']}: {row['quantity']} units ({money(row['value'], currency)})")

    return '\n'.join(lines) + '\n'

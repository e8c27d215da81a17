"""Catalog service - branch inventory of spare parts."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Product
from app.exceptions import BusinessLogicError, NotFoundError, ValidationError
from app.utils.number_format import parse_amount, parse_count

EDITABLE_FIELDS = (
    'sku', 'name', 'description', 'category', 'brand', 'part_number',
    'price', 'cost_price', 'stock_quantity', 'min_stock_level',
)

STATUS_CRITICAL = 'critical'
STATUS_LOW = 'low'
STATUS_IN_STOCK = 'in-stock'


def list_products(session: Session, branch_id: int, search: str = '',
                  category: str = 'all') -> List[Product]:
    """Products of a branch ordered by name, optionally filtered by text and category."""
    query = session.query(Product).filter(Product.branch_id == branch_id)

    if search:
        term = f"%{search.strip().lower()[:100]}%"
        query = query.filter(or_(
            func.lower(Product.name).like(term),
            func.lower(func.coalesce(Product.part_number, '')).like(term),
            func.lower(func.coalesce(Product.sku, '')).like(term),
            func.lower(func.coalesce(Product.brand, '')).like(term),
        ))

    if category and category != 'all':
        query = query.filter(Product.category == category)

    return query.order_by(Product.name).all()


def list_categories(session: Session, branch_id: int) -> List[str]:
    rows = (
        session.query(Product.category)
        .filter(Product.branch_id == branch_id, Product.category.isnot(None))
        .distinct()
        .order_by(Product.category)
        .all()
    )
    return [row[0] for row in rows]


def get_product(session: Session, product_id: int, branch_id: int) -> Product:
    """Get a product of the branch or raise NotFoundError."""
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.branch_id == branch_id
    ).first()
    if not product:
        raise NotFoundError('Product not found.')
    return product


def _clean_product_data(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate and coerce incoming product fields."""
    cleaned = {}
    for key in EDITABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        try:
            if key in ('price', 'cost_price'):
                value = parse_amount(value)
            elif key in ('stock_quantity', 'min_stock_level'):
                value = parse_count(value, minimum=0)
            elif isinstance(value, str):
                value = value.strip() or None
        except ValueError as e:
            raise ValidationError(f"{key}: {e}")
        cleaned[key] = value

    if not partial:
        if not cleaned.get('name'):
            raise ValidationError('Product name is required')
        if cleaned.get('price') is None:
            raise ValidationError('Product price is required')
    elif 'name' in cleaned and not cleaned['name']:
        raise ValidationError('Product name cannot be empty')

    return cleaned


def create_product(session: Session, branch_id: int, data: Dict[str, Any]) -> Product:
    cleaned = _clean_product_data(data)
    product = Product(branch_id=branch_id, **cleaned)
    try:
        session.add(product)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError(f"A product with SKU '{cleaned.get('sku')}' already exists in this branch")
    return product


def update_product(session: Session, product_id: int, branch_id: int, data: Dict[str, Any]) -> Product:
    product = get_product(session, product_id, branch_id)
    for key, value in _clean_product_data(data, partial=True).items():
        setattr(product, key, value)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError('Product could not be updated (duplicate SKU or invalid stock)')
    return product


def delete_product(session: Session, product_id: int, branch_id: int) -> None:
    product = get_product(session, product_id, branch_id)
    try:
        session.delete(product)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError(f'"{product.name}" has sales and cannot be deleted')


def stock_status(product: Product, threshold: int = 10) -> str:
    """
    Classify a product's stock level.

    The product's own min_stock_level is used when set, `threshold` otherwise.
    Out of stock or at most half the minimum is critical.
    """
    minimum = product.min_stock_level or threshold
    current = product.stock_quantity or 0
    if current <= 0 or current * 2 <= minimum:
        return STATUS_CRITICAL
    if current <= minimum:
        return STATUS_LOW
    return STATUS_IN_STOCK


def low_stock_products(session: Session, branch_id: int, threshold: int = 10,
                       limit: Optional[int] = None) -> List[Product]:
    """Products at or below their minimum level, most critical first."""
    products = [
        p for p in list_products(session, branch_id)
        if stock_status(p, threshold) != STATUS_IN_STOCK
    ]
    products.sort(key=lambda p: (p.stock_quantity, p.name))
    return products[:limit] if limit else products


def inventory_summary(session: Session, branch_id: int, threshold: int = 10) -> Dict[str, Any]:
    """Totals shown above the inventory list."""
    products = list_products(session, branch_id)
    total_units = sum(p.stock_quantity or 0 for p in products)
    total_value = sum(
        (Decimal(str(p.price)) * (p.stock_quantity or 0) for p in products),
        Decimal('0.00')
    )
    low = sum(1 for p in products if stock_status(p, threshold) != STATUS_IN_STOCK)
    return {
        'product_count': len(products),
        'total_units': total_units,
        'total_value': total_value.quantize(Decimal('0.01')),
        'low_stock_count': low,
    }

"""Customer service - branch customer registry."""
from typing import Any, Dict, List

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Customer
from app.exceptions import BusinessLogicError, NotFoundError, ValidationError

EDITABLE_FIELDS = ('name', 'email', 'phone', 'address', 'kra_pin')


def _clean_customer_data(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Extract and sanitize customer data."""
    cleaned = {}
    for key in EDITABLE_FIELDS:
        if key in data:
            value = data[key]
            cleaned[key] = value.strip() or None if isinstance(value, str) else value

    if 'kra_pin' in cleaned and cleaned['kra_pin']:
        cleaned['kra_pin'] = cleaned['kra_pin'].upper()

    for required in ('name', 'phone'):
        if (not partial or required in cleaned) and not cleaned.get(required):
            raise ValidationError(f'Customer {required} is required')
    return cleaned


def list_customers(session: Session, branch_id: int, search: str = '') -> List[Customer]:
    """Customers of a branch ordered by name, optionally filtered."""
    query = session.query(Customer).filter(Customer.branch_id == branch_id)
    if search:
        term = f"%{search.strip().lower()[:100]}%"
        query = query.filter(or_(
            func.lower(Customer.name).like(term),
            func.lower(func.coalesce(Customer.phone, '')).like(term),
            func.lower(func.coalesce(Customer.email, '')).like(term),
            func.lower(func.coalesce(Customer.kra_pin, '')).like(term),
        ))
    return query.order_by(Customer.name).all()


def get_customer(session: Session, customer_id: int, branch_id: int) -> Customer:
    customer = session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.branch_id == branch_id
    ).first()
    if not customer:
        raise NotFoundError('Customer not found.')
    return customer


def create_customer(session: Session, branch_id: int, data: Dict[str, Any]) -> Customer:
    customer = Customer(branch_id=branch_id, **_clean_customer_data(data))
    session.add(customer)
    session.commit()
    return customer


def update_customer(session: Session, customer_id: int, branch_id: int, data: Dict[str, Any]) -> Customer:
    customer = get_customer(session, customer_id, branch_id)
    for key, value in _clean_customer_data(data, partial=True).items():
        setattr(customer, key, value)
    session.commit()
    return customer


def delete_customer(session: Session, customer_id: int, branch_id: int) -> None:
    """
    Delete a customer.

    Customers referenced by a sale are kept; the sale ledger needs them.
    """
    customer = get_customer(session, customer_id, branch_id)
    if customer.sales:
        raise BusinessLogicError(f'"{customer.name}" has sales and cannot be deleted')
    try:
        session.delete(customer)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError(f'"{customer.name}" cannot be deleted')


def customer_stats(session: Session, branch_id: int) -> Dict[str, int]:
    """Counts shown above the customer list."""
    customers = list_customers(session, branch_id)
    return {
        'total': len(customers),
        'with_email': sum(1 for c in customers if c.email),
        'with_tax_pin': sum(1 for c in customers if c.kra_pin),
    }

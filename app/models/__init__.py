"""Models package - exports all SQLAlchemy models."""
from app.models.branch import Branch
from app.models.profile import Profile, UserRole, ROLE_HIERARCHY
from app.models.product import Product
from app.models.customer import Customer
from app.models.sale import Sale, SaleStatus, PaymentMethod
from app.models.sale_item import SaleItem

__all__ = [
    'Branch', 'Profile', 'UserRole', 'ROLE_HIERARCHY',
    'Product', 'Customer',
    'Sale', 'SaleStatus', 'PaymentMethod', 'SaleItem',
]

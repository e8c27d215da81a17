"""Sale model."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntId
from app.exceptions import ValidationError
import enum


class SaleStatus(enum.Enum):
    """Sale status enum."""
    PENDING = 'pending'
    COMPLETED = 'completed'
    REFUNDED = 'refunded'

    @classmethod
    def parse(cls, value) -> 'SaleStatus':
        """Return the status for `value`, rejecting anything unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValidationError(f"Invalid sale status: {value}")


class PaymentMethod(enum.Enum):
    """Payment method enum."""
    CASH = 'cash'
    MOBILE_MONEY = 'mobile-money'
    CARD = 'card'
    BANK_TRANSFER = 'bank-transfer'

    @classmethod
    def parse(cls, value) -> 'PaymentMethod':
        """
        Normalize a payment method coming from a request.

        Accepts enum members, canonical values and the legacy spellings
        'mpesa' and 'bank_transfer'.

        Raises:
            ValidationError: If value is unknown
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower().replace('_', '-')
            normalized = _PAYMENT_ALIASES.get(normalized, normalized)
            try:
                return cls(normalized)
            except ValueError:
                pass
        raise ValidationError(
            f"Invalid payment method: {value}. "
            f"Must be one of: {', '.join(m.value for m in cls)}"
        )


_PAYMENT_ALIASES = {
    'mpesa': PaymentMethod.MOBILE_MONEY.value,
    'm-pesa': PaymentMethod.MOBILE_MONEY.value,
    'transfer': PaymentMethod.BANK_TRANSFER.value,
}


class Sale(Base):
    """Sale header - one per completed transaction."""

    __tablename__ = 'sale'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    branch_id = Column(BigInteger, ForeignKey('branch.id'), nullable=False, index=True)
    cashier_id = Column(BigInteger, ForeignKey('profile.id'), nullable=False)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    status = Column(String(20), nullable=False, default=SaleStatus.COMPLETED.value)
    receipt_number = Column(String(64), nullable=False, unique=True, index=True)
    tax_receipt = Column(String(64), nullable=True)  # fiscal receipt reference, filled externally
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    cashier = relationship('Profile')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan',
                         order_by='SaleItem.id')

    def to_dict(self, with_items=False):
        data = {
            'id': self.id,
            'branch_id': self.branch_id,
            'cashier_id': self.cashier_id,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'total_amount': str(self.total_amount),
            'currency': self.currency,
            'payment_method': self.payment_method,
            'status': self.status,
            'receipt_number': self.receipt_number,
            'tax_receipt': self.tax_receipt,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if with_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Sale(id={self.id}, receipt='{self.receipt_number}', total={self.total_amount})>"

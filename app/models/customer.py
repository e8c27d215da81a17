"""Customer model."""
from sqlalchemy import Column, BigInteger, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntId


class Customer(Base):
    """Customer registered at a branch."""

    __tablename__ = 'customer'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    branch_id = Column(BigInteger, ForeignKey('branch.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=False)
    address = Column(Text, nullable=True)
    kra_pin = Column(String(20), nullable=True)  # tax PIN
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    sales = relationship('Sale', back_populates='customer')

    def to_dict(self):
        return {
            'id': self.id,
            'branch_id': self.branch_id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'kra_pin': self.kra_pin,
        }

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"

"""Branch model - a physical retail location."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntId


class Branch(Base):
    """Branch - scopes products, customers and sales."""

    __tablename__ = 'branch'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    address = Column(String(255), nullable=True)
    country = Column(String(80), nullable=True)
    currency = Column(String(3), nullable=False, default='KES')
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    profiles = relationship('Profile', back_populates='branch')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'country': self.country,
            'currency': self.currency,
            'phone': self.phone,
            'email': self.email,
        }

    def __repr__(self):
        return f"<Branch(id={self.id}, name='{self.name}', currency='{self.currency}')>"

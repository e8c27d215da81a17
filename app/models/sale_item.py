"""Sale Item model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntId


class SaleItem(Base):
    """Sale Item (line of a sale)."""

    __tablename__ = 'sale_item'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    sale = relationship('Sale', back_populates='items')
    product = relationship('Product')

    def to_dict(self):
        return {
            'id': self.id,
            'sale_id': self.sale_id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'part_number': self.product.part_number if self.product else None,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'total_price': str(self.total_price),
        }

    def __repr__(self):
        return f"<SaleItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"

"""Product model."""
from sqlalchemy import (
    Column, BigInteger, String, Text, Integer, Numeric, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base, BigIntId


class Product(Base):
    """Product - a sellable spare part owned by a branch."""

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
        UniqueConstraint('branch_id', 'sku', name='uq_product_branch_sku'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    branch_id = Column(BigInteger, ForeignKey('branch.id'), nullable=False, index=True)
    sku = Column(String(64), nullable=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    brand = Column(String(100), nullable=True)
    part_number = Column(String(100), nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    cost_price = Column(Numeric(12, 2), nullable=False, default=0, server_default='0.00')
    stock_quantity = Column(Integer, nullable=False, default=0, server_default='0')
    min_stock_level = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    branch = relationship('Branch')

    def to_dict(self):
        return {
            'id': self.id,
            'branch_id': self.branch_id,
            'sku': self.sku,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'brand': self.brand,
            'part_number': self.part_number,
            'price': str(self.price) if self.price is not None else None,
            'cost_price': str(self.cost_price) if self.cost_price is not None else None,
            'stock_quantity': self.stock_quantity,
            'min_stock_level': self.min_stock_level,
        }

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"

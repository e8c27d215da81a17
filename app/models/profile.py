"""Profile model - staff members who operate a branch."""
import enum
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from app.database import Base, BigIntId


class UserRole(enum.Enum):
    """Staff roles, highest first."""
    ADMIN = 'admin'
    MANAGER = 'manager'
    CASHIER = 'cashier'


ROLE_HIERARCHY = {
    UserRole.CASHIER.value: 1,
    UserRole.MANAGER.value: 2,
    UserRole.ADMIN.value: 3,
}


class Profile(Base):
    """Profile - a user bound to one branch."""

    __tablename__ = 'profile'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.CASHIER.value)
    branch_id = Column(BigInteger, ForeignKey('branch.id'), nullable=True)
    country = Column(String(80), nullable=True)
    currency = Column(String(3), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    branch = relationship('Branch', back_populates='profiles')

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def has_role(self, min_role):
        """True if this profile's role is at least `min_role`."""
        return ROLE_HIERARCHY.get(self.role, 0) >= ROLE_HIERARCHY.get(min_role, 99)

    @property
    def effective_currency(self):
        """Profile currency, falling back to the branch currency."""
        if self.currency:
            return self.currency
        if self.branch is not None:
            return self.branch.currency
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'branch_id': self.branch_id,
            'country': self.country,
            'currency': self.effective_currency,
        }

    def __repr__(self):
        return f"<Profile(id={self.id}, email='{self.email}', role='{self.role}')>"

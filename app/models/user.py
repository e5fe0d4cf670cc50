from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship

from ..models.base import TimeStampMixin, Base
from ..enums import UserRole


class User(Base, TimeStampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    phone = Column(String(30), nullable=True)
    department = Column(String(100), nullable=True)
    address = Column(String(255), nullable=True)

    # Relationships
    created_products = relationship("Product", foreign_keys="Product.created_by_id", back_populates="created_by")
    updated_products = relationship("Product", foreign_keys="Product.updated_by_id", back_populates="updated_by")


    def __repr__(self):
        return f'<User(id={self.id}, email={self.email}, role={self.role})>'

from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship

from ..db.base import Base
from ..enums import ProductStatus
from ..models.base import TimeStampMixin



class Product(Base, TimeStampMixin):
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_name_sku", "name", "sku"),
        Index("ix_products_category_status", "category_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    sku = Column(String(20), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    long_description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    sale_price = Column(Numeric(10, 2), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    weight = Column(Numeric(8, 3), nullable=True)
    length = Column(Numeric(8, 2), nullable=True)
    width = Column(Numeric(8, 2), nullable=True)
    height = Column(Numeric(8, 2), nullable=True)
    color = Column(String(7), nullable=True)
    material = Column(String(50), nullable=True)
    brand = Column(String(50), nullable=True)
    model = Column(String(50), nullable=True)
    year = Column(Integer, nullable=True)
    warranty = Column(Integer, nullable=True)  # months
    tags = Column(Text, nullable=True)  # comma-separated
    main_image = Column(String(255), nullable=True)
    images = Column(Text, nullable=True)  # comma-separated URLs
    video = Column(String(255), nullable=True)
    status = Column(Enum(ProductStatus), nullable=False, default=ProductStatus.DRAFT)
    is_featured = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime, nullable=True)
    meta_title = Column(String(100), nullable=True)
    meta_description = Column(Text, nullable=True)
    meta_keywords = Column(Text, nullable=True)
    view_count = Column(Integer, nullable=False, default=0)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    category = relationship("Category", back_populates="products")
    created_by = relationship("User", foreign_keys=[created_by_id], back_populates="created_products")
    updated_by = relationship("User", foreign_keys=[updated_by_id], back_populates="updated_products")


    def is_in_stock(self) -> bool:
        return self.stock > 0

    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    def is_on_sale(self) -> bool:
        if self.sale_price is None:
            return False
        return Decimal(str(self.sale_price)) < Decimal(str(self.price))

    def get_current_price(self) -> Decimal:
        if self.is_on_sale():
            return Decimal(str(self.sale_price))
        return Decimal(str(self.price))

    def get_discount_percentage(self) -> int:
        if not self.is_on_sale():
            return 0

        price = Decimal(str(self.price))
        sale_price = Decimal(str(self.sale_price))
        percentage = (price - sale_price) / price * 100
        return int(percentage.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


    def __repr__(self):
        return f"<Product(id={self.id}, sku={self.sku}, category_id={self.category_id}, status={self.status})>"

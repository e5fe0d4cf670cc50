from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, UniqueConstraint, event
from sqlalchemy.orm import relationship

from ..db.base import Base
from app.models.base import TimeStampMixin

class Category(Base, TimeStampMixin):
    __tablename__ = "categories"
    __table_args__ = (
        # parent_key folds NULL parents to 0 so root-level names are unique too
        UniqueConstraint("parent_key", "name", name="uq_categories_sibling_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image = Column(String(255), nullable=True)
    color = Column(String(7), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    parent_key = Column(Integer, nullable=False, default=0)

    # Relationships
    parent = relationship("Category", remote_side=[id], back_populates="children")
    children = relationship("Category", back_populates="parent", order_by="Category.id")
    products = relationship("Product", back_populates="category")


    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __repr__(self):
        return f'<Category(id={self.id}, name={self.name}, parent_id={self.parent_id})>'


@event.listens_for(Category, "before_insert")
@event.listens_for(Category, "before_update")
def sync_parent_key(mapper, connection, target):
    target.parent_key = target.parent_id or 0

from sqlalchemy import Column, ForeignKey, Integer

from ..db.base import Base


class CategoryClosure(Base):
    """
    Ancestor/descendant index over the category tree.

    Every category owns a self row (depth 0) plus one row per proper ancestor,
    where depth is the number of edges between the two. The rows are written
    by the category service in the same transaction as the parent change.
    """

    __tablename__ = "category_closure"

    ancestor_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True)
    descendant_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True, index=True)
    depth = Column(Integer, nullable=False, default=0)


    def __repr__(self):
        return f'<CategoryClosure(ancestor_id={self.ancestor_id}, descendant_id={self.descendant_id}, depth={self.depth})>'

from .category import Category
from .category_closure import CategoryClosure
from .product import Product
from .user import User


__all__ = [
    "Category",
    "CategoryClosure",
    "Product",
    "User",
]

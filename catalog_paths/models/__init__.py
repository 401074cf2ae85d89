from .base import Base, TimestampMixin
from .category import Category
from .product import Product, product_categories

__all__ = [
    "Base",
    "TimestampMixin",
    "Category",
    "Product",
    "product_categories",
]

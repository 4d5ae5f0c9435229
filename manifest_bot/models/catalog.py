"""
Catalog models for Manifest Bot.

Categories and products are read-only for the bot; they are maintained with
``scripts/seed_catalog.py`` or directly in the database.
"""

from __future__ import annotations
from typing import List

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from .base import IntPK


class Category(IntPK):
    """
    Product category.

    Attributes:
        id (int): Primary key
        name (str): Category name
        emoji (str): Emoji shown in front of the name
        products (List[Product]): Products of the category
    """
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    emoji: Mapped[str] = mapped_column(String(16), nullable=False, default="")

    products: Mapped[List["Product"]] = relationship(
        "Product", back_populates="category", cascade="all, delete-orphan", order_by="Product.name"
    )

    @validates("name")
    def validate_name(self, key: str, value: str) -> str:
        """Validate category name."""
        if not value or not value.strip():
            raise ValueError("Category name cannot be empty")
        return value.strip()

    @property
    def label(self) -> str:
        return f"{self.emoji} {self.name}".strip()

    def __str__(self) -> str:
        return self.label


class Product(IntPK):
    """
    Catalog product.

    Attributes:
        id (int): Primary key
        name (str): Product name
        category_id (int): Foreign key to category
    """
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)

    category: Mapped[Category] = relationship("Category", back_populates="products")

    @validates("name")
    def validate_name(self, key: str, value: str) -> str:
        """Validate product name."""
        if not value or not value.strip():
            raise ValueError("Product name cannot be empty")
        return value.strip()

    def __str__(self) -> str:
        return self.name

"""Product catalogue model."""
from __future__ import annotations

import math
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    Index,
    Integer,
    String,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from .base import Base, TimestampMixin
from .user import User


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def normalize_primary_images(images: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep at most one primary image: the first one, if several claim it."""

    primaries = [img for img in images if img.get("isPrimary")]
    if len(primaries) <= 1:
        return images
    return [{**img, "isPrimary": index == 0} for index, img in enumerate(images)]


class Product(TimestampMixin, Base):
    """Sellable item with pricing and inventory data."""

    __tablename__ = "products"

    __table_args__ = (
        Index("ix_products_category_subcategory", "category", "subcategory"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[str] = mapped_column(String(2000))
    short_description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sku: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    price: Mapped[float] = mapped_column(Float, index=True)
    compare_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    cost_price: Mapped[float] = mapped_column(Float, default=0)
    stock: Mapped[int] = mapped_column(Integer, default=0)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, default=5)
    category: Mapped[str] = mapped_column(String(100))
    subcategory: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    images: Mapped[list] = mapped_column(JSON, default=list)
    specifications: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vendor: Mapped[str | None] = mapped_column(String(100), nullable=True)
    warranty: Mapped[str | None] = mapped_column(String(200), nullable=True)
    rating_average: Mapped[float] = mapped_column(Float, default=0)
    rating_count: Mapped[int] = mapped_column(Integer, default=0)
    created_by_id: Mapped[int] = mapped_column(Integer, index=True)

    created_by: Mapped[User | None] = relationship(
        primaryjoin="foreign(Product.created_by_id) == User.id", lazy="selectin"
    )

    @validates("sku")
    def _normalize_sku(self, key: str, value: str) -> str:
        return value.strip().upper()

    @property
    def ratings(self) -> dict[str, Any]:
        return {"average": self.rating_average or 0, "count": self.rating_count or 0}

    @property
    def discount_percentage(self) -> int:
        if self.compare_price and self.compare_price > self.price:
            return _round_half_up((self.compare_price - self.price) / self.compare_price * 100)
        return 0

    @property
    def profit_margin(self) -> int:
        if self.cost_price and self.cost_price > 0:
            return _round_half_up((self.price - self.cost_price) / self.cost_price * 100)
        return 0

    @property
    def stock_status(self) -> str:
        if self.stock == 0:
            return "out-of-stock"
        if self.stock <= self.low_stock_threshold:
            return "low-stock"
        return "in-stock"

    @property
    def primary_image(self) -> str | None:
        images = self.images or []
        for image in images:
            if image.get("isPrimary"):
                return image.get("url")
        return images[0].get("url") if images else None

    def adjust_stock(self, quantity: int) -> None:
        self.stock = max(0, self.stock + quantity)


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _normalize_product(mapper, connection, target: Product) -> None:
    if target.images:
        normalized = normalize_primary_images(list(target.images))
        if normalized != target.images:
            target.images = normalized

"""Product catalogue endpoints."""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_current_user, get_db_session, require_admin_or_manager
from ..errors import NotFoundError, parse_identifier
from ..models import Product, User
from ..schemas import (
    Envelope,
    ProductCreate,
    ProductRead,
    ProductRecord,
    ProductUpdate,
    StockAdjustment,
)

router = APIRouter(prefix="/api/products", tags=["products"])


async def load_product(session: AsyncSession, product_id: int) -> Optional[Product]:
    result = await session.execute(
        select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_product_or_404(session: AsyncSession, product_id: str) -> Product:
    product = await load_product(session, parse_identifier(product_id))
    if product is None:
        raise NotFoundError("Product not found")
    return product


def escape_like(term: str) -> str:
    """Make ``%`` and ``_`` match literally in a LIKE pattern escaped by ``\\``."""

    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def product_record(product: Product) -> dict[str, Any]:
    return {
        "name": product.name,
        "description": product.description,
        "short_description": product.short_description,
        "sku": product.sku,
        "price": product.price,
        "compare_price": product.compare_price,
        "cost_price": product.cost_price,
        "stock": product.stock,
        "low_stock_threshold": product.low_stock_threshold,
        "category": product.category,
        "subcategory": product.subcategory,
        "tags": product.tags,
        "images": product.images,
        "specifications": product.specifications,
        "is_active": product.is_active,
        "is_featured": product.is_featured,
        "brand": product.brand,
        "vendor": product.vendor,
        "warranty": product.warranty,
        "ratings": product.ratings,
    }


def product_columns(record: ProductRecord, fields: Optional[set[str]] = None) -> dict[str, Any]:
    """Translate a validated record into column values."""

    values = record.model_dump(include=fields, exclude={"images", "specifications", "ratings"})
    if fields is None or "images" in fields:
        values["images"] = [image.model_dump(by_alias=True) for image in record.images]
    if fields is None or "specifications" in fields:
        values["specifications"] = [spec.model_dump() for spec in record.specifications]
    if fields is None or "ratings" in fields:
        values["rating_average"] = record.ratings.average
        values["rating_count"] = record.ratings.count
    return values


@router.get("", response_model=Envelope[list[ProductRead]])
async def list_products(
    active: bool = True,
    include_all: bool = Query(default=False, alias="all"),
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    low_stock: bool = Query(default=False, alias="lowStock"),
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[list[ProductRead]]:
    """List the catalogue; only active products unless asked otherwise."""

    query = select(Product).order_by(Product.created_at.desc(), Product.id.desc())
    if not include_all:
        query = query.where(Product.is_active == active)
    if category:
        query = query.where(Product.category == category)
    if featured is not None:
        query = query.where(Product.is_featured == featured)
    if low_stock:
        query = query.where(Product.stock <= Product.low_stock_threshold)
    if search:
        pattern = f"%{escape_like(search.lower())}%"
        query = query.where(
            or_(
                func.lower(Product.name).like(pattern, escape="\\"),
                func.lower(Product.description).like(pattern, escape="\\"),
                func.lower(cast(Product.tags, String)).like(pattern, escape="\\"),
            )
        )
    result = await session.execute(query)
    return Envelope(data=[ProductRead.model_validate(product) for product in result.scalars().all()])


@router.get("/{product_id}", response_model=Envelope[ProductRead])
async def get_product(
    product_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[ProductRead]:
    product = await get_product_or_404(session, product_id)
    return Envelope(data=ProductRead.model_validate(product))


@router.post("", response_model=Envelope[ProductRead], status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[ProductRead]:
    """Create a product; the caller is recorded as its creator."""

    product = Product(**product_columns(payload), created_by_id=current_user.id)
    session.add(product)
    await session.commit()

    created = await load_product(session, product.id)
    return Envelope(message="Product created successfully", data=ProductRead.model_validate(created))


@router.put("/{product_id}", response_model=Envelope[ProductRead])
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[ProductRead]:
    """Apply a partial update and re-validate the whole product."""

    product = await get_product_or_404(session, product_id)
    changes = payload.model_dump(exclude_unset=True)
    record = ProductRecord.model_validate({**product_record(product), **changes})

    for column, value in product_columns(record, set(changes)).items():
        setattr(product, column, value)
    await session.commit()

    updated = await load_product(session, product.id)
    return Envelope(data=ProductRead.model_validate(updated))


@router.put("/{product_id}/stock", response_model=Envelope[ProductRead])
async def adjust_stock(
    product_id: str,
    payload: StockAdjustment,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[ProductRead]:
    """Add (or with a negative quantity, remove) stock; never drops below zero."""

    product = await get_product_or_404(session, product_id)
    product.adjust_stock(payload.quantity)
    await session.commit()

    updated = await load_product(session, product.id)
    return Envelope(data=ProductRead.model_validate(updated))


@router.delete("/{product_id}", response_model=Envelope[Any])
async def delete_product(
    product_id: str,
    current_user: User = Depends(require_admin_or_manager),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[Any]:
    product = await get_product_or_404(session, product_id)
    await session.delete(product)
    await session.commit()
    return Envelope(message="Product deleted successfully")

"""Product catalog API."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import get_db
from app.models import Product, ProductOption
from app.schemas import OptionOut, OptionUpdate, ProductCreate, ProductOut, ProductUpdate

router = APIRouter(prefix="/products", tags=["products"])


async def _get_product(db: AsyncSession, product_id: UUID) -> Product:
    result = await db.execute(
        select(Product).options(selectinload(Product.options)).where(Product.id == product_id)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.get("/", response_model=list[ProductOut])
async def list_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    q: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Product).options(selectinload(Product.options))
    if q:
        stmt = stmt.where(Product.name.ilike(f"%{q}%"))
    stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("/", response_model=ProductOut, status_code=201)
async def create_product(data: ProductCreate, db: AsyncSession = Depends(get_db)):
    if not data.options:
        raise HTTPException(400, "A product needs at least one option")
    product = Product(
        name=data.name,
        image_url=data.image_url,
        base_cost_cny=data.base_cost_cny,
        options=[
            ProductOption(position=n, name=o.name, sku=o.sku, stock=0, cost_of_goods=0)
            for n, o in enumerate(data.options)
        ],
    )
    db.add(product)
    await db.commit()
    return await _get_product(db, product.id)


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(product_id: UUID, db: AsyncSession = Depends(get_db)):
    return await _get_product(db, product_id)


@router.patch("/{product_id}", response_model=ProductOut)
async def update_product(product_id: UUID, data: ProductUpdate, db: AsyncSession = Depends(get_db)):
    product = await _get_product(db, product_id)
    for key, val in data.model_dump(exclude_unset=True).items():
        setattr(product, key, val)
    await db.commit()
    return await _get_product(db, product_id)


@router.patch("/{product_id}/options/{option_id}", response_model=OptionOut)
async def update_option(
    product_id: UUID,
    option_id: UUID,
    data: OptionUpdate,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ProductOption).where(
            ProductOption.id == option_id, ProductOption.product_id == product_id,
        )
    )
    option = result.scalar_one_or_none()
    if not option:
        raise HTTPException(404, "Option not found")
    for key, val in data.model_dump(exclude_unset=True).items():
        setattr(option, key, val)
    await db.commit()
    await db.refresh(option)
    return option


@router.delete("/{product_id}", status_code=204)
async def delete_product(product_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a product and its options. Sales and purchases keep their
    references and show the item as deleted."""
    product = await _get_product(db, product_id)
    await db.delete(product)
    await db.commit()

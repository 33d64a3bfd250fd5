"""Product type routes - configurable property slots per kind of product."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.db import get_db
from app.api.deps import bad_request, not_found, ok, parse_id
from app.models.catalog_schema import (
    PropertyDefinitionRead,
    ProductRead,
    ProductTypeCreate,
    ProductTypeRead,
    ProductTypeUpdate,
    dump_row,
    model_columns,
    row_to_dict,
)
from app.models.orm_models import Product, ProductType, PropertyDefinition, Specification
from app.services.property_index import build_index
from app.services.specification_matcher import matching_variants, variant_satisfies

router = APIRouter(prefix="/api/product-types", tags=["Product Types"])
logger = logging.getLogger("catalog-api")

DUPLICATE_MESSAGE = "Product type with this name or slug already exists"


async def _get_or_404(db: AsyncSession, type_id: str) -> ProductType:
    product_type = await db.get(ProductType, parse_id(type_id, "product type"))
    if not product_type:
        raise not_found("Product type")
    return product_type


@router.get("")
async def list_product_types(
    search: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: AsyncSession = Depends(get_db),
):
    query = select(ProductType)
    if is_active is not None:
        query = query.where(ProductType.is_active.is_(is_active))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(ProductType.name.ilike(pattern), ProductType.description.ilike(pattern)))
    rows = (await db.execute(query.order_by(ProductType.name))).scalars().all()
    return ok([dump_row(ProductTypeRead, pt) for pt in rows], count=len(rows))


@router.get("/{type_id}")
async def get_product_type(type_id: str, db: AsyncSession = Depends(get_db)):
    return ok(dump_row(ProductTypeRead, await _get_or_404(db, type_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product_type(body: ProductTypeCreate, db: AsyncSession = Depends(get_db)):
    clash = await db.scalar(
        select(ProductType).where(or_(ProductType.name == body.name, ProductType.slug == body.slug))
    )
    if clash:
        raise bad_request(DUPLICATE_MESSAGE)

    product_type = ProductType(**model_columns(body))
    db.add(product_type)
    try:
        await db.flush()
    except IntegrityError:
        raise bad_request(DUPLICATE_MESSAGE)
    logger.info(f"Product type created: {product_type.name}", extra={"record_id": product_type.id})
    return ok(dump_row(ProductTypeRead, product_type), message="Product type created successfully")


@router.patch("/{type_id}")
async def update_product_type(type_id: str, body: ProductTypeUpdate, db: AsyncSession = Depends(get_db)):
    product_type = await _get_or_404(db, type_id)
    changes = {
        k: v for k, v in model_columns(body, exclude_unset=True).items()
        if v is not None or k == "description"
    }
    for name in ("name", "slug"):
        if name in changes and changes[name] != getattr(product_type, name):
            clash = await db.scalar(
                select(ProductType).where(
                    getattr(ProductType, name) == changes[name], ProductType.id != product_type.id
                )
            )
            if clash:
                raise bad_request(DUPLICATE_MESSAGE)

    for name, value in changes.items():
        setattr(product_type, name, value)
    await db.flush()
    logger.info(f"Product type updated: {product_type.name}", extra={"record_id": product_type.id})
    return ok(dump_row(ProductTypeRead, product_type), message="Product type updated successfully")


@router.delete("/{type_id}")
async def delete_product_type(type_id: str, db: AsyncSession = Depends(get_db)):
    product_type = await _get_or_404(db, type_id)
    in_use = await db.scalar(
        select(func.count(Product.id)).where(Product.product_type_id == product_type.id)
    )
    if in_use:
        raise bad_request(f"Cannot delete product type. {in_use} product(s) are using this type.")

    await db.delete(product_type)
    await db.flush()
    logger.info(f"Product type deleted: {product_type.name}", extra={"record_id": product_type.id})
    return ok(message="Product type deleted successfully")


async def _active_index(db: AsyncSession):
    rows = (await db.execute(
        select(PropertyDefinition).where(PropertyDefinition.is_active.is_(True)).order_by(PropertyDefinition.key)
    )).scalars().all()
    return build_index([PropertyDefinitionRead.from_row(d) for d in rows])


@router.get("/{type_id}/products")
async def list_products_by_type(
    type_id: str,
    specification_id: Optional[str] = Query(None, alias="specificationId"),
    db: AsyncSession = Depends(get_db),
):
    """
    Active products of a type. With specificationId only products satisfying
    that specification are returned, each with just its matching variants.
    """
    product_type = await _get_or_404(db, type_id)
    rows = (await db.execute(
        select(Product)
        .where(Product.product_type_id == product_type.id, Product.is_active.is_(True))
        .order_by(Product.name)
    )).scalars().all()
    if not specification_id:
        return ok([dump_row(ProductRead, p) for p in rows], count=len(rows))

    specification = await db.get(Specification, parse_id(specification_id, "specification"))
    if not specification:
        raise not_found("Specification")
    spec_row = row_to_dict(specification)
    if spec_row.get("product_type_id") and str(spec_row["product_type_id"]) != str(product_type.id):
        return ok([], count=0)

    index = await _active_index(db)
    matched = []
    try:
        for p in rows:
            row = row_to_dict(p)
            data = dump_row(ProductRead, p)
            if row.get("variants"):
                variants = matching_variants(spec_row, row, index)
                if not variants:
                    continue
                data["variants"] = variants
            elif not variant_satisfies(spec_row, row.get("properties"), index).matched:
                continue
            matched.append(data)
    except ValueError as e:
        raise bad_request(f"Specification '{specification.name}' has an invalid matching rule: {e}")
    return ok(matched, count=len(matched))

"""Property definition routes - the global property schema shared by product types."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.db import get_db
from app.api.deps import bad_request, not_found, ok, parse_id
from app.models.catalog_schema import (
    PropertyDefinitionCreate,
    PropertyDefinitionRead,
    PropertyDefinitionUpdate,
    model_columns,
)
from app.models.orm_models import ProductType, PropertyDefinition
from app.services.exceptions import AliasConflictError
from app.services.property_index import find_alias_conflicts, find_definition

router = APIRouter(prefix="/api/property-definitions", tags=["Property Definitions"])
logger = logging.getLogger("catalog-api")

# nullable columns a PATCH may clear with an explicit null
CLEARABLE = {"description", "unit"}


def serialize(defn: PropertyDefinition) -> dict:
    return PropertyDefinitionRead.from_row(defn).model_dump(by_alias=True, mode="json")


async def _get_or_404(db: AsyncSession, definition_id: str) -> PropertyDefinition:
    defn = await db.get(PropertyDefinition, parse_id(definition_id, "property definition"))
    if not defn:
        raise not_found("Property definition")
    return defn


async def _check_aliases(db: AsyncSession, key: str, aliases, exclude_id: Optional[str] = None):
    others = (await db.execute(select(PropertyDefinition))).scalars().all()
    conflicts = find_alias_conflicts(key, aliases, others, exclude_id=exclude_id)
    if conflicts:
        err = AliasConflictError(conflicts, record_id=exclude_id)
        raise bad_request(err.message, conflicts=conflicts)


@router.get("")
async def list_property_definitions(
    category: Optional[str] = None,
    data_type: Optional[str] = Query(None, alias="dataType"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: AsyncSession = Depends(get_db),
):
    query = select(PropertyDefinition)
    if category:
        query = query.where(PropertyDefinition.category == category)
    if data_type:
        query = query.where(PropertyDefinition.data_type == data_type)
    if is_active is not None:
        query = query.where(PropertyDefinition.is_active.is_(is_active))
    query = query.order_by(PropertyDefinition.category, PropertyDefinition.label)
    rows = (await db.execute(query)).scalars().all()
    return ok([serialize(d) for d in rows], count=len(rows))


@router.get("/by-category")
async def property_definitions_by_category(db: AsyncSession = Depends(get_db)):
    rows = (await db.execute(
        select(PropertyDefinition)
        .where(PropertyDefinition.is_active.is_(True))
        .order_by(PropertyDefinition.category, PropertyDefinition.label)
    )).scalars().all()
    grouped: dict = {}
    for defn in rows:
        grouped.setdefault(defn.category or "other", []).append(serialize(defn))
    return ok(grouped)


@router.get("/{definition_id}")
async def get_property_definition(definition_id: str, db: AsyncSession = Depends(get_db)):
    return ok(serialize(await _get_or_404(db, definition_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property_definition(body: PropertyDefinitionCreate, db: AsyncSession = Depends(get_db)):
    existing = await db.scalar(select(PropertyDefinition).where(PropertyDefinition.key == body.key))
    if existing:
        raise bad_request(f"Property definition with key '{body.key}' already exists")
    await _check_aliases(db, body.key, body.aliases)

    defn = PropertyDefinition(**model_columns(body))
    db.add(defn)
    try:
        await db.flush()
    except IntegrityError:
        raise bad_request(f"Property definition with key '{body.key}' already exists")
    logger.info(f"Property definition created: {defn.key}", extra={"record_id": defn.id})
    return ok(serialize(defn), message="Property definition created successfully")


@router.patch("/{definition_id}")
async def update_property_definition(
    definition_id: str, body: PropertyDefinitionUpdate, db: AsyncSession = Depends(get_db)
):
    defn = await _get_or_404(db, definition_id)
    changes = {
        k: v for k, v in model_columns(body, exclude_unset=True).items()
        if v is not None or k in CLEARABLE
    }
    if "aliases" in changes:
        await _check_aliases(db, defn.key, changes["aliases"], exclude_id=defn.id)
    if changes.get("data_type", defn.data_type) == "enum" and not changes.get("enum_options", defn.enum_options):
        raise bad_request("enum properties require at least one enum option")

    for name, value in changes.items():
        setattr(defn, name, value)
    await db.flush()
    logger.info(f"Property definition updated: {defn.key} {sorted(changes)}", extra={"record_id": defn.id})
    return ok(serialize(defn), message="Property definition updated successfully")


@router.delete("/{definition_id}")
async def delete_property_definition(definition_id: str, db: AsyncSession = Depends(get_db)):
    defn = await _get_or_404(db, definition_id)
    target = [PropertyDefinitionRead.from_row(defn)]

    product_types = (await db.execute(select(ProductType).order_by(ProductType.name))).scalars().all()
    used_in = [
        {"id": pt.id, "name": pt.name}
        for pt in product_types
        if any(find_definition(slot.get("key"), target) is not None for slot in pt.properties or [])
    ]
    if used_in:
        raise bad_request(
            f"Cannot delete property definition: it is used in {len(used_in)} product type(s)",
            usedIn=used_in,
        )

    await db.delete(defn)
    await db.flush()
    logger.info(f"Property definition deleted: {defn.key}", extra={"record_id": defn.id})
    return ok(message="Property definition deleted successfully")

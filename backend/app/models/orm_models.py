"""ORM Models for the insulation catalog (SQLAlchemy 2.0)"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    JSON, String, Text, Boolean, Integer, DateTime, ForeignKey, Index, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from app.db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDoc = JSON().with_variant(JSONB(), "postgresql")


def gen_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ── COMPANIES ─────────────────────────────────────────────────────────────────
class Company(TimestampMixin, Base):
    __tablename__ = "companies"
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    company_number: Mapped[Optional[str]] = mapped_column(String(100))
    company_type: Mapped[str] = mapped_column(String(50), default="supplier", index=True)
    # customer | supplier | distributor | subcontractor | other
    contact: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    address: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    payment_terms: Mapped[str] = mapped_column(String(100), default="Net 30")
    tax_id: Mapped[Optional[str]] = mapped_column(String(100))
    supplier_info: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    # [{supplierId, isActive, addedDate}]: manufacturers this distributor carries
    distributor_suppliers: Mapped[list] = mapped_column(JSONDoc, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# ── PROPERTY DEFINITIONS ──────────────────────────────────────────────────────
class PropertyDefinition(TimestampMixin, Base):
    __tablename__ = "property_definitions"
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), default="other", index=True)
    data_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # text | number | fraction | boolean | date | enum
    unit: Mapped[Optional[str]] = mapped_column(String(50))
    unit_system: Mapped[str] = mapped_column(String(20), default="imperial")
    normalization: Mapped[dict] = mapped_column(JSONDoc, default=lambda: {"function": "none", "tolerance": 0.01})
    enum_options: Mapped[list] = mapped_column(JSONDoc, default=list)
    aliases: Mapped[list] = mapped_column(JSONDoc, default=list)
    standard_values: Mapped[list] = mapped_column(JSONDoc, default=list)
    validation: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    display: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)


# ── PRODUCT TYPES ─────────────────────────────────────────────────────────────
class ProductType(TimestampMixin, Base):
    __tablename__ = "product_types"
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    # [{key, label, type, propertyDefinitionId, unit, unitSystem, required, options, display, variantKey}]
    properties: Mapped[list] = mapped_column(JSONDoc, default=list)
    variant_settings: Mapped[dict] = mapped_column(
        JSONDoc, default=lambda: {"hasVariants": False, "variantProperties": []}
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# ── PRODUCTS ──────────────────────────────────────────────────────────────────
class Product(TimestampMixin, Base):
    __tablename__ = "products"
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    internal_part_number: Mapped[Optional[str]] = mapped_column(String(100))
    product_type_id: Mapped[Optional[str]] = mapped_column(Uuid(as_uuid=False), ForeignKey("product_types.id"))
    manufacturer_id: Mapped[Optional[str]] = mapped_column(Uuid(as_uuid=False), ForeignKey("companies.id"))
    distributor_id: Mapped[Optional[str]] = mapped_column(Uuid(as_uuid=False), ForeignKey("companies.id"))
    category: Mapped[Optional[str]] = mapped_column(String(100))
    unit_of_measure: Mapped[str] = mapped_column(String(20), default="EA")
    properties: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    properties_normalized: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    property_units: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    # [{sku, name, properties, propertiesNormalized, propertyUnits, pricing, suppliers, isActive}]
    variants: Mapped[list] = mapped_column(JSONDoc, default=list)
    # [{distributorId, manufacturerId, supplierPartNumber, listPrice, netPrice, discountPercent, isPreferred}]
    suppliers: Mapped[list] = mapped_column(JSONDoc, default=list)
    pricing: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    pricebook_page_name: Mapped[Optional[str]] = mapped_column(String(255))
    pricebook_page_number: Mapped[Optional[str]] = mapped_column(String(50))
    pricebook_group_code: Mapped[Optional[str]] = mapped_column(String(50))
    pricebook_section: Mapped[Optional[str]] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        Index("ix_products_product_type", "product_type_id"),
        Index("ix_products_manufacturer", "manufacturer_id"),
    )


# ── SPECIFICATIONS ────────────────────────────────────────────────────────────
class Specification(TimestampMixin, Base):
    __tablename__ = "specifications"
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    product_type_id: Mapped[Optional[str]] = mapped_column(Uuid(as_uuid=False), ForeignKey("product_types.id"))
    required_properties: Mapped[dict] = mapped_column(JSONDoc, default=dict)
    # [{propertyKey, matchType, value, normalize}]
    property_matching_rules: Mapped[list] = mapped_column(JSONDoc, default=list)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

"""
Catalog request/response schemas.

API payloads and nested JSON documents use camelCase keys; model fields are
snake_case and accept either spelling on input.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

PROPERTY_KEY_PATTERN = r"^[a-z0-9_]+$"

Category = Literal["dimension", "material", "specification", "performance", "other"]
DataType = Literal["text", "number", "fraction", "boolean", "date", "enum"]
UnitSystem = Literal["imperial", "metric", "both"]
NormalizationFunction = Literal["parseInches", "parseFraction", "parseNumber", "toLowerCase", "none"]
SlotType = Literal["string", "number", "boolean", "date", "enum", "multiselect"]
CompanyType = Literal["customer", "supplier", "distributor", "subcontractor", "other"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def row_to_dict(obj: Any) -> Dict[str, Any]:
    """Column values of an ORM row keyed by attribute name."""
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}


def slugify(text: str) -> str:
    return re.sub(r"(^-|-$)", "", re.sub(r"[^a-z0-9]+", "-", text.lower()))


def _clean_aliases(value: Any) -> List[str]:
    cleaned: List[str] = []
    for alias in value or []:
        a = str(alias).strip().lower()
        if a and a not in cleaned:
            cleaned.append(a)
    return cleaned


# ─── Property definitions ────────────────────────────────────────────────────

class EnumOption(FrozenCamelModel):
    value: str
    label: str
    aliases: Tuple[str, ...] = ()


class Normalization(FrozenCamelModel):
    function: NormalizationFunction = "none"
    tolerance: float = Field(0.01, ge=0)


class StandardValue(FrozenCamelModel):
    display_value: str
    normalized_value: Any = None
    aliases: Tuple[str, ...] = ()
    unit: Optional[str] = None


class ValidationRules(FrozenCamelModel):
    min: Optional[float] = None
    max: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    required: bool = False
    message: Optional[str] = None


class DisplaySettings(FrozenCamelModel):
    order: int = 0
    group: Optional[str] = None
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    hidden: bool = False
    input_type: Optional[str] = None


class PropertyDefinitionCreate(CamelModel):
    key: str = Field(..., min_length=1, max_length=100, pattern=PROPERTY_KEY_PATTERN)
    label: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Category = "other"
    data_type: DataType
    unit: Optional[str] = None
    unit_system: UnitSystem = "imperial"
    normalization: Normalization = Normalization()
    enum_options: List[EnumOption] = []
    aliases: List[str] = []
    standard_values: List[StandardValue] = []
    validation: ValidationRules = ValidationRules()
    display: DisplaySettings = DisplaySettings()
    is_active: bool = True

    @field_validator("key", mode="before")
    @classmethod
    def _lower_key(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("aliases", mode="before")
    @classmethod
    def _lower_aliases(cls, v):
        return _clean_aliases(v)

    @field_validator("label")
    @classmethod
    def _strip_label(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("label must not be blank")
        return v.strip()

    @model_validator(mode="after")
    def _enum_needs_options(self):
        if self.data_type == "enum" and not self.enum_options:
            raise ValueError("enum properties require at least one enum option")
        return self


class PropertyDefinitionUpdate(CamelModel):
    """Partial update; `key` is immutable and ignored if sent."""

    label: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[Category] = None
    data_type: Optional[DataType] = None
    unit: Optional[str] = None
    unit_system: Optional[UnitSystem] = None
    normalization: Optional[Normalization] = None
    enum_options: Optional[List[EnumOption]] = None
    aliases: Optional[List[str]] = None
    standard_values: Optional[List[StandardValue]] = None
    validation: Optional[ValidationRules] = None
    display: Optional[DisplaySettings] = None
    is_active: Optional[bool] = None

    @field_validator("aliases", mode="before")
    @classmethod
    def _lower_aliases(cls, v):
        return None if v is None else _clean_aliases(v)


class PropertyDefinitionRead(FrozenCamelModel):
    """Immutable view of a stored definition; also the unit held by alias index snapshots."""

    id: Optional[str] = None
    key: str
    label: str = ""
    description: Optional[str] = None
    category: str = "other"
    data_type: str = "text"
    unit: Optional[str] = None
    unit_system: str = "imperial"
    normalization: Normalization = Normalization()
    enum_options: Tuple[EnumOption, ...] = ()
    aliases: Tuple[str, ...] = ()
    standard_values: Tuple[StandardValue, ...] = ()
    validation: ValidationRules = ValidationRules()
    display: DisplaySettings = DisplaySettings()
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("normalization", "validation", "display", mode="before")
    @classmethod
    def _none_to_default(cls, v):
        return {} if v is None else v

    @field_validator("enum_options", "aliases", "standard_values", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return () if v is None else v

    @classmethod
    def from_row(cls, obj: Any) -> "PropertyDefinitionRead":
        return cls.model_validate(row_to_dict(obj))


# ─── Product types ───────────────────────────────────────────────────────────

class SlotOption(CamelModel):
    value: str
    label: Optional[str] = None


class PropertySlot(CamelModel):
    key: str = Field(..., min_length=1)
    label: Optional[str] = None
    type: SlotType = "string"
    property_definition_id: Optional[str] = None
    unit: Optional[str] = None
    unit_system: Optional[UnitSystem] = None
    required: bool = False
    options: List[SlotOption] = []
    display: Optional[Dict[str, Any]] = None
    variant_key: bool = False


class VariantSettings(CamelModel):
    has_variants: bool = False
    variant_properties: List[str] = []


def _check_unique_slot_keys(slots: Optional[List[PropertySlot]]) -> None:
    if slots is None:
        return
    keys = [s.key for s in slots]
    if len(keys) != len(set(keys)):
        raise ValueError("Property keys must be unique")


class ProductTypeCreate(CamelModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    properties: List[PropertySlot] = []
    variant_settings: VariantSettings = VariantSettings()
    is_active: bool = True

    @model_validator(mode="after")
    def _validate(self):
        _check_unique_slot_keys(self.properties)
        if not self.slug:
            self.slug = slugify(self.name)
        return self


class ProductTypeUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    properties: Optional[List[PropertySlot]] = None
    variant_settings: Optional[VariantSettings] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _validate(self):
        _check_unique_slot_keys(self.properties)
        return self


class ProductTypeRead(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    properties: List[Dict[str, Any]] = []
    variant_settings: Dict[str, Any] = {}
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ─── Companies ───────────────────────────────────────────────────────────────

class ContactInfo(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    website: Optional[str] = None


class Address(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = "USA"


class CompanyCreate(CamelModel):
    name: str = Field(..., min_length=1)
    company_number: Optional[str] = None
    company_type: CompanyType = "supplier"
    contact: ContactInfo = ContactInfo()
    address: Address = Address()
    payment_terms: str = "Net 30"
    tax_id: Optional[str] = None
    supplier_info: Dict[str, Any] = {}
    notes: Optional[str] = None
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Company name is required")
        return v.strip()


class CompanyUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    company_number: Optional[str] = None
    company_type: Optional[CompanyType] = None
    contact: Optional[ContactInfo] = None
    address: Optional[Address] = None
    payment_terms: Optional[str] = None
    tax_id: Optional[str] = None
    supplier_info: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class CompanyRead(CamelModel):
    id: str
    name: str
    company_number: Optional[str] = None
    company_type: str
    contact: Dict[str, Any] = {}
    address: Dict[str, Any] = {}
    payment_terms: Optional[str] = None
    tax_id: Optional[str] = None
    supplier_info: Dict[str, Any] = {}
    notes: Optional[str] = None
    distributor_suppliers: List[Dict[str, Any]] = []
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ─── Products ────────────────────────────────────────────────────────────────

class ProductRead(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    internal_part_number: Optional[str] = None
    product_type_id: Optional[str] = None
    manufacturer_id: Optional[str] = None
    distributor_id: Optional[str] = None
    category: Optional[str] = None
    unit_of_measure: Optional[str] = None
    properties: Dict[str, Any] = {}
    properties_normalized: Dict[str, Any] = {}
    property_units: Dict[str, Any] = {}
    variants: List[Dict[str, Any]] = []
    suppliers: List[Dict[str, Any]] = []
    pricing: Dict[str, Any] = {}
    is_active: bool = True


def dump_row(schema: type, obj: Any) -> Dict[str, Any]:
    """Serialize an ORM row through a read schema, camelCase and JSON-safe."""
    data = {k: v for k, v in row_to_dict(obj).items() if v is not None}
    return schema.model_validate(data).model_dump(by_alias=True, mode="json")


def dump_doc(model: BaseModel) -> Dict[str, Any]:
    """Serialize a nested model for storage in a JSON column."""
    return model.model_dump(by_alias=True, mode="json", exclude_none=True)


def _to_column_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return dump_doc(value)
    if isinstance(value, (list, tuple)):
        return [_to_column_value(v) for v in value]
    return value


def model_columns(model: BaseModel, exclude_unset: bool = False) -> Dict[str, Any]:
    """Request model → ORM column values; nested models become camelCase JSON documents."""
    names = model.model_fields_set if exclude_unset else type(model).model_fields.keys()
    return {name: _to_column_value(getattr(model, name)) for name in names}

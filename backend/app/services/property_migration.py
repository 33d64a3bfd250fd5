"""
Property Migration Drivers - rewrite stored property keys onto canonical
PropertyDefinition keys.

One driver per entity kind. Each run loads a snapshot of the records, plans
the rewritten document for every record in memory, and persists each changed
record as a single UPDATE in its own transaction. Dry runs plan and log the
exact same changes without writing.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.models.catalog_schema import PropertyDefinitionRead, row_to_dict
from app.models.orm_models import Product, ProductType, PropertyDefinition, Specification
from app.models.property_values import NumberValue, to_typed_map
from app.services.exceptions import RecordValidationError
from app.services.property_index import AliasIndex, build_index, canonicalize
from app.services.unit_conversion import to_base

logger = logging.getLogger("catalog-migration")

# PropertyDefinition.dataType → ProductType slot type
SLOT_TYPE_BY_DATA_TYPE = {
    "text": "string",
    "fraction": "string",
    "number": "number",
    "boolean": "boolean",
    "date": "date",
    "enum": "enum",
}


# ── Stats ─────────────────────────────────────────────────────────────────────

@dataclass
class RecordError:
    record_id: str
    name: Optional[str]
    message: str

    def to_dict(self) -> dict:
        return {"record_id": self.record_id, "name": self.name, "message": self.message}


@dataclass
class MigrationStats:
    entity: str
    total: int = 0
    updated: int = 0
    properties_updated: int = 0
    variants_updated: int = 0
    errors: List[RecordError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "entity": self.entity,
            "total": self.total,
            "updated": self.updated,
            "properties_updated": self.properties_updated,
            "variants_updated": self.variants_updated,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class RecordChange:
    """Planned rewrite of one record: the full new column values plus bookkeeping."""

    record_id: str
    name: Optional[str]
    values: Dict[str, Any]
    properties_updated: int = 0
    variants_updated: int = 0
    notes: List[str] = field(default_factory=list)


# ── Map canonicalization ──────────────────────────────────────────────────────

def canonicalize_map(
    props: Optional[Dict[str, Any]], index: AliasIndex
) -> Tuple[Dict[str, Any], List[Tuple[str, str]]]:
    """
    Rewrite every key of a property map to its canonical key.

    Values are never touched. When two spellings land on the same canonical
    key with the same value the duplicate is dropped; with different values
    the later entry keeps its original key and a warning is logged.
    """
    props = props or {}
    canonical_present = {k for k in props if canonicalize(k, index) == k}
    result: Dict[str, Any] = {}
    renames: List[Tuple[str, str]] = []

    for key, value in props.items():
        target = canonicalize(key, index)
        if target != key and (target in canonical_present or target in result):
            existing = props[target] if target in canonical_present else result[target]
            if str(existing) == str(value):
                renames.append((key, target))
                continue
            logger.warning(
                f"Property '{key}' resolves to '{target}' which already holds a different value; kept as '{key}'"
            )
            result[key] = value
            continue
        result[target] = value
        if target != key:
            renames.append((key, target))
    return result, renames


def _dedupe(keys: Iterable[str]) -> List[str]:
    out: List[str] = []
    for k in keys:
        if k not in out:
            out.append(k)
    return out


# ── Planning ──────────────────────────────────────────────────────────────────

def link_slot(slot: Dict[str, Any], index: AliasIndex) -> Dict[str, Any]:
    """
    Canonicalize one ProductType slot and copy metadata from its definition.

    Existing slot metadata is never overwritten, except `type` which always
    follows the definition's dataType.
    """
    old_key = slot.get("key")
    new_key = canonicalize(old_key, index)
    new_slot = dict(slot)
    new_slot["key"] = new_key

    defn: Optional[PropertyDefinitionRead] = index.definition_for(new_key)
    if defn is None:
        return new_slot

    if not new_slot.get("label") or new_slot.get("label") == old_key:
        new_slot["label"] = defn.label
    slot_type = SLOT_TYPE_BY_DATA_TYPE.get(defn.data_type)
    if slot_type:
        new_slot["type"] = slot_type
    if defn.id and not new_slot.get("propertyDefinitionId"):
        new_slot["propertyDefinitionId"] = defn.id
    if defn.unit and not new_slot.get("unit"):
        new_slot["unit"] = defn.unit
        new_slot.setdefault("unitSystem", defn.unit_system)
    if defn.data_type == "enum" and defn.enum_options and not new_slot.get("options"):
        new_slot["options"] = [{"value": o.value, "label": o.label} for o in defn.enum_options]

    display = dict(new_slot.get("display") or {})
    if defn.display.placeholder and not display.get("placeholder"):
        display["placeholder"] = defn.display.placeholder
    if defn.description and not display.get("helpText"):
        display["helpText"] = defn.description
    if display != (new_slot.get("display") or {}):
        new_slot["display"] = display
    return new_slot


def plan_product_type(row: Dict[str, Any], index: AliasIndex) -> Optional[RecordChange]:
    slots = row.get("properties") or []
    new_slots = [link_slot(s, index) for s in slots]

    keys = [s.get("key") for s in new_slots]
    duplicates = sorted({k for k in keys if keys.count(k) > 1})
    if duplicates:
        raise RecordValidationError(
            f"Slots collapse onto duplicate keys after canonicalization: {', '.join(duplicates)}",
            record_id=row["id"],
        )

    change = RecordChange(record_id=row["id"], name=row.get("name"), values={})
    for old, new in zip(slots, new_slots):
        if new != old:
            change.properties_updated += 1
            if new.get("key") != old.get("key"):
                change.notes.append(f"{old.get('key')} → {new.get('key')}")
            else:
                change.notes.append(f"{new.get('key')}: linked definition metadata")
    if change.properties_updated:
        change.values["properties"] = new_slots

    settings = dict(row.get("variant_settings") or {})
    old_variant_props = settings.get("variantProperties") or []
    new_variant_props = _dedupe(canonicalize(k, index) for k in old_variant_props)
    if new_variant_props != old_variant_props:
        settings["variantProperties"] = new_variant_props
        change.values["variant_settings"] = settings
        change.notes.append(f"variantProperties: {old_variant_props} → {new_variant_props}")

    return change if change.values else None


def plan_product(row: Dict[str, Any], index: AliasIndex) -> Optional[RecordChange]:
    change = RecordChange(record_id=row["id"], name=row.get("name"), values={})

    new_props, renames = canonicalize_map(row.get("properties"), index)
    if new_props != (row.get("properties") or {}):
        change.values["properties"] = new_props
        change.properties_updated = len(renames)
        change.notes.extend(f"{old} → {new}" for old, new in renames)

    variants = row.get("variants") or []
    new_variants = []
    for variant in variants:
        v_props, v_renames = canonicalize_map(variant.get("properties"), index)
        if v_props != (variant.get("properties") or {}):
            variant = {**variant, "properties": v_props}
            change.variants_updated += len(v_renames)
            change.notes.extend(
                f"variant {variant.get('sku') or '?'}: {old} → {new}" for old, new in v_renames
            )
        new_variants.append(variant)
    if new_variants != variants:
        change.values["variants"] = new_variants

    return change if change.values else None


def plan_specification(row: Dict[str, Any], index: AliasIndex) -> Optional[RecordChange]:
    change = RecordChange(record_id=row["id"], name=row.get("name"), values={})

    new_required, renames = canonicalize_map(row.get("required_properties"), index)
    if new_required != (row.get("required_properties") or {}):
        change.values["required_properties"] = new_required
        change.properties_updated += len(renames)
        change.notes.extend(f"{old} → {new}" for old, new in renames)

    rules = row.get("property_matching_rules") or []
    new_rules = []
    for rule in rules:
        key = rule.get("propertyKey")
        target = canonicalize(key, index)
        if target != key:
            rule = {**rule, "propertyKey": target}
            change.properties_updated += 1
            change.notes.append(f"rule {key} → {target}")
        new_rules.append(rule)
    if new_rules != rules:
        change.values["property_matching_rules"] = new_rules

    return change if change.values else None


def normalized_maps(
    props: Dict[str, Any], index: AliasIndex
) -> Tuple[Dict[str, float], Dict[str, str]]:
    """
    Numeric values in base units plus their unit codes, rebuilt from the display values.

    Only number/fraction properties that still parse are present, so a value
    that stopped parsing also drops its normalized counterpart.
    """
    normalized: Dict[str, float] = {}
    units: Dict[str, str] = {}
    for key, typed in to_typed_map(props, index).items():
        defn = index.definition_for(key)
        if defn is None or defn.data_type not in ("number", "fraction"):
            continue
        if not isinstance(typed, NumberValue):
            continue
        value, unit = to_base(typed.value, defn.unit)
        normalized[key] = value
        if unit:
            units[key] = unit
    return normalized, units


def _changed_keys(old: Optional[Dict[str, Any]], new: Dict[str, Any]) -> set:
    old = old or {}
    return {k for k in set(old) | set(new) if old.get(k) != new.get(k)}


def _diff_normalized(props, old_normalized, old_units, index) -> Tuple[Dict[str, float], Dict[str, str], int]:
    normalized, units = normalized_maps(props, index)
    changed = _changed_keys(old_normalized, normalized) | _changed_keys(old_units, units)
    return normalized, units, len(changed)


def plan_normalized_values(row: Dict[str, Any], index: AliasIndex) -> Optional[RecordChange]:
    """Rebuild properties_normalized/property_units from each canonical property's definition."""
    change = RecordChange(record_id=row["id"], name=row.get("name"), values={})

    normalized, units, changed = _diff_normalized(
        row.get("properties") or {}, row.get("properties_normalized"), row.get("property_units"), index
    )
    if changed:
        change.values["properties_normalized"] = normalized
        change.values["property_units"] = units
        change.properties_updated = changed

    variants = row.get("variants") or []
    new_variants = []
    for variant in variants:
        v_norm, v_units, v_changed = _diff_normalized(
            variant.get("properties") or {},
            variant.get("propertiesNormalized"),
            variant.get("propertyUnits"),
            index,
        )
        if v_changed:
            variant = {**variant, "propertiesNormalized": v_norm, "propertyUnits": v_units}
            change.variants_updated += v_changed
        new_variants.append(variant)
    if new_variants != variants:
        change.values["variants"] = new_variants

    return change if change.values else None


# ── Drivers ───────────────────────────────────────────────────────────────────

async def load_index(session_factory: async_sessionmaker) -> AliasIndex:
    """Snapshot the active property definitions into an alias index."""
    async with session_factory() as session:
        result = await session.execute(
            select(PropertyDefinition)
            .where(PropertyDefinition.is_active.is_(True))
            .order_by(PropertyDefinition.key)
        )
        definitions = [PropertyDefinitionRead.from_row(d) for d in result.scalars().all()]
    index = build_index(definitions)
    logger.info(f"Loaded {len(definitions)} property definitions ({len(index)} spellings)")
    return index


class MigrationDriver:
    """Loads every record of one model, plans each rewrite, and persists it."""

    entity = ""
    model: Any = None

    def plan(self, row: Dict[str, Any], index: AliasIndex) -> Optional[RecordChange]:
        raise NotImplementedError

    async def load_rows(self, session_factory: async_sessionmaker) -> List[Dict[str, Any]]:
        async with session_factory() as session:
            result = await session.execute(select(self.model).order_by(self.model.created_at, self.model.id))
            return [row_to_dict(r) for r in result.scalars().all()]

    async def persist(self, session_factory: async_sessionmaker, change: RecordChange) -> None:
        async with session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(self.model).where(self.model.id == change.record_id).values(**change.values)
                )

    async def migrate(
        self,
        session_factory: async_sessionmaker,
        index: AliasIndex,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> MigrationStats:
        stats = MigrationStats(entity=self.entity)
        start = time.perf_counter()
        rows = await self.load_rows(session_factory)
        stats.total = len(rows)
        mode = " (dry-run)" if dry_run else ""
        detail_level = logging.INFO if verbose else logging.DEBUG

        for row in rows:
            record_id = str(row["id"])
            name = row.get("name")
            try:
                change = self.plan(row, index)
                if change is None:
                    continue
                for note in change.notes:
                    logger.log(detail_level, f"  {name}: {note}", extra={"record_id": record_id})
                if not dry_run:
                    await self.persist(session_factory, change)
            except Exception as e:
                stats.errors.append(RecordError(record_id=record_id, name=name, message=str(e)))
                logger.error(
                    f"{self.entity} '{name}' failed: {e}",
                    extra={"record_id": record_id, "entity": self.entity},
                )
                continue

            stats.updated += 1
            stats.properties_updated += change.properties_updated
            stats.variants_updated += change.variants_updated
            logger.info(
                f"{name}: updated {change.properties_updated} properties"
                + (f", {change.variants_updated} variant properties" if change.variants_updated else "")
                + mode,
                extra={"record_id": record_id, "entity": self.entity},
            )

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            f"{self.entity}: {stats.updated}/{stats.total} updated, "
            f"{stats.properties_updated} properties, {len(stats.errors)} errors{mode}",
            extra={"entity": self.entity, "duration_ms": duration_ms},
        )
        return stats


class ProductTypeMigrationDriver(MigrationDriver):
    entity = "product_types"
    model = ProductType

    def plan(self, row, index):
        return plan_product_type(row, index)


class ProductMigrationDriver(MigrationDriver):
    entity = "products"
    model = Product

    def plan(self, row, index):
        return plan_product(row, index)


class SpecificationMigrationDriver(MigrationDriver):
    entity = "specifications"
    model = Specification

    def plan(self, row, index):
        return plan_specification(row, index)


class ValueNormalizationDriver(MigrationDriver):
    entity = "products"
    model = Product

    def plan(self, row, index):
        return plan_normalized_values(row, index)


KEY_MIGRATION_DRIVERS = {
    "product-types": ProductTypeMigrationDriver,
    "products": ProductMigrationDriver,
    "specifications": SpecificationMigrationDriver,
}


async def run_property_migration(
    session_factory: async_sessionmaker,
    dry_run: bool = False,
    verbose: bool = False,
    only: Optional[List[str]] = None,
) -> Dict[str, MigrationStats]:
    """Run the key drivers in dependency order against one alias index snapshot."""
    index = await load_index(session_factory)
    results: Dict[str, MigrationStats] = {}
    for name, driver_cls in KEY_MIGRATION_DRIVERS.items():
        if only and name not in only:
            continue
        results[name] = await driver_cls().migrate(session_factory, index, dry_run=dry_run, verbose=verbose)
    return results


async def run_value_normalization(
    session_factory: async_sessionmaker, dry_run: bool = False, verbose: bool = False
) -> MigrationStats:
    index = await load_index(session_factory)
    return await ValueNormalizationDriver().migrate(session_factory, index, dry_run=dry_run, verbose=verbose)

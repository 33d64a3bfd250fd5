"""
Distributor/manufacturer relationship repair for pricebook-imported products.

Classifies every active product from its pricebook metadata, then fixes its
distributor and manufacturer references, collapses duplicate supplier
entries, and records the manufacturer under the distributor's
distributor_suppliers. All writes for one product share a transaction and are
counted only after it commits. Products no rule can place are reported for
manual review and left untouched.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.models.catalog_schema import row_to_dict
from app.models.orm_models import Company, Product, gen_uuid
from app.services.distributor_rules import (
    CROSSROADS,
    NEEDS_REVIEW_REASON,
    Classification,
    PricebookInfo,
    classify,
    ensure_supplier_entry,
    merge_supplier_entries,
)
from app.services.property_migration import RecordError

logger = logging.getLogger("catalog-repair")


@dataclass
class RepairStats:
    total: int = 0
    updated: int = 0
    fixed_distributor: int = 0
    fixed_manufacturer: int = 0
    fixed_supplier_entries: int = 0
    merged_supplier_entries: int = 0
    created_relationships: int = 0
    created_companies: List[str] = field(default_factory=list)
    needs_review: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[RecordError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "updated": self.updated,
            "fixed_distributor": self.fixed_distributor,
            "fixed_manufacturer": self.fixed_manufacturer,
            "fixed_supplier_entries": self.fixed_supplier_entries,
            "merged_supplier_entries": self.merged_supplier_entries,
            "created_relationships": self.created_relationships,
            "created_companies": list(self.created_companies),
            "needs_review": list(self.needs_review),
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class RepairPlan:
    """Everything one product's repair writes; persisted in a single transaction."""

    record_id: str
    values: Dict[str, Any] = field(default_factory=dict)
    new_companies: List[Dict[str, Any]] = field(default_factory=list)
    distributor: Optional[Dict[str, Any]] = None
    distributor_links: Optional[List[Dict[str, Any]]] = None
    fixed_distributor: bool = False
    fixed_manufacturer: bool = False
    fixed_supplier_entries: bool = False
    merged_supplier_entries: int = 0

    @property
    def has_writes(self) -> bool:
        return bool(self.values or self.new_companies or self.distributor_links is not None)


class CompanyDirectory:
    """In-memory view of companies for one run; plans missing ones and applies them once written."""

    def __init__(self, rows: List[Dict[str, Any]]):
        self.by_id: Dict[str, Dict[str, Any]] = {str(r["id"]): r for r in rows}
        self.created: List[str] = []

    def find(
        self, name: str, company_type: str, pending: Optional[List[Dict[str, Any]]] = None
    ) -> Optional[Dict[str, Any]]:
        wanted = name.lower()
        for row in [*self.by_id.values(), *(pending or [])]:
            if row.get("company_type") != company_type:
                continue
            current = (row.get("name") or "").lower()
            # any Crossroads spelling is the same distributor
            if current == wanted or (name == CROSSROADS and "crossroads" in current):
                return row
        return None

    def resolve(self, name: str, company_type: str, pending: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Existing company row, or a new one appended to `pending` until the product is written."""
        row = self.find(name, company_type, pending)
        if row is None:
            row = {
                "id": gen_uuid(),
                "name": name,
                "company_type": company_type,
                "is_active": True,
                "distributor_suppliers": [],
            }
            pending.append(row)
        return row

    def name_of(self, company_id: Optional[str]) -> Optional[str]:
        if not company_id:
            return None
        row = self.by_id.get(str(company_id))
        return row.get("name") if row else None

    @staticmethod
    def plan_link(distributor: Dict[str, Any], manufacturer_id: str) -> Optional[List[Dict[str, Any]]]:
        """Distributor supplier list with the manufacturer added; None when already present."""
        links = list(distributor.get("distributor_suppliers") or [])
        if any(str(link.get("supplierId")) == str(manufacturer_id) for link in links):
            return None
        links.append({
            "supplierId": manufacturer_id,
            "isActive": True,
            "addedDate": datetime.now(timezone.utc).isoformat(),
        })
        return links

    def apply(self, plan: RepairPlan) -> None:
        for row in plan.new_companies:
            self.by_id[str(row["id"])] = row
            self.created.append(row["name"])
        if plan.distributor_links is not None:
            plan.distributor["distributor_suppliers"] = plan.distributor_links


def repair_suppliers(
    row: Dict[str, Any], distributor_id: str, manufacturer_id: Optional[str]
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]], int]:
    """New product suppliers, new variants, and the count of merged duplicate entries."""
    old_suppliers = row.get("suppliers") or []
    suppliers = merge_supplier_entries(old_suppliers)
    merged = len(old_suppliers) - len(suppliers)
    if manufacturer_id:
        suppliers = ensure_supplier_entry(suppliers, distributor_id, manufacturer_id, row.get("pricing"))

    variants = []
    for variant in row.get("variants") or []:
        v_suppliers = variant.get("suppliers") or []
        v_merged = merge_supplier_entries(v_suppliers)
        if len(v_merged) != len(v_suppliers):
            merged += len(v_suppliers) - len(v_merged)
            variant = {**variant, "suppliers": v_merged}
        variants.append(variant)
    return suppliers, variants, merged


def plan_repair(row: Dict[str, Any], verdict: Classification, directory: CompanyDirectory) -> RepairPlan:
    plan = RepairPlan(record_id=str(row["id"]))
    distributor = directory.resolve(verdict.distributor, "distributor", plan.new_companies)
    manufacturer = (
        directory.resolve(verdict.manufacturer, "supplier", plan.new_companies) if verdict.manufacturer else None
    )
    distributor_id = str(distributor["id"])
    manufacturer_id = str(manufacturer["id"]) if manufacturer else None

    if str(row.get("distributor_id")) != distributor_id:
        plan.values["distributor_id"] = distributor_id
        plan.fixed_distributor = True
    if manufacturer_id and str(row.get("manufacturer_id")) != manufacturer_id:
        plan.values["manufacturer_id"] = manufacturer_id
        plan.fixed_manufacturer = True

    suppliers, variants, merged = repair_suppliers(row, distributor_id, manufacturer_id)
    if suppliers != (row.get("suppliers") or []):
        plan.values["suppliers"] = suppliers
        plan.fixed_supplier_entries = True
    if variants != (row.get("variants") or []):
        plan.values["variants"] = variants
    plan.merged_supplier_entries = merged

    if manufacturer_id:
        plan.distributor = distributor
        plan.distributor_links = directory.plan_link(distributor, manufacturer_id)
    return plan


async def persist_repair(session_factory: async_sessionmaker, plan: RepairPlan) -> None:
    """New companies, the distributor link and the product update commit or roll back together."""
    async with session_factory() as session:
        async with session.begin():
            for company in plan.new_companies:
                session.add(Company(**company))
            await session.flush()
            if plan.distributor_links is not None:
                await session.execute(
                    update(Company)
                    .where(Company.id == plan.distributor["id"])
                    .values(distributor_suppliers=plan.distributor_links)
                )
            if plan.values:
                await session.execute(update(Product).where(Product.id == plan.record_id).values(**plan.values))


async def repair_relationships(
    session_factory: async_sessionmaker, dry_run: bool = False, verbose: bool = False
) -> RepairStats:
    stats = RepairStats()
    detail_level = logging.INFO if verbose else logging.DEBUG
    mode = " (dry-run)" if dry_run else ""

    async with session_factory() as session:
        companies = [row_to_dict(c) for c in (await session.execute(select(Company))).scalars().all()]
        result = await session.execute(
            select(Product).where(Product.is_active.is_(True)).order_by(Product.created_at, Product.id)
        )
        products = [row_to_dict(p) for p in result.scalars().all()]

    directory = CompanyDirectory(companies)
    stats.total = len(products)

    for row in products:
        record_id = str(row["id"])
        name = row.get("name")
        try:
            info = PricebookInfo.from_product(row)
            verdict = classify(info, current_manufacturer=directory.name_of(row.get("manufacturer_id")))
            if verdict.needs_review:
                stats.needs_review.append({"productId": record_id, "productName": name, "reason": NEEDS_REVIEW_REASON})
                logger.log(detail_level, f"  {name}: needs manual review", extra={"record_id": record_id})
                continue

            plan = plan_repair(row, verdict, directory)
            if not plan.has_writes:
                continue
            if plan.values:
                logger.log(
                    detail_level,
                    f"  {name}: {verdict.distributor} / {verdict.manufacturer} "
                    f"({verdict.distributor_rule}, {verdict.manufacturer_rule}) fixes {sorted(plan.values)}",
                    extra={"record_id": record_id},
                )
            if not dry_run:
                await persist_repair(session_factory, plan)
        except Exception as e:
            stats.errors.append(RecordError(record_id=record_id, name=name, message=str(e)))
            logger.error(f"Product '{name}' failed: {e}", extra={"record_id": record_id, "entity": "products"})
            continue

        directory.apply(plan)
        for company in plan.new_companies:
            logger.info(f"Created {company['company_type']} company '{company['name']}'{mode}",
                        extra={"record_id": str(company["id"])})
        stats.fixed_distributor += plan.fixed_distributor
        stats.fixed_manufacturer += plan.fixed_manufacturer
        stats.fixed_supplier_entries += plan.fixed_supplier_entries
        stats.merged_supplier_entries += plan.merged_supplier_entries
        if plan.distributor_links is not None:
            stats.created_relationships += 1
        if plan.values:
            stats.updated += 1

    stats.created_companies = list(directory.created)
    logger.info(
        f"Relationship repair: {stats.updated}/{stats.total} products updated, "
        f"{len(stats.needs_review)} need review, {len(stats.errors)} errors{mode}"
    )
    return stats

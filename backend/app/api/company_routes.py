"""Company routes: suppliers, distributors, manufacturers and customers."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from app.db import get_db
from app.api.deps import bad_request, not_found, ok, parse_id
from app.models.catalog_schema import CompanyCreate, CompanyRead, CompanyUpdate, dump_row, model_columns
from app.models.orm_models import Company, Product

router = APIRouter(prefix="/api/companies", tags=["Companies"])
logger = logging.getLogger("catalog-api")

AUTOCOMPLETE_MIN_CHARS = 2
AUTOCOMPLETE_LIMIT = 10


def _search_clause(text: str):
    pattern = f"%{text.strip()}%"
    return or_(Company.name.ilike(pattern), Company.company_number.ilike(pattern), Company.notes.ilike(pattern))


async def _get_or_404(db: AsyncSession, company_id: str) -> Company:
    company = await db.get(Company, parse_id(company_id, "company"))
    if not company:
        raise not_found("Company")
    return company


@router.get("")
async def list_companies(
    company_type: Optional[str] = Query(None, alias="companyType"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    query = select(Company)
    if company_type:
        query = query.where(Company.company_type == company_type)
    if is_active is not None:
        query = query.where(Company.is_active.is_(is_active))
    if search:
        query = query.where(_search_clause(search))
    rows = (await db.execute(query.order_by(Company.name))).scalars().all()
    return ok([dump_row(CompanyRead, c) for c in rows], count=len(rows))


@router.get("/search/autocomplete")
async def autocomplete_companies(
    q: Optional[str] = None,
    company_type: Optional[str] = Query(None, alias="companyType"),
    db: AsyncSession = Depends(get_db),
):
    if not q or len(q.strip()) < AUTOCOMPLETE_MIN_CHARS:
        return ok([])
    query = select(Company).where(_search_clause(q), Company.is_active.is_(True))
    if company_type:
        query = query.where(Company.company_type == company_type)
    rows = (await db.execute(query.order_by(Company.name).limit(AUTOCOMPLETE_LIMIT))).scalars().all()
    return ok([
        {
            "id": c.id,
            "name": c.name,
            "companyType": c.company_type,
            "email": (c.contact or {}).get("email"),
            "phone": (c.contact or {}).get("phone"),
        }
        for c in rows
    ])


@router.get("/{company_id}")
async def get_company(company_id: str, db: AsyncSession = Depends(get_db)):
    return ok(dump_row(CompanyRead, await _get_or_404(db, company_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_company(body: CompanyCreate, db: AsyncSession = Depends(get_db)):
    company = Company(**model_columns(body))
    db.add(company)
    await db.flush()
    logger.info(f"Company created: {company.name}", extra={"record_id": company.id})
    return ok(dump_row(CompanyRead, company), message="Company created successfully")


@router.patch("/{company_id}")
async def update_company(company_id: str, body: CompanyUpdate, db: AsyncSession = Depends(get_db)):
    company = await _get_or_404(db, company_id)
    changes = model_columns(body, exclude_unset=True)
    if "name" in changes and not (changes["name"] or "").strip():
        raise bad_request("Company name is required")
    for name, value in changes.items():
        if value is None and name in ("name", "company_type", "is_active"):
            continue
        setattr(company, name, value)
    await db.flush()
    logger.info(f"Company updated: {company.name}", extra={"record_id": company.id})
    return ok(dump_row(CompanyRead, company), message="Company updated successfully")


@router.delete("/{company_id}")
async def delete_company(company_id: str, db: AsyncSession = Depends(get_db)):
    company = await _get_or_404(db, company_id)
    referenced = await db.scalar(
        select(func.count(Product.id)).where(
            or_(Product.manufacturer_id == company.id, Product.distributor_id == company.id)
        )
    )
    if referenced:
        raise bad_request(f"Cannot delete company. {referenced} product(s) reference this company.")
    await db.delete(company)
    await db.flush()
    logger.info(f"Company deleted: {company.name}", extra={"record_id": company.id})
    return ok(message="Company deleted successfully")


@router.get("/{company_id}/products")
async def list_company_products(company_id: str, db: AsyncSession = Depends(get_db)):
    """Active products made by this company, directly or through a supplier entry."""
    company = await _get_or_404(db, company_id)
    rows = (await db.execute(
        select(Product).where(Product.is_active.is_(True)).order_by(Product.name)
    )).scalars().all()

    products = []
    for product in rows:
        entries = [s for s in product.suppliers or [] if str(s.get("manufacturerId")) == company.id]
        if str(product.manufacturer_id) != company.id and not entries:
            continue
        entry = next((s for s in entries if s.get("isPreferred")), entries[0] if entries else {})
        products.append({
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "internalPartNumber": product.internal_part_number,
            "unitOfMeasure": product.unit_of_measure,
            "category": product.category,
            "supplierPartNumber": entry.get("supplierPartNumber") or "",
            "listPrice": entry.get("listPrice"),
            "netPrice": entry.get("netPrice"),
            "isPreferred": bool(entry.get("isPreferred")),
        })
    return ok(products, count=len(products))

"""
test_company_routes.py - HTTP tests for /api/companies.

Tests cover:
  - create/read round trip with camelCase contact documents
  - list filters (companyType, search)
  - autocomplete minimum query length and result shape
  - delete blocked while products reference the company
  - products made by a company, directly or via supplier entries
"""

from app.models.orm_models import Company, Product

BASE = "/api/companies"


class TestCrud:

    async def test_create_and_get(self, client):
        resp = await client.post(BASE, json={
            "name": "  Johns Manville ",
            "companyType": "supplier",
            "contact": {"email": "orders@jm.example", "phone": "555-0100"},
            "address": {"city": "Denver", "zipCode": "80202"},
        })
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["name"] == "Johns Manville"
        assert data["address"] == {"city": "Denver", "zipCode": "80202", "country": "USA"}

        fetched = (await client.get(f"{BASE}/{data['id']}")).json()["data"]
        assert fetched["contact"]["email"] == "orders@jm.example"
        assert fetched["paymentTerms"] == "Net 30"

    async def test_blank_name(self, client):
        resp = await client.post(BASE, json={"name": "   "})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Company name is required"

    async def test_list_filters(self, client, seed):
        await seed(
            Company(name="IMPRO", company_type="distributor"),
            Company(name="Crossroads C&I", company_type="distributor", notes="Houston branch"),
            Company(name="Armacell", company_type="supplier"),
        )
        distributors = (await client.get(BASE, params={"companyType": "distributor"})).json()
        assert [c["name"] for c in distributors["data"]] == ["Crossroads C&I", "IMPRO"]
        found = (await client.get(BASE, params={"search": "houston"})).json()
        assert found["count"] == 1

    async def test_patch(self, client, seed):
        company = Company(name="Rockwool")
        await seed(company)
        resp = await client.patch(f"{BASE}/{company.id}", json={"companyType": "distributor", "notes": "ROXUL"})
        data = resp.json()["data"]
        assert data["companyType"] == "distributor"
        assert data["notes"] == "ROXUL"
        assert data["name"] == "Rockwool"


class TestAutocomplete:

    async def test_short_query_returns_empty(self, client, seed):
        await seed(Company(name="Armacell"))
        resp = await client.get(f"{BASE}/search/autocomplete", params={"q": "a"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "data": []}

    async def test_result_shape(self, client, seed):
        await seed(
            Company(name="Armacell", contact={"email": "sales@armacell.example"}),
            Company(name="Armstrong", is_active=False),
        )
        resp = await client.get(f"{BASE}/search/autocomplete", params={"q": "arm"})
        data = resp.json()["data"]
        assert len(data) == 1
        assert set(data[0]) == {"id", "name", "companyType", "email", "phone"}
        assert data[0]["email"] == "sales@armacell.example"
        assert data[0]["phone"] is None


class TestCompanyProducts:

    async def test_delete_blocked_while_referenced(self, client, seed):
        company = Company(name="Johns Manville")
        await seed(company)
        await seed(Product(name="Micro-Lok", manufacturer_id=company.id))
        resp = await client.delete(f"{BASE}/{company.id}")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot delete company. 1 product(s) reference this company."

    async def test_products_direct_and_via_supplier_entry(self, client, seed):
        jm = Company(name="Johns Manville")
        distributor = Company(name="Crossroads C&I", company_type="distributor")
        await seed(jm, distributor)
        await seed(
            Product(name="Micro-Lok", manufacturer_id=jm.id, internal_part_number="ML-1"),
            Product(
                name="Duct Wrap",
                suppliers=[
                    {"distributorId": distributor.id, "manufacturerId": jm.id, "supplierPartNumber": "DW-75",
                     "listPrice": 40.0, "netPrice": 32.0, "isPreferred": True},
                ],
            ),
            Product(name="Armaflex"),
        )
        body = (await client.get(f"{BASE}/{jm.id}/products")).json()
        assert body["count"] == 2
        by_name = {p["name"]: p for p in body["data"]}
        assert by_name["Micro-Lok"]["internalPartNumber"] == "ML-1"
        assert by_name["Micro-Lok"]["supplierPartNumber"] == ""
        assert by_name["Duct Wrap"]["supplierPartNumber"] == "DW-75"
        assert by_name["Duct Wrap"]["netPrice"] == 32.0
        assert by_name["Duct Wrap"]["isPreferred"] is True

    async def test_unknown_company(self, client):
        resp = await client.get(f"{BASE}/00000000-0000-0000-0000-000000000000/products")
        assert resp.status_code == 404

"""
Integration tests for CRM endpoints.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import AuditLog, User

pytestmark = pytest.mark.integration


async def create_customer(client: AsyncClient, headers: dict, **overrides) -> dict:
    payload = {"company_name": "Globex GmbH", "industry": "Manufacturing"}
    payload.update(overrides)
    response = await client.post("/api/v1/crm/customers", headers=headers, json=payload)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
class TestCustomers:
    """Test /api/v1/crm/customers."""

    async def test_create_customer_defaults(
        self, client: AsyncClient, test_db: AsyncSession, member_headers: dict, test_user_member: User
    ):
        customer = await create_customer(client, member_headers)

        assert customer["status"] == "ACTIVE"
        assert customer["owner_id"] == str(test_user_member.id)
        assert customer["organization_id"] == str(test_user_member.organization_id)

        log = (await test_db.execute(select(AuditLog))).scalar_one()
        assert log.action == "CUSTOMER_CREATED"
        assert log.resource_id == customer["id"]

    async def test_list_search_and_paginate(self, client: AsyncClient, admin_headers: dict):
        for name in ("Alpha AG", "Beta KG", "Gamma GmbH"):
            await create_customer(client, admin_headers, company_name=name)

        response = await client.get(
            "/api/v1/crm/customers", headers=admin_headers, params={"limit": 2, "page": 2}
        )
        data = response.json()
        assert data["pagination"] == {"total": 3, "page": 2, "limit": 2, "pages": 2}
        assert len(data["customers"]) == 1

        response = await client.get("/api/v1/crm/customers", headers=admin_headers, params={"search": "beta"})
        assert [c["company_name"] for c in response.json()["customers"]] == ["Beta KG"]

    async def test_status_filter(self, client: AsyncClient, admin_headers: dict):
        await create_customer(client, admin_headers, company_name="Active One")
        await create_customer(client, admin_headers, company_name="Prospect One", status="PROSPECT")

        response = await client.get(
            "/api/v1/crm/customers", headers=admin_headers, params={"status": "PROSPECT"}
        )
        assert [c["company_name"] for c in response.json()["customers"]] == ["Prospect One"]

        response = await client.get("/api/v1/crm/customers", headers=admin_headers, params={"status": "all"})
        assert response.json()["pagination"]["total"] == 2

    async def test_invalid_status_is_rejected(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/crm/customers",
            headers=admin_headers,
            json={"company_name": "Broken", "status": "UNKNOWN"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    async def test_update_customer(self, client: AsyncClient, admin_headers: dict):
        customer = await create_customer(client, admin_headers)

        response = await client.put(
            f"/api/v1/crm/customers/{customer['id']}",
            headers=admin_headers,
            json={"phone": "+49 30 123456"},
        )

        assert response.status_code == 200
        assert response.json()["phone"] == "+49 30 123456"
        assert response.json()["company_name"] == "Globex GmbH"

    async def test_member_cannot_delete(self, client: AsyncClient, member_headers: dict):
        customer = await create_customer(client, member_headers)

        response = await client.delete(f"/api/v1/crm/customers/{customer['id']}", headers=member_headers)

        assert response.status_code == 403
        assert response.json()["error"] == "Permission denied: crm:delete required"

    async def test_soft_delete(self, client: AsyncClient, admin_headers: dict):
        customer = await create_customer(client, admin_headers)

        response = await client.delete(f"/api/v1/crm/customers/{customer['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/crm/customers/{customer['id']}", headers=admin_headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Customer not found"}

        response = await client.get("/api/v1/crm/customers", headers=admin_headers)
        assert response.json()["customers"] == []

    async def test_other_tenant_cannot_read(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        customer = await create_customer(client, admin_headers)

        response = await client.get(f"/api/v1/crm/customers/{customer['id']}", headers=other_headers)
        assert response.status_code == 404

        response = await client.get("/api/v1/crm/customers", headers=other_headers)
        assert response.json()["pagination"]["total"] == 0

    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get("/api/v1/crm/customers")

        assert response.status_code == 401


@pytest.mark.asyncio
class TestContactsAndLeads:
    async def test_contact_full_name(self, client: AsyncClient, admin_headers: dict):
        customer = await create_customer(client, admin_headers)

        response = await client.post(
            "/api/v1/crm/contacts",
            headers=admin_headers,
            json={"first_name": "Erika", "last_name": "Mustermann", "customer_id": customer["id"]},
        )

        assert response.status_code == 201
        assert response.json()["full_name"] == "Erika Mustermann"

        response = await client.get(
            "/api/v1/crm/contacts", headers=admin_headers, params={"customer_id": customer["id"]}
        )
        assert response.json()["pagination"]["total"] == 1

    async def test_lead_score_bounds(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/crm/leads",
            headers=admin_headers,
            json={"first_name": "Max", "last_name": "Muster", "score": 101},
        )

        assert response.status_code == 400

    async def test_lead_update(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/crm/leads",
            headers=admin_headers,
            json={"first_name": "Max", "last_name": "Muster", "source": "WEBSITE"},
        )
        lead = response.json()
        assert lead["status"] == "NEW"

        response = await client.put(
            f"/api/v1/crm/leads/{lead['id']}",
            headers=admin_headers,
            json={"status": "QUALIFIED", "score": 80},
        )

        assert response.json()["status"] == "QUALIFIED"
        assert response.json()["score"] == 80


@pytest.mark.asyncio
class TestDeals:
    """Test /api/v1/crm/deals."""

    async def test_create_deal_defaults(self, client: AsyncClient, admin_headers: dict):
        customer = await create_customer(client, admin_headers)

        response = await client.post(
            "/api/v1/crm/deals",
            headers=admin_headers,
            json={"name": "ERP rollout", "amount": 48000, "customer_id": customer["id"]},
        )

        assert response.status_code == 201
        deal = response.json()
        assert deal["status"] == "OPEN"
        assert deal["currency"] == "EUR"
        assert deal["probability"] == 0

    async def test_customer_of_other_tenant_is_rejected(
        self, client: AsyncClient, admin_headers: dict, other_headers: dict
    ):
        foreign = await create_customer(client, other_headers)

        response = await client.post(
            "/api/v1/crm/deals",
            headers=admin_headers,
            json={"name": "Sneaky", "amount": 1, "customer_id": foreign["id"]},
        )

        assert response.status_code == 404

    async def test_owner_of_other_tenant_is_rejected(
        self, client: AsyncClient, admin_headers: dict, test_user_member: User, other_user_admin: User
    ):
        response = await client.post(
            "/api/v1/crm/deals",
            headers=admin_headers,
            json={"name": "Sneaky", "amount": 1, "owner_id": str(other_user_admin.id)},
        )
        assert response.status_code == 404
        assert response.json()["error"] == "User not found"

        customer = await create_customer(client, admin_headers, owner_id=str(test_user_member.id))
        assert customer["owner_id"] == str(test_user_member.id)

        response = await client.put(
            f"/api/v1/crm/customers/{customer['id']}",
            headers=admin_headers,
            json={"owner_id": str(other_user_admin.id)},
        )
        assert response.status_code == 404

    async def test_closing_deal_stamps_close_date(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/crm/deals", headers=admin_headers, json={"name": "Quick win", "amount": 900}
        )
        deal = response.json()
        assert deal["actual_close_date"] is None

        response = await client.put(
            f"/api/v1/crm/deals/{deal['id']}", headers=admin_headers, json={"status": "WON"}
        )

        assert response.json()["status"] == "WON"
        assert response.json()["actual_close_date"] is not None

    async def test_negative_amount_is_rejected(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/crm/deals", headers=admin_headers, json={"name": "Broken", "amount": -5}
        )

        assert response.status_code == 400

    async def test_filter_by_status(self, client: AsyncClient, admin_headers: dict):
        await client.post("/api/v1/crm/deals", headers=admin_headers, json={"name": "Open deal", "amount": 1})
        await client.post(
            "/api/v1/crm/deals", headers=admin_headers, json={"name": "Lost deal", "amount": 1, "status": "LOST"}
        )

        response = await client.get("/api/v1/crm/deals", headers=admin_headers, params={"status": "OPEN"})

        assert [d["name"] for d in response.json()["deals"]] == ["Open deal"]


@pytest.mark.asyncio
class TestOpportunitiesAndActivities:
    async def test_opportunity_lifecycle(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/crm/opportunities",
            headers=admin_headers,
            json={"name": "Upsell support plan", "value": 12000},
        )
        assert response.status_code == 201
        opportunity = response.json()

        response = await client.delete(
            f"/api/v1/crm/opportunities/{opportunity['id']}", headers=admin_headers
        )
        assert response.status_code == 204

    async def test_activity_for_customer(self, client: AsyncClient, admin_headers: dict):
        customer = await create_customer(client, admin_headers)

        response = await client.post(
            "/api/v1/crm/activities",
            headers=admin_headers,
            json={"type": "CALL", "subject": "Kickoff call", "customer_id": customer["id"]},
        )
        assert response.status_code == 201

        response = await client.get("/api/v1/crm/activities", headers=admin_headers)
        assert response.json()["pagination"]["total"] == 1

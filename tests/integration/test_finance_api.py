"""
Integration tests for finance endpoints.
"""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.integration

INVOICE = {
    "invoice_number": "INV-2026-001",
    "customer_name": "Globex GmbH",
    "customer_email": "billing@globex.com",
    "issue_date": "2026-03-01",
    "due_date": "2026-03-31",
    "items": [
        {"description": "Consulting", "quantity": 2, "unit_price": 500, "tax_rate": 19},
        {"description": "Travel", "quantity": 5, "unit_price": 110},
    ],
}


async def create_budget(client: AsyncClient, headers: dict, amount: float = 1000) -> dict:
    response = await client.post(
        "/api/v1/finance/budgets",
        headers=headers,
        json={"name": "Marketing", "amount": amount, "start_date": "2026-01-01", "end_date": "2026-12-31"},
    )
    assert response.status_code == 201
    return response.json()


async def create_expense(client: AsyncClient, headers: dict, amount: float, budget_id: str = None) -> dict:
    payload = {"title": "Trade fair booth", "amount": amount, "expense_date": "2026-03-10"}
    if budget_id:
        payload["budget_id"] = budget_id
    response = await client.post("/api/v1/finance/expenses", headers=headers, json=payload)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
class TestInvoices:
    """Test /api/v1/finance/invoices."""

    async def test_totals_from_items(self, client: AsyncClient, admin_headers: dict):
        response = await client.post("/api/v1/finance/invoices", headers=admin_headers, json=INVOICE)

        assert response.status_code == 201
        invoice = response.json()
        assert invoice["status"] == "DRAFT"
        assert invoice["subtotal"] == 1550
        assert invoice["tax_amount"] == 190
        assert invoice["total_amount"] == 1740
        assert [item["total"] for item in invoice["items"]] == [1000, 550]

    async def test_replacing_items_recomputes_totals(self, client: AsyncClient, admin_headers: dict):
        invoice = (await client.post("/api/v1/finance/invoices", headers=admin_headers, json=INVOICE)).json()

        response = await client.put(
            f"/api/v1/finance/invoices/{invoice['id']}",
            headers=admin_headers,
            json={"items": [{"description": "Retainer", "quantity": 1, "unit_price": 200, "tax_rate": 10}]},
        )

        assert response.status_code == 200
        assert response.json()["total_amount"] == 220
        assert len(response.json()["items"]) == 1

    async def test_paid_stamps_paid_at(self, client: AsyncClient, admin_headers: dict):
        invoice = (await client.post("/api/v1/finance/invoices", headers=admin_headers, json=INVOICE)).json()
        assert invoice["paid_at"] is None

        response = await client.put(
            f"/api/v1/finance/invoices/{invoice['id']}", headers=admin_headers, json={"status": "PAID"}
        )

        assert response.json()["paid_at"] is not None

    async def test_due_date_before_issue_date(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/finance/invoices",
            headers=admin_headers,
            json={**INVOICE, "due_date": "2026-02-01"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Due date must not be before the start date"

    async def test_duplicate_invoice_number(self, client: AsyncClient, admin_headers: dict):
        await client.post("/api/v1/finance/invoices", headers=admin_headers, json=INVOICE)

        response = await client.post("/api/v1/finance/invoices", headers=admin_headers, json=INVOICE)

        assert response.status_code == 400
        assert response.json()["error"] == "Invoice number INV-2026-001 already exists"

    async def test_same_number_in_other_tenant(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        await client.post("/api/v1/finance/invoices", headers=admin_headers, json=INVOICE)

        response = await client.post("/api/v1/finance/invoices", headers=other_headers, json=INVOICE)

        assert response.status_code == 201

    async def test_member_cannot_delete(self, client: AsyncClient, admin_headers: dict, member_headers: dict):
        invoice = (await client.post("/api/v1/finance/invoices", headers=admin_headers, json=INVOICE)).json()

        response = await client.delete(f"/api/v1/finance/invoices/{invoice['id']}", headers=member_headers)

        assert response.status_code == 403


@pytest.mark.asyncio
class TestExpenses:
    """Test expense approval and budget booking."""

    async def test_approval_books_budget(self, client: AsyncClient, admin_headers: dict, test_user_admin):
        budget = await create_budget(client, admin_headers)
        expense = await create_expense(client, admin_headers, 250, budget["id"])
        assert expense["status"] == "PENDING"

        response = await client.post(
            f"/api/v1/finance/expenses/{expense['id']}/approve",
            headers=admin_headers,
            json={"status": "APPROVED"},
        )

        assert response.status_code == 200
        assert response.json()["approved_by_id"] == str(test_user_admin.id)

        budget = (await client.get(f"/api/v1/finance/budgets/{budget['id']}", headers=admin_headers)).json()
        assert budget["spent"] == 250
        assert budget["utilization"] == 25
        assert budget["status"] == "ACTIVE"

    async def test_overspending_marks_budget_exceeded(self, client: AsyncClient, admin_headers: dict):
        budget = await create_budget(client, admin_headers, amount=100)
        expense = await create_expense(client, admin_headers, 150, budget["id"])

        await client.post(
            f"/api/v1/finance/expenses/{expense['id']}/approve",
            headers=admin_headers,
            json={"status": "APPROVED"},
        )

        budget = (await client.get(f"/api/v1/finance/budgets/{budget['id']}", headers=admin_headers)).json()
        assert budget["status"] == "EXCEEDED"

    async def test_rejection_needs_reason(self, client: AsyncClient, admin_headers: dict):
        budget = await create_budget(client, admin_headers)
        expense = await create_expense(client, admin_headers, 80, budget["id"])

        response = await client.post(
            f"/api/v1/finance/expenses/{expense['id']}/approve",
            headers=admin_headers,
            json={"status": "REJECTED"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "A rejection reason is required"

        response = await client.post(
            f"/api/v1/finance/expenses/{expense['id']}/approve",
            headers=admin_headers,
            json={"status": "REJECTED", "rejection_reason": "No receipt"},
        )
        assert response.json()["status"] == "REJECTED"

        budget = (await client.get(f"/api/v1/finance/budgets/{budget['id']}", headers=admin_headers)).json()
        assert budget["spent"] == 0

    async def test_decided_expense_is_frozen(self, client: AsyncClient, admin_headers: dict):
        expense = await create_expense(client, admin_headers, 80)
        await client.post(
            f"/api/v1/finance/expenses/{expense['id']}/approve",
            headers=admin_headers,
            json={"status": "APPROVED"},
        )

        response = await client.put(
            f"/api/v1/finance/expenses/{expense['id']}", headers=admin_headers, json={"amount": 90}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot edit an expense with status APPROVED"

        response = await client.post(
            f"/api/v1/finance/expenses/{expense['id']}/approve",
            headers=admin_headers,
            json={"status": "APPROVED"},
        )
        assert response.json()["error"] == "Expense is already APPROVED"

    async def test_member_cannot_approve(self, client: AsyncClient, member_headers: dict, admin_headers: dict):
        expense = await create_expense(client, admin_headers, 80)

        response = await client.post(
            f"/api/v1/finance/expenses/{expense['id']}/approve",
            headers=member_headers,
            json={"status": "APPROVED"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Permission denied: finance:approve required"

    async def test_budget_of_other_tenant(self, client: AsyncClient, admin_headers: dict, other_headers: dict):
        foreign = await create_budget(client, other_headers)

        response = await client.post(
            "/api/v1/finance/expenses",
            headers=admin_headers,
            json={"title": "Sneaky", "amount": 1, "expense_date": "2026-03-10", "budget_id": foreign["id"]},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Budget not found"


@pytest.mark.asyncio
class TestBudgets:
    async def test_end_before_start(self, client: AsyncClient, admin_headers: dict):
        response = await client.post(
            "/api/v1/finance/budgets",
            headers=admin_headers,
            json={"name": "Broken", "amount": 10, "start_date": "2026-12-31", "end_date": "2026-01-01"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "End date must not be before the start date"

    async def test_list_and_delete(self, client: AsyncClient, admin_headers: dict):
        budget = await create_budget(client, admin_headers)

        response = await client.get("/api/v1/finance/budgets", headers=admin_headers, params={"search": "market"})
        assert response.json()["pagination"]["total"] == 1

        response = await client.delete(f"/api/v1/finance/budgets/{budget['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get("/api/v1/finance/budgets", headers=admin_headers)
        assert response.json()["budgets"] == []


@pytest.mark.asyncio
class TestReadOnlyMember:
    """A member holding only finance:read cannot book anything."""

    async def test_member_cannot_create_invoice(self, client: AsyncClient, member_headers: dict):
        response = await client.post("/api/v1/finance/invoices", headers=member_headers, json=INVOICE)

        assert response.status_code == 403
        assert response.json()["error"] == "Permission denied: finance:create required"

    async def test_member_cannot_create_budget(self, client: AsyncClient, member_headers: dict):
        response = await client.post(
            "/api/v1/finance/budgets",
            headers=member_headers,
            json={"name": "Shadow", "amount": 1, "start_date": "2026-01-01", "end_date": "2026-12-31"},
        )

        assert response.status_code == 403

    async def test_member_cannot_update_budget(self, client: AsyncClient, admin_headers: dict, member_headers: dict):
        budget = await create_budget(client, admin_headers)

        response = await client.put(
            f"/api/v1/finance/budgets/{budget['id']}", headers=member_headers, json={"amount": 1_000_000}
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Permission denied: finance:update required"

    async def test_member_cannot_edit_expense(self, client: AsyncClient, admin_headers: dict, member_headers: dict):
        expense = await create_expense(client, admin_headers, 80)

        response = await client.put(
            f"/api/v1/finance/expenses/{expense['id']}", headers=member_headers, json={"amount": 8000}
        )

        assert response.status_code == 403

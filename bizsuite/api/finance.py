"""
Finance API routes: invoices with line items, expenses with approval, budgets.
"""

import logging
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.api.pagination import (
    PageParams,
    Pagination,
    apply_search,
    apply_status,
    get_tenant_record,
    page_params,
    paginate,
    tenant_query,
)
from bizsuite.database import get_db
from bizsuite.middleware.auth import get_current_active_user, require_permissions
from bizsuite.models import Budget, Customer, Expense, Invoice, InvoiceItem, Project, User
from bizsuite.models.base import utc_now
from bizsuite.services.audit import commit_with_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/finance", tags=["finance"])

INVOICE_STATUSES = r"^(DRAFT|SENT|PAID|OVERDUE|CANCELLED)$"
RECURRING_TYPES = r"^(DAILY|WEEKLY|MONTHLY|QUARTERLY|YEARLY)$"


# Pydantic schemas
class InvoiceItemIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: float = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    tax_rate: float = Field(0.0, ge=0, le=100)


class InvoiceItemResponse(BaseModel):
    id: UUID
    position: int
    description: str
    quantity: float
    unit_price: float
    tax_rate: float
    total: float

    class Config:
        from_attributes = True


class InvoiceCreate(BaseModel):
    invoice_number: str = Field(..., min_length=1, max_length=50)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: Optional[EmailStr] = None
    customer_address: Optional[str] = None
    customer_id: Optional[UUID] = None
    issue_date: date
    due_date: date
    status: str = Field("DRAFT", pattern=INVOICE_STATUSES)
    currency: str = Field("EUR", min_length=3, max_length=3)
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: List[InvoiceItemIn] = []


class InvoiceUpdate(BaseModel):
    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    customer_email: Optional[EmailStr] = None
    customer_address: Optional[str] = None
    customer_id: Optional[UUID] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    status: Optional[str] = Field(None, pattern=INVOICE_STATUSES)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: Optional[List[InvoiceItemIn]] = None


class InvoiceResponse(BaseModel):
    id: UUID
    organization_id: UUID
    invoice_number: str
    customer_name: str
    customer_email: Optional[str]
    customer_address: Optional[str]
    customer_id: Optional[UUID]
    issue_date: date
    due_date: date
    status: str
    currency: str
    subtotal: float
    tax_amount: float
    total_amount: float
    notes: Optional[str]
    terms: Optional[str]
    paid_at: Optional[datetime]
    created_by_id: Optional[UUID]
    items: List[InvoiceItemResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoiceList(BaseModel):
    invoices: List[InvoiceResponse]
    pagination: Pagination


class ExpenseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(..., gt=0)
    expense_date: date
    description: Optional[str] = None
    currency: str = Field("EUR", min_length=3, max_length=3)
    category: Optional[str] = Field(None, max_length=100)
    merchant_name: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    is_recurring: bool = False
    recurring_type: Optional[str] = Field(None, pattern=RECURRING_TYPES)
    budget_id: Optional[UUID] = None
    project_id: Optional[UUID] = None


class ExpenseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[float] = Field(None, gt=0)
    expense_date: Optional[date] = None
    description: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    category: Optional[str] = Field(None, max_length=100)
    merchant_name: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    is_recurring: Optional[bool] = None
    recurring_type: Optional[str] = Field(None, pattern=RECURRING_TYPES)
    budget_id: Optional[UUID] = None
    project_id: Optional[UUID] = None


class ExpenseDecision(BaseModel):
    status: str = Field(..., pattern=r"^(APPROVED|REJECTED)$")
    rejection_reason: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: UUID
    organization_id: UUID
    title: str
    description: Optional[str]
    amount: float
    currency: str
    expense_date: date
    category: Optional[str]
    merchant_name: Optional[str]
    notes: Optional[str]
    status: str
    is_recurring: bool
    recurring_type: Optional[str]
    budget_id: Optional[UUID]
    project_id: Optional[UUID]
    user_id: Optional[UUID]
    approved_by_id: Optional[UUID]
    approved_at: Optional[datetime]
    rejection_reason: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ExpenseList(BaseModel):
    expenses: List[ExpenseResponse]
    pagination: Pagination


class BudgetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(..., gt=0)
    start_date: date
    end_date: date
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    currency: str = Field("EUR", min_length=3, max_length=3)
    alert_threshold: float = Field(80.0, gt=0, le=100)


class BudgetUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[float] = Field(None, gt=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    status: Optional[str] = Field(None, pattern=r"^(ACTIVE|CLOSED|EXCEEDED)$")
    alert_threshold: Optional[float] = Field(None, gt=0, le=100)


class BudgetResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str]
    category: Optional[str]
    amount: float
    spent: float
    utilization: float
    currency: str
    start_date: date
    end_date: date
    status: str
    alert_threshold: float
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BudgetList(BaseModel):
    budgets: List[BudgetResponse]
    pagination: Pagination


def build_invoice_items(items: List[InvoiceItemIn]) -> List[InvoiceItem]:
    return [
        InvoiceItem(
            position=position,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            tax_rate=item.tax_rate,
            total=round(item.quantity * item.unit_price, 2),
        )
        for position, item in enumerate(items)
    ]


def apply_invoice_totals(invoice: Invoice) -> None:
    """Derive subtotal, tax and total from the line items."""
    subtotal = sum(item.total for item in invoice.items)
    tax_amount = sum(item.total * item.tax_rate / 100 for item in invoice.items)
    invoice.subtotal = round(subtotal, 2)
    invoice.tax_amount = round(tax_amount, 2)
    invoice.total_amount = round(subtotal + tax_amount, 2)


def _check_dates(start: date, end: date, label: str) -> None:
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{label} must not be before the start date",
        )


# Invoices

@router.get("/invoices", response_model=InvoiceList)
async def list_invoices(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[UUID] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List invoices with their line items.

    Args:
        search: Substring match on invoice number, customer name or email
        status_filter: DRAFT, SENT, PAID, OVERDUE, CANCELLED or "all"
        customer_id: Invoices of one customer
    """
    stmt = tenant_query(Invoice, current_user.organization_id)
    stmt = apply_search(stmt, search, Invoice.invoice_number, Invoice.customer_name, Invoice.customer_email)
    stmt = apply_status(stmt, Invoice.status, status_filter)
    if customer_id:
        stmt = stmt.where(Invoice.customer_id == customer_id)

    invoices, pagination = await paginate(db, stmt.order_by(Invoice.issue_date.desc()), params)
    return {"invoices": invoices, "pagination": pagination}


@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    data: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:create")),
):
    """
    Create an invoice.

    Each item total is quantity * unit price; tax is item total * tax rate / 100.

    Raises:
        HTTPException: 400 if the due date is before the issue date or the number is taken
        HTTPException: 404 if the customer is not in the organization
    """
    _check_dates(data.issue_date, data.due_date, "Due date")
    if data.customer_id:
        await get_tenant_record(db, Customer, data.customer_id, current_user.organization_id)

    stmt = select(Invoice.id).where(
        Invoice.organization_id == current_user.organization_id,
        Invoice.invoice_number == data.invoice_number,
    )
    if (await db.execute(stmt)).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invoice number {data.invoice_number} already exists",
        )

    invoice = Invoice(
        organization_id=current_user.organization_id,
        created_by_id=current_user.id,
        items=build_invoice_items(data.items),
        **data.model_dump(exclude={"items"}),
    )
    if invoice.status == "PAID":
        invoice.paid_at = utc_now()
    apply_invoice_totals(invoice)

    db.add(invoice)
    return await commit_with_audit(
        db,
        invoice,
        current_user,
        "INVOICE_CREATED",
        "INVOICE",
        {"invoice_number": invoice.invoice_number, "customer_name": invoice.customer_name},
    )


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Invoice, invoice_id, current_user.organization_id)


@router.put("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: UUID,
    data: InvoiceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:update")),
):
    """
    Update an invoice.

    Sending items replaces all line items and recomputes the totals.
    Moving to PAID stamps paid_at.
    """
    invoice = await get_tenant_record(db, Invoice, invoice_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True, exclude={"items"})
    _check_dates(
        update_data.get("issue_date", invoice.issue_date),
        update_data.get("due_date", invoice.due_date),
        "Due date",
    )

    previous_status = invoice.status
    for field, value in update_data.items():
        setattr(invoice, field, value)

    if data.items is not None:
        invoice.items = build_invoice_items(data.items)
        apply_invoice_totals(invoice)

    if invoice.status == "PAID" and previous_status != "PAID":
        invoice.paid_at = utc_now()

    return await commit_with_audit(
        db,
        invoice,
        current_user,
        "INVOICE_UPDATED",
        "INVOICE",
        {"fields": sorted(data.model_dump(exclude_unset=True)), "total_amount": invoice.total_amount},
    )


@router.delete("/invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:delete")),
):
    invoice = await get_tenant_record(db, Invoice, invoice_id, current_user.organization_id)
    invoice.soft_delete()
    await commit_with_audit(db, invoice, current_user, "INVOICE_DELETED", "INVOICE", refresh=False)


# Expenses

@router.get("/expenses", response_model=ExpenseList)
async def list_expenses(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = None,
    budget_id: Optional[UUID] = None,
    project_id: Optional[UUID] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Expense, current_user.organization_id)
    stmt = apply_search(stmt, search, Expense.title, Expense.description, Expense.merchant_name)
    stmt = apply_status(stmt, Expense.status, status_filter)
    stmt = apply_status(stmt, Expense.category, category)
    if budget_id:
        stmt = stmt.where(Expense.budget_id == budget_id)
    if project_id:
        stmt = stmt.where(Expense.project_id == project_id)

    expenses, pagination = await paginate(db, stmt.order_by(Expense.expense_date.desc()), params)
    return {"expenses": expenses, "pagination": pagination}


@router.post("/expenses", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    data: ExpenseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:create")),
):
    if data.budget_id:
        await get_tenant_record(db, Budget, data.budget_id, current_user.organization_id)
    if data.project_id:
        await get_tenant_record(db, Project, data.project_id, current_user.organization_id)

    expense = Expense(
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        status="PENDING",
        **data.model_dump(),
    )
    db.add(expense)
    return await commit_with_audit(
        db, expense, current_user, "EXPENSE_CREATED", "EXPENSE", {"title": expense.title, "amount": expense.amount}
    )


@router.get("/expenses/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Expense, expense_id, current_user.organization_id)


@router.put("/expenses/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: UUID,
    data: ExpenseUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:update")),
):
    """
    Update an expense.

    Only pending expenses can be edited.

    Raises:
        HTTPException: 400 if the expense was already decided
    """
    expense = await get_tenant_record(db, Expense, expense_id, current_user.organization_id)

    if expense.status != "PENDING":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot edit an expense with status {expense.status}",
        )

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("budget_id"):
        await get_tenant_record(db, Budget, update_data["budget_id"], current_user.organization_id)
    if update_data.get("project_id"):
        await get_tenant_record(db, Project, update_data["project_id"], current_user.organization_id)

    for field, value in update_data.items():
        setattr(expense, field, value)

    return await commit_with_audit(
        db, expense, current_user, "EXPENSE_UPDATED", "EXPENSE", {"fields": sorted(update_data)}
    )


@router.post("/expenses/{expense_id}/approve", response_model=ExpenseResponse)
async def decide_expense(
    expense_id: UUID,
    data: ExpenseDecision,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:approve")),
):
    """
    Approve or reject a pending expense.

    Approval books the amount against the linked budget; a budget whose
    spending passes its alert threshold is logged, one that passes its
    amount is marked EXCEEDED.

    Raises:
        HTTPException: 400 if not pending, or rejected without a reason
        HTTPException: 403 without finance:approve
        HTTPException: 404 if not found
    """
    expense = await get_tenant_record(db, Expense, expense_id, current_user.organization_id)

    if expense.status != "PENDING":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Expense is already {expense.status}",
        )
    if data.status == "REJECTED" and not data.rejection_reason:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A rejection reason is required",
        )

    expense.status = data.status
    expense.approved_by_id = current_user.id
    expense.approved_at = utc_now()
    expense.rejection_reason = data.rejection_reason if data.status == "REJECTED" else None

    if data.status == "APPROVED" and expense.budget_id:
        stmt = select(Budget).where(
            Budget.id == expense.budget_id,
            Budget.organization_id == current_user.organization_id,
        )
        budget = (await db.execute(stmt)).scalar_one_or_none()
        if budget is not None:
            budget.spent = round((budget.spent or 0.0) + expense.amount, 2)
            if budget.spent > budget.amount:
                budget.status = "EXCEEDED"
                logger.warning(f"Budget {budget.id} exceeded: {budget.spent} of {budget.amount}")
            elif budget.utilization >= budget.alert_threshold:
                logger.warning(f"Budget {budget.id} at {budget.utilization}% (threshold {budget.alert_threshold}%)")

    return await commit_with_audit(
        db,
        expense,
        current_user,
        f"EXPENSE_{data.status}",
        "EXPENSE",
        {"amount": expense.amount, "rejection_reason": expense.rejection_reason},
    )


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:delete")),
):
    expense = await get_tenant_record(db, Expense, expense_id, current_user.organization_id)
    expense.soft_delete()
    await commit_with_audit(db, expense, current_user, "EXPENSE_DELETED", "EXPENSE", refresh=False)


# Budgets

@router.get("/budgets", response_model=BudgetList)
async def list_budgets(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Budget, current_user.organization_id)
    stmt = apply_search(stmt, search, Budget.name, Budget.description)
    stmt = apply_status(stmt, Budget.status, status_filter)
    stmt = apply_status(stmt, Budget.category, category)

    budgets, pagination = await paginate(db, stmt.order_by(Budget.start_date.desc()), params)
    return {"budgets": budgets, "pagination": pagination}


@router.post("/budgets", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED)
async def create_budget(
    data: BudgetCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:create")),
):
    _check_dates(data.start_date, data.end_date, "End date")

    budget = Budget(organization_id=current_user.organization_id, spent=0.0, **data.model_dump())
    db.add(budget)
    return await commit_with_audit(
        db, budget, current_user, "BUDGET_CREATED", "BUDGET", {"name": budget.name, "amount": budget.amount}
    )


@router.get("/budgets/{budget_id}", response_model=BudgetResponse)
async def get_budget(
    budget_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Budget, budget_id, current_user.organization_id)


@router.put("/budgets/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: UUID,
    data: BudgetUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:update")),
):
    budget = await get_tenant_record(db, Budget, budget_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    _check_dates(
        update_data.get("start_date", budget.start_date),
        update_data.get("end_date", budget.end_date),
        "End date",
    )
    for field, value in update_data.items():
        setattr(budget, field, value)

    return await commit_with_audit(
        db, budget, current_user, "BUDGET_UPDATED", "BUDGET", {"fields": sorted(update_data)}
    )


@router.delete("/budgets/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(
    budget_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("finance:delete")),
):
    budget = await get_tenant_record(db, Budget, budget_id, current_user.organization_id)
    budget.soft_delete()
    await commit_with_audit(db, budget, current_user, "BUDGET_DELETED", "BUDGET", refresh=False)

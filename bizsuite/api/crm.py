"""
CRM API routes.

CRUD for customers, contacts, leads, deals, opportunities and activities.
Every route is scoped to the caller's organization; deletes are soft.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field
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
from bizsuite.models import Activity, Contact, Customer, Deal, Lead, Opportunity, User
from bizsuite.models.base import utc_now
from bizsuite.services.audit import commit_with_audit

router = APIRouter(prefix="/api/v1/crm", tags=["crm"])


# Pydantic schemas
class CustomerCreate(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = Field(None, max_length=255)
    industry: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = None
    status: str = Field("ACTIVE", pattern=r"^(ACTIVE|INACTIVE|PROSPECT)$")
    notes: Optional[str] = None
    owner_id: Optional[UUID] = None


class CustomerUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = Field(None, max_length=255)
    industry: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = None
    status: Optional[str] = Field(None, pattern=r"^(ACTIVE|INACTIVE|PROSPECT)$")
    notes: Optional[str] = None
    owner_id: Optional[UUID] = None


class CustomerResponse(BaseModel):
    id: UUID
    organization_id: UUID
    company_name: str
    email: Optional[str]
    phone: Optional[str]
    website: Optional[str]
    industry: Optional[str]
    address: Optional[str]
    status: str
    notes: Optional[str]
    owner_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerList(BaseModel):
    customers: List[CustomerResponse]
    pagination: Pagination


class ContactCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    position: Optional[str] = Field(None, max_length=100)
    is_primary: bool = False
    customer_id: Optional[UUID] = None


class ContactUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    position: Optional[str] = Field(None, max_length=100)
    is_primary: Optional[bool] = None
    customer_id: Optional[UUID] = None


class ContactResponse(BaseModel):
    id: UUID
    organization_id: UUID
    first_name: str
    last_name: str
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    position: Optional[str]
    is_primary: bool
    customer_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ContactList(BaseModel):
    contacts: List[ContactResponse]
    pagination: Pagination


class LeadCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    source: Optional[str] = Field(None, max_length=50)
    status: str = Field("NEW", pattern=r"^(NEW|CONTACTED|QUALIFIED|CONVERTED|LOST)$")
    score: int = Field(0, ge=0, le=100)
    notes: Optional[str] = None
    owner_id: Optional[UUID] = None


class LeadUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    company: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    source: Optional[str] = Field(None, max_length=50)
    status: Optional[str] = Field(None, pattern=r"^(NEW|CONTACTED|QUALIFIED|CONVERTED|LOST)$")
    score: Optional[int] = Field(None, ge=0, le=100)
    notes: Optional[str] = None
    owner_id: Optional[UUID] = None


class LeadResponse(BaseModel):
    id: UUID
    organization_id: UUID
    first_name: str
    last_name: str
    company: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    source: Optional[str]
    status: str
    score: int
    notes: Optional[str]
    owner_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LeadList(BaseModel):
    leads: List[LeadResponse]
    pagination: Pagination


class DealCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(..., ge=0)
    description: Optional[str] = None
    currency: str = Field("EUR", min_length=3, max_length=3)
    status: str = Field("OPEN", pattern=r"^(OPEN|WON|LOST)$")
    stage: Optional[str] = Field(None, max_length=50)
    probability: int = Field(0, ge=0, le=100)
    expected_close_date: Optional[date] = None
    customer_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    owner_id: Optional[UUID] = None


class DealUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    status: Optional[str] = Field(None, pattern=r"^(OPEN|WON|LOST)$")
    stage: Optional[str] = Field(None, max_length=50)
    probability: Optional[int] = Field(None, ge=0, le=100)
    expected_close_date: Optional[date] = None
    actual_close_date: Optional[date] = None
    customer_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    owner_id: Optional[UUID] = None


class DealResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str]
    amount: float
    currency: str
    status: str
    stage: Optional[str]
    probability: int
    expected_close_date: Optional[date]
    actual_close_date: Optional[date]
    customer_id: Optional[UUID]
    contact_id: Optional[UUID]
    owner_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DealList(BaseModel):
    deals: List[DealResponse]
    pagination: Pagination


OPPORTUNITY_STAGES = r"^(PROSPECTING|QUALIFICATION|PROPOSAL|NEGOTIATION|CLOSED_WON|CLOSED_LOST)$"


class OpportunityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    value: float = Field(0.0, ge=0)
    currency: str = Field("EUR", min_length=3, max_length=3)
    stage: str = Field("PROSPECTING", pattern=OPPORTUNITY_STAGES)
    probability: int = Field(10, ge=0, le=100)
    expected_close_date: Optional[date] = None
    customer_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    owner_id: Optional[UUID] = None


class OpportunityUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    value: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    stage: Optional[str] = Field(None, pattern=OPPORTUNITY_STAGES)
    probability: Optional[int] = Field(None, ge=0, le=100)
    expected_close_date: Optional[date] = None
    customer_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    owner_id: Optional[UUID] = None


class OpportunityResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str]
    value: float
    currency: str
    stage: str
    probability: int
    expected_close_date: Optional[date]
    customer_id: Optional[UUID]
    contact_id: Optional[UUID]
    owner_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OpportunityList(BaseModel):
    opportunities: List[OpportunityResponse]
    pagination: Pagination


ACTIVITY_TYPES = r"^(CALL|EMAIL|MEETING|TASK|NOTE)$"


class ActivityCreate(BaseModel):
    type: str = Field(..., pattern=ACTIVITY_TYPES)
    subject: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: bool = False
    customer_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    deal_id: Optional[UUID] = None


class ActivityUpdate(BaseModel):
    type: Optional[str] = Field(None, pattern=ACTIVITY_TYPES)
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None
    customer_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    deal_id: Optional[UUID] = None


class ActivityResponse(BaseModel):
    id: UUID
    organization_id: UUID
    type: str
    subject: str
    description: Optional[str]
    due_date: Optional[datetime]
    completed: bool
    completed_at: Optional[datetime]
    customer_id: Optional[UUID]
    contact_id: Optional[UUID]
    deal_id: Optional[UUID]
    user_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ActivityList(BaseModel):
    activities: List[ActivityResponse]
    pagination: Pagination


async def _check_references(db: AsyncSession, organization_id: UUID, **references) -> None:
    """Referenced CRM records and owners must belong to the same organization."""
    models = {"customer_id": Customer, "contact_id": Contact, "deal_id": Deal, "owner_id": User}
    for field, value in references.items():
        if value is not None:
            await get_tenant_record(db, models[field], value, organization_id)


# Customers

@router.get("/customers", response_model=CustomerList)
async def list_customers(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    industry: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List customers of the caller's organization.

    Args:
        search: Substring match on company name, email or industry
        status_filter: Customer status, "all" for no filter
        industry: Exact industry match
        params: Page and limit
    """
    stmt = tenant_query(Customer, current_user.organization_id)
    stmt = apply_search(stmt, search, Customer.company_name, Customer.email, Customer.industry)
    stmt = apply_status(stmt, Customer.status, status_filter)
    if industry:
        stmt = stmt.where(Customer.industry == industry)

    customers, pagination = await paginate(db, stmt.order_by(Customer.created_at.desc()), params)
    return {"customers": customers, "pagination": pagination}


@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:create")),
):
    await _check_references(db, current_user.organization_id, owner_id=data.owner_id)

    customer = Customer(
        organization_id=current_user.organization_id,
        **data.model_dump(exclude={"owner_id"}),
        owner_id=data.owner_id or current_user.id,
    )
    db.add(customer)
    return await commit_with_audit(
        db, customer, current_user, "CUSTOMER_CREATED", "CUSTOMER", {"company_name": customer.company_name}
    )


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Customer, customer_id, current_user.organization_id)


@router.put("/customers/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: UUID,
    data: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:update")),
):
    customer = await get_tenant_record(db, Customer, customer_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    await _check_references(db, current_user.organization_id, owner_id=update_data.get("owner_id"))
    for field, value in update_data.items():
        setattr(customer, field, value)

    return await commit_with_audit(
        db, customer, current_user, "CUSTOMER_UPDATED", "CUSTOMER", {"fields": sorted(update_data)}
    )


@router.delete("/customers/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:delete")),
):
    customer = await get_tenant_record(db, Customer, customer_id, current_user.organization_id)
    customer.soft_delete()
    await commit_with_audit(db, customer, current_user, "CUSTOMER_DELETED", "CUSTOMER", refresh=False)


# Contacts

@router.get("/contacts", response_model=ContactList)
async def list_contacts(
    search: Optional[str] = None,
    customer_id: Optional[UUID] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Contact, current_user.organization_id)
    stmt = apply_search(stmt, search, Contact.first_name, Contact.last_name, Contact.email)
    if customer_id:
        stmt = stmt.where(Contact.customer_id == customer_id)

    contacts, pagination = await paginate(db, stmt.order_by(Contact.created_at.desc()), params)
    return {"contacts": contacts, "pagination": pagination}


@router.post("/contacts", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    data: ContactCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:create")),
):
    await _check_references(db, current_user.organization_id, customer_id=data.customer_id)

    contact = Contact(organization_id=current_user.organization_id, **data.model_dump())
    db.add(contact)
    return await commit_with_audit(db, contact, current_user, "CONTACT_CREATED", "CONTACT")


@router.get("/contacts/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Contact, contact_id, current_user.organization_id)


@router.put("/contacts/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: UUID,
    data: ContactUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:update")),
):
    contact = await get_tenant_record(db, Contact, contact_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    await _check_references(db, current_user.organization_id, customer_id=update_data.get("customer_id"))
    for field, value in update_data.items():
        setattr(contact, field, value)

    return await commit_with_audit(
        db, contact, current_user, "CONTACT_UPDATED", "CONTACT", {"fields": sorted(update_data)}
    )


@router.delete("/contacts/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:delete")),
):
    contact = await get_tenant_record(db, Contact, contact_id, current_user.organization_id)
    contact.soft_delete()
    await commit_with_audit(db, contact, current_user, "CONTACT_DELETED", "CONTACT", refresh=False)


# Leads

@router.get("/leads", response_model=LeadList)
async def list_leads(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    source: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Lead, current_user.organization_id)
    stmt = apply_search(stmt, search, Lead.first_name, Lead.last_name, Lead.company, Lead.email)
    stmt = apply_status(stmt, Lead.status, status_filter)
    if source:
        stmt = stmt.where(Lead.source == source)

    leads, pagination = await paginate(db, stmt.order_by(Lead.score.desc(), Lead.created_at.desc()), params)
    return {"leads": leads, "pagination": pagination}


@router.post("/leads", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    data: LeadCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:create")),
):
    await _check_references(db, current_user.organization_id, owner_id=data.owner_id)

    lead = Lead(
        organization_id=current_user.organization_id,
        **data.model_dump(exclude={"owner_id"}),
        owner_id=data.owner_id or current_user.id,
    )
    db.add(lead)
    return await commit_with_audit(db, lead, current_user, "LEAD_CREATED", "LEAD")


@router.get("/leads/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Lead, lead_id, current_user.organization_id)


@router.put("/leads/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: UUID,
    data: LeadUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:update")),
):
    lead = await get_tenant_record(db, Lead, lead_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    await _check_references(db, current_user.organization_id, owner_id=update_data.get("owner_id"))
    for field, value in update_data.items():
        setattr(lead, field, value)

    return await commit_with_audit(db, lead, current_user, "LEAD_UPDATED", "LEAD", {"fields": sorted(update_data)})


@router.delete("/leads/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:delete")),
):
    lead = await get_tenant_record(db, Lead, lead_id, current_user.organization_id)
    lead.soft_delete()
    await commit_with_audit(db, lead, current_user, "LEAD_DELETED", "LEAD", refresh=False)


# Deals

@router.get("/deals", response_model=DealList)
async def list_deals(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    stage: Optional[str] = None,
    customer_id: Optional[UUID] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """
    List deals.

    Args:
        search: Substring match on name or description
        status_filter: OPEN, WON, LOST or "all"
        stage: Exact pipeline stage
        customer_id: Deals of one customer
        params: Page and limit
    """
    stmt = tenant_query(Deal, current_user.organization_id)
    stmt = apply_search(stmt, search, Deal.name, Deal.description)
    stmt = apply_status(stmt, Deal.status, status_filter)
    if stage:
        stmt = stmt.where(Deal.stage == stage)
    if customer_id:
        stmt = stmt.where(Deal.customer_id == customer_id)

    deals, pagination = await paginate(db, stmt.order_by(Deal.created_at.desc()), params)
    return {"deals": deals, "pagination": pagination}


@router.post("/deals", response_model=DealResponse, status_code=status.HTTP_201_CREATED)
async def create_deal(
    data: DealCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:create")),
):
    """
    Create a deal.

    Name and amount are required; status defaults to OPEN and currency to EUR.

    Raises:
        HTTPException: 404 if the referenced customer or contact is not in the organization
    """
    await _check_references(
        db,
        current_user.organization_id,
        customer_id=data.customer_id,
        contact_id=data.contact_id,
        owner_id=data.owner_id,
    )

    deal = Deal(
        organization_id=current_user.organization_id,
        **data.model_dump(exclude={"owner_id"}),
        owner_id=data.owner_id or current_user.id,
    )
    db.add(deal)
    return await commit_with_audit(
        db, deal, current_user, "DEAL_CREATED", "DEAL", {"name": deal.name, "amount": deal.amount}
    )


@router.get("/deals/{deal_id}", response_model=DealResponse)
async def get_deal(
    deal_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Deal, deal_id, current_user.organization_id)


@router.put("/deals/{deal_id}", response_model=DealResponse)
async def update_deal(
    deal_id: UUID,
    data: DealUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:update")),
):
    deal = await get_tenant_record(db, Deal, deal_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    await _check_references(
        db,
        current_user.organization_id,
        customer_id=update_data.get("customer_id"),
        contact_id=update_data.get("contact_id"),
        owner_id=update_data.get("owner_id"),
    )

    previous_status = deal.status
    for field, value in update_data.items():
        setattr(deal, field, value)

    # Closing a deal stamps the close date unless one was given
    if deal.status in ("WON", "LOST") and previous_status == "OPEN" and deal.actual_close_date is None:
        deal.actual_close_date = utc_now().date()

    return await commit_with_audit(db, deal, current_user, "DEAL_UPDATED", "DEAL", {"fields": sorted(update_data)})


@router.delete("/deals/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deal(
    deal_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:delete")),
):
    deal = await get_tenant_record(db, Deal, deal_id, current_user.organization_id)
    deal.soft_delete()
    await commit_with_audit(db, deal, current_user, "DEAL_DELETED", "DEAL", refresh=False)


# Opportunities

@router.get("/opportunities", response_model=OpportunityList)
async def list_opportunities(
    search: Optional[str] = None,
    stage: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Opportunity, current_user.organization_id)
    stmt = apply_search(stmt, search, Opportunity.name, Opportunity.description)
    stmt = apply_status(stmt, Opportunity.stage, stage)

    opportunities, pagination = await paginate(db, stmt.order_by(Opportunity.created_at.desc()), params)
    return {"opportunities": opportunities, "pagination": pagination}


@router.post("/opportunities", response_model=OpportunityResponse, status_code=status.HTTP_201_CREATED)
async def create_opportunity(
    data: OpportunityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:create")),
):
    await _check_references(
        db,
        current_user.organization_id,
        customer_id=data.customer_id,
        contact_id=data.contact_id,
        owner_id=data.owner_id,
    )

    opportunity = Opportunity(
        organization_id=current_user.organization_id,
        **data.model_dump(exclude={"owner_id"}),
        owner_id=data.owner_id or current_user.id,
    )
    db.add(opportunity)
    return await commit_with_audit(db, opportunity, current_user, "OPPORTUNITY_CREATED", "OPPORTUNITY")


@router.get("/opportunities/{opportunity_id}", response_model=OpportunityResponse)
async def get_opportunity(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Opportunity, opportunity_id, current_user.organization_id)


@router.put("/opportunities/{opportunity_id}", response_model=OpportunityResponse)
async def update_opportunity(
    opportunity_id: UUID,
    data: OpportunityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:update")),
):
    opportunity = await get_tenant_record(db, Opportunity, opportunity_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    await _check_references(
        db,
        current_user.organization_id,
        customer_id=update_data.get("customer_id"),
        contact_id=update_data.get("contact_id"),
        owner_id=update_data.get("owner_id"),
    )
    for field, value in update_data.items():
        setattr(opportunity, field, value)

    return await commit_with_audit(
        db, opportunity, current_user, "OPPORTUNITY_UPDATED", "OPPORTUNITY", {"fields": sorted(update_data)}
    )


@router.delete("/opportunities/{opportunity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_opportunity(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:delete")),
):
    opportunity = await get_tenant_record(db, Opportunity, opportunity_id, current_user.organization_id)
    opportunity.soft_delete()
    await commit_with_audit(db, opportunity, current_user, "OPPORTUNITY_DELETED", "OPPORTUNITY", refresh=False)


# Activities

@router.get("/activities", response_model=ActivityList)
async def list_activities(
    search: Optional[str] = None,
    type: Optional[str] = None,
    completed: Optional[bool] = None,
    customer_id: Optional[UUID] = None,
    deal_id: Optional[UUID] = None,
    params: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stmt = tenant_query(Activity, current_user.organization_id)
    stmt = apply_search(stmt, search, Activity.subject, Activity.description)
    stmt = apply_status(stmt, Activity.type, type)
    if completed is not None:
        stmt = stmt.where(Activity.completed == completed)
    if customer_id:
        stmt = stmt.where(Activity.customer_id == customer_id)
    if deal_id:
        stmt = stmt.where(Activity.deal_id == deal_id)

    activities, pagination = await paginate(db, stmt.order_by(Activity.created_at.desc()), params)
    return {"activities": activities, "pagination": pagination}


@router.post("/activities", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    data: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:create")),
):
    await _check_references(
        db,
        current_user.organization_id,
        customer_id=data.customer_id,
        contact_id=data.contact_id,
        deal_id=data.deal_id,
    )

    activity = Activity(
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        completed_at=utc_now() if data.completed else None,
        **data.model_dump(),
    )
    db.add(activity)
    return await commit_with_audit(db, activity, current_user, "ACTIVITY_CREATED", "ACTIVITY")


@router.get("/activities/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return await get_tenant_record(db, Activity, activity_id, current_user.organization_id)


@router.put("/activities/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: UUID,
    data: ActivityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:update")),
):
    activity = await get_tenant_record(db, Activity, activity_id, current_user.organization_id)

    update_data = data.model_dump(exclude_unset=True)
    await _check_references(
        db,
        current_user.organization_id,
        customer_id=update_data.get("customer_id"),
        contact_id=update_data.get("contact_id"),
        deal_id=update_data.get("deal_id"),
    )
    for field, value in update_data.items():
        setattr(activity, field, value)

    if "completed" in update_data:
        activity.completed_at = utc_now() if activity.completed else None

    return await commit_with_audit(
        db, activity, current_user, "ACTIVITY_UPDATED", "ACTIVITY", {"fields": sorted(update_data)}
    )


@router.delete("/activities/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity(
    activity_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permissions("crm:delete")),
):
    activity = await get_tenant_record(db, Activity, activity_id, current_user.organization_id)
    activity.soft_delete()
    await commit_with_audit(db, activity, current_user, "ACTIVITY_DELETED", "ACTIVITY", refresh=False)

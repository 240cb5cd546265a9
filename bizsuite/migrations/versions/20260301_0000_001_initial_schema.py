"""Initial BizSuite schema

Revision ID: 001
Revises:
Create Date: 2026-03-01 00:00:00.000000

Creates the initial PostgreSQL schema for the multi-tenant business platform:
- Organizations (tenants), users, roles & permissions (RBAC), audit logs
- CRM: customers, contacts, leads, deals, opportunities, activities
- HR: departments, employees, leave requests, performance reviews
- Finance: invoices, invoice items, budgets, expenses
- Projects: projects, tasks, task comments, timesheets
- AI: insights, predictions, autonomous decisions, voice commands
- Monitoring: performance metrics, GraphQL query log
"""
from typing import List, Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def uuid_column(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def tenant_columns(soft_delete: bool = True) -> List[sa.Column]:
    """Primary key, tenant key and timestamps shared by business tables."""
    columns = [
        uuid_column("id", primary_key=True),
        uuid_column("organization_id", nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]
    if soft_delete:
        columns.append(sa.Column("deleted_at", sa.DateTime(), nullable=True))
    return columns


def tenant_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE")


def set_null_fk(column: str, target: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint([column], [target], ondelete="SET NULL")


def tenant_indexes(table: str) -> None:
    op.create_index(f"ix_{table}_organization_id", table, ["organization_id"])
    op.create_index(f"ix_{table}_created_at", table, ["created_at"])


def upgrade() -> None:
    # Create organizations table
    op.create_table(
        "organizations",
        uuid_column("id", primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("domain", sa.String(255), nullable=True),
        sa.Column("plan", sa.String(50), nullable=False, server_default="trial"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("max_users", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("settings", sa.JSON(), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_organizations_name", "organizations", ["name"])
    op.create_index("ix_organizations_slug", "organizations", ["slug"])
    op.create_index("ix_organizations_is_active", "organizations", ["is_active"])

    # Create users table
    op.create_table(
        "users",
        uuid_column("id", primary_key=True),
        uuid_column("organization_id", nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        tenant_fk(),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_organization_id", "users", ["organization_id"])
    op.create_index("ix_users_is_active", "users", ["is_active"])

    # Create roles table
    op.create_table(
        "roles",
        uuid_column("id", primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_system_role", sa.Boolean(), nullable=False, server_default="false"),
        uuid_column("organization_id", nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        tenant_fk(),
        sa.UniqueConstraint("organization_id", "slug", name="uq_org_role_slug"),
    )
    op.create_index("ix_roles_organization_id", "roles", ["organization_id"])

    # Create permissions table
    op.create_table(
        "permissions",
        uuid_column("id", primary_key=True),
        uuid_column("role_id", nullable=False),
        sa.Column("resource", sa.String(100), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("role_id", "resource", "action", name="uq_role_resource_action"),
    )
    op.create_index("ix_permissions_role_id", "permissions", ["role_id"])

    # Create user_roles table
    op.create_table(
        "user_roles",
        uuid_column("id", primary_key=True),
        uuid_column("user_id", nullable=False),
        uuid_column("role_id", nullable=False),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        uuid_column("assigned_by", nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])
    op.create_index("ix_user_roles_role_id", "user_roles", ["role_id"])

    # Create audit_logs table
    op.create_table(
        "audit_logs",
        uuid_column("id", primary_key=True),
        uuid_column("organization_id", nullable=False),
        uuid_column("user_id", nullable=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource", sa.String(100), nullable=True),
        sa.Column("resource_id", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="success"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("context_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        tenant_fk(),
        set_null_fk("user_id", "users.id"),
    )
    op.create_index("ix_audit_logs_organization_id", "audit_logs", ["organization_id"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_event_type", "audit_logs", ["event_type"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    # CRM
    op.create_table(
        "customers",
        *tenant_columns(),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("notes", sa.Text(), nullable=True),
        uuid_column("owner_id", nullable=True),
        tenant_fk(),
        set_null_fk("owner_id", "users.id"),
    )
    tenant_indexes("customers")
    op.create_index("ix_customers_company_name", "customers", ["company_name"])
    op.create_index("ix_customers_status", "customers", ["status"])
    op.create_index("ix_customers_owner_id", "customers", ["owner_id"])

    op.create_table(
        "contacts",
        *tenant_columns(),
        uuid_column("customer_id", nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("position", sa.String(100), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default="false"),
        tenant_fk(),
        set_null_fk("customer_id", "customers.id"),
    )
    tenant_indexes("contacts")
    op.create_index("ix_contacts_customer_id", "contacts", ["customer_id"])
    op.create_index("ix_contacts_email", "contacts", ["email"])

    op.create_table(
        "leads",
        *tenant_columns(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("source", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="NEW"),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        uuid_column("owner_id", nullable=True),
        tenant_fk(),
        set_null_fk("owner_id", "users.id"),
    )
    tenant_indexes("leads")
    op.create_index("ix_leads_status", "leads", ["status"])
    op.create_index("ix_leads_owner_id", "leads", ["owner_id"])

    op.create_table(
        "deals",
        *tenant_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPEN"),
        sa.Column("stage", sa.String(50), nullable=True),
        sa.Column("probability", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expected_close_date", sa.Date(), nullable=True),
        sa.Column("actual_close_date", sa.Date(), nullable=True),
        uuid_column("customer_id", nullable=True),
        uuid_column("contact_id", nullable=True),
        uuid_column("owner_id", nullable=True),
        tenant_fk(),
        set_null_fk("customer_id", "customers.id"),
        set_null_fk("contact_id", "contacts.id"),
        set_null_fk("owner_id", "users.id"),
    )
    tenant_indexes("deals")
    op.create_index("ix_deals_name", "deals", ["name"])
    op.create_index("ix_deals_status", "deals", ["status"])
    op.create_index("ix_deals_customer_id", "deals", ["customer_id"])
    op.create_index("ix_deals_owner_id", "deals", ["owner_id"])

    op.create_table(
        "opportunities",
        *tenant_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("stage", sa.String(30), nullable=False, server_default="PROSPECTING"),
        sa.Column("probability", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("expected_close_date", sa.Date(), nullable=True),
        uuid_column("customer_id", nullable=True),
        uuid_column("contact_id", nullable=True),
        uuid_column("owner_id", nullable=True),
        tenant_fk(),
        set_null_fk("customer_id", "customers.id"),
        set_null_fk("contact_id", "contacts.id"),
        set_null_fk("owner_id", "users.id"),
    )
    tenant_indexes("opportunities")
    op.create_index("ix_opportunities_name", "opportunities", ["name"])
    op.create_index("ix_opportunities_stage", "opportunities", ["stage"])
    op.create_index("ix_opportunities_customer_id", "opportunities", ["customer_id"])
    op.create_index("ix_opportunities_owner_id", "opportunities", ["owner_id"])

    op.create_table(
        "activities",
        *tenant_columns(),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        uuid_column("customer_id", nullable=True),
        uuid_column("contact_id", nullable=True),
        uuid_column("deal_id", nullable=True),
        uuid_column("user_id", nullable=True),
        tenant_fk(),
        set_null_fk("customer_id", "customers.id"),
        set_null_fk("contact_id", "contacts.id"),
        set_null_fk("deal_id", "deals.id"),
        set_null_fk("user_id", "users.id"),
    )
    tenant_indexes("activities")
    op.create_index("ix_activities_type", "activities", ["type"])
    op.create_index("ix_activities_completed", "activities", ["completed"])
    op.create_index("ix_activities_customer_id", "activities", ["customer_id"])
    op.create_index("ix_activities_user_id", "activities", ["user_id"])

    # HR
    op.create_table(
        "departments",
        *tenant_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cost_center", sa.String(50), nullable=True),
        uuid_column("manager_id", nullable=True),
        tenant_fk(),
    )
    tenant_indexes("departments")

    op.create_table(
        "employees",
        *tenant_columns(),
        sa.Column("employee_number", sa.String(50), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("position", sa.String(100), nullable=True),
        sa.Column("employment_type", sa.String(20), nullable=False, server_default="FULL_TIME"),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("salary", sa.Float(), nullable=True),
        sa.Column("annual_leave_days", sa.Integer(), nullable=False, server_default="30"),
        uuid_column("department_id", nullable=True),
        uuid_column("user_id", nullable=True),
        tenant_fk(),
        set_null_fk("department_id", "departments.id"),
        set_null_fk("user_id", "users.id"),
        sa.UniqueConstraint("organization_id", "employee_number", name="uq_org_employee_number"),
    )
    tenant_indexes("employees")
    op.create_index("ix_employees_status", "employees", ["status"])
    op.create_index("ix_employees_department_id", "employees", ["department_id"])

    op.create_table(
        "leave_requests",
        *tenant_columns(soft_delete=False),
        uuid_column("employee_id", nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("emergency_contact", sa.String(255), nullable=True),
        sa.Column("handover_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        uuid_column("approver_id", nullable=True),
        sa.Column("approval_date", sa.DateTime(), nullable=True),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        tenant_fk(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        set_null_fk("approver_id", "users.id"),
    )
    tenant_indexes("leave_requests")
    op.create_index("ix_leave_requests_employee_id", "leave_requests", ["employee_id"])
    op.create_index("ix_leave_requests_start_date", "leave_requests", ["start_date"])
    op.create_index("ix_leave_requests_status", "leave_requests", ["status"])

    op.create_table(
        "performance_reviews",
        *tenant_columns(),
        uuid_column("employee_id", nullable=False),
        uuid_column("reviewer_id", nullable=True),
        sa.Column("period", sa.String(20), nullable=False),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("goals", sa.JSON(), nullable=True),
        sa.Column("strengths", sa.Text(), nullable=True),
        sa.Column("improvements", sa.Text(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        tenant_fk(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        set_null_fk("reviewer_id", "users.id"),
    )
    tenant_indexes("performance_reviews")
    op.create_index("ix_performance_reviews_employee_id", "performance_reviews", ["employee_id"])

    # Projects (before expenses, which reference them)
    op.create_table(
        "projects",
        *tenant_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PLANNING"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("budget", sa.Float(), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        uuid_column("customer_id", nullable=True),
        uuid_column("manager_id", nullable=True),
        tenant_fk(),
        set_null_fk("customer_id", "customers.id"),
        set_null_fk("manager_id", "users.id"),
    )
    tenant_indexes("projects")
    op.create_index("ix_projects_name", "projects", ["name"])
    op.create_index("ix_projects_status", "projects", ["status"])
    op.create_index("ix_projects_manager_id", "projects", ["manager_id"])

    op.create_table(
        "tasks",
        *tenant_columns(),
        uuid_column("project_id", nullable=False),
        uuid_column("parent_task_id", nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="TODO"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="MEDIUM"),
        uuid_column("assignee_id", nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        tenant_fk(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["parent_task_id"], ["tasks.id"], ondelete="CASCADE"),
        set_null_fk("assignee_id", "users.id"),
    )
    tenant_indexes("tasks")
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_parent_task_id", "tasks", ["parent_task_id"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_priority", "tasks", ["priority"])
    op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])

    op.create_table(
        "task_comments",
        uuid_column("id", primary_key=True),
        uuid_column("task_id", nullable=False),
        uuid_column("user_id", nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        set_null_fk("user_id", "users.id"),
    )
    op.create_index("ix_task_comments_task_id", "task_comments", ["task_id"])

    op.create_table(
        "timesheets",
        *tenant_columns(soft_delete=False),
        uuid_column("user_id", nullable=False),
        uuid_column("project_id", nullable=True),
        uuid_column("task_id", nullable=True),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("billable", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        tenant_fk(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        set_null_fk("project_id", "projects.id"),
        set_null_fk("task_id", "tasks.id"),
    )
    tenant_indexes("timesheets")
    op.create_index("ix_timesheets_user_id", "timesheets", ["user_id"])
    op.create_index("ix_timesheets_project_id", "timesheets", ["project_id"])
    op.create_index("ix_timesheets_work_date", "timesheets", ["work_date"])

    # Finance
    op.create_table(
        "invoices",
        *tenant_columns(),
        sa.Column("invoice_number", sa.String(50), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("customer_address", sa.Text(), nullable=True),
        uuid_column("customer_id", nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("subtotal", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        uuid_column("created_by_id", nullable=True),
        tenant_fk(),
        set_null_fk("customer_id", "customers.id"),
        set_null_fk("created_by_id", "users.id"),
        sa.UniqueConstraint("organization_id", "invoice_number", name="uq_org_invoice_number"),
    )
    tenant_indexes("invoices")
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"])
    op.create_index("ix_invoices_customer_id", "invoices", ["customer_id"])
    op.create_index("ix_invoices_due_date", "invoices", ["due_date"])
    op.create_index("ix_invoices_status", "invoices", ["status"])

    op.create_table(
        "invoice_items",
        uuid_column("id", primary_key=True),
        uuid_column("invoice_id", nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("tax_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"])

    op.create_table(
        "budgets",
        *tenant_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("spent", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("alert_threshold", sa.Float(), nullable=False, server_default="80"),
        tenant_fk(),
    )
    tenant_indexes("budgets")

    op.create_table(
        "expenses",
        *tenant_columns(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("merchant_name", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("recurring_type", sa.String(20), nullable=True),
        uuid_column("budget_id", nullable=True),
        uuid_column("project_id", nullable=True),
        uuid_column("user_id", nullable=True),
        uuid_column("approved_by_id", nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        tenant_fk(),
        set_null_fk("budget_id", "budgets.id"),
        set_null_fk("project_id", "projects.id"),
        set_null_fk("user_id", "users.id"),
        set_null_fk("approved_by_id", "users.id"),
    )
    tenant_indexes("expenses")
    op.create_index("ix_expenses_expense_date", "expenses", ["expense_date"])
    op.create_index("ix_expenses_category", "expenses", ["category"])
    op.create_index("ix_expenses_status", "expenses", ["status"])
    op.create_index("ix_expenses_budget_id", "expenses", ["budget_id"])
    op.create_index("ix_expenses_project_id", "expenses", ["project_id"])
    op.create_index("ix_expenses_user_id", "expenses", ["user_id"])

    # AI
    op.create_table(
        "ai_insights",
        *tenant_columns(soft_delete=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="GENERAL"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("impact", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("action_taken", sa.Text(), nullable=True),
        tenant_fk(),
    )
    tenant_indexes("ai_insights")
    op.create_index("ix_ai_insights_category", "ai_insights", ["category"])
    op.create_index("ix_ai_insights_is_read", "ai_insights", ["is_read"])

    op.create_table(
        "ai_predictions",
        *tenant_columns(soft_delete=False),
        sa.Column("prediction_type", sa.String(50), nullable=False),
        sa.Column("target", sa.String(255), nullable=True),
        sa.Column("predicted_value", sa.Float(), nullable=False),
        sa.Column("actual_value", sa.Float(), nullable=True),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("target_date", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("model_version", sa.String(20), nullable=False, server_default="linear-1"),
        sa.Column("input_data", sa.JSON(), nullable=True),
        tenant_fk(),
    )
    tenant_indexes("ai_predictions")
    op.create_index("ix_ai_predictions_prediction_type", "ai_predictions", ["prediction_type"])
    op.create_index("ix_ai_predictions_status", "ai_predictions", ["status"])

    op.create_table(
        "autonomous_decisions",
        *tenant_columns(soft_delete=False),
        sa.Column("decision_type", sa.String(50), nullable=False),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("selected_option", sa.JSON(), nullable=False),
        sa.Column("alternatives", sa.JSON(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("reasoning", sa.JSON(), nullable=True),
        sa.Column("risk_assessment", sa.JSON(), nullable=True),
        sa.Column("expected_outcome", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="EXECUTED"),
        sa.Column("feedback", sa.Float(), nullable=True),
        sa.Column("actual_outcome", sa.JSON(), nullable=True),
        sa.Column("feedback_at", sa.DateTime(), nullable=True),
        uuid_column("user_id", nullable=True),
        tenant_fk(),
        set_null_fk("user_id", "users.id"),
    )
    tenant_indexes("autonomous_decisions")
    op.create_index("ix_autonomous_decisions_decision_type", "autonomous_decisions", ["decision_type"])

    op.create_table(
        "voice_commands",
        *tenant_columns(soft_delete=False),
        uuid_column("user_id", nullable=True),
        sa.Column("transcript", sa.Text(), nullable=False),
        sa.Column("intent", sa.String(50), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("parameters", sa.JSON(), nullable=True),
        sa.Column("entities", sa.JSON(), nullable=True),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("execution_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("language", sa.String(10), nullable=False, server_default="en-US"),
        tenant_fk(),
        set_null_fk("user_id", "users.id"),
    )
    tenant_indexes("voice_commands")
    op.create_index("ix_voice_commands_user_id", "voice_commands", ["user_id"])
    op.create_index("ix_voice_commands_intent", "voice_commands", ["intent"])

    # Monitoring
    op.create_table(
        "performance_metrics",
        uuid_column("id", primary_key=True),
        uuid_column("organization_id", nullable=True),
        sa.Column("metric_type", sa.String(50), nullable=False),
        sa.Column("endpoint", sa.String(255), nullable=True),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("response_time", sa.Float(), nullable=True),
        sa.Column("cpu_usage", sa.Float(), nullable=True),
        sa.Column("memory_usage", sa.Float(), nullable=True),
        sa.Column("db_query_time", sa.Float(), nullable=True),
        sa.Column("error_rate", sa.Float(), nullable=True),
        sa.Column("throughput", sa.Float(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        tenant_fk(),
    )
    op.create_index("ix_performance_metrics_organization_id", "performance_metrics", ["organization_id"])
    op.create_index("ix_performance_metrics_metric_type", "performance_metrics", ["metric_type"])
    op.create_index("ix_performance_metrics_endpoint", "performance_metrics", ["endpoint"])
    op.create_index("ix_performance_metrics_timestamp", "performance_metrics", ["timestamp"])

    op.create_table(
        "graphql_query_logs",
        uuid_column("id", primary_key=True),
        uuid_column("organization_id", nullable=False),
        sa.Column("query_hash", sa.String(64), nullable=False),
        sa.Column("operation_name", sa.String(255), nullable=True),
        sa.Column("complexity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("execution_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("cache_hit", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        tenant_fk(),
    )
    op.create_index("ix_graphql_query_logs_organization_id", "graphql_query_logs", ["organization_id"])
    op.create_index("ix_graphql_query_logs_query_hash", "graphql_query_logs", ["query_hash"])
    op.create_index("ix_graphql_query_logs_created_at", "graphql_query_logs", ["created_at"])


def downgrade() -> None:
    for table in (
        "graphql_query_logs",
        "performance_metrics",
        "voice_commands",
        "autonomous_decisions",
        "ai_predictions",
        "ai_insights",
        "expenses",
        "budgets",
        "invoice_items",
        "invoices",
        "timesheets",
        "task_comments",
        "tasks",
        "projects",
        "performance_reviews",
        "leave_requests",
        "employees",
        "departments",
        "activities",
        "opportunities",
        "deals",
        "leads",
        "contacts",
        "customers",
        "audit_logs",
        "user_roles",
        "permissions",
        "roles",
        "users",
        "organizations",
    ):
        op.drop_table(table)

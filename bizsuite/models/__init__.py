"""
Database models for the multi-tenant business platform.

- Organizations (tenants), users, RBAC roles and permissions
- Audit logging
- CRM, HR, Finance and Project Management records
- AI insights, predictions, decisions and voice commands
- Performance metrics and GraphQL query log
"""

from bizsuite.models.organization import Organization
from bizsuite.models.user import User
from bizsuite.models.role import Role, Permission, UserRole
from bizsuite.models.audit import AuditLog
from bizsuite.models.crm import Customer, Contact, Lead, Deal, Opportunity, Activity
from bizsuite.models.hr import Department, Employee, Leave, PerformanceReview
from bizsuite.models.finance import Invoice, InvoiceItem, Expense, Budget
from bizsuite.models.projects import Project, Task, TaskComment, Timesheet
from bizsuite.models.ai import AIInsight, AIPrediction, AutonomousDecision, VoiceCommand
from bizsuite.models.performance import PerformanceMetric, GraphQLQueryLog

__all__ = [
    "Organization",
    "User",
    "Role",
    "Permission",
    "UserRole",
    "AuditLog",
    "Customer",
    "Contact",
    "Lead",
    "Deal",
    "Opportunity",
    "Activity",
    "Department",
    "Employee",
    "Leave",
    "PerformanceReview",
    "Invoice",
    "InvoiceItem",
    "Expense",
    "Budget",
    "Project",
    "Task",
    "TaskComment",
    "Timesheet",
    "AIInsight",
    "AIPrediction",
    "AutonomousDecision",
    "VoiceCommand",
    "PerformanceMetric",
    "GraphQLQueryLog",
]

"""
BizSuite API routes.

Provides REST API endpoints for:
- Authentication, tenants and users
- CRM, HR, Finance and Project Management records
- AI insights, predictions, decisions, voice commands and compliance
- Performance monitoring, GraphQL queries and dashboards
- Health checks
"""

from bizsuite.api.auth import router as auth_router
from bizsuite.api.tenants import router as tenants_router
from bizsuite.api.users import router as users_router
from bizsuite.api.crm import router as crm_router
from bizsuite.api.hr import router as hr_router
from bizsuite.api.finance import router as finance_router
from bizsuite.api.projects import router as projects_router
from bizsuite.api.ai import router as ai_router
from bizsuite.api.performance import router as performance_router
from bizsuite.api.graphql import router as graphql_router
from bizsuite.api.dashboard import router as dashboard_router
from bizsuite.api.security import router as security_router
from bizsuite.api.health import router as health_router

__all__ = [
    "auth_router",
    "tenants_router",
    "users_router",
    "crm_router",
    "hr_router",
    "finance_router",
    "projects_router",
    "ai_router",
    "performance_router",
    "graphql_router",
    "dashboard_router",
    "security_router",
    "health_router",
]

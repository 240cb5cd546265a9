"""
BizSuite - multi-tenant business platform

This package provides the API service for:
- CRM (customers, contacts, leads, deals, opportunities, activities)
- HR (departments, employees, leave, performance reviews)
- Finance (invoices, expenses, budgets)
- Project management (projects, tasks, timesheets)
- AI insights, predictions and autonomous decisions
- Performance monitoring, caching and GDPR compliance tooling
"""

__version__ = "1.0.0"

from bizsuite.config import BizSuiteConfig

__all__ = ["BizSuiteConfig"]

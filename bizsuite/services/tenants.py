"""Organization provisioning: a new tenant with its default roles."""

import logging
import re
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizsuite.models import Organization, Permission, Role

logger = logging.getLogger(__name__)

# slug -> (name, description, [(resource, action), ...])
DEFAULT_ROLES: Dict[str, Tuple[str, str, List[Tuple[str, str]]]] = {
    "admin": ("Admin", "Full access administrator", [("*", "*")]),
    "manager": (
        "Manager",
        "Manages business records and approvals",
        [("crm", "*"), ("hr", "*"), ("finance", "*"), ("projects", "*"), ("ai", "*")],
    ),
    "member": (
        "Member",
        "Standard member",
        [("crm", "read"), ("hr", "read"), ("finance", "read"), ("projects", "read"), ("ai", "read")],
    ),
}


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "organization"


async def unique_slug(db: AsyncSession, name: str) -> str:
    """Slug for an organization name, suffixed when already taken."""
    slug = slugify(name)[:90]
    result = await db.execute(select(Organization.id).where(Organization.slug == slug))
    if result.first() is None:
        return slug
    return f"{slug}-{uuid4().hex[:6]}"


async def provision_organization(
    db: AsyncSession,
    name: str,
    contact_email: Optional[str] = None,
    contact_name: Optional[str] = None,
    plan: str = "trial",
) -> Tuple[Organization, Dict[str, Role]]:
    """
    Create an organization with the admin, manager and member roles.

    The caller commits.

    Returns:
        The organization and its roles keyed by slug
    """
    organization = Organization(
        name=name,
        slug=await unique_slug(db, name),
        plan=plan,
        contact_email=contact_email,
        contact_name=contact_name,
        is_active=True,
    )
    db.add(organization)
    await db.flush()

    roles: Dict[str, Role] = {}
    for slug, (role_name, description, grants) in DEFAULT_ROLES.items():
        role = Role(
            organization_id=organization.id,
            name=role_name,
            slug=slug,
            description=description,
            is_system_role=True,
            permissions=[Permission(resource=resource, action=action) for resource, action in grants],
        )
        db.add(role)
        roles[slug] = role

    await db.flush()
    logger.info(f"Provisioned organization {organization.slug} ({organization.id})")
    return organization, roles

"""
Seed data script for local development.

Creates a demo organization with users, CRM records, an employee, an
invoice and a project so every module has something to show.
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import select

from bizsuite.database import AsyncSessionLocal, init_db
from bizsuite.models import (
    Budget,
    Customer,
    Deal,
    Department,
    Employee,
    Invoice,
    InvoiceItem,
    Lead,
    Organization,
    Project,
    Task,
    User,
    UserRole,
)
from bizsuite.security import hash_password
from bizsuite.services.tenants import provision_organization

DEMO_PASSWORD = "password123"


async def seed_database():
    """Create seed data for development."""

    print("🌱 Seeding database with sample data...")

    async with AsyncSessionLocal() as db:
        # Check if data already exists
        result = await db.execute(select(Organization))
        if result.scalars().first():
            print("⚠️  Database already has data. Skipping seed.")
            return

        print("\n📦 Creating demo organization...")
        acme, roles = await provision_organization(
            db,
            "Acme Corporation",
            contact_email="admin@acme.com",
            contact_name="John Doe",
            plan="professional",
        )
        acme.max_users = 50
        print(f"  ✅ Created {acme.name} ({acme.slug}) with roles {', '.join(sorted(roles))}")

        print("\n👤 Creating users...")
        users = {}
        for email, full_name, role_slug in (
            ("admin@acme.com", "John Doe", "admin"),
            ("manager@acme.com", "Mary Major", "manager"),
            ("sales@acme.com", "Bob Johnson", "member"),
        ):
            user = User(
                organization_id=acme.id,
                email=email,
                full_name=full_name,
                hashed_password=hash_password(DEMO_PASSWORD),
                is_active=True,
                is_verified=True,
            )
            user.roles.append(UserRole(role=roles[role_slug]))
            db.add(user)
            users[role_slug] = user
            print(f"  ✅ Created {email} ({roles[role_slug].name})")
        await db.flush()

        admin = users["admin"]
        today = date.today()

        print("\n🤝 Creating CRM records...")
        globex = Customer(
            organization_id=acme.id,
            company_name="Globex GmbH",
            email="info@globex.example",
            industry="Manufacturing",
            status="ACTIVE",
            owner_id=admin.id,
        )
        initech = Customer(
            organization_id=acme.id,
            company_name="Initech AG",
            industry="Software",
            status="PROSPECT",
            owner_id=users["member"].id,
        )
        db.add_all([globex, initech])
        await db.flush()
        db.add_all([
            Lead(
                organization_id=acme.id,
                first_name="Erika",
                last_name="Mustermann",
                company="Umbrella KG",
                source="WEBSITE",
                status="NEW",
                score=40,
                owner_id=users["member"].id,
            ),
            Deal(
                organization_id=acme.id,
                name="Globex ERP rollout",
                amount=48000.0,
                status="OPEN",
                stage="PROPOSAL",
                probability=60,
                expected_close_date=today + timedelta(days=45),
                customer_id=globex.id,
                owner_id=admin.id,
            ),
        ])
        print("  ✅ Created 2 customers, 1 lead, 1 deal")

        print("\n🧑‍💼 Creating HR records...")
        engineering = Department(organization_id=acme.id, name="Engineering", cost_center="ENG-100")
        db.add(engineering)
        await db.flush()
        db.add(Employee(
            organization_id=acme.id,
            employee_number="EMP-0001",
            first_name="Mary",
            last_name="Major",
            email="manager@acme.com",
            position="Engineering Manager",
            hire_date=today - timedelta(days=700),
            department_id=engineering.id,
            user_id=users["manager"].id,
        ))
        print("  ✅ Created 1 department, 1 employee")

        print("\n💶 Creating finance records...")
        invoice = Invoice(
            organization_id=acme.id,
            invoice_number="INV-2026-0001",
            customer_name=globex.company_name,
            customer_email=globex.email,
            customer_id=globex.id,
            issue_date=today,
            due_date=today + timedelta(days=30),
            status="SENT",
            created_by_id=admin.id,
            items=[
                InvoiceItem(position=0, description="Consulting", quantity=10, unit_price=150.0, tax_rate=19.0, total=1500.0),
            ],
        )
        invoice.subtotal = 1500.0
        invoice.tax_amount = 285.0
        invoice.total_amount = 1785.0
        db.add(invoice)
        db.add(Budget(
            organization_id=acme.id,
            name="Travel 2026",
            category="TRAVEL",
            amount=10000.0,
            start_date=date(today.year, 1, 1),
            end_date=date(today.year, 12, 31),
        ))
        print("  ✅ Created 1 invoice, 1 budget")

        print("\n📋 Creating project records...")
        project = Project(
            organization_id=acme.id,
            name="Globex ERP rollout",
            status="ACTIVE",
            priority="HIGH",
            start_date=today,
            budget=40000.0,
            progress=50,
            customer_id=globex.id,
            manager_id=users["manager"].id,
        )
        db.add(project)
        await db.flush()
        db.add_all([
            Task(organization_id=acme.id, project_id=project.id, name="Requirements workshop", status="DONE"),
            Task(organization_id=acme.id, project_id=project.id, name="Data migration", status="IN_PROGRESS",
                 assignee_id=users["manager"].id, estimated_hours=40.0),
        ])
        print("  ✅ Created 1 project, 2 tasks")

        await db.commit()

    print("\n✅ Database seeded successfully!")
    print("\n🔑 Test Credentials:")
    print(f"  - admin@acme.com / {DEMO_PASSWORD}")
    print(f"  - manager@acme.com / {DEMO_PASSWORD}")
    print(f"  - sales@acme.com / {DEMO_PASSWORD}")


async def main():
    """Main entry point."""
    # Initialize database schema
    print("🔧 Initializing database schema...")
    await init_db()
    print("✅ Database schema created")

    # Seed data
    await seed_database()


if __name__ == "__main__":
    asyncio.run(main())

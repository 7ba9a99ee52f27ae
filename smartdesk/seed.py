from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from smartdesk.auth import get_password_hash
from smartdesk.config import Settings
from smartdesk.db import FAQ, Project, Role, Task, TaskStatus, User

DEMO_PROJECTS = [
    ("Website Redesign", "Modernizing the company landing page and blog with a focus on conversion."),
    ("Mobile App Launch", "Preparing for the iOS and Android release, including beta testing and marketing."),
    ("Q1 Marketing Campaign", "Social media and email marketing push for the new year."),
    ("HR Portal Update", "Internal tool for employee management and benefits tracking."),
    ("Customer Support Bot", "Implementing an AI-driven chatbot for 24/7 customer assistance."),
    ("Data Migration 2026", "Moving legacy data to the new cloud-native infrastructure."),
    ("Security Audit", "Comprehensive review of all internal and external security protocols."),
    ("Product Roadmap Q3-Q4", "Planning the next phase of feature development and releases."),
    ("Brand Identity Refresh", "Updating logos, color palettes, and brand guidelines."),
    ("Community Outreach", "Engaging with local tech communities and organizing workshops."),
]

DEMO_TASKS = [
    ("Initial planning for {name}", TaskStatus.DONE),
    ("Resource allocation for {name}", TaskStatus.IN_PROGRESS),
    ("First milestone review of {name}", TaskStatus.TODO),
    ("Stakeholder feedback for {name}", TaskStatus.TODO),
]

DEMO_FAQS = [
    ("What is SmartDesk AI?", "SmartDesk AI is an all-in-one team productivity platform powered by AI to automate project management and tasks."),
    ("How do I create a task using AI?", 'Go to the AI Assistant tab and type something like "Create a task to fix the header in the Website Redesign project".'),
    ("Can I manage multiple projects?", "Yes, you can create and manage as many projects as your team needs from the Projects tab."),
    ("Is my data secure?", "Passwords are stored as salted hashes and sessions use signed, HTTP-only cookies."),
    ("How do integrations work?", "You can connect tools like Google Calendar and Slack from the Integrations page to sync your workflow."),
    ("Who can access the Knowledge Base?", "All team members can view the Knowledge Base, but only Admins can add entries."),
    ("What AI model does SmartDesk use?", "SmartDesk talks to a hosted large language model configured by your administrator."),
    ("Can I export my tasks?", "Currently, tasks are managed within the platform, but CSV export features are on our roadmap."),
    ("How do I change my password?", "Password changes are not available yet. Ask an admin for help."),
    ("Is there a mobile app?", 'We are working on a mobile app! Check the "Mobile App Launch" project for status updates.'),
]

MIN_PROJECTS = 10


async def upsert_admin(session: AsyncSession, settings: Settings) -> Optional[User]:
    """Make sure the configured admin account exists with the configured password."""
    if not settings.admin_email or not settings.admin_password:
        print("⚠️  ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin upsert")
        res = await session.execute(select(User).where(User.role == Role.ADMIN).order_by(User.id).limit(1))
        return res.scalar_one_or_none()

    res = await session.execute(select(User).where(User.email == settings.admin_email))
    admin = res.scalar_one_or_none()
    password_hash = get_password_hash(settings.admin_password)
    if admin is None:
        admin = User(
            name=settings.admin_name,
            email=settings.admin_email,
            password_hash=password_hash,
            role=Role.ADMIN,
        )
        session.add(admin)
    else:
        admin.name = settings.admin_name
        admin.password_hash = password_hash
        admin.role = Role.ADMIN
    await session.commit()
    await session.refresh(admin)
    print(f"✅ Admin user ready: {admin.email}")
    return admin


async def seed_demo_data(session: AsyncSession, owner: User) -> bool:
    """Replace projects, tasks and FAQs with the demo set when fewer than ten projects exist."""
    project_count = await session.scalar(select(func.count(Project.id)))
    if project_count >= MIN_PROJECTS:
        return False

    print(f"Seeding demo data ({project_count} projects found)...")
    await session.execute(delete(Task))
    await session.execute(delete(Project))
    await session.execute(delete(FAQ))

    for name, description in DEMO_PROJECTS:
        project = Project(name=name, description=description, user_id=owner.id)
        session.add(project)
        await session.flush()
        for title, status in DEMO_TASKS:
            session.add(Task(title=title.format(name=name), status=status, project_id=project.id, user_id=owner.id))

    for question, answer in DEMO_FAQS:
        session.add(FAQ(question=question, answer=answer))
    await session.commit()
    print("✅ Seeding complete.")
    return True


async def seed_database(session: AsyncSession, settings: Settings):
    admin = await upsert_admin(session, settings)
    if not settings.seed_demo_data:
        return
    if admin is None:
        print("⚠️  No admin account to own demo data, skipping demo seed")
        return
    await seed_demo_data(session, admin)

# ems/services/seeding.py
import logging
import random
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ems.core.config import Settings
from ems.core.security import ADMIN_ROLE, get_password_hash
from ems.models.model import Department, Employee, PerformanceMetric, User, utcnow

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENTS = [
    ("Human Resources", "HR Department", "John Smith"),
    ("Information Technology", "IT Department", "Jane Doe"),
    ("Finance", "Finance Department", "Bob Johnson"),
    ("Marketing", "Marketing Department", "Alice Brown"),
]

FIRST_NAMES = [
    "James", "Mary", "John", "Patricia", "Robert", "Jennifer", "Michael", "Linda",
    "William", "Elizabeth", "David", "Barbara", "Richard", "Susan", "Joseph", "Jessica",
]
LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis",
    "Rodriguez", "Martinez", "Wilson", "Anderson", "Taylor", "Moore", "Jackson", "Lee",
]
POSITIONS = [
    "Software Engineer", "Data Analyst", "Product Manager", "QA Engineer",
    "HR Specialist", "Financial Analyst", "Marketing Manager", "Accountant",
]
COMMENTS = [
    "Consistently exceeds expectations.",
    "Meets all performance standards.",
    "Shows potential for growth.",
    "Strong problem-solving abilities.",
]
GOALS = [
    "Improve technical skills in cloud technologies",
    "Lead a major project from start to finish",
    "Improve presentation skills",
]
ACHIEVEMENTS = [
    "Completed major project ahead of schedule",
    "Mentored 3 junior team members",
    "Reduced process time by 30%",
]


async def seed_departments(db: AsyncSession) -> List[Department]:
    result = await db.execute(select(Department.name))
    existing = set(result.scalars().all())

    created = []
    for name, description, manager in DEFAULT_DEPARTMENTS:
        if name in existing:
            continue
        department = Department(name=name, description=description, manager_name=manager, created_at=utcnow())
        db.add(department)
        created.append(department)

    if created:
        await db.flush()
        logger.info(f"Seeded {len(created)} departments")
    return created


async def seed_admin(db: AsyncSession, settings: Settings) -> Optional[User]:
    result = await db.execute(select(User.id).where(User.username == settings.ADMIN_USERNAME))
    if result.scalar() is not None:
        return None

    admin = User(
        username=settings.ADMIN_USERNAME,
        email=settings.ADMIN_EMAIL,
        password_hash=get_password_hash(settings.ADMIN_PASSWORD),
        role=ADMIN_ROLE,
        is_active=True,
        created_at=utcnow(),
    )
    db.add(admin)
    await db.flush()
    logger.info(f"Seeded admin user '{admin.username}'")
    return admin


async def seed_sample_employees(db: AsyncSession, count: int, rng: Optional[random.Random] = None) -> int:
    """Add ``count`` generated employees, each with a few quarters of metrics."""
    rng = rng or random.Random()
    result = await db.execute(select(Department.id))
    department_ids = result.scalars().all()
    if not department_ids or count <= 0:
        return 0

    result = await db.execute(select(func.count(Employee.id)))
    offset = result.scalar() or 0
    today = date.today()

    for n in range(count):
        first = rng.choice(FIRST_NAMES)
        last = rng.choice(LAST_NAMES)
        joined = today - timedelta(days=rng.randint(0, 5 * 365))
        employee = Employee(
            first_name=first,
            last_name=last,
            email=f"{first.lower()}.{last.lower()}{offset + n + 1}@ems.com",
            phone_number=f"(555) {rng.randint(100, 999)}-{rng.randint(1000, 9999)}",
            date_of_birth=date(rng.randint(1965, 2000), rng.randint(1, 12), rng.randint(1, 28)),
            date_of_joining=joined,
            position=rng.choice(POSITIONS),
            salary=Decimal(rng.randrange(40000, 150000, 500)),
            department_id=rng.choice(department_ids),
            is_active=True,
            created_at=utcnow(),
        )
        for quarter in range(1, 5):
            employee.performance_metrics.append(PerformanceMetric(
                year=today.year - 1,
                quarter=quarter,
                performance_score=Decimal(rng.randint(550, 1000)) / 10,
                comments=rng.choice(COMMENTS),
                goals=rng.choice(GOALS),
                achievements=rng.choice(ACHIEVEMENTS),
                created_at=utcnow(),
            ))
        db.add(employee)

    await db.flush()
    logger.info(f"Seeded {count} sample employees")
    return count


async def seed_database(db: AsyncSession, settings: Settings) -> None:
    await seed_departments(db)
    await seed_admin(db, settings)
    if settings.SEED_SAMPLE_EMPLOYEES:
        result = await db.execute(select(func.count(Employee.id)))
        if not result.scalar():
            await seed_sample_employees(db, settings.SEED_SAMPLE_EMPLOYEES)

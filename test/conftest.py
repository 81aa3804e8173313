import os
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ems.core.database import Database
from ems.schemas.schema import DepartmentCreate, EmployeeCreate
from ems.repositories.departments import department_repository
from ems.repositories.employees import employee_repository


class FakeClock:
    """Deterministic clock for attendance tests"""

    def __init__(self, start: datetime = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def department_payload(name="Engineering", **overrides):
    data = {"name": name, "description": f"{name} Department", "manager_name": "Jane Doe"}
    data.update(overrides)
    return DepartmentCreate(**data)


def employee_payload(department_id, email="john.doe@example.com", **overrides):
    data = {
        "first_name": "John",
        "last_name": "Doe",
        "email": email,
        "phone_number": "(555) 123-4567",
        "address": "123 Main St, New York, NY 10001",
        "date_of_birth": date(1990, 4, 12),
        "date_of_joining": date(2023, 1, 15),
        "position": "Software Engineer",
        "salary": Decimal("75000.00"),
        "department_id": department_id,
    }
    data.update(overrides)
    return EmployeeCreate(**data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def database(tmp_path):
    """Fresh SQLite database file per test"""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'ems.db'}")
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
async def department(database):
    async with database.session() as session:
        return await department_repository.create(session, department_payload())


@pytest.fixture
async def employee(database, department):
    async with database.session() as session:
        return await employee_repository.create(session, employee_payload(department.id))

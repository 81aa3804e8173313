import pytest
from decimal import Decimal

from sqlalchemy import func, select

from conftest import department_payload, employee_payload
from ems.core.exceptions import ConflictError, ValidationError
from ems.models.model import Attendance, Employee
from ems.repositories import departments as department_store
from ems.repositories import employees as employee_store
from ems.repositories.departments import department_repository
from ems.repositories.employees import employee_repository
from ems.schemas.schema import EmployeeUpdate, PageRequest
from ems.services.attendance import AttendanceEngine


async def test_get_by_id_and_exists_agree(database, employee):
    async with database.session() as session:
        for id_value in (employee.id, employee.id + 100):
            found = await employee_repository.get_by_id(session, id_value)
            assert (found is not None) == await employee_repository.exists(session, id_value)


async def test_get_by_id_missing_returns_none(database):
    async with database.session() as session:
        assert await employee_repository.get_by_id(session, 9999) is None
        assert await employee_repository.exists(session, 9999) is False


async def test_list_all_projects_joined_fields(database, department, employee):
    async with database.session() as session:
        employees = await employee_repository.list_all(session)

    assert len(employees) == 1
    assert employees[0].department_name == department.name
    assert employees[0].email == "john.doe@example.com"


async def test_list_all_is_idempotent(database, department):
    async with database.session() as session:
        for n in range(3):
            await employee_store.create_employee(session, employee_payload(department.id, email=f"e{n}@example.com"))

    async with database.session() as session:
        first = await employee_repository.list_all(session)
        second = await employee_repository.list_all(session)
        assert first == second
        assert await employee_repository.count(session) == 3


async def test_create_then_update_round_trip(database, department, employee):
    other = None
    async with database.session() as session:
        other = await department_repository.create(session, department_payload("Finance"))

    update = EmployeeUpdate(
        **employee_payload(other.id, email="j.doe@example.com", position="Lead Developer",
                           salary=Decimal("91000.50")).model_dump(),
        is_active=False,
    )
    async with database.session() as session:
        updated = await employee_store.update_employee(session, employee.id, update)

    assert updated.id == employee.id
    assert updated.created_at == employee.created_at
    assert updated.updated_at is not None
    assert updated.department_id == other.id
    assert updated.department_name == "Finance"
    assert updated.email == "j.doe@example.com"
    assert updated.salary == Decimal("91000.50")
    assert updated.is_active is False
    for field in ("first_name", "last_name", "phone_number", "address", "date_of_birth", "date_of_joining"):
        assert getattr(updated, field) == getattr(employee, field)


async def test_update_missing_employee_returns_none(database, department):
    update = EmployeeUpdate(**employee_payload(department.id).model_dump())
    async with database.session() as session:
        assert await employee_store.update_employee(session, 4242, update) is None


async def test_duplicate_email_is_conflict(database, department, employee):
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await employee_store.create_employee(session, employee_payload(department.id, email="JOHN.DOE@example.com"))


async def test_store_unique_constraint_surfaces_as_conflict(database, department, employee):
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await employee_repository.create(session, employee_payload(department.id))


async def test_missing_department_is_validation_error(database):
    with pytest.raises(ValidationError):
        async with database.session() as session:
            await employee_store.create_employee(session, employee_payload(department_id=77))


async def test_department_with_employees_cannot_be_deleted(database, department, employee):
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await department_store.delete_department(session, department.id)

    async with database.session() as session:
        assert await department_repository.exists(session, department.id)


async def test_department_listing_counts_employees(database, department, employee):
    async with database.session() as session:
        await department_repository.create(session, department_payload("Marketing"))

    async with database.session() as session:
        listed = {d.name: d.employee_count for d in await department_repository.list_all(session)}
        single = await department_repository.get_by_id(session, department.id)
        stats = await department_store.employee_count_by_department(session)

    assert listed == {"Engineering": 1, "Marketing": 0}
    assert single.employee_count == 1
    assert [s.department for s in stats] == ["Engineering", "Marketing"]


async def test_duplicate_department_name_is_conflict(database, department):
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await department_store.create_department(session, department_payload("engineering"))


async def test_delete_employee_cascades_attendance(database, employee, clock):
    engine = AttendanceEngine(clock=clock)
    async with database.session() as session:
        await engine.check_in(session, employee.id)

    async with database.session() as session:
        assert await employee_repository.delete(session, employee.id) is True

    async with database.session() as session:
        remaining = await session.execute(select(func.count(Attendance.id)))
        assert remaining.scalar() == 0
        assert await employee_repository.delete(session, employee.id) is False


async def test_bulk_create_is_all_or_nothing(database, department, employee):
    payloads = [
        employee_payload(department.id, email="new.one@example.com"),
        employee_payload(department.id, email="john.doe@example.com"),
    ]
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await employee_store.bulk_create_employees(session, payloads)

    async with database.session() as session:
        assert await employee_repository.count(session) == 1


async def test_bulk_create_rejects_duplicates_within_batch(database, department):
    payloads = [employee_payload(department.id, email="same@example.com") for _ in range(2)]
    with pytest.raises(ConflictError):
        async with database.session() as session:
            await employee_store.bulk_create_employees(session, payloads)


async def test_bulk_create_and_delete(database, department):
    payloads = [employee_payload(department.id, email=f"bulk{n}@example.com") for n in range(4)]
    async with database.session() as session:
        created = await employee_store.bulk_create_employees(session, payloads)
    assert [e.email for e in created] == [p.email for p in payloads]

    async with database.session() as session:
        deleted = await employee_store.bulk_delete_employees(session, [created[0].id, created[1].id, 999])
    assert deleted == 2

    async with database.session() as session:
        assert await employee_repository.count(session) == 2


async def test_paged_search_and_sort(database, department):
    people = [("Alice", "Brown", 50000), ("Bob", "Smith", 70000), ("Carol", "Smithers", 60000)]
    async with database.session() as session:
        for first, last, salary in people:
            await employee_store.create_employee(session, employee_payload(
                department.id,
                email=f"{first.lower()}@example.com",
                first_name=first,
                last_name=last,
                salary=Decimal(salary),
            ))

    async with database.session() as session:
        page = await employee_store.get_paged(
            session, PageRequest(search="smith", sort_by="salary", sort_descending=True)
        )
        assert page.total_count == 2
        assert [e.first_name for e in page.data] == ["Bob", "Carol"]

        page = await employee_store.get_paged(session, PageRequest(page_number=2, page_size=2, sort_by="firstName"))
        assert page.total_count == 3
        assert page.total_pages == 2
        assert [e.first_name for e in page.data] == ["Carol"]


def test_page_request_clamps_out_of_range_values():
    request = PageRequest(page_number=0, page_size=500)
    assert request.page_number == 1
    assert request.page_size == 10


async def test_list_by_department(database, department, employee):
    async with database.session() as session:
        other = await department_repository.create(session, department_payload("Legal"))

    async with database.session() as session:
        assert [e.id for e in await employee_store.list_by_department(session, department.id)] == [employee.id]
        assert await employee_store.list_by_department(session, other.id) == []
        count = await session.execute(select(func.count(Employee.id)))
        assert count.scalar() == 1

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from pydantic import TypeAdapter

from ems.core.config import Settings
from ems.core.security import create_access_token
from ems.main import create_app


@pytest.fixture
def client(tmp_path, clock):
    """FastAPI test client over a seeded SQLite database"""
    settings = Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        LOG_FILE=None,
        SEED_ON_STARTUP=True,
        SEED_SAMPLE_EMPLOYEES=0,
    )
    app = create_app(settings=settings, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token({'sub': 'admin'})}"}


@pytest.fixture
def employee_data():
    """Sample employee data"""
    return {
        "first_name": "John",
        "last_name": "Doe",
        "email": "john.doe@example.com",
        "date_of_birth": "1990-04-12",
        "date_of_joining": "2023-01-15",
        "position": "Software Engineer",
        "salary": 75000,
        "department_id": 1,
    }


def create_employee(client, headers, data):
    response = client.post("/api/employees/", json=data, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health_check(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Process-Time" in response.headers


def test_login_and_current_user(client):
    response = client.post("/token", data={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "Admin"
    assert me.json()["last_login_at"] is not None


def test_login_rejects_bad_password(client):
    response = client.post("/token", data={"username": "admin", "password": "wrong"})
    assert response.status_code == 401


def test_requests_require_authentication(client):
    assert client.get("/api/employees/").status_code == 401


def test_seeded_departments(client, admin_headers):
    response = client.get("/api/departments/", headers=admin_headers)
    assert response.status_code == 200
    names = {d["name"] for d in response.json()}
    assert names == {"Human Resources", "Information Technology", "Finance", "Marketing"}


def test_employee_crud(client, admin_headers, employee_data):
    created = create_employee(client, admin_headers, employee_data)
    assert created["department_name"] == "Human Resources"

    fetched = client.get(f"/api/employees/{created['id']}", headers=admin_headers)
    assert fetched.status_code == 200
    assert fetched.json()["email"] == employee_data["email"]

    update = {**employee_data, "position": "Lead Developer", "department_id": 2}
    updated = client.put(f"/api/employees/{created['id']}", json=update, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["department_name"] == "Information Technology"

    deleted = client.delete(f"/api/employees/{created['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert client.get(f"/api/employees/{created['id']}", headers=admin_headers).status_code == 404


def test_employee_errors_map_to_status_codes(client, admin_headers, employee_data):
    create_employee(client, admin_headers, employee_data)

    duplicate = client.post("/api/employees/", json=employee_data, headers=admin_headers)
    assert duplicate.status_code == 409

    missing_department = client.post(
        "/api/employees/",
        json={**employee_data, "email": "x@example.com", "department_id": 99},
        headers=admin_headers,
    )
    assert missing_department.status_code == 422

    assert client.get("/api/employees/12345", headers=admin_headers).status_code == 404


def test_paged_employees(client, admin_headers, employee_data):
    for n in range(3):
        create_employee(client, admin_headers, {**employee_data, "email": f"user{n}@example.com"})

    response = client.get("/api/employees/paged?page_size=2&page_number=2", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 3
    assert body["total_pages"] == 2
    assert len(body["data"]) == 1


def test_non_admin_cannot_mutate(client, admin_headers, employee_data):
    registered = client.post(
        "/register",
        json={"username": "clerk", "email": "clerk@ems.com", "password": "secret123"},
        headers=admin_headers,
    )
    assert registered.status_code == 201
    assert registered.json()["role"] == "User"

    clerk = {"Authorization": f"Bearer {create_access_token({'sub': 'clerk'})}"}
    assert client.post("/api/employees/", json=employee_data, headers=clerk).status_code == 403
    assert client.get("/api/employees/", headers=clerk).status_code == 200


def test_department_with_employees_cannot_be_deleted(client, admin_headers, employee_data):
    create_employee(client, admin_headers, employee_data)
    response = client.delete("/api/departments/1", headers=admin_headers)
    assert response.status_code == 409


def test_attendance_workflow(client, admin_headers, employee_data, clock):
    employee = create_employee(client, admin_headers, employee_data)

    check_in = client.post(
        "/api/attendance/check-in",
        json={"employee_id": employee["id"], "notes": "On site"},
        headers=admin_headers,
    )
    assert check_in.status_code == 201
    assert check_in.json()["check_out_time"] is None

    again = client.post("/api/attendance/check-in", json={"employee_id": employee["id"]}, headers=admin_headers)
    assert again.status_code == 409

    clock.advance(hours=8, minutes=30)
    check_out = client.post(
        "/api/attendance/check-out",
        json={"employee_id": employee["id"], "notes": "Done"},
        headers=admin_headers,
    )
    assert check_out.status_code == 200
    body = check_out.json()
    assert TypeAdapter(timedelta).validate_python(body["total_hours"]) == timedelta(hours=8, minutes=30)
    assert body["notes"] == "Check-in: On site\nCheck-out: Done"

    missing = client.post("/api/attendance/check-out", json={"employee_id": employee["id"]}, headers=admin_headers)
    assert missing.status_code == 404

    history = client.get(f"/api/attendance/employee/{employee['id']}", headers=admin_headers)
    assert history.status_code == 200
    assert len(history.json()) == 1

    today = client.get(f"/api/attendance/employee/{employee['id']}/today", headers=admin_headers)
    assert len(today.json()) == 1


def test_check_in_rejects_client_timestamps(client, admin_headers, employee_data, clock):
    employee = create_employee(client, admin_headers, employee_data)
    response = client.post(
        "/api/attendance/check-in",
        json={"employee_id": employee["id"], "check_in_time": "2000-01-01T00:00:00"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["check_in_time"].startswith("2025-03-03T09:00:00")


def test_attendance_inverted_range_is_422(client, admin_headers, employee_data):
    employee = create_employee(client, admin_headers, employee_data)
    response = client.get(
        f"/api/attendance/employee/{employee['id']}?start_date=2025-03-05&end_date=2025-03-01",
        headers=admin_headers,
    )
    assert response.status_code == 422


def test_performance_score_out_of_range_is_422(client, admin_headers, employee_data):
    employee = create_employee(client, admin_headers, employee_data)
    response = client.post(
        "/api/performance-metrics/",
        json={"employee_id": employee["id"], "year": 2024, "quarter": 1, "performance_score": 150},
        headers=admin_headers,
    )
    assert response.status_code == 422
    assert client.get("/api/performance-metrics/", headers=admin_headers).json() == []


def test_report_download(client, admin_headers, employee_data):
    create_employee(client, admin_headers, employee_data)

    response = client.get("/api/reports/employees/csv", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"].startswith('attachment; filename="employees_20250303_090000.csv"')
    assert "john.doe@example.com" in response.content.decode("utf-8-sig")


def test_report_errors(client, admin_headers):
    assert client.get("/api/reports/employees/unknown-format", headers=admin_headers).status_code == 400
    assert client.get("/api/reports/payroll/csv", headers=admin_headers).status_code == 404


def test_report_catalog(client, admin_headers):
    response = client.get("/api/reports/", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert "attendance-patterns" in body["datasets"]
    assert {f["format"] for f in body["formats"]} == {"csv", "excel", "pdf", "xlsx"}

"""
Class API Tests

Class CRUD, capacity and enrolment rules.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from app.features.roles.hierarchy import Role


def _class_payload(teacher_id: str, **extra) -> dict:
    return {
        "name": "Grade 7",
        "section": "b",
        "grade_level": 7,
        "academic_year": "2024-2025",
        "class_teacher_id": teacher_id,
        "capacity": 30,
        **extra,
    }


@pytest_asyncio.fixture
async def school_class(client: AsyncClient, admin, teacher, auth_headers) -> dict:
    response = await client.post("/classes/", json=_class_payload(teacher.id), headers=auth_headers(admin))
    assert response.status_code == 201
    return response.json()


# ==================== CRUD ====================


@pytest.mark.asyncio
async def test_create_class(school_class, tenant, teacher):
    assert school_class["tenant_id"] == tenant.id
    assert school_class["section"] == "B"
    assert school_class["class_teacher_id"] == teacher.id
    assert school_class["student_ids"] == []
    assert school_class["student_count"] == 0


@pytest.mark.asyncio
async def test_class_teacher_must_be_teacher(client: AsyncClient, admin, student, auth_headers):
    response = await client.post("/classes/", json=_class_payload(student.id), headers=auth_headers(admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_class_teacher_from_other_tenant(client: AsyncClient, make_user, other_tenant, admin, auth_headers):
    outsider = await make_user(Role.TEACHER, other_tenant.id, email="teacher@riverside.edu")
    response = await client.post("/classes/", json=_class_payload(outsider.id), headers=auth_headers(admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_invalid_academic_year_and_capacity(client: AsyncClient, admin, teacher, auth_headers):
    response = await client.post(
        "/classes/", json=_class_payload(teacher.id, academic_year="2024/25", capacity=101),
        headers=auth_headers(admin),
    )

    assert response.status_code == 400
    assert set(response.json()) == {"academic_year", "capacity"}


@pytest.mark.asyncio
async def test_duplicate_class(client: AsyncClient, school_class, admin, teacher, auth_headers):
    response = await client.post("/classes/", json=_class_payload(teacher.id), headers=auth_headers(admin))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_teacher_cannot_create_class(client: AsyncClient, teacher, auth_headers):
    response = await client.post("/classes/", json=_class_payload(teacher.id), headers=auth_headers(teacher))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_teacher_lists_own_classes(client: AsyncClient, school_class, make_user, tenant, admin, auth_headers):
    colleague = await make_user(Role.TEACHER, tenant.id, email="colleague@greenfield.edu")
    await client.post(
        "/classes/", json=_class_payload(colleague.id, section="C"), headers=auth_headers(admin)
    )

    response = await client.get("/classes/", headers=auth_headers(colleague))

    assert response.status_code == 200
    assert [c["section"] for c in response.json()] == ["C"]

    response = await client.get("/classes/", headers=auth_headers(admin))
    assert [c["section"] for c in response.json()] == ["B", "C"]


@pytest.mark.asyncio
async def test_other_tenant_cannot_see_class(client: AsyncClient, school_class, other_admin, auth_headers):
    response = await client.get(f"/classes/{school_class['id']}", headers=auth_headers(other_admin))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_class(client: AsyncClient, school_class, admin, auth_headers):
    response = await client.patch(
        f"/classes/{school_class['id']}", json={"room": "Lab 2", "section": "d"}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["room"] == "Lab 2"
    assert response.json()["section"] == "D"


@pytest.mark.asyncio
async def test_delete_empty_class(client: AsyncClient, school_class, admin, auth_headers):
    response = await client.delete(f"/classes/{school_class['id']}", headers=auth_headers(admin))
    assert response.status_code == 204

    response = await client.get(f"/classes/{school_class['id']}", headers=auth_headers(admin))
    assert response.status_code == 404


# ==================== Enrolment ====================


@pytest.mark.asyncio
async def test_enroll_and_remove_student(client: AsyncClient, school_class, student, admin, auth_headers):
    url = f"/classes/{school_class['id']}/students"

    response = await client.post(url, json={"student_id": student.id}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["student_ids"] == [student.id]
    assert response.json()["student_count"] == 1

    response = await client.post(url, json={"student_id": student.id}, headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.json()["detail"] == "Student is already enrolled in this class"

    response = await client.delete(f"{url}/{student.id}", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["student_ids"] == []

    response = await client.delete(f"{url}/{student.id}", headers=auth_headers(admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_cannot_delete_class_with_students(client: AsyncClient, school_class, student, admin, auth_headers):
    await client.post(
        f"/classes/{school_class['id']}/students", json={"student_id": student.id}, headers=auth_headers(admin)
    )

    response = await client.delete(f"/classes/{school_class['id']}", headers=auth_headers(admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_enrollment_respects_capacity(client: AsyncClient, make_user, tenant, admin, teacher, auth_headers):
    response = await client.post(
        "/classes/", json=_class_payload(teacher.id, capacity=1, section="S"), headers=auth_headers(admin)
    )
    url = f"/classes/{response.json()['id']}/students"
    first = await make_user(Role.STUDENT, tenant.id)
    second = await make_user(Role.STUDENT, tenant.id)

    assert (await client.post(url, json={"student_id": first.id}, headers=auth_headers(admin))).status_code == 200
    response = await client.post(url, json={"student_id": second.id}, headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.json()["detail"] == "Class is at full capacity"


@pytest.mark.asyncio
async def test_capacity_cannot_drop_below_enrolment(
    client: AsyncClient, school_class, make_user, tenant, admin, auth_headers
):
    url = f"/classes/{school_class['id']}"
    for _ in range(2):
        student = await make_user(Role.STUDENT, tenant.id)
        await client.post(f"{url}/students", json={"student_id": student.id}, headers=auth_headers(admin))

    response = await client.patch(url, json={"capacity": 1}, headers=auth_headers(admin))

    assert response.status_code == 400
    assert response.json()["detail"] == "Capacity cannot be lower than the number of enrolled students"


@pytest.mark.asyncio
async def test_only_active_students_enroll(client: AsyncClient, school_class, make_user, tenant, teacher, admin, auth_headers):
    inactive = await make_user(Role.STUDENT, tenant.id, is_active=False)
    url = f"/classes/{school_class['id']}/students"

    response = await client.post(url, json={"student_id": inactive.id}, headers=auth_headers(admin))
    assert response.status_code == 400

    response = await client.post(url, json={"student_id": teacher.id}, headers=auth_headers(admin))
    assert response.status_code == 400

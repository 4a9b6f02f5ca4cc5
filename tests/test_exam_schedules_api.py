from typing import Dict

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import ExamSchedule, StaffDetail, SubjectDetail
from app.core.notifications import get_notifier
from app.main import app


async def _create_department(client: AsyncClient, name: str) -> str:
    response = await client.post("/api/v1/departments", json={"name": name, "code": name.lower()})
    assert response.status_code == 201
    assert response.json()["code"] == name.upper()
    return response.json()["id"]


async def _create_subject(client: AsyncClient, name: str, code: str, department: str, year: int = 2) -> str:
    response = await client.post(
        "/api/v1/subjects",
        json={"name": name, "code": code, "department": department, "year": year, "semester": 3},
    )
    assert response.status_code == 201
    return response.json()["id"]


async def _seed(client: AsyncClient) -> Dict[str, str]:
    ids = {}
    for name in ("CSE", "IT", "ECE"):
        ids[name] = await _create_department(client, name)
    ids["ds_cse"] = await _create_subject(client, "Data Structures", "CS201", "CSE")
    ids["ds_it"] = await _create_subject(client, "Data Structures", "IT201", "IT")
    ids["algorithms"] = await _create_subject(client, "Algorithms", "CS202", "CSE")
    ids["networks"] = await _create_subject(client, "Networks", "CS203", "CSE", year=3)
    return ids


def _request(subject_id: str, exam_date: str, assigned_by: str = "staff-a", exam_type: str = "IA1") -> dict:
    return {"subject_id": subject_id, "exam_date": exam_date, "assigned_by": assigned_by, "exam_type": exam_type}


@pytest.mark.asyncio
async def test_schedule_shared_subject(client: AsyncClient) -> None:
    ids = await _seed(client)

    response = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))

    assert response.status_code == 201
    data = response.json()
    assert len(data) == 2
    origin, synced = data
    assert origin["subject_id"] == ids["ds_cse"]
    assert origin["department_id"] == ids["CSE"]
    assert origin["priority_department"] is None
    assert synced["subject_id"] == ids["ds_it"]
    assert synced["department_id"] == ids["IT"]
    assert synced["priority_department"] == ids["CSE"]
    assert {r["exam_date"] for r in data} == {"2025-08-04"}

    listing = await client.get("/api/v1/exam-schedules")
    assert listing.status_code == 200
    items = listing.json()
    assert {(i["department"], i["subject_code"]) for i in items} == {("CSE", "CS201"), ("IT", "IT201")}
    assert all(i["subject_name"] == "Data Structures" and i["year"] == 2 and i["semester"] == 3 for i in items)


@pytest.mark.asyncio
async def test_shared_subject_date_mismatch(client: AsyncClient) -> None:
    ids = await _seed(client)
    await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))

    response = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_it"], "2025-08-05", "staff-b"))

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "SHARED_SUBJECT_DATE_MISMATCH"
    assert detail["details"]["department"] == "CSE"
    assert detail["details"]["exam_date"] == "2025-08-04"
    assert "must be scheduled on 2025-08-04" in detail["message"]


@pytest.mark.asyncio
async def test_department_double_booked(client: AsyncClient) -> None:
    ids = await _seed(client)
    first = await client.post("/api/v1/exam-schedules", json=_request(ids["algorithms"], "2025-08-04"))
    assert first.status_code == 201

    response = await client.post("/api/v1/exam-schedules", json=_request(ids["networks"], "2025-08-04"))

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "DEPARTMENT_DOUBLE_BOOKED"


@pytest.mark.asyncio
async def test_subject_scheduled_once_per_department(client: AsyncClient, db_session: AsyncSession) -> None:
    ids = await _seed(client)
    await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))

    again = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-06"))
    repeat = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))

    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "ALREADY_SCHEDULED"
    assert repeat.status_code == 409
    assert repeat.json()["detail"]["code"] == "ALREADY_SCHEDULED"
    count = await db_session.execute(select(func.count()).select_from(ExamSchedule))
    assert count.scalar_one() == 2


@pytest.mark.asyncio
async def test_staff_embedded_subject(client: AsyncClient, db_session: AsyncSession) -> None:
    ids = await _seed(client)
    await _create_subject(client, "Engineering Mathematics", "MA1001", "IT", year=1)
    staff = StaffDetail(
        name="Ravi",
        email="ravi@example.edu",
        department="CSE ",
        role="teacher",
        subject_name="Engineering Mathematics",
        subject_code="MA101",
    )
    db_session.add(staff)
    await db_session.commit()
    staff_id = staff.id

    response = await client.post(
        "/api/v1/exam-schedules", json=_request(f"staff-subject-{staff_id}", "2025-08-07", exam_type="IA2")
    )

    assert response.status_code == 201
    data = response.json()
    assert [r["department_id"] for r in data] == [ids["CSE"], ids["IT"]]
    assert data[1]["priority_department"] == ids["CSE"]

    result = await db_session.execute(select(SubjectDetail).where(SubjectDetail.subcode == "MA101"))
    created = result.scalar_one()
    assert created.is_shared is True
    assert created.shared_subject_code == "MA101"
    assert str(created.id) == data[0]["subject_id"]


@pytest.mark.asyncio
async def test_unknown_subject(client: AsyncClient) -> None:
    await _seed(client)

    missing = await client.post(
        "/api/v1/exam-schedules", json=_request("7d0f3c2e-8f5e-4a55-9a4e-0c9b6d1f2a11", "2025-08-04")
    )
    garbage = await client.post("/api/v1/exam-schedules", json=_request("nope", "2025-08-04"))

    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "SUBJECT_NOT_FOUND"
    assert garbage.status_code == 404


@pytest.mark.asyncio
async def test_invalid_request_body(client: AsyncClient) -> None:
    ids = await _seed(client)

    bad_type = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04", exam_type="FINAL"))
    bad_date = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "04/08/2025"))
    blank_assignee = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04", "  "))

    assert bad_type.status_code == 422
    assert bad_date.status_code == 422
    assert blank_assignee.status_code == 422


@pytest.mark.asyncio
async def test_synchronized_departments_notified(client: AsyncClient) -> None:
    ids = await _seed(client)
    notices = []

    class Recorder:
        def publish(self, notice):
            notices.append(notice)
            return True

    app.dependency_overrides[get_notifier] = lambda: Recorder()

    response = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))

    assert response.status_code == 201
    assert [(n.origin_department, n.department) for n in notices] == [("CSE", "IT")]


@pytest.mark.asyncio
async def test_delete_and_filter_schedules(client: AsyncClient) -> None:
    ids = await _seed(client)
    created = await client.post("/api/v1/exam-schedules", json=_request(ids["networks"], "2025-08-05"))
    await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))

    year_three = await client.get("/api/v1/exam-schedules", params={"year": 3})
    assert [i["subject_code"] for i in year_three.json()] == ["CS203"]

    everything = await client.get("/api/v1/exam-schedules")
    assert [i["exam_date"] for i in everything.json()] == ["2025-08-04", "2025-08-04", "2025-08-05"]

    schedule_id = created.json()[0]["id"]
    deleted = await client.delete(f"/api/v1/exam-schedules/{schedule_id}")
    assert deleted.status_code == 204
    missing = await client.delete(f"/api/v1/exam-schedules/{schedule_id}")
    assert missing.status_code == 404

    # The department is free again on that date
    rebooked = await client.post("/api/v1/exam-schedules", json=_request(ids["algorithms"], "2025-08-05"))
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_catalog_validation(client: AsyncClient) -> None:
    await _create_department(client, "CSE")

    duplicate = await client.post("/api/v1/departments", json={"name": "CSE", "code": "CS"})
    assert duplicate.status_code == 409

    unknown_dept = await client.post(
        "/api/v1/subjects", json={"name": "Physics", "code": "PH101", "department": "Physics", "year": 1}
    )
    assert unknown_dept.status_code == 400

    await _create_subject(client, "Physics", "ph101", "CSE", year=1)
    duplicate_code = await client.post(
        "/api/v1/subjects", json={"name": "Physics II", "code": "PH101", "department": "CSE", "year": 1}
    )
    assert duplicate_code.status_code == 409

    listing = await client.get("/api/v1/subjects", params={"department": "CSE"})
    assert [s["code"] for s in listing.json()] == ["PH101"]


@pytest.mark.asyncio
async def test_reschedule_moves_shared_group(client: AsyncClient) -> None:
    ids = await _seed(client)
    created = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))
    origin_id = created.json()[0]["id"]

    response = await client.patch(f"/api/v1/exam-schedules/{origin_id}", json={"exam_date": "2025-08-07"})

    assert response.status_code == 200
    data = response.json()
    assert data["schedules"][0]["id"] == origin_id
    assert {s["exam_date"] for s in data["schedules"]} == {"2025-08-07"}
    assert data["swapped"] == []
    listing = await client.get("/api/v1/exam-schedules")
    assert {i["exam_date"] for i in listing.json()} == {"2025-08-07"}


@pytest.mark.asyncio
async def test_reschedule_swaps_with_department_exam(client: AsyncClient) -> None:
    ids = await _seed(client)
    created = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))
    algo = await client.post("/api/v1/exam-schedules", json=_request(ids["algorithms"], "2025-08-07"))
    origin_id = created.json()[0]["id"]

    response = await client.patch(f"/api/v1/exam-schedules/{origin_id}", json={"exam_date": "2025-08-07"})

    assert response.status_code == 200
    swapped = response.json()["swapped"]
    assert [(s["id"], s["exam_date"]) for s in swapped] == [(algo.json()[0]["id"], "2025-08-04")]
    listing = await client.get("/api/v1/exam-schedules")
    dates = {(i["department"], i["subject_code"]): i["exam_date"] for i in listing.json()}
    assert dates == {
        ("CSE", "CS202"): "2025-08-04",
        ("CSE", "CS201"): "2025-08-07",
        ("IT", "IT201"): "2025-08-07",
    }


@pytest.mark.asyncio
async def test_reschedule_rejections(client: AsyncClient) -> None:
    ids = await _seed(client)
    created = await client.post("/api/v1/exam-schedules", json=_request(ids["ds_cse"], "2025-08-04"))
    await client.post("/api/v1/exam-schedules", json=_request(ids["algorithms"], "2025-08-07"))
    origin_id = created.json()[0]["id"]

    no_swap = await client.patch(
        f"/api/v1/exam-schedules/{origin_id}", json={"exam_date": "2025-08-07", "swap_conflicts": False}
    )
    assert no_swap.status_code == 409
    assert no_swap.json()["detail"]["code"] == "DEPARTMENT_DOUBLE_BOOKED"

    empty = await client.patch(f"/api/v1/exam-schedules/{origin_id}", json={})
    assert empty.status_code == 422
    assert empty.json()["detail"]["code"] == "INVALID_SCHEDULE_REQUEST"

    missing = await client.patch(f"/api/v1/exam-schedules/{ids['CSE']}", json={"exam_date": "2025-08-08"})
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "SCHEDULE_NOT_FOUND"

    listing = await client.get("/api/v1/exam-schedules")
    assert {(i["subject_code"], i["exam_date"]) for i in listing.json()} == {
        ("CS201", "2025-08-04"),
        ("IT201", "2025-08-04"),
        ("CS202", "2025-08-07"),
    }

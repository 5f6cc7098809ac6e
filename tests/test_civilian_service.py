"""Civilian service clock-in/out and statistics."""

from datetime import datetime, timedelta

import pytest

from personalsystem.features.civilian_service.models import CivilianServiceSession
from personalsystem.features.civilian_service.routes import period_starts, period_stats
from personalsystem.utils import utcnow


@pytest.fixture
async def service_headers(make_user, auth_headers):
    return auth_headers(await make_user("detectives.view", "detectives.manage"))


@pytest.fixture
async def detective(make_employee):
    return await make_employee(rank_level=6, department="Detectives")


async def _add_session(test_db, employee_id, start, minutes=None):
    session = CivilianServiceSession(employee_id=employee_id, start_time=start)
    if minutes is not None:
        session.close(start + timedelta(minutes=minutes))
    test_db.add(session)
    await test_db.commit()
    return session


def test_close_rounds_down_to_minutes():
    start = datetime(2024, 5, 1, 10, 0, 0)
    session = CivilianServiceSession(employee_id="e", start_time=start)
    assert session.close(start + timedelta(minutes=90, seconds=59)) == 90
    assert session.end_time == start + timedelta(minutes=90, seconds=59)
    assert not session.is_active


def test_period_starts():
    today, week, month = period_starts(datetime(2024, 5, 16, 14, 30))  # Thursday
    assert today == datetime(2024, 5, 16)
    assert week == datetime(2024, 5, 13)
    assert month == datetime(2024, 5, 1)


def test_period_stats_ignores_open_sessions():
    sessions = [
        CivilianServiceSession(
            employee_id="e", start_time=datetime(2024, 5, 1), end_time=datetime(2024, 5, 1, 1, 15), duration=75
        ),
        CivilianServiceSession(employee_id="e", start_time=datetime(2024, 5, 2), duration=None),
    ]
    stats = period_stats(sessions)
    assert (stats.total_minutes, stats.total_hours, stats.sessions) == (75, 1, 1)


async def test_clock_in_and_out(client, service_headers, detective):
    res = await client.post("/api/civilian-service/clock-in", json={"employee_id": detective.id}, headers=service_headers)
    assert res.status_code == 201
    assert res.json()["is_active"] is True

    res = await client.get("/api/civilian-service/current", params={"employee_id": detective.id}, headers=service_headers)
    assert res.json()["active"] is True

    res = await client.post(
        "/api/civilian-service/clock-out",
        json={"employee_id": detective.id, "notes": "Stakeout"},
        headers=service_headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["is_active"] is False
    assert body["duration"] == 0
    assert body["notes"] == "Stakeout"

    res = await client.get("/api/civilian-service/current", params={"employee_id": detective.id}, headers=service_headers)
    assert res.json() == {"active": False, "session": None}


async def test_clock_in_twice_is_rejected(client, service_headers, detective):
    payload = {"employee_id": detective.id}
    await client.post("/api/civilian-service/clock-in", json=payload, headers=service_headers)
    res = await client.post("/api/civilian-service/clock-in", json=payload, headers=service_headers)
    assert res.status_code == 400


async def test_clock_out_without_session(client, service_headers, detective):
    res = await client.post("/api/civilian-service/clock-out", json={"employee_id": detective.id}, headers=service_headers)
    assert res.status_code == 400


async def test_employee_id_is_required(client, service_headers):
    res = await client.post("/api/civilian-service/clock-in", json={}, headers=service_headers)
    assert res.status_code == 400
    res = await client.get("/api/civilian-service/stats", headers=service_headers)
    assert res.status_code == 400


async def test_clock_in_unknown_employee(client, service_headers):
    res = await client.post("/api/civilian-service/clock-in", json={"employee_id": "missing"}, headers=service_headers)
    assert res.status_code == 404


async def test_stats_average_closed_sessions(client, service_headers, detective, test_db):
    start = utcnow() - timedelta(days=10)
    await _add_session(test_db, detective.id, start, minutes=120)
    await _add_session(test_db, detective.id, start + timedelta(days=1), minutes=60)
    await _add_session(test_db, detective.id, utcnow() - timedelta(minutes=5))

    res = await client.get("/api/civilian-service/stats", params={"employee_id": detective.id}, headers=service_headers)
    body = res.json()
    assert body["total_minutes"] == 180
    assert body["total_hours"] == 3
    assert body["total_sessions"] == 2
    assert body["average_minutes"] == 90
    assert body["average_hours"] == 1
    assert body["is_active"] is True
    assert body["current_session_start"] is not None

    res = await client.get(
        "/api/civilian-service/sessions",
        params={"employee_id": detective.id, "limit": 2},
        headers=service_headers,
    )
    assert len(res.json()) == 2
    assert res.json()[0]["is_active"] is True


async def test_overview_covers_active_detectives_only(client, service_headers, detective, make_employee, test_db):
    patrol = await make_employee(rank_level=3)
    today, _, _ = period_starts(utcnow())
    await _add_session(test_db, detective.id, today, minutes=60)
    await _add_session(test_db, detective.id, utcnow() - timedelta(days=400), minutes=30)
    await _add_session(test_db, patrol.id, utcnow() - timedelta(hours=1), minutes=45)

    res = await client.get("/api/civilian-service/overview-stats", headers=service_headers)
    body = res.json()
    assert body["total_detectives"] == 1
    assert body["active_sessions"] == 0
    assert body["today"]["total_minutes"] == 60
    assert body["month"]["total_minutes"] == 60
    [entry] = body["detectives"]
    assert entry["employee"]["id"] == detective.id
    assert entry["total"] == {"total_minutes": 90, "total_hours": 1, "sessions": 2}
    assert entry["is_active"] is False


async def test_overview_counts_only_completed_sessions(client, service_headers, detective, test_db):
    today, _, _ = period_starts(utcnow())
    await _add_session(test_db, detective.id, today, minutes=30)
    await _add_session(test_db, detective.id, utcnow() - timedelta(seconds=30))

    res = await client.get("/api/civilian-service/overview-stats", headers=service_headers)
    body = res.json()
    assert body["today"] == {"total_minutes": 30, "total_hours": 0, "sessions": 1}
    assert body["active_sessions"] == 1
    [entry] = body["detectives"]
    assert entry["today"]["sessions"] == 1
    assert entry["total"]["sessions"] == 1
    assert entry["is_active"] is True


async def test_delete_session(client, service_headers, detective, test_db, fetch):
    session = await _add_session(test_db, detective.id, utcnow() - timedelta(hours=1), minutes=30)
    res = await client.delete(f"/api/civilian-service/sessions/{session.id}", headers=service_headers)
    assert res.status_code == 204
    assert await fetch(CivilianServiceSession, id=session.id) is None
    res = await client.delete(f"/api/civilian-service/sessions/{session.id}", headers=service_headers)
    assert res.status_code == 404


async def test_viewer_cannot_clock_in(client, make_user, auth_headers, detective):
    headers = auth_headers(await make_user("detectives.view"))
    res = await client.post("/api/civilian-service/clock-in", json={"employee_id": detective.id}, headers=headers)
    assert res.status_code == 403

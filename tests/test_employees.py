"""Employee roster routes: listing, hiring, rank changes and termination."""

from datetime import timedelta

import pytest

from personalsystem.features.civilian_service.models import CivilianServiceSession
from personalsystem.features.employees.models import Employee
from personalsystem.features.uprank_locks.models import UprankLock
from personalsystem.features.users.models import User
from personalsystem.utils import utcnow


@pytest.fixture
async def hr_headers(make_user, auth_headers):
    user = await make_user(
        "employees.view", "employees.edit", "employees.rank", "employees.delete", username="hr", level=50
    )
    return auth_headers(user)


async def test_list_requires_permission(client, make_user, auth_headers):
    user = await make_user("robbery.view")
    res = await client.get("/api/employees", headers=auth_headers(user))
    assert res.status_code == 403


async def test_list_filters_and_orders_by_rank(client, hr_headers, make_user, make_employee):
    await make_employee(user=await make_user(username="alice"), rank_level=2, badge_number="PD-150")
    await make_employee(user=await make_user(username="bob"), rank_level=11, badge_number="PD-40",
                        department="Detectives")
    await make_employee(user=await make_user(username="carl"), rank_level=3, status="SUSPENDED")

    res = await client.get("/api/employees", headers=hr_headers)
    body = res.json()
    assert body["total"] == 3
    assert [e["user"]["username"] for e in body["data"]] == ["bob", "carl", "alice"]
    assert body["data"][0]["team"] == "Team Gold"

    res = await client.get("/api/employees", params={"team": "Green"}, headers=hr_headers)
    assert {e["user"]["username"] for e in res.json()["data"]} == {"alice", "carl"}

    res = await client.get("/api/employees", params={"status": "SUSPENDED"}, headers=hr_headers)
    assert [e["user"]["username"] for e in res.json()["data"]] == ["carl"]

    res = await client.get("/api/employees", params={"search": "PD-150"}, headers=hr_headers)
    assert [e["user"]["username"] for e in res.json()["data"]] == ["alice"]

    res = await client.get("/api/employees", params={"department": "detect"}, headers=hr_headers)
    assert [e["user"]["username"] for e in res.json()["data"]] == ["bob"]

    res = await client.get("/api/employees", params={"limit": 2, "page": 2}, headers=hr_headers)
    assert len(res.json()["data"]) == 1
    assert res.json()["total_pages"] == 2


async def test_list_unknown_team(client, hr_headers):
    res = await client.get("/api/employees", params={"team": "Purple"}, headers=hr_headers)
    assert res.status_code == 400


async def test_stats_overview(client, hr_headers, make_employee):
    await make_employee(department="Patrol")
    await make_employee(department="Detectives")
    await make_employee(department="Patrol", status="TERMINATED")

    res = await client.get("/api/employees/stats/overview", headers=hr_headers)
    stats = res.json()
    assert stats["total"] == 3
    assert stats["by_status"] == {"ACTIVE": 2, "TERMINATED": 1}
    assert stats["by_department"] == {"Patrol": 1, "Detectives": 1}


async def test_create_employee(client, hr_headers, make_user, fetch):
    user = await make_user(username="newbie")
    res = await client.post(
        "/api/employees",
        json={"user_id": user.id, "badge_number": "pd-120", "rank": "Officer I", "rank_level": 2},
        headers=hr_headers,
    )
    assert res.status_code == 201
    body = res.json()
    assert body["badge_number"] == "PD-120"
    assert body["team"] == "Team Green"

    stored = await fetch(User, id=user.id)
    assert stored.display_name == "[PD-120] newbie"


async def test_create_employee_errors(client, hr_headers, make_user, make_employee):
    res = await client.post("/api/employees", json={"user_id": "missing"}, headers=hr_headers)
    assert res.status_code == 404

    existing = await make_employee(badge_number="PD-100")
    res = await client.post("/api/employees", json={"user_id": existing.user_id}, headers=hr_headers)
    assert res.status_code == 400

    user = await make_user()
    res = await client.post(
        "/api/employees", json={"user_id": user.id, "badge_number": "PD-100"}, headers=hr_headers
    )
    assert res.status_code == 400

    res = await client.post(
        "/api/employees", json={"user_id": user.id, "badge_number": "PD-05"}, headers=hr_headers
    )
    assert res.status_code == 400


async def test_update_badge_range_and_uniqueness(client, hr_headers, make_employee):
    await make_employee(badge_number="PD-101")
    employee = await make_employee(rank_level=2, badge_number="PD-102")

    res = await client.put(f"/api/employees/{employee.id}", json={"badge_number": "PD-101"}, headers=hr_headers)
    assert res.status_code == 400
    assert "already in use" in res.json()["detail"]

    res = await client.put(f"/api/employees/{employee.id}", json={"badge_number": "PD-20"}, headers=hr_headers)
    assert res.status_code == 400
    assert "PD-100" in res.json()["detail"]

    res = await client.put(f"/api/employees/{employee.id}", json={"badge_number": " pd-199 "}, headers=hr_headers)
    assert res.status_code == 200
    assert res.json()["badge_number"] == "PD-199"


async def test_update_level_derives_rank_name(client, hr_headers, make_employee):
    employee = await make_employee(rank_level=2)
    res = await client.put(f"/api/employees/{employee.id}", json={"rank_level": 4}, headers=hr_headers)
    assert res.json()["rank"] == "Officer III"


async def test_update_level_keeps_badge_in_team_range(client, hr_headers, make_employee, fetch):
    employee = await make_employee(rank_level=1, badge_number="PD-150")

    res = await client.put(f"/api/employees/{employee.id}", json={"rank_level": 10}, headers=hr_headers)
    assert res.status_code == 400
    assert "Team Gold" in res.json()["detail"]
    assert (await fetch(Employee, id=employee.id)).rank_level == 1

    res = await client.put(
        f"/api/employees/{employee.id}", json={"rank_level": 10, "badge_number": "PD-35"}, headers=hr_headers
    )
    assert res.status_code == 200
    assert res.json()["badge_number"] == "PD-35"

    res = await client.put(f"/api/employees/{employee.id}", json={"rank_level": 11}, headers=hr_headers)
    assert res.status_code == 200


async def test_uprank_within_team(client, hr_headers, make_employee):
    employee = await make_employee(rank_level=2, badge_number="PD-150")
    res = await client.post(f"/api/employees/{employee.id}/uprank", headers=hr_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["old_rank"] == "Officer I"
    assert body["new_rank"] == "Officer II"
    assert body["team_changed"] is False
    assert body["lock_created"] is False
    assert body["new_badge_number"] == "PD-150"


async def test_uprank_into_new_team_assigns_badge_and_lock(client, hr_headers, make_employee, fetch):
    await make_employee(rank_level=7, badge_number="PD-60")
    employee = await make_employee(rank_level=5, badge_number="PD-150")

    res = await client.post(f"/api/employees/{employee.id}/uprank", headers=hr_headers)
    body = res.json()
    assert body["new_level"] == 6
    assert body["team_changed"] is True
    assert body["new_badge_number"] == "PD-61"
    assert body["lock_created"] is True

    lock = await fetch(UprankLock, employee_id=employee.id)
    assert lock.team == "Team Silver"
    assert lock.is_active
    assert lock.locked_until - utcnow() > timedelta(days=13)

    again = await client.post(f"/api/employees/{employee.id}/uprank", headers=hr_headers)
    assert again.status_code == 400
    assert "locked" in again.json()["detail"]


async def test_uprank_into_team_without_lock(client, hr_headers, make_employee):
    employee = await make_employee(rank_level=12, badge_number="PD-30")
    res = await client.post(f"/api/employees/{employee.id}/uprank", headers=hr_headers)
    body = res.json()
    assert body["team_changed"] is True
    assert body["new_badge_number"] == "PD-10"
    assert body["lock_created"] is False


async def test_uprank_at_top_rank(client, hr_headers, make_employee):
    employee = await make_employee(rank_level=17, badge_number="PD-01")
    res = await client.post(f"/api/employees/{employee.id}/uprank", headers=hr_headers)
    assert res.status_code == 400


async def test_downrank_across_team_has_no_lock(client, hr_headers, make_employee):
    employee = await make_employee(rank_level=6, badge_number="PD-60")
    res = await client.post(f"/api/employees/{employee.id}/downrank", headers=hr_headers)
    body = res.json()
    assert body["new_rank"] == "Senior Officer"
    assert body["new_badge_number"] == "PD-100"
    assert body["lock_created"] is False

    res = await client.post(f"/api/employees/{employee.id}/downrank", headers=hr_headers)
    assert res.json()["new_level"] == 4


async def test_downrank_at_bottom(client, hr_headers, make_employee):
    employee = await make_employee(rank_level=1)
    res = await client.post(f"/api/employees/{employee.id}/downrank", headers=hr_headers)
    assert res.status_code == 400


async def test_terminate_releases_everything(client, hr_headers, make_user, make_employee, test_db, fetch):
    user = await make_user("employees.view", username="leaver")
    user.display_name = "[PD-130] leaver"
    employee = await make_employee(user=user, rank_level=3, badge_number="PD-130")
    test_db.add(CivilianServiceSession(employee_id=employee.id, start_time=utcnow() - timedelta(minutes=90)))
    test_db.add(UprankLock(employee_id=employee.id, reason="x", team="Team Green",
                           locked_until=utcnow() + timedelta(days=3)))
    await test_db.commit()

    res = await client.post(f"/api/employees/{employee.id}/terminate", json={"reason": "Inactivity"},
                            headers=hr_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "TERMINATED"
    assert body["badge_number"] is None

    stored_user = await fetch(User, id=user.id)
    assert stored_user.is_active is False
    assert stored_user.display_name == "leaver"

    service = await fetch(CivilianServiceSession, employee_id=employee.id)
    assert service.end_time is not None
    assert service.duration >= 90

    lock = await fetch(UprankLock, employee_id=employee.id)
    assert lock.is_active is False


async def test_delete_is_soft(client, hr_headers, make_employee, fetch):
    employee = await make_employee()
    res = await client.delete(f"/api/employees/{employee.id}", headers=hr_headers)
    assert res.status_code == 204
    assert (await fetch(Employee, id=employee.id)).status == "TERMINATED"


async def test_get_unknown_employee(client, hr_headers):
    res = await client.get("/api/employees/nope", headers=hr_headers)
    assert res.status_code == 404

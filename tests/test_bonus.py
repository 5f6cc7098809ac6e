"""Bonus configs, payments, payouts and weekly close."""

from datetime import datetime, timedelta

import pytest

from personalsystem.features.bonus.models import BonusConfig, BonusPayment, BonusWeek
from personalsystem.features.bonus.routes import parse_week
from personalsystem.features.bonus.service import (
    DEFAULT_BONUS_CONFIGS,
    close_week,
    create_bonus_payment,
    init_default_configs,
    week_bounds,
)
from personalsystem.features.live.hub import hub
from personalsystem.utils import utcnow


@pytest.fixture
async def cashier_headers(make_user, auth_headers):
    return auth_headers(await make_user("bonus.view", "bonus.manage", "bonus.pay", username="cashier"))


@pytest.fixture
async def robbery_config(test_db):
    config = BonusConfig(activity_type="ROBBERY_LEADER", display_name="Robbery lead", category="GENERAL", amount=1000)
    test_db.add(config)
    await test_db.commit()
    return config


def test_week_bounds_monday_to_sunday():
    start, end = week_bounds(datetime(2024, 5, 16, 15, 30))  # Thursday
    assert start == datetime(2024, 5, 13)
    assert end == datetime(2024, 5, 19, 23, 59, 59, 999999)


def test_week_bounds_on_sunday_night():
    start, _ = week_bounds(datetime(2024, 5, 19, 23, 59))
    assert start == datetime(2024, 5, 13)


def test_week_bounds_converts_aware_values_to_utc():
    # Monday 01:30 in UTC+2 is still Sunday night in UTC
    start, end = week_bounds(datetime.fromisoformat("2026-10-19T01:30:00+02:00"))
    assert start == datetime(2026, 10, 12)
    assert end == datetime(2026, 10, 18, 23, 59, 59, 999999)
    assert parse_week("2026-10-19T01:30:00+02:00") == (start, end)
    assert parse_week("2026-10-19") == week_bounds(datetime(2026, 10, 19))


async def test_create_payment_skips_unusable_configs(test_db, make_employee):
    employee = await make_employee()
    test_db.add_all([
        BonusConfig(activity_type="ZERO", display_name="Zero", amount=0),
        BonusConfig(activity_type="OFF", display_name="Off", amount=100, is_active=False),
    ])
    await test_db.commit()

    assert await create_bonus_payment(test_db, "MISSING", employee.id) is False
    assert await create_bonus_payment(test_db, "ZERO", employee.id) is False
    assert await create_bonus_payment(test_db, "OFF", employee.id) is False


async def test_create_payment_books_current_week(test_db, make_employee, robbery_config, fetch):
    employee = await make_employee()
    assert await create_bonus_payment(test_db, "ROBBERY_LEADER", employee.id, "Lead", "r1", "Robbery")
    await test_db.commit()

    payment = await fetch(BonusPayment, reference_id="r1")
    assert payment.amount == 1000
    assert payment.status == "PENDING"
    assert (payment.week_start, payment.week_end) == week_bounds()


async def test_init_default_configs_is_idempotent(test_db):
    assert await init_default_configs(test_db) == len(DEFAULT_BONUS_CONFIGS)
    assert await init_default_configs(test_db) == 0


async def test_config_routes(client, admin_headers, cashier_headers):
    res = await client.post("/api/bonus/config/init", headers=admin_headers)
    assert res.json()["created"] == len(DEFAULT_BONUS_CONFIGS)

    res = await client.post("/api/bonus/config", json={"activity_type": "CUSTOM", "display_name": "Custom",
                                                      "amount": 250}, headers=admin_headers)
    assert res.status_code == 201
    config = res.json()

    dup = await client.post("/api/bonus/config", json={"activity_type": "CUSTOM", "display_name": "Again"},
                            headers=admin_headers)
    assert dup.status_code == 409

    res = await client.put(f"/api/bonus/config/{config['id']}", json={"amount": 300, "is_active": False},
                           headers=admin_headers)
    assert res.json()["amount"] == 300
    assert res.json()["is_active"] is False

    res = await client.get("/api/bonus/config", headers=cashier_headers)
    assert len(res.json()) == len(DEFAULT_BONUS_CONFIGS) + 1

    forbidden = await client.post("/api/bonus/config/init", headers=cashier_headers)
    assert forbidden.status_code == 403

    res = await client.delete(f"/api/bonus/config/{config['id']}", headers=admin_headers)
    assert res.status_code == 204


async def test_manual_payment_and_cancel(client, cashier_headers, make_employee, robbery_config, test_db):
    employee = await make_employee()
    res = await client.post("/api/bonus/payments", json={"employee_id": employee.id, "config_id": robbery_config.id,
                                                        "reason": "Manual"}, headers=cashier_headers)
    assert res.status_code == 201
    payment = res.json()
    assert payment["amount"] == 1000

    res = await client.get("/api/bonus/payments", params={"week": "current", "status": "PENDING"},
                           headers=cashier_headers)
    assert [p["id"] for p in res.json()] == [payment["id"]]

    res = await client.delete(f"/api/bonus/payments/{payment['id']}", headers=cashier_headers)
    assert res.json() == {"success": True}
    res = await client.put(f"/api/bonus/payments/{payment['id']}/pay", headers=cashier_headers)
    assert res.status_code == 400


async def test_manual_payment_with_disabled_config(client, cashier_headers, make_employee, robbery_config, test_db):
    robbery_config.is_active = False
    await test_db.commit()
    employee = await make_employee()
    res = await client.post("/api/bonus/payments", json={"employee_id": employee.id, "config_id": robbery_config.id},
                            headers=cashier_headers)
    assert res.status_code == 400


async def test_paid_payment_cannot_be_cancelled(client, cashier_headers, make_employee, robbery_config, test_db):
    employee = await make_employee()
    await create_bonus_payment(test_db, "ROBBERY_LEADER", employee.id, reference_id="r1")
    await test_db.commit()
    res = await client.get("/api/bonus/payments", headers=cashier_headers)
    payment_id = res.json()[0]["id"]

    res = await client.put(f"/api/bonus/payments/{payment_id}/pay", headers=cashier_headers)
    assert res.json()["status"] == "PAID"
    assert res.json()["paid_by"]["username"] == "cashier"

    res = await client.delete(f"/api/bonus/payments/{payment_id}", headers=cashier_headers)
    assert res.status_code == 400


async def test_pay_employee_notifies_them(client, cashier_headers, make_employee, robbery_config, test_db,
                                          monkeypatch):
    first = await make_employee()
    second = await make_employee()
    for employee, ref in ((first, "a"), (first, "b"), (second, "c")):
        await create_bonus_payment(test_db, "ROBBERY_LEADER", employee.id, reference_id=ref)
    await test_db.commit()

    sent = []

    async def fake_notification(user_id, notification):
        sent.append((user_id, notification))
        return 1

    monkeypatch.setattr(hub, "send_notification", fake_notification)

    res = await client.put(f"/api/bonus/payments/pay-employee/{first.id}", headers=cashier_headers)
    assert res.json() == {"success": True, "updated": 2}
    assert sent[0][0] == first.user_id
    assert sent[0][1]["amount"] == 2000

    res = await client.put("/api/bonus/payments/pay-all", headers=cashier_headers)
    assert res.json()["updated"] == 1

    res = await client.put(f"/api/bonus/payments/pay-employee/{first.id}", headers=cashier_headers)
    assert res.json()["updated"] == 0


async def test_summary_groups_by_employee(client, cashier_headers, make_employee, robbery_config, test_db):
    test_db.add(BonusConfig(activity_type="CASE_OPENED", display_name="Case", category="DETECTIVE", amount=200))
    await test_db.commit()
    top = await make_employee()
    other = await make_employee()
    await create_bonus_payment(test_db, "ROBBERY_LEADER", top.id)
    await create_bonus_payment(test_db, "CASE_OPENED", top.id)
    await create_bonus_payment(test_db, "CASE_OPENED", top.id)
    await create_bonus_payment(test_db, "CASE_OPENED", other.id)
    await test_db.commit()

    res = await client.get("/api/bonus/summary", headers=cashier_headers)
    body = res.json()
    assert body["totals"]["total_amount"] == 1600
    assert body["totals"]["employee_count"] == 2
    leader = body["by_employee"][0]
    assert leader["employee_id"] == top.id
    assert leader["total_amount"] == 1400
    assert {a["type"]: a["count"] for a in leader["activities"]} == {"ROBBERY_LEADER": 1, "CASE_OPENED": 2}


async def test_summary_rejects_bad_week(client, cashier_headers):
    res = await client.get("/api/bonus/summary", params={"week": "last-tuesday"}, headers=cashier_headers)
    assert res.status_code == 400


async def test_my_bonuses(client, make_user, make_employee, robbery_config, test_db, auth_headers):
    user = await make_user()
    employee = await make_employee(user=user)
    await create_bonus_payment(test_db, "ROBBERY_LEADER", employee.id)
    await test_db.commit()

    res = await client.get("/api/bonus/my", headers=auth_headers(user))
    assert res.json()["summary"] == {"total": 1000, "pending": 1000, "paid": 0, "count": 1}

    outsider = await make_user()
    res = await client.get("/api/bonus/my", headers=auth_headers(outsider))
    assert res.json()["payments"] == []
    assert res.json()["summary"]["count"] == 0


async def test_close_week_totals_pending(test_db, make_employee, robbery_config, fetch):
    employee = await make_employee()
    await create_bonus_payment(test_db, "ROBBERY_LEADER", employee.id)
    await create_bonus_payment(test_db, "ROBBERY_LEADER", employee.id)
    await test_db.commit()

    week = await close_week(test_db)
    assert week.status == "CLOSED"
    assert week.total_amount == 2000
    assert week.submitted_to_management is True

    again = await close_week(test_db, utcnow())
    assert again.id == week.id


async def test_week_routes(client, cashier_headers):
    res = await client.post("/api/bonus/weeks/submit", json={"week": "2024-05-15T00:00:00"}, headers=cashier_headers)
    assert res.status_code == 200
    assert res.json()["week_start"].startswith("2024-05-13")

    await client.post("/api/bonus/weeks/submit", headers=cashier_headers)
    res = await client.get("/api/bonus/weeks", headers=cashier_headers)
    starts = [w["week_start"] for w in res.json()]
    assert len(starts) == 2
    assert starts == sorted(starts, reverse=True)

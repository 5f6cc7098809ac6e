"""Blacklist routes and the expiry purge."""

from datetime import timedelta

import pytest

from personalsystem.features.blacklist.models import BlacklistEntry
from personalsystem.features.blacklist.service import check_blacklist, purge_expired_entries
from personalsystem.utils import utcnow


@pytest.fixture
async def hr_headers(make_user, auth_headers):
    return auth_headers(await make_user("blacklist.view", "blacklist.manage"))


async def test_check_states(test_db):
    test_db.add_all([
        BlacklistEntry(discord_id="1", username="perm", reason="Cheating"),
        BlacklistEntry(discord_id="2", username="gone", reason="Old", expires_at=utcnow() - timedelta(days=1)),
    ])
    await test_db.commit()

    permanent = await check_blacklist(test_db, "1")
    assert permanent.blacklisted is True
    assert permanent.reason == "Cheating"

    expired = await check_blacklist(test_db, "2")
    assert expired.blacklisted is False
    assert expired.expired is True

    unknown = await check_blacklist(test_db, "3")
    assert unknown.blacklisted is False
    assert unknown.expired is None


async def test_create_update_delete(client, hr_headers):
    res = await client.post(
        "/api/blacklist",
        json={"discord_id": "42", "username": "troll", "reason": "Trolling",
              "expires_at": "2099-01-01T12:00:00+02:00"},
        headers=hr_headers,
    )
    assert res.status_code == 201
    entry = res.json()
    assert entry["expires_at"].startswith("2099-01-01T10:00:00")
    assert entry["added_by"] is not None

    duplicate = await client.post(
        "/api/blacklist", json={"discord_id": "42", "username": "troll", "reason": "Again"}, headers=hr_headers
    )
    assert duplicate.status_code == 400

    res = await client.put(f"/api/blacklist/{entry['id']}", json={"reason": "Griefing"}, headers=hr_headers)
    assert res.json()["reason"] == "Griefing"

    res = await client.delete(f"/api/blacklist/{entry['id']}", headers=hr_headers)
    assert res.status_code == 204
    res = await client.get("/api/blacklist", headers=hr_headers)
    assert res.json() == []


async def test_check_route_omits_empty_fields(client, make_user, auth_headers):
    anyone = await make_user()
    res = await client.get("/api/blacklist/check/999", headers=auth_headers(anyone))
    assert res.status_code == 200
    assert res.json() == {"blacklisted": False}


async def test_stats_count_active_entries_only(client, hr_headers, test_db):
    test_db.add_all([
        BlacklistEntry(discord_id="1", username="a", reason="r"),
        BlacklistEntry(discord_id="2", username="b", reason="r", expires_at=utcnow() + timedelta(days=3)),
        BlacklistEntry(discord_id="3", username="c", reason="r", expires_at=utcnow() - timedelta(days=3)),
    ])
    await test_db.commit()
    res = await client.get("/api/blacklist/stats", headers=hr_headers)
    assert res.json() == {"total": 2, "permanent": 1, "temporary": 1}


async def test_purge_expired_entries(test_db, fetch):
    test_db.add_all([
        BlacklistEntry(discord_id="1", username="a", reason="r"),
        BlacklistEntry(discord_id="2", username="b", reason="r", expires_at=utcnow() - timedelta(minutes=1)),
    ])
    await test_db.commit()
    assert await purge_expired_entries(test_db) == 1
    assert await fetch(BlacklistEntry, discord_id="2") is None
    assert await fetch(BlacklistEntry, discord_id="1") is not None


async def test_view_permission_required(client, make_user, auth_headers):
    user = await make_user("hr.view")
    res = await client.get("/api/blacklist", headers=auth_headers(user))
    assert res.status_code == 403

"""Detective folders and case files."""

from pathlib import Path

import pytest
from sqlalchemy import func, select

from personalsystem.core import config
from personalsystem.features.bonus.models import BonusConfig, BonusPayment
from personalsystem.features.cases.models import Case, CaseImage
from personalsystem.features.cases.routes import next_case_number
from personalsystem.utils import utcnow

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
async def detective_headers(make_user, auth_headers):
    return auth_headers(await make_user("detectives.view", "detectives.manage"))


@pytest.fixture
async def detective(make_user, make_employee):
    user = await make_user(username="[PD-21] Jane Doe")
    return await make_employee(user=user, rank_level=6, badge_number="PD-21", department="Detectives")


@pytest.fixture
async def folder(client, detective_headers, detective):
    res = await client.post("/api/cases/folders", json={"detective_id": detective.id}, headers=detective_headers)
    assert res.status_code == 201
    return res.json()


async def _open_case(client, headers, folder_id, **fields):
    res = await client.post("/api/cases", json={"title": "Bank job", "folder_id": folder_id, **fields}, headers=headers)
    assert res.status_code == 201
    return res.json()


def cases_dir() -> Path:
    return Path(config.UPLOAD_DIR) / "cases"


# ============================================================================
# Folders
# ============================================================================

async def test_folder_is_named_after_detective(folder, detective):
    assert folder["name"] == "Jane Doe"
    assert folder["detective_id"] == detective.id
    assert folder["status"] == "OPEN"
    assert folder["case_count"] == 0


async def test_one_folder_per_detective(client, detective_headers, detective, folder):
    res = await client.post("/api/cases/folders", json={"detective_id": detective.id}, headers=detective_headers)
    assert res.status_code == 400


async def test_folder_for_unknown_detective(client, detective_headers):
    res = await client.post("/api/cases/folders", json={"detective_id": "missing"}, headers=detective_headers)
    assert res.status_code == 404


async def test_employees_without_folder(client, detective_headers, make_employee, folder, detective):
    other = await make_employee()
    res = await client.get("/api/cases/employees-without-folder", headers=detective_headers)
    ids = [e["id"] for e in res.json()]
    assert other.id in ids
    assert detective.id not in ids


async def test_closing_and_reopening_folder(client, detective_headers, folder):
    res = await client.put(f"/api/cases/folders/{folder['id']}", json={"status": "CLOSED"}, headers=detective_headers)
    assert res.json()["closed_at"] is not None
    res = await client.put(f"/api/cases/folders/{folder['id']}", json={"status": "OPEN"}, headers=detective_headers)
    assert res.json()["closed_at"] is None


async def test_view_permission_cannot_manage(client, make_user, auth_headers, detective):
    headers = auth_headers(await make_user("detectives.view"))
    res = await client.post("/api/cases/folders", json={"detective_id": detective.id}, headers=headers)
    assert res.status_code == 403


# ============================================================================
# Cases
# ============================================================================

async def test_case_numbers_count_up_within_year(client, detective_headers, folder, test_db):
    year = utcnow().year
    first = await _open_case(client, detective_headers, folder["id"])
    second = await _open_case(client, detective_headers, folder["id"], title="Second")
    assert first["case_number"] == f"DET-{year}-001"
    assert second["case_number"] == f"DET-{year}-002"
    assert await next_case_number(test_db) == f"DET-{year}-003"


async def test_case_numbers_continue_past_999(client, detective_headers, folder, test_db):
    year = utcnow().year
    for number in ("999", "1000"):
        test_db.add(Case(case_number=f"DET-{year}-{number}", title=f"Old {number}", folder_id=folder["id"]))
    test_db.add(Case(case_number=f"DET-{year}-draft", title="Odd", folder_id=folder["id"]))
    await test_db.commit()

    case = await _open_case(client, detective_headers, folder["id"])
    assert case["case_number"] == f"DET-{year}-1001"


async def test_case_requires_title_and_folder(client, detective_headers, folder):
    res = await client.post("/api/cases", json={"folder_id": folder["id"]}, headers=detective_headers)
    assert res.status_code == 400
    res = await client.post("/api/cases", json={"title": "No folder"}, headers=detective_headers)
    assert res.status_code == 400
    res = await client.post("/api/cases", json={"title": "Ghost", "folder_id": "missing"}, headers=detective_headers)
    assert res.status_code == 404


async def test_case_bonuses_are_booked_once(client, detective_headers, folder, detective, test_db, fetch):
    test_db.add_all([
        BonusConfig(activity_type="CASE_OPENED", display_name="Opened", amount=200),
        BonusConfig(activity_type="CASE_CLOSED", display_name="Closed", amount=800),
    ])
    await test_db.commit()

    case = await _open_case(client, detective_headers, folder["id"])
    opened = await fetch(BonusPayment, reference_id=case["id"], amount=200)
    assert opened.employee_id == detective.id

    res = await client.put(f"/api/cases/{case['id']}", json={"status": "CLOSED"}, headers=detective_headers)
    assert res.status_code == 200
    assert res.json()["closed_at"] is not None
    res = await client.put(f"/api/cases/{case['id']}", json={"status": "ARCHIVED"}, headers=detective_headers)
    assert res.status_code == 200
    closed = await fetch(BonusPayment, reference_id=case["id"], amount=800)
    assert closed is not None

    count = await test_db.scalar(
        select(func.count(BonusPayment.id)).where(BonusPayment.reference_id == case["id"], BonusPayment.amount == 800)
    )
    assert count == 1


async def test_reopening_clears_closed_at(client, detective_headers, folder):
    case = await _open_case(client, detective_headers, folder["id"])
    await client.put(f"/api/cases/{case['id']}", json={"status": "CLOSED"}, headers=detective_headers)
    res = await client.put(f"/api/cases/{case['id']}", json={"status": "IN_PROGRESS"}, headers=detective_headers)
    assert res.json()["status"] == "IN_PROGRESS"
    assert res.json()["closed_at"] is None


async def test_list_filters_and_stats(client, detective_headers, folder):
    await _open_case(client, detective_headers, folder["id"], title="Jewelry heist", priority="HIGH")
    other = await _open_case(client, detective_headers, folder["id"], title="Car theft", suspects="Tony")
    await client.put(f"/api/cases/{other['id']}", json={"status": "CLOSED"}, headers=detective_headers)

    res = await client.get("/api/cases", params={"priority": "HIGH"}, headers=detective_headers)
    assert [c["title"] for c in res.json()] == ["Jewelry heist"]
    res = await client.get("/api/cases", params={"search": "tony"}, headers=detective_headers)
    assert [c["id"] for c in res.json()] == [other["id"]]
    res = await client.get("/api/cases", params={"status": "ALL"}, headers=detective_headers)
    assert len(res.json()) == 2

    res = await client.get("/api/cases/stats", headers=detective_headers)
    assert res.json() == {
        "folders": 1, "open": 1, "in_progress": 0, "closed": 1, "archived": 0, "total_cases": 2,
    }

    res = await client.get(f"/api/cases/folders/{folder['id']}", headers=detective_headers)
    assert res.json()["case_count"] == 2


# ============================================================================
# Images
# ============================================================================

async def _upload(client, headers, case_id, content=PNG, content_type="image/png"):
    return await client.post(
        f"/api/cases/{case_id}/images",
        data={"description": "Crime scene"},
        files={"image": ("scene.png", content, content_type)},
        headers=headers,
    )


async def test_image_upload_fetch_and_delete(client, detective_headers, folder):
    case = await _open_case(client, detective_headers, folder["id"])
    res = await _upload(client, detective_headers, case["id"])
    assert res.status_code == 201
    image = res.json()
    assert image["image_path"].startswith("case-")
    assert image["description"] == "Crime scene"

    res = await client.get(f"/api/cases/image/{image['image_path']}", headers=detective_headers)
    assert res.content == PNG

    res = await client.get(f"/api/cases/{case['id']}", headers=detective_headers)
    assert res.json()["image_count"] == 1

    res = await client.delete(f"/api/cases/images/{image['id']}", headers=detective_headers)
    assert res.status_code == 204
    assert not (cases_dir() / image["image_path"]).exists()


async def test_upload_rejects_non_images(client, detective_headers, folder):
    case = await _open_case(client, detective_headers, folder["id"])
    res = await _upload(client, detective_headers, case["id"], content=b"%PDF", content_type="application/pdf")
    assert res.status_code == 400


async def test_deleting_case_removes_images(client, detective_headers, folder, fetch):
    case = await _open_case(client, detective_headers, folder["id"])
    image = (await _upload(client, detective_headers, case["id"])).json()

    res = await client.delete(f"/api/cases/{case['id']}", headers=detective_headers)
    assert res.status_code == 204
    assert await fetch(Case, id=case["id"]) is None
    assert await fetch(CaseImage, id=image["id"]) is None
    assert not (cases_dir() / image["image_path"]).exists()


async def test_deleting_folder_removes_everything(client, detective_headers, folder, fetch):
    case = await _open_case(client, detective_headers, folder["id"])
    image = (await _upload(client, detective_headers, case["id"])).json()

    res = await client.delete(f"/api/cases/folders/{folder['id']}", headers=detective_headers)
    assert res.status_code == 204
    assert await fetch(Case, id=case["id"]) is None
    assert not (cases_dir() / image["image_path"]).exists()
    res = await client.get(f"/api/cases/folders/{folder['id']}", headers=detective_headers)
    assert res.status_code == 404

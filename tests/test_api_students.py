"""Integration tests for the /api/v1/students endpoints and usage submission."""

import uuid
from datetime import date, timedelta


async def _submit(client, student_id, day, total, apps=None):
    return await client.post(
        f"/api/v1/students/{student_id}/usage",
        json={"date": day.isoformat(), "total_minutes": total, "per_app_minutes": apps or {}},
    )


class TestStudentCRUD:
    async def test_enroll_creates_ledger(self, client, enrolled_student):
        resp = await client.get(f"/api/v1/students/{enrolled_student['id']}/ledger")
        assert resp.status_code == 200
        ledger = resp.json()
        assert ledger["points"] == 10.0
        assert ledger["current_streak_days"] == 0
        assert ledger["longest_streak_days"] == 0
        assert ledger["last_evaluated_date"] is None
        assert ledger["level"] == 1

    async def test_enroll_unknown_class(self, client):
        resp = await client.post("/api/v1/students/", json={
            "full_name": "Lotte Bakker",
            "class_id": str(uuid.uuid4()),
        })
        assert resp.status_code == 404

    async def test_duplicate_email(self, client, enrolled_student):
        resp = await client.post("/api/v1/students/", json={
            "full_name": "Tweede Sam",
            "email": enrolled_student["email"],
        })
        assert resp.status_code == 409

    async def test_list_by_class(self, client, school_class, enrolled_student):
        resp = await client.get("/api/v1/students/", params={"class_id": school_class["id"]})
        assert resp.status_code == 200
        assert [s["id"] for s in resp.json()] == [enrolled_student["id"]]

    async def test_reassign_class_keeps_ledger(self, client, enrolled_student):
        student_id = enrolled_student["id"]
        await _submit(client, student_id, date(2024, 6, 5), 60)

        other = await client.post("/api/v1/classes/", json={"name": "Klas 4C"})
        resp = await client.put(
            f"/api/v1/students/{student_id}", json={"class_id": other.json()["id"]},
        )
        assert resp.status_code == 200
        assert resp.json()["class_id"] == other.json()["id"]

        ledger = (await client.get(f"/api/v1/students/{student_id}/ledger")).json()
        assert ledger["points"] == 10.5
        assert ledger["current_streak_days"] == 1

    async def test_delete_student(self, client, enrolled_student):
        student_id = enrolled_student["id"]
        await _submit(client, student_id, date(2024, 6, 5), 60)

        resp = await client.delete(f"/api/v1/students/{student_id}")
        assert resp.status_code == 204

        resp = await client.get(f"/api/v1/students/{student_id}")
        assert resp.status_code == 404
        resp = await client.get(f"/api/v1/students/{student_id}/ledger")
        assert resp.status_code == 404
        assert resp.json()["error"] == "unknown_student"


class TestUsageSubmission:
    async def test_compliant_submission(self, client, enrolled_student):
        resp = await _submit(client, enrolled_student["id"], date(2024, 6, 5), 100, {"Duolingo": 100})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["verdict"] == {"status": "compliant", "reason": "none", "blocked_apps": []}
        assert data["policy"]["effective_limit_minutes"] == 120
        assert data["ledger"]["points"] == 10.5
        assert data["ledger"]["progress_to_next"] == 50.0
        assert data["re_evaluated"] is False

    async def test_blocked_app_submission(self, client, school_class, enrolled_student):
        await client.post(
            f"/api/v1/classes/{school_class['id']}/apps",
            json={"app_name": "TikTok", "app_type": "block"},
        )
        await client.post(
            f"/api/v1/classes/{school_class['id']}/apps",
            json={"app_name": "Duolingo", "app_type": "allow"},
        )

        resp = await _submit(
            client, enrolled_student["id"], date(2024, 6, 5), 10, {"TikTok": 1, "Duolingo": 9},
        )
        data = resp.json()
        assert data["verdict"]["status"] == "violation"
        assert data["verdict"]["reason"] == "blocked_app_used"
        assert data["verdict"]["blocked_apps"] == ["tiktok"]
        assert data["ledger"]["points"] == 9.5

    async def test_resubmission_flagged(self, client, enrolled_student):
        day = date(2024, 6, 5)
        await _submit(client, enrolled_student["id"], day, 60)
        resp = await _submit(client, enrolled_student["id"], day, 60)

        data = resp.json()
        assert data["re_evaluated"] is True
        assert data["ledger"]["points"] == 10.5

    async def test_invalid_usage(self, client, enrolled_student):
        resp = await _submit(client, enrolled_student["id"], date(2024, 6, 5), -5)
        assert resp.status_code == 422
        assert resp.json()["error"] == "invalid_usage_event"

    async def test_unknown_student(self, client):
        resp = await _submit(client, uuid.uuid4(), date(2024, 6, 5), 10)
        assert resp.status_code == 404
        assert resp.json()["error"] == "unknown_student"

    async def test_evaluation_history(self, client, enrolled_student):
        student_id = enrolled_student["id"]
        start = date(2024, 6, 3)
        for offset, minutes in enumerate((60, 200, 60)):
            await _submit(client, student_id, start + timedelta(days=offset), minutes)

        resp = await client.get(f"/api/v1/students/{student_id}/evaluations")
        assert resp.status_code == 200
        history = resp.json()
        assert [h["evaluated_date"] for h in history] == ["2024-06-05", "2024-06-04", "2024-06-03"]
        assert [h["reason"] for h in history] == ["none", "over_limit", "none"]
        assert [h["points_change"] for h in history] == [0.5, -0.5, 0.5]


class TestMilestonesEndpoint:
    async def test_new_student(self, client, enrolled_student):
        resp = await client.get(f"/api/v1/students/{enrolled_student['id']}/milestones")
        assert resp.status_code == 200
        assert resp.json() == [
            {"id": "started", "unlocked": True},
            {"id": "week_streak", "unlocked": False},
            {"id": "month_streak", "unlocked": False},
        ]

    async def test_week_streak_unlocked(self, client, enrolled_student):
        student_id = enrolled_student["id"]
        start = date(2024, 6, 3)
        for offset in range(7):
            resp = await _submit(client, student_id, start + timedelta(days=offset), 30)
            assert resp.status_code == 200

        resp = await client.get(f"/api/v1/students/{student_id}/milestones")
        unlocked = {m["id"]: m["unlocked"] for m in resp.json()}
        assert unlocked == {"started": True, "week_streak": True, "month_streak": False}

    async def test_unknown_student(self, client):
        resp = await client.get(f"/api/v1/students/{uuid.uuid4()}/milestones")
        assert resp.status_code == 404

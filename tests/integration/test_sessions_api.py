"""
Integration tests for the counseling session and analytics APIs

Tests HTTP status codes, payloads and error envelopes end to end.
"""
import pytest

from counselboard.config import AUTO_COMPLETE_BANNER

pytestmark = pytest.mark.integration

SESSIONS_URL = "/api/v1/counseling-sessions"


def start_payload(**overrides):
    payload = {
        "counselor_id": "counselor-1",
        "session_type": "individual",
        "session_date": "2024-01-01",
        "entry_time": "10:00",
        "topic": "Exam anxiety",
        "participant_type": "student",
        "session_mode": "in_person",
        "session_location": "Guidance office",
        "participant_ids": ["S1"],
    }
    payload.update(overrides)
    return payload


async def start(client, **overrides):
    response = await client.post(SESSIONS_URL, json=start_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestSessionEndpoints:
    """Test session lifecycle over HTTP"""

    async def test_start_and_get(self, client):
        response = await client.post(SESSIONS_URL, json=start_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True

        detail = await client.get(f"{SESSIONS_URL}/{body['id']}")
        assert detail.status_code == 200
        session = detail.json()
        assert session["state"] == "active"
        assert session["session_date"] == "2024-01-01"
        assert session["duration"] == 0
        assert session["participants"] == [
            {"student_id": "S1", "name": "Alice Moreno", "class_name": "10-A"}
        ]

    async def test_start_without_participants(self, client):
        response = await client.post(SESSIONS_URL, json=start_payload(participant_ids=[]))

        assert response.status_code == 400
        assert "participant" in response.json()["detail"]

    async def test_start_group_without_name(self, client):
        response = await client.post(
            SESSIONS_URL, json=start_payload(session_type="group", participant_ids=["S1", "S2"])
        )

        assert response.status_code == 400

    async def test_start_invalid_mode(self, client):
        response = await client.post(SESSIONS_URL, json=start_payload(session_mode="carrier_pigeon"))

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]

    async def test_start_invalid_entry_time(self, client):
        response = await client.post(SESSIONS_URL, json=start_payload(entry_time="24:10"))
        assert response.status_code == 422

    async def test_get_unknown_session(self, client):
        response = await client.get(f"{SESSIONS_URL}/missing")
        assert response.status_code == 404

    async def test_complete_then_complete_again(self, client):
        session_id = await start(client)

        response = await client.put(
            f"{SESSIONS_URL}/{session_id}/complete",
            json={
                "exit_time": "10:45",
                "session_flow": "positive",
                "cooperation_level": 4,
                "session_tags": ["exams"],
                "action_items": [{"id": "a1", "description": "Meet again", "due_date": "2024-01-08"}],
            },
        )
        assert response.status_code == 200
        assert response.json() == {"success": True}

        session = (await client.get(f"{SESSIONS_URL}/{session_id}")).json()
        assert session["state"] == "completed"
        assert session["exit_time"] == "10:45"
        assert session["duration"] == 45
        assert session["action_items"][0]["due_date"] == "2024-01-08"

        again = await client.put(f"{SESSIONS_URL}/{session_id}/complete", json={"exit_time": "10:50"})
        assert again.status_code == 404
        assert "already completed" in again.json()["detail"]

    async def test_complete_rejects_bad_evaluation(self, client):
        session_id = await start(client)

        response = await client.put(
            f"{SESSIONS_URL}/{session_id}/complete",
            json={"exit_time": "10:45", "cooperation_level": 9},
        )

        assert response.status_code == 422

    async def test_extend(self, client):
        session_id = await start(client)

        for _ in range(2):
            response = await client.put(f"{SESSIONS_URL}/{session_id}/extend")
            assert response.status_code == 200

        session = (await client.get(f"{SESSIONS_URL}/{session_id}")).json()
        assert session["extension_granted"] is True
        assert session["state"] == "active"

        missing = await client.put(f"{SESSIONS_URL}/missing/extend")
        assert missing.status_code == 404

    async def test_delete(self, client):
        session_id = await start(client)

        response = await client.delete(f"{SESSIONS_URL}/{session_id}")
        assert response.status_code == 200

        assert (await client.get(f"{SESSIONS_URL}/{session_id}")).status_code == 404
        assert (await client.delete(f"{SESSIONS_URL}/{session_id}")).status_code == 404

    async def test_list_and_filters(self, client):
        open_id = await start(client, entry_time="09:00")
        closed_id = await start(client, entry_time="11:00", participant_ids=["S3"])
        await client.put(f"{SESSIONS_URL}/{closed_id}/complete", json={"exit_time": "11:30"})

        everything = (await client.get(SESSIONS_URL)).json()
        assert [s["id"] for s in everything] == [closed_id, open_id]

        active = (await client.get(SESSIONS_URL, params={"status": "active"})).json()
        assert [s["id"] for s in active] == [open_id]

        by_class = (await client.get(SESSIONS_URL, params={"class_name": "11-B"})).json()
        assert [s["id"] for s in by_class] == [closed_id]

        blank = (await client.get(SESSIONS_URL, params={"topic": ""})).json()
        assert len(blank) == 2

        bad = await client.get(SESSIONS_URL, params={"status": "pending"})
        assert bad.status_code == 422

    async def test_active_endpoint(self, client):
        open_id = await start(client)
        closed_id = await start(client, participant_ids=["S2"])
        await client.put(f"{SESSIONS_URL}/{closed_id}/complete", json={"exit_time": "10:20"})

        response = await client.get(f"{SESSIONS_URL}/active")

        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [open_id]

    async def test_auto_complete_endpoint(self, client):
        """A session from 2024 is long past its time limit"""
        session_id = await start(client)

        response = await client.post(f"{SESSIONS_URL}/auto-complete")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["completed_count"] == 1
        assert body["completed_session_ids"] == [session_id]

        session = (await client.get(f"{SESSIONS_URL}/{session_id}")).json()
        assert session["state"] == "auto_completed"
        assert session["detailed_notes"].endswith(AUTO_COMPLETE_BANNER)

        rerun = (await client.post(f"{SESSIONS_URL}/auto-complete")).json()
        assert rerun["completed_count"] == 0


class TestAnalyticsEndpoints:
    """Test analytics routes"""

    async def test_overview(self, client):
        session_id = await start(client)
        await client.put(f"{SESSIONS_URL}/{session_id}/complete", json={"exit_time": "10:30"})

        response = await client.get("/api/v1/analytics/overview")

        assert response.status_code == 200
        stats = response.json()
        assert stats["total_sessions"] == 1
        assert stats["completed_sessions"] == 1
        assert stats["avg_duration"] == 30
        assert stats["individual_percentage"] == 100.0

    async def test_time_series(self, client):
        await start(client)

        response = await client.get(
            "/api/v1/analytics/time-series",
            params={"period": "daily", "start_date": "2024-01-01", "end_date": "2024-01-05"},
        )

        assert response.status_code == 200
        series = response.json()
        assert len(series) == 5
        assert series[0] == {"date": "2024-01-01", "count": 1, "completed": 0, "active": 1}

    async def test_time_series_reversed_range(self, client):
        response = await client.get(
            "/api/v1/analytics/time-series",
            params={"start_date": "2024-01-05", "end_date": "2024-01-01"},
        )
        assert response.status_code == 400

    async def test_time_series_invalid_period(self, client):
        response = await client.get("/api/v1/analytics/time-series", params={"period": "hourly"})
        assert response.status_code == 422

    async def test_time_series_default_range(self, client):
        response = await client.get("/api/v1/analytics/time-series")

        assert response.status_code == 200
        assert len(response.json()) == 31

    async def test_breakdowns(self, client):
        await start(client)
        await start(client, session_type="group", group_name="G", participant_ids=["S1", "S2"],
                    session_mode="online", topic="Peer relationships")

        topics = (await client.get("/api/v1/analytics/topics", params={"limit": 1})).json()
        assert len(topics) == 1

        classes = (await client.get("/api/v1/analytics/classes")).json()
        assert classes == [{"class_name": "10-A", "count": 2, "percentage": 100.0}]

        modes = (await client.get("/api/v1/analytics/modes")).json()
        assert {row["mode"] for row in modes} == {"in_person", "online"}

        participants = (await client.get("/api/v1/analytics/participants")).json()
        assert participants == [{"type": "student", "count": 2, "percentage": 100.0}]

    async def test_student_stats(self, client):
        await start(client)

        response = await client.get("/api/v1/analytics/students/S1")

        assert response.status_code == 200
        stats = response.json()
        assert stats["total_sessions"] == 1
        assert stats["last_session_date"] == "2024-01-01"
        assert stats["topics"] == ["Exam anxiety"]


class TestServiceEndpoints:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["database"] == "ok"
        assert response.json()["timestamp"].endswith("+00:00")

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Counselboard API"

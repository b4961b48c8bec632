"""
Integration tests for the follow-up API

Tests session-scoped scheduling, status changes and the overdue listing over HTTP.
"""
from datetime import date, timedelta

import pytest

pytestmark = pytest.mark.integration

SESSIONS_URL = "/api/v1/counseling-sessions"
FOLLOW_UPS_URL = "/api/v1/counseling-sessions/follow-ups"


def follow_up_payload(**overrides):
    payload = {
        "follow_up_date": "2024-01-05",
        "assigned_to": "counselor-1",
        "action_items": "Call parent about exam plan",
    }
    payload.update(overrides)
    return payload


async def start_session(client):
    response = await client.post(
        SESSIONS_URL,
        json={
            "counselor_id": "counselor-1",
            "session_type": "individual",
            "session_date": "2024-01-01",
            "entry_time": "10:00",
            "topic": "Exam anxiety",
            "participant_type": "student",
            "session_mode": "in_person",
            "session_location": "Guidance office",
            "participant_ids": ["S1"],
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


async def create(client, **overrides):
    response = await client.post(FOLLOW_UPS_URL, json=follow_up_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestSessionFollowUps:
    """Test follow-ups reached through their session"""

    async def test_create_and_list_for_session(self, client):
        session_id = await start_session(client)

        response = await client.post(
            f"{SESSIONS_URL}/{session_id}/follow-ups", json=follow_up_payload(priority="high")
        )
        assert response.status_code == 201
        follow_up_id = response.json()["id"]

        listing = await client.get(f"{SESSIONS_URL}/{session_id}/follow-ups")
        assert listing.status_code == 200
        body = listing.json()
        assert [f["id"] for f in body] == [follow_up_id]
        assert body[0]["session_id"] == session_id
        assert body[0]["priority"] == "high"
        assert body[0]["status"] == "pending"
        assert body[0]["follow_up_date"] == "2024-01-05"

    async def test_unknown_session(self, client):
        assert (await client.get(f"{SESSIONS_URL}/missing/follow-ups")).status_code == 404

        response = await client.post(f"{SESSIONS_URL}/missing/follow-ups", json=follow_up_payload())
        assert response.status_code == 404

    async def test_session_detail_route_unaffected(self, client):
        session_id = await start_session(client)

        response = await client.get(f"{SESSIONS_URL}/{session_id}")

        assert response.status_code == 200
        assert response.json()["id"] == session_id


class TestFollowUpEndpoints:
    """Test the follow-up resource"""

    async def test_create_get_delete(self, client):
        follow_up_id = await create(client, notes="Bring report card")

        detail = await client.get(f"{FOLLOW_UPS_URL}/{follow_up_id}")
        assert detail.status_code == 200
        assert detail.json()["notes"] == "Bring report card"
        assert detail.json()["completed_date"] is None

        assert (await client.delete(f"{FOLLOW_UPS_URL}/{follow_up_id}")).status_code == 200
        assert (await client.get(f"{FOLLOW_UPS_URL}/{follow_up_id}")).status_code == 404
        assert (await client.delete(f"{FOLLOW_UPS_URL}/{follow_up_id}")).status_code == 404

    async def test_create_with_unknown_session(self, client):
        response = await client.post(FOLLOW_UPS_URL, json=follow_up_payload(session_id="missing"))

        assert response.status_code == 400
        assert "missing" in response.json()["detail"]

    async def test_create_validation(self, client):
        payload = follow_up_payload(priority="critical")
        del payload["assigned_to"]

        response = await client.post(FOLLOW_UPS_URL, json=payload)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_status_change(self, client):
        follow_up_id = await create(client)

        response = await client.put(
            f"{FOLLOW_UPS_URL}/{follow_up_id}/status",
            json={"status": "completed", "completed_date": "2024-01-07"},
        )
        assert response.status_code == 200

        stored = (await client.get(f"{FOLLOW_UPS_URL}/{follow_up_id}")).json()
        assert stored["status"] == "completed"
        assert stored["completed_date"] == "2024-01-07"

    async def test_status_change_unknown(self, client):
        response = await client.put(f"{FOLLOW_UPS_URL}/missing/status", json={"status": "completed"})
        assert response.status_code == 404

    async def test_update(self, client):
        follow_up_id = await create(client)

        response = await client.put(
            f"{FOLLOW_UPS_URL}/{follow_up_id}", json={"assigned_to": "counselor-2", "priority": "urgent"}
        )
        assert response.status_code == 200

        stored = (await client.get(f"{FOLLOW_UPS_URL}/{follow_up_id}")).json()
        assert stored["assigned_to"] == "counselor-2"
        assert stored["priority"] == "urgent"
        assert stored["action_items"] == "Call parent about exam plan"

    async def test_update_blank_required_field(self, client):
        follow_up_id = await create(client)

        response = await client.put(f"{FOLLOW_UPS_URL}/{follow_up_id}", json={"action_items": ""})

        assert response.status_code == 400

    async def test_list_filters(self, client):
        first = await create(client, assigned_to="counselor-2", follow_up_date="2024-01-02")
        await create(client, follow_up_date="2024-01-03", status="in_progress")

        response = await client.get(FOLLOW_UPS_URL, params={"assigned_to": "counselor-2"})
        assert [f["id"] for f in response.json()] == [first]

        response = await client.get(FOLLOW_UPS_URL, params={"status": "in_progress"})
        assert len(response.json()) == 1
        assert response.json()[0]["status"] == "in_progress"

        assert len((await client.get(FOLLOW_UPS_URL)).json()) == 2

    async def test_overdue(self, client):
        medium = await create(client, follow_up_date="2024-01-02")
        urgent = await create(client, follow_up_date="2024-01-04", priority="urgent")
        await create(client, follow_up_date="2024-01-01", status="completed")

        response = await client.get(f"{FOLLOW_UPS_URL}/overdue", params={"as_of": "2024-01-05"})

        assert response.status_code == 200
        assert [f["id"] for f in response.json()] == [urgent, medium]

    async def test_overdue_defaults_to_today(self, client):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        overdue = await create(client, follow_up_date=yesterday)
        await create(client, follow_up_date=tomorrow)

        response = await client.get(f"{FOLLOW_UPS_URL}/overdue")

        assert [f["id"] for f in response.json()] == [overdue]

"""
Tests for debate endpoints.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from conftest import ADMIN_PASSWORD


def debate_payload(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    payload = {
        "title": "Pineapple on pizza?",
        "options": ["Yes", "No"],
        "start_at": (now - timedelta(minutes=5)).isoformat(),
        "end_at": (now + timedelta(days=2)).isoformat(),
        "admin_password": ADMIN_PASSWORD,
        "author_nickname": "host",
    }
    payload.update(overrides)
    return payload


async def create_debate(client: AsyncClient, **overrides) -> dict:
    response = await client.post("/api/v1/debates", json=debate_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


async def admin_headers(client: AsyncClient, debate_id: str) -> dict:
    response = await client.post(f"/api/v1/debates/{debate_id}/admin/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.mark.unit
class TestPublicDebateEndpoints:
    async def test_create_returns_links(self, client: AsyncClient) -> None:
        data = await create_debate(client)

        assert data["success"] is True
        assert data["status"] == "active"
        assert data["public_url"] == f"http://frontend.test/debate/{data['id']}"
        assert data["admin_url"] == f"http://frontend.test/debate/admin/{data['id']}"

    async def test_create_rejects_single_option(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/debates", json=debate_payload(options=["Only"]))
        assert response.status_code == 422

    async def test_create_rejects_inverted_window(self, client: AsyncClient) -> None:
        now = datetime.now(timezone.utc)
        response = await client.post(
            "/api/v1/debates",
            json=debate_payload(start_at=now.isoformat(), end_at=(now - timedelta(hours=1)).isoformat()),
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    async def test_get_hides_admin_fields(self, client: AsyncClient) -> None:
        created = await create_debate(client)

        response = await client.get(f"/api/v1/debates/{created['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["can_vote"] is True
        assert data["view_count"] == 1
        assert [option["label"] for option in data["options"]] == ["Yes", "No"]
        assert "admin" not in data
        assert "voter_ips" not in data

    async def test_unknown_debate(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/debates/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Debate not found", "kind": "not_found"}

    async def test_vote_then_second_vote_rejected(self, client: AsyncClient) -> None:
        created = await create_debate(client)
        detail = (await client.get(f"/api/v1/debates/{created['id']}")).json()
        option_id = detail["options"][0]["id"]

        first = await client.post(f"/api/v1/debates/{created['id']}/vote", json={"option_ids": [option_id]})
        assert first.status_code == 200
        body = first.json()
        assert body["can_vote"] is False
        assert body["results"]["total_votes"] == 1
        assert body["results"]["options"][0]["percentage"] == 100

        second = await client.post(f"/api/v1/debates/{created['id']}/vote", json={"option_ids": [option_id]})
        assert second.status_code == 400
        assert second.json()["kind"] == "ineligible"

    async def test_vote_from_other_address_counts(self, client: AsyncClient) -> None:
        created = await create_debate(client)
        detail = (await client.get(f"/api/v1/debates/{created['id']}")).json()
        yes, no = (option["id"] for option in detail["options"])

        await client.post(f"/api/v1/debates/{created['id']}/vote", json={"option_ids": [yes]})
        response = await client.post(
            f"/api/v1/debates/{created['id']}/vote",
            json={"option_ids": [no]},
            headers={"X-Forwarded-For": "198.51.100.9, 10.0.0.1"},
        )

        results = response.json()["results"]
        assert results["total_votes"] == 2
        assert results["unique_voters"] == 2
        assert [option["percentage"] for option in results["options"]] == [50, 50]

    async def test_hidden_results_omit_counts(self, client: AsyncClient) -> None:
        created = await create_debate(client, settings={"show_results_before_end": False})
        detail = (await client.get(f"/api/v1/debates/{created['id']}")).json()
        option_id = detail["options"][0]["id"]

        vote = await client.post(f"/api/v1/debates/{created['id']}/vote", json={"option_ids": [option_id]})
        assert vote.json()["results"] is None

        detail = (await client.get(f"/api/v1/debates/{created['id']}")).json()
        assert detail["results"] is None
        assert detail["options"][0]["vote_count"] is None

    async def test_anonymous_opinion(self, client: AsyncClient) -> None:
        created = await create_debate(client)

        response = await client.post(
            f"/api/v1/debates/{created['id']}/opinions",
            json={"content": "<b>Strong</b> take", "author_nickname": "kim", "is_anonymous": True},
        )

        assert response.status_code == 201
        opinion = response.json()["opinion"]
        assert opinion["author_nickname"] == "Anonymous"
        assert "<b>" not in opinion["content"]

    async def test_list(self, client: AsyncClient) -> None:
        await create_debate(client)
        await create_debate(client, title="Cats or dogs?")

        response = await client.get("/api/v1/debates", params={"per_page": 1})

        data = response.json()
        assert len(data["debates"]) == 1
        assert data["pagination"] == {"page": 1, "per_page": 1, "total": 2, "total_pages": 2}


@pytest.mark.unit
class TestDebateAdminEndpoints:
    async def test_login_wrong_password(self, client: AsyncClient) -> None:
        created = await create_debate(client)
        response = await client.post(f"/api/v1/debates/{created['id']}/admin/login", json={"password": "nope"})
        assert response.status_code == 401
        assert response.json()["kind"] == "unauthorized"

    async def test_admin_routes_require_token(self, client: AsyncClient) -> None:
        created = await create_debate(client)

        missing = await client.get(f"/api/v1/debates/{created['id']}/stats")
        forged = await client.get(
            f"/api/v1/debates/{created['id']}/stats",
            headers={"Authorization": "Bearer forged"},
        )

        assert missing.status_code == 401
        assert forged.status_code == 401

    async def test_stats_and_forced_results(self, client: AsyncClient) -> None:
        created = await create_debate(client, settings={"show_results_before_end": False})
        detail = (await client.get(f"/api/v1/debates/{created['id']}")).json()
        await client.post(f"/api/v1/debates/{created['id']}/vote", json={"option_ids": [detail["options"][1]["id"]]})
        headers = await admin_headers(client, created["id"])

        stats = await client.get(f"/api/v1/debates/{created['id']}/stats", headers=headers)
        results = await client.get(f"/api/v1/debates/{created['id']}/results", headers=headers)

        assert stats.status_code == 200
        assert stats.json()["statistics"]["overview"]["total_votes"] == 1
        assert results.json()["options"][1]["vote_count"] == 1

    async def test_update_rechecks_password(self, client: AsyncClient) -> None:
        created = await create_debate(client)
        headers = await admin_headers(client, created["id"])

        forbidden = await client.put(
            f"/api/v1/debates/{created['id']}",
            json={"admin_password": "wrong", "title": "Changed"},
            headers=headers,
        )
        assert forbidden.status_code == 403

        updated = await client.put(
            f"/api/v1/debates/{created['id']}",
            json={"admin_password": ADMIN_PASSWORD, "title": "Changed"},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json()["title"] == "Changed"

    async def test_active_debate_options_frozen(self, client: AsyncClient) -> None:
        created = await create_debate(client)
        headers = await admin_headers(client, created["id"])

        response = await client.put(
            f"/api/v1/debates/{created['id']}",
            json={"admin_password": ADMIN_PASSWORD, "options": ["A", "B", "C"]},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    async def test_delete(self, client: AsyncClient) -> None:
        created = await create_debate(client)
        headers = await admin_headers(client, created["id"])

        response = await client.request(
            "DELETE",
            f"/api/v1/debates/{created['id']}",
            json={"admin_password": ADMIN_PASSWORD},
            headers=headers,
        )

        assert response.status_code == 200
        assert (await client.get(f"/api/v1/debates/{created['id']}")).status_code == 404

    async def test_delete_opinion(self, client: AsyncClient) -> None:
        created = await create_debate(client)
        opinion = (
            await client.post(f"/api/v1/debates/{created['id']}/opinions", json={"content": "Remove me"})
        ).json()["opinion"]
        headers = await admin_headers(client, created["id"])

        response = await client.delete(
            f"/api/v1/debates/{created['id']}/opinions/{opinion['id']}",
            headers=headers,
        )

        assert response.status_code == 200
        detail = (await client.get(f"/api/v1/debates/{created['id']}")).json()
        assert detail["opinions"] == []
        assert detail["opinion_count"] == 0

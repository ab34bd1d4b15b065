"""
Tests for survey, response receipt and survey admin endpoints.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from conftest import ADMIN_PASSWORD

OTHER_ADDRESS = {"X-Forwarded-For": "198.51.100.44"}


def survey_payload(**overrides) -> dict:
    payload = {
        "title": "Lunch survey",
        "admin_password": ADMIN_PASSWORD,
        "questions": [
            {
                "id": "q1",
                "title": "Favourite lunch?",
                "type": "single_choice",
                "required": True,
                "properties": {"choices": [{"id": "c1", "label": "Soup"}, {"id": "c2", "label": "Salad"}]},
            },
            {"id": "q2", "title": "Anything else?", "type": "long_text"},
            {"id": "q3", "title": "Rate the canteen", "type": "rating", "properties": {"rating_scale": 5}},
        ],
    }
    payload.update(overrides)
    return payload


def submission(choice: str = "c1", rating: int = 4, text: str = "More soup please") -> dict:
    return {
        "started_at": (datetime.now(timezone.utc) - timedelta(minutes=2)).isoformat(),
        "answers": [
            {"question_id": "q1", "choice_id": choice},
            {"question_id": "q2", "text": text},
            {"question_id": "q3", "rating": rating},
        ],
    }


async def create_survey(client: AsyncClient, **overrides) -> dict:
    response = await client.post("/api/v1/surveys", json=survey_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


def bearer(created: dict) -> dict:
    return {"Authorization": f"Bearer {created['admin_token']}"}


@pytest.mark.unit
class TestPublicSurveyEndpoints:
    async def test_create_returns_token_and_links(self, client: AsyncClient) -> None:
        data = await create_survey(client)

        assert data["admin_token"]
        assert data["public_url"] == f"http://frontend.test/s/{data['id']}"
        assert data["admin_url"] == f"http://frontend.test/admin/{data['id']}"

    async def test_create_rejects_choice_question_without_choices(self, client: AsyncClient) -> None:
        payload = survey_payload(questions=[{"title": "Pick", "type": "single_choice"}])
        response = await client.post("/api/v1/surveys", json=payload)
        assert response.status_code == 422

    async def test_create_rejects_bad_rating_scale(self, client: AsyncClient) -> None:
        payload = survey_payload(
            questions=[{"title": "Rate", "type": "rating", "properties": {"rating_scale": 7}}],
        )
        response = await client.post("/api/v1/surveys", json=payload)
        assert response.status_code == 422

    async def test_get_survey(self, client: AsyncClient) -> None:
        created = await create_survey(client)

        response = await client.get(f"/api/v1/surveys/{created['id']}")

        data = response.json()
        assert [q["id"] for q in data["questions"]] == ["q1", "q2", "q3"]
        assert data["can_respond"] is True
        assert data["has_responded"] is False
        assert "admin" not in data

    async def test_submit_and_receipt(self, client: AsyncClient) -> None:
        created = await create_survey(client)

        response = await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())

        assert response.status_code == 201
        body = response.json()
        assert body["response_url"] == f"http://frontend.test/r/{body['response_code']}"

        receipt = await client.get(f"/api/v1/responses/code/{body['response_code'].lower()}")
        assert receipt.status_code == 200
        values = {a["question_id"]: a["value"] for a in receipt.json()["answers"]}
        assert values == {"q1": "Soup", "q2": "More soup please", "q3": "4"}

    async def test_receipt_code_format(self, client: AsyncClient) -> None:
        assert (await client.get("/api/v1/responses/code/not-a-code")).status_code == 422
        assert (await client.get("/api/v1/responses/code/ABCDEF12")).status_code == 404

    async def test_duplicate_submission(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        first = (await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())).json()

        second = await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission("c2"))

        assert second.status_code == 409
        assert second.json()["kind"] == "conflict"
        assert second.json()["response_code"] == first["response_code"]

    async def test_missing_required_answer(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        payload = submission()
        payload["answers"] = payload["answers"][1:]

        response = await client.post(f"/api/v1/surveys/{created['id']}/responses", json=payload)

        assert response.status_code == 400
        assert response.json()["field"] == "q1"

        survey = (await client.get(f"/api/v1/surveys/{created['id']}")).json()
        assert survey["response_count"] == 0

    async def test_public_results_exclude_text(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission(text="private note"))

        response = await client.get(f"/api/v1/surveys/{created['id']}/results")

        data = response.json()
        assert data["title"] == "Lunch survey"
        assert data["total_responses"] == 1
        assert data["question_stats"]["q1"]["choices"]["c1"]["count"] == 1
        assert "private note" not in response.text

    async def test_closed_survey_rejects_responses(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        closed = await client.patch(
            f"/api/v1/surveys/{created['id']}/status",
            json={"status": "closed"},
            headers=bearer(created),
        )
        assert closed.status_code == 200

        response = await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())

        assert response.status_code == 400
        assert response.json()["kind"] == "ineligible"


@pytest.mark.unit
class TestSurveyAdminEndpoints:
    async def test_requires_token(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        response = await client.get(f"/api/v1/admin/surveys/{created['id']}")
        assert response.status_code == 401

    async def test_login(self, client: AsyncClient) -> None:
        created = await create_survey(client)

        bad = await client.post(f"/api/v1/surveys/{created['id']}/admin/login", json={"password": "nope"})
        good = await client.post(f"/api/v1/surveys/{created['id']}/admin/login", json={"password": ADMIN_PASSWORD})

        assert bad.status_code == 401
        assert good.status_code == 200
        view = await client.get(
            f"/api/v1/admin/surveys/{created['id']}",
            headers={"Authorization": f"Bearer {good.json()['token']}"},
        )
        assert view.status_code == 200
        assert view.json()["can_edit"] is True

    async def test_questions_locked_after_first_response(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())

        locked = await client.put(
            f"/api/v1/surveys/{created['id']}",
            json={"questions": [{"title": "New question", "type": "short_text"}]},
            headers=bearer(created),
        )
        renamed = await client.put(
            f"/api/v1/surveys/{created['id']}",
            json={"title": "Renamed"},
            headers=bearer(created),
        )

        assert locked.status_code == 403
        assert renamed.status_code == 200
        assert renamed.json()["title"] == "Renamed"

    async def test_settings_patch(self, client: AsyncClient) -> None:
        created = await create_survey(client)

        response = await client.patch(
            f"/api/v1/surveys/{created['id']}/settings",
            json={"response_limit": 1},
            headers=bearer(created),
        )

        assert response.status_code == 200
        assert response.json()["settings"]["response_limit"] == 1
        await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())
        full = await client.post(
            f"/api/v1/surveys/{created['id']}/responses",
            json=submission(),
            headers=OTHER_ADDRESS,
        )
        assert full.status_code == 400

    async def test_responses_are_anonymized(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())

        listing = await client.get(f"/api/v1/admin/surveys/{created['id']}/responses", headers=bearer(created))

        assert listing.status_code == 200
        [item] = listing.json()["responses"]
        assert "respondent_ip_hash" not in item
        assert item["respondent_id"].startswith("R")

        detail = await client.get(
            f"/api/v1/admin/surveys/{created['id']}/responses/{item['id']}",
            headers=bearer(created),
        )
        assert detail.json()["response"]["id"] == item["id"]

    async def test_delete_response_allows_resubmission(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        first = (await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())).json()

        deleted = await client.delete(
            f"/api/v1/admin/surveys/{created['id']}/responses/{first['response_id']}",
            headers=bearer(created),
        )
        again = await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission("c2"))

        assert deleted.status_code == 200
        assert again.status_code == 201

    async def test_unlock_ip(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())

        response = await client.post(
            f"/api/v1/admin/surveys/{created['id']}/unlock-ip",
            json={"ip_address": "203.0.113.7"},
            headers=bearer(created),
        )

        assert response.json()["message"] == "Respondent unlocked"
        again = await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())
        assert again.status_code == 201

    async def test_statistics(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission(rating=5))
        await client.post(
            f"/api/v1/surveys/{created['id']}/responses",
            json=submission("c2", rating=3),
            headers=OTHER_ADDRESS,
        )

        response = await client.get(f"/api/v1/admin/surveys/{created['id']}/statistics", headers=bearer(created))

        statistics = response.json()["statistics"]
        assert statistics["overview"]["total_responses"] == 2
        assert statistics["questions"]["q3"]["stats"]["average"] == 4

    async def test_export_csv(self, client: AsyncClient) -> None:
        created = await create_survey(client)
        body = (await client.post(f"/api/v1/surveys/{created['id']}/responses", json=submission())).json()

        response = await client.get(f"/api/v1/admin/surveys/{created['id']}/export/csv", headers=bearer(created))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert f"survey_{created['id']}_responses_" in response.headers["content-disposition"]
        assert body["response_code"] in response.text

    async def test_delete_survey(self, client: AsyncClient) -> None:
        created = await create_survey(client)

        response = await client.delete(f"/api/v1/surveys/{created['id']}", headers=bearer(created))

        assert response.status_code == 200
        assert (await client.get(f"/api/v1/surveys/{created['id']}")).status_code == 404

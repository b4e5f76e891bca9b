import pytest

from services.generation import SUCCESS_MESSAGE
from services.session_token import create_session_token


OWNER_ID = "owner-user"
OTHER_ID = "other-user"
OWNER_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(OWNER_ID)['token']}"}
OTHER_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(OTHER_ID)['token']}"}


async def _credits(api_client, headers):
    response = await api_client.get("/api/user/credits", headers=headers)
    assert response.status_code == 200
    return response.json()["credits"]


@pytest.mark.asyncio
async def test_create_project_generates_in_background(api_client, create_user, fake_ai):
    await create_user(OWNER_ID, credits=10)

    response = await api_client.post(
        "/api/user/project",
        json={"initial_prompt": "a portfolio site for a photographer"},
        headers=OWNER_AUTH_HEADER,
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["generation_status"] == "pending"
    project_id = payload["project_id"]

    # The in-process executor has finished by the time the test transport returns.
    detail = await api_client.get(f"/api/user/project/{project_id}", headers=OWNER_AUTH_HEADER)
    assert detail.status_code == 200
    project = detail.json()["project"]
    assert project["generation_status"] == "succeeded"
    assert project["current_code"].startswith("<!DOCTYPE html>")
    assert [entry["sequence"] for entry in project["conversation"]] == [1, 2, 3, 4]
    assert project["conversation"][0]["role"] == "user"
    assert project["conversation"][0]["content"] == "a portfolio site for a photographer"
    assert project["conversation"][-1]["content"] == SUCCESS_MESSAGE
    assert len(project["versions"]) == 1
    assert project["current_version_index"] == project["versions"][0]["id"]

    assert await _credits(api_client, OWNER_AUTH_HEADER) == 5


@pytest.mark.asyncio
async def test_create_project_with_empty_output_restores_balance(api_client, create_user, fake_ai):
    await create_user(OWNER_ID, credits=10)
    fake_ai.code = "```\n```"

    response = await api_client.post(
        "/api/user/project",
        json={"initial_prompt": "a portfolio site for a photographer"},
        headers=OWNER_AUTH_HEADER,
    )
    assert response.status_code == 200
    project_id = response.json()["project_id"]

    project = (await api_client.get(f"/api/user/project/{project_id}", headers=OWNER_AUTH_HEADER)).json()["project"]
    assert project["generation_status"] == "empty_output"
    assert project["versions"] == []
    assert await _credits(api_client, OWNER_AUTH_HEADER) == 10


@pytest.mark.asyncio
async def test_create_project_requires_credits(api_client, create_user):
    await create_user(OWNER_ID, credits=4)

    response = await api_client.post(
        "/api/user/project",
        json={"initial_prompt": "a bakery landing page"},
        headers=OWNER_AUTH_HEADER,
    )
    assert response.status_code == 402

    projects = await api_client.get("/api/user/projects", headers=OWNER_AUTH_HEADER)
    assert projects.json()["projects"] == []
    assert await _credits(api_client, OWNER_AUTH_HEADER) == 4


@pytest.mark.asyncio
async def test_create_project_rejects_blank_prompt(api_client, create_user):
    await create_user(OWNER_ID, credits=10)

    response = await api_client.post("/api/user/project", json={"initial_prompt": "   "}, headers=OWNER_AUTH_HEADER)
    assert response.status_code == 400
    assert response.json()["detail"] == "initial_prompt is required"

    missing = await api_client.post("/api/user/project", json={}, headers=OWNER_AUTH_HEADER)
    assert missing.status_code == 400
    assert await _credits(api_client, OWNER_AUTH_HEADER) == 10


@pytest.mark.asyncio
async def test_requests_without_session_are_unauthorized(api_client):
    response = await api_client.post("/api/user/project", json={"initial_prompt": "anything"})
    assert response.status_code == 401

    bad_token = await api_client.get("/api/user/projects", headers={"Authorization": "Bearer not-a-token"})
    assert bad_token.status_code == 401


@pytest.mark.asyncio
async def test_foreign_project_is_indistinguishable_from_missing(api_client, create_user, fake_ai):
    await create_user(OWNER_ID, credits=10)
    await create_user(OTHER_ID, credits=10)

    created = await api_client.post(
        "/api/user/project",
        json={"initial_prompt": "a florist shop"},
        headers=OWNER_AUTH_HEADER,
    )
    project_id = created.json()["project_id"]

    foreign = await api_client.get(f"/api/user/project/{project_id}", headers=OTHER_AUTH_HEADER)
    missing = await api_client.get("/api/user/project/no-such-project", headers=OTHER_AUTH_HEADER)
    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()

    foreign_toggle = await api_client.post(f"/api/user/publish-toggle/{project_id}", headers=OTHER_AUTH_HEADER)
    assert foreign_toggle.status_code == 404

    other_projects = await api_client.get("/api/user/projects", headers=OTHER_AUTH_HEADER)
    assert other_projects.json()["projects"] == []


@pytest.mark.asyncio
async def test_publish_toggle_flips_state(api_client, create_user, fake_ai):
    await create_user(OWNER_ID, credits=10)
    created = await api_client.post(
        "/api/user/project",
        json={"initial_prompt": "a florist shop"},
        headers=OWNER_AUTH_HEADER,
    )
    project_id = created.json()["project_id"]

    first = await api_client.post(f"/api/user/publish-toggle/{project_id}", headers=OWNER_AUTH_HEADER)
    assert first.status_code == 200
    assert first.json()["is_published"] is True
    assert first.json()["message"] == "Project Published Successfully"

    second = await api_client.post(f"/api/user/publish-toggle/{project_id}", headers=OWNER_AUTH_HEADER)
    assert second.json()["is_published"] is False
    assert second.json()["message"] == "Project Unpublished"


@pytest.mark.asyncio
async def test_projects_listed_most_recently_updated_first(api_client, create_user, fake_ai):
    await create_user(OWNER_ID, credits=20)

    ids = []
    for prompt in ("first site", "second site", "third site"):
        created = await api_client.post("/api/user/project", json={"initial_prompt": prompt}, headers=OWNER_AUTH_HEADER)
        ids.append(created.json()["project_id"])

    listing = await api_client.get("/api/user/projects", headers=OWNER_AUTH_HEADER)
    assert listing.status_code == 200
    assert [project["id"] for project in listing.json()["projects"]] == list(reversed(ids))
    assert await _credits(api_client, OWNER_AUTH_HEADER) == 5

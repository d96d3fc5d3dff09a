"""Integration tests for the task API."""
import pytest
from httpx import AsyncClient

from conftest import bearer

FUTURE = "2030-01-01T00:00:00Z"
PAST = "2020-01-01T00:00:00Z"


async def create_task(client: AsyncClient, token: str, assignee: int, **overrides) -> dict:
    payload = {
        "title": "Write report",
        "description": "Quarterly numbers",
        "assignedTo": assignee,
        "dueDate": FUTURE,
        "priority": "high",
        "tags": ["finance"],
    }
    payload.update(overrides)
    response = await client.post("/api/tasks", json=payload, headers=bearer(token))
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.asyncio
async def test_create_and_fetch_task_expands_references(client: AsyncClient, admin, member) -> None:
    user, token = member
    admin_user, _ = admin
    task = await create_task(client, token, admin_user["id"])

    assert task["status"] == "pending"
    assert task["statusColor"] == "#ffc107"
    assert task["priorityColor"] == "#fd7e14"
    assert task["isOverdue"] is False
    assert task["daysRemaining"] > 0
    assert task["completedAt"] is None
    assert task["createdBy"] == {
        "id": user["id"],
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@example.com",
    }
    assert task["assignedTo"]["email"] == admin_user["email"]

    response = await client.get(f"/api/tasks/{task['id']}", headers=bearer(token))
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Write report"

    response = await client.get("/api/tasks", headers=bearer(token))
    assert [t["id"] for t in response.json()["data"]] == [task["id"]]


@pytest.mark.asyncio
async def test_missing_task_is_404(client: AsyncClient, member) -> None:
    _, token = member
    response = await client.get("/api/tasks/9999", headers=bearer(token))
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Task not found"}


@pytest.mark.asyncio
async def test_malformed_identifier_is_404(client: AsyncClient, member) -> None:
    _, token = member
    response = await client.get("/api/tasks/not-an-id", headers=bearer(token))
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Resource not found"}


@pytest.mark.asyncio
async def test_full_progress_completes_task(client: AsyncClient, member) -> None:
    user, token = member
    task = await create_task(client, token, user["id"])

    response = await client.put(
        f"/api/tasks/{task['id']}",
        json={"progress": 100, "status": "cancelled"},
        headers=bearer(token),
    )
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["status"] == "completed"
    assert updated["completedAt"] is not None


@pytest.mark.asyncio
async def test_partial_progress_is_never_pending(client: AsyncClient, member) -> None:
    user, token = member
    task = await create_task(client, token, user["id"], progress=100)
    assert task["status"] == "completed"

    response = await client.put(
        f"/api/tasks/{task['id']}",
        json={"progress": 40, "status": "pending"},
        headers=bearer(token),
    )
    updated = response.json()["data"]
    assert updated["status"] == "in-progress"
    assert updated["completedAt"] is None


@pytest.mark.asyncio
async def test_progress_endpoint_clamps_and_moves_status(client: AsyncClient, member) -> None:
    user, token = member
    task = await create_task(client, token, user["id"])

    response = await client.put(
        f"/api/tasks/{task['id']}/progress", json={"progress": 30}, headers=bearer(token)
    )
    assert response.json()["data"]["status"] == "in-progress"

    response = await client.put(
        f"/api/tasks/{task['id']}/progress", json={"progress": 250}, headers=bearer(token)
    )
    data = response.json()["data"]
    assert data["progress"] == 100
    assert data["status"] == "completed"


@pytest.mark.asyncio
async def test_update_is_revalidated(client: AsyncClient, member) -> None:
    user, token = member
    task = await create_task(client, token, user["id"])

    response = await client.put(
        f"/api/tasks/{task['id']}", json={"title": "x" * 201}, headers=bearer(token)
    )
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "title" in body["message"]

    response = await client.put(
        f"/api/tasks/{task['id']}", json={"status": "archived"}, headers=bearer(token)
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_assignee_is_rejected(client: AsyncClient, member) -> None:
    _, token = member
    response = await client.post(
        "/api/tasks",
        json={
            "title": "Orphan",
            "description": "Nobody to do it",
            "assignedTo": 424242,
            "dueDate": FUTURE,
        },
        headers=bearer(token),
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "assignedTo"


@pytest.mark.asyncio
async def test_comments_are_attributed(client: AsyncClient, member) -> None:
    user, token = member
    task = await create_task(client, token, user["id"])

    response = await client.post(
        f"/api/tasks/{task['id']}/comments", json={"content": "On it"}, headers=bearer(token)
    )
    assert response.status_code == 201
    comments = response.json()["data"]["comments"]
    assert len(comments) == 1
    assert comments[0]["content"] == "On it"
    assert comments[0]["user"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_list_filters(client: AsyncClient, admin, member) -> None:
    user, token = member
    admin_user, _ = admin
    overdue = await create_task(client, token, user["id"], dueDate=PAST)
    await create_task(client, token, admin_user["id"], priority="low")
    await create_task(client, token, user["id"], dueDate=PAST, progress=100)

    response = await client.get("/api/tasks", params={"overdue": "true"}, headers=bearer(token))
    assert [t["id"] for t in response.json()["data"]] == [overdue["id"]]
    assert response.json()["data"][0]["isOverdue"] is True

    response = await client.get(
        "/api/tasks", params={"assignedTo": admin_user["id"]}, headers=bearer(token)
    )
    assert len(response.json()["data"]) == 1

    response = await client.get("/api/tasks", params={"status": "completed"}, headers=bearer(token))
    assert len(response.json()["data"]) == 1


@pytest.mark.asyncio
async def test_delete_requires_admin_or_manager(client: AsyncClient, admin, member) -> None:
    user, token = member
    _, admin_token = admin
    task = await create_task(client, token, user["id"])

    response = await client.delete(f"/api/tasks/{task['id']}", headers=bearer(token))
    assert response.status_code == 403

    response = await client.delete(f"/api/tasks/{task['id']}", headers=bearer(admin_token))
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Task deleted successfully"}

    response = await client.delete(f"/api/tasks/{task['id']}", headers=bearer(admin_token))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deleting_a_user_keeps_their_tasks(client: AsyncClient, admin, member) -> None:
    """User references on tasks are weak; nothing cascades and nothing blocks the delete."""

    user, token = member
    _, admin_token = admin
    task = await create_task(client, token, user["id"])
    await client.post(
        f"/api/tasks/{task['id']}/comments", json={"content": "On it"}, headers=bearer(token)
    )

    response = await client.delete(f"/api/users/{user['id']}", headers=bearer(admin_token))
    assert response.status_code == 200

    response = await client.get(f"/api/tasks/{task['id']}", headers=bearer(admin_token))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["assignedTo"] is None
    assert data["createdBy"] is None
    assert data["comments"][0]["content"] == "On it"
    assert data["comments"][0]["user"] is None

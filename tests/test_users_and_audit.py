from types import SimpleNamespace
from unittest.mock import AsyncMock

from pymongo.errors import PyMongoError

from conftest import API, auth_headers

from learnhub.audit.common_audit import log_audit


async def test_me(client, learner):
    response = await client.get(f"{API}/auth/me", headers=auth_headers(learner))
    assert response.status_code == 200
    assert response.json()["data"]["user_id"] == learner.user_id


async def test_token_for_unknown_user(client):
    response = await client.get(f"{API}/auth/me", headers=auth_headers({"user_id": "USR_GHOST"}))
    assert response.status_code == 401


async def test_admin_user_management(client, admin, learner):
    headers = auth_headers(admin)

    response = await client.post(
        f"{API}/users",
        json={"name": "New Person", "email": "new@example.com", "role": "publisher"},
        headers=headers,
    )
    assert response.status_code == 201
    created = response.json()["data"]

    response = await client.post(
        f"{API}/users",
        json={"name": "Clash", "email": "new@example.com"},
        headers=headers,
    )
    assert response.status_code == 409

    body = (await client.get(f"{API}/users?role=publisher", headers=headers)).json()
    assert [u["user_id"] for u in body["data"]] == [created["user_id"]]

    response = await client.put(f"{API}/users/{created['user_id']}", json={"role": "learner"}, headers=headers)
    assert response.json()["data"]["role"] == "learner"

    logs = (await client.get(f"{API}/audit-logs?action=user.change_role", headers=headers)).json()
    [entry] = logs["data"]
    assert entry["previous_value"] == "publisher"
    assert entry["new_value"] == "learner"
    assert entry["performer"]["name"] == "Ada Admin"


async def test_user_admin_routes_are_admin_only(client, learner):
    response = await client.get(f"{API}/users", headers=auth_headers(learner))
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"

    response = await client.get(f"{API}/audit-logs", headers=auth_headers(learner))
    assert response.status_code == 403


async def test_deleting_user_cancels_enrollments(client, db, admin, learner, community):
    await client.post(f"{API}/communities/{community['community_id']}/enroll", headers=auth_headers(learner))

    response = await client.delete(f"{API}/users/{learner.user_id}", headers=auth_headers(admin))
    assert response.status_code == 200

    assert await db.enrollments.count_documents({"user_id": learner.user_id, "status": "active"}) == 0
    assert (await client.get(f"{API}/users/{learner.user_id}", headers=auth_headers(admin))).status_code == 404


async def test_audit_log_pagination(client, db, admin):
    for n in range(3):
        await log_audit(db, admin.user_id, "test.action", "thing", f"T{n}")

    body = (await client.get(f"{API}/audit-logs?limit=2", headers=auth_headers(admin))).json()
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3}
    assert {entry["resource_id"] for entry in body["data"]} <= {"T0", "T1", "T2"}
    assert body["count"] == 2

    response = await client.get(f"{API}/audit-logs?limit=101", headers=auth_headers(admin))
    assert response.status_code == 400


async def test_failed_audit_write_does_not_raise(admin):
    broken_db = SimpleNamespace(audit_logs=SimpleNamespace(insert_one=AsyncMock(side_effect=PyMongoError("disk full"))))

    assert await log_audit(broken_db, admin.user_id, "test.action", "thing", "T1") is None


async def test_health(client):
    response = await client.get("/health")
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "UP"


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get(f"{API}/nowhere")
    assert response.status_code == 404
    assert response.json()["success"] is False


async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"

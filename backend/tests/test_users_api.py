"""Tests for user management endpoints."""

from fastapi.testclient import TestClient


def test_list_users_requires_admin(client: TestClient, alice: dict) -> None:
    resp = client.get("/users", headers=alice["headers"])
    assert resp.status_code == 403
    assert resp.json()["success"] is False


def test_admin_lists_users(client: TestClient, admin: dict, alice: dict) -> None:
    resp = client.get("/users", headers=admin["headers"])
    assert resp.status_code == 200
    emails = {u["email"] for u in resp.json()["users"]}
    assert emails == {"admin@example.com", "alice@example.com"}


def test_admin_provisions_user(client: TestClient, admin: dict) -> None:
    resp = client.post(
        "/users",
        json={"email": "Carol@Example.com", "dailyLimitMinutes": 45},
        headers=admin["headers"],
    )
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["email"] == "carol@example.com"
    assert user["dailyLimitMinutes"] == 45
    assert user["displayName"] == "carol"

    duplicate = client.post("/users", json={"email": "carol@example.com"}, headers=admin["headers"])
    assert duplicate.status_code == 400


def test_admin_sets_limit_bonus_and_block(client: TestClient, admin: dict, alice: dict) -> None:
    user_id = alice["user"]["id"]
    resp = client.patch(
        f"/users/{user_id}",
        json={"dailyLimitMinutes": 0, "bonusMinutes": 10, "isBlocked": True, "blockReason": "Exams"},
        headers=admin["headers"],
    )
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["dailyLimitMinutes"] == 0
    assert user["bonusMinutes"] == 10
    assert user["isBlocked"] is True
    assert user["blockReason"] == "Exams"

    me = client.get("/auth/me", headers=alice["headers"]).json()
    assert me["quota"]["effectiveBlock"] is True
    assert me["quota"]["isTimeUp"] is False


def test_unblock_clears_reason(client: TestClient, admin: dict, alice: dict) -> None:
    user_id = alice["user"]["id"]
    client.patch(
        f"/users/{user_id}", json={"isBlocked": True, "blockReason": "x"}, headers=admin["headers"]
    )
    user = client.patch(
        f"/users/{user_id}", json={"isBlocked": False}, headers=admin["headers"]
    ).json()["user"]
    assert user["isBlocked"] is False
    assert user["blockReason"] is None


def test_negative_limit_rejected(client: TestClient, admin: dict, alice: dict) -> None:
    resp = client.patch(
        f"/users/{alice['user']['id']}", json={"dailyLimitMinutes": -5}, headers=admin["headers"]
    )
    assert resp.status_code == 400


def test_user_updates_own_display_name(client: TestClient, alice: dict) -> None:
    resp = client.patch(
        f"/users/{alice['user']['id']}", json={"displayName": "Ally"}, headers=alice["headers"]
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["displayName"] == "Ally"


def test_user_cannot_raise_own_limit(client: TestClient, alice: dict) -> None:
    resp = client.patch(
        f"/users/{alice['user']['id']}", json={"dailyLimitMinutes": 600}, headers=alice["headers"]
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "Only admin can update these fields"


def test_user_cannot_update_others(client: TestClient, sign_in, alice: dict) -> None:
    bob = sign_in("bob@example.com")
    resp = client.patch(
        f"/users/{alice['user']['id']}", json={"displayName": "x"}, headers=bob["headers"]
    )
    assert resp.status_code == 403


def test_empty_update_rejected(client: TestClient, alice: dict) -> None:
    resp = client.patch(f"/users/{alice['user']['id']}", json={}, headers=alice["headers"])
    assert resp.status_code == 400


def test_get_unknown_user(client: TestClient, admin: dict) -> None:
    resp = client.get("/users/does-not-exist", headers=admin["headers"])
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "User not found"}


def test_get_user_includes_today_usage(client: TestClient, admin: dict, alice: dict) -> None:
    client.post("/usage/sync", json={"totalMinutes": 12, "appUsage": {"YouTube": 12}}, headers=alice["headers"])
    body = client.get(f"/users/{alice['user']['id']}", headers=admin["headers"]).json()
    assert body["usage"]["totalMinutes"] == 12
    assert body["usage"]["quota"]["remainingMinutes"] == 18


def test_user_stats(client: TestClient, alice: dict) -> None:
    headers = alice["headers"]
    client.post(
        "/usage/sync",
        json={"totalMinutes": 20, "appUsage": {"Instagram": 15, "YouTube": 5}},
        headers=headers,
    )
    stats = client.get(f"/users/{alice['user']['id']}/stats", headers=headers).json()["stats"]
    assert stats["daysTracked"] == 1
    assert stats["totalMinutes"] == 20
    assert stats["averageMinutes"] == 20
    assert stats["mostUsedApp"] == "Instagram"
    assert stats["appTotals"] == {"Instagram": 15, "YouTube": 5}

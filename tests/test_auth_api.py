from conftest import PASSWORD


def test_register_login_and_me(client, register):
    uid, headers, _ = register("alice")

    response = client.post("/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == uid
    assert body["is_admin"] is False

    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["display_name"] == "alice"
    assert me.json()["friends"] == []


def test_weak_password_is_rejected(client):
    response = client.post(
        "/auth/register", json={"email": "weak@example.com", "password": "password"}
    )
    assert response.status_code == 422


def test_duplicate_email_conflicts(client, register):
    register("alice")

    response = client.post(
        "/auth/register", json={"email": "alice@example.com", "password": PASSWORD}
    )
    assert response.status_code == 409
    assert response.json()["error"] == "ConflictError"


def test_wrong_password(client, register):
    register("alice")

    response = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "Wr0ng!pass"}
    )
    assert response.status_code == 401
    assert response.json()["error"] == "AuthenticationError"


def test_invalid_token(client):
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_refresh_rotates_the_cookie(client, register):
    register("alice")

    first = client.get("/auth/access")
    assert first.status_code == 200
    assert first.json()["access_token"]

    second = client.get("/auth/access")
    assert second.status_code == 200


def test_refresh_without_cookie(client):
    assert client.get("/auth/access").status_code == 401


def test_logout_closes_the_session(client, register):
    uid, headers, _ = register("alice")
    services = client.app.state.services
    assert services.sessions.get(uid) is not None

    response = client.post("/auth/logout", headers=headers)
    assert response.status_code == 200
    assert services.sessions.get(uid) is None
    assert client.get(f"/presence/{uid}", headers=headers).json()["state"] == "offline"


def test_delete_account(client, register):
    alice, alice_headers, _ = register("alice")
    bob, bob_headers, _ = register("bob")
    client.post("/friends/request", json={"receiver_id": bob}, headers=alice_headers)

    response = client.request(
        "DELETE",
        "/auth/account",
        json={"email": "alice@example.com", "password": PASSWORD},
        headers=alice_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"account_deleted": True}

    assert client.get(f"/profiles/{alice}", headers=bob_headers).status_code == 404
    assert client.get("/friends", headers=bob_headers).json()["received_requests"] == []

    login = client.post("/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert login.status_code == 401


def test_request_id_header(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]

def _register_and_login(client, username: str, role: str = "unset") -> dict:
    register = client.post(
        "/api/auth/register",
        json={
            "name": username.title(),
            "username": username,
            "email": f"{username}@example.com",
            "password": "P@ss1",
            "assignedRole": role,
        },
    )
    assert register.status_code == 201
    client.cookies.clear()
    login = client.post(
        "/api/auth/login",
        json={"emailOrUsername": username, "password": "P@ss1"},
    )
    assert login.status_code == 200
    client.cookies.clear()
    return login.json()["data"]


def _auth(session: dict) -> dict:
    return {"Authorization": f"Bearer {session['accessToken']}"}


def test_profile_returns_projection_without_secret(client):
    session = _register_and_login(client, "alice")

    response = client.get("/api/users/me", headers=_auth(session))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["username"] == "alice"
    assert data["assignedRole"] == "unset"
    assert set(data) == {"id", "name", "username", "email", "assignedRole", "createdAt"}


def test_profile_requires_access_token(client):
    client.cookies.clear()
    assert client.get("/api/users/me").status_code == 401
    assert client.get("/api/users/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_assign_role(client):
    admin = _register_and_login(client, "alice")
    bob = _register_and_login(client, "bob")

    response = client.patch(
        "/api/users/role",
        json={"userId": bob["user"]["id"], "role": "Team Lead"},
        headers=_auth(admin),
    )
    assert response.status_code == 200
    assert response.json()["data"]["assignedRole"] == "Team Lead"


def test_assign_role_to_unknown_user_is_not_found(client):
    admin = _register_and_login(client, "alice")

    response = client.patch(
        "/api/users/role",
        json={"userId": "missing", "role": "Developer"},
        headers=_auth(admin),
    )
    assert response.status_code == 404


def test_assign_unknown_role_is_bad_request(client):
    admin = _register_and_login(client, "alice")

    response = client.patch(
        "/api/users/role",
        json={"userId": admin["user"]["id"], "role": "Overlord"},
        headers=_auth(admin),
    )
    assert response.status_code == 400


def test_list_leads_by_role(client):
    viewer = _register_and_login(client, "alice", "Developer")
    _register_and_login(client, "carol", "Project Manager")
    _register_and_login(client, "dave", "Team Lead")

    managers = client.get(
        "/api/users/leads",
        params={"role": "Project Manager"},
        headers=_auth(viewer),
    )
    assert managers.status_code == 200
    assert [user["username"] for user in managers.json()["data"]] == ["carol"]

    invalid = client.get(
        "/api/users/leads",
        params={"role": "Developer"},
        headers=_auth(viewer),
    )
    assert invalid.status_code == 400

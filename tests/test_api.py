from conftest import PASSWORD, auth_header, make_admin, permit_payload, register, run
from permitdesk import user_store


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_register_login_refresh_me(client):
    auth = register(client, "jo@example.com", name="Jo")
    assert auth["token_type"] == "bearer"
    assert auth["user"]["role"] == "user"
    assert 0 < auth["expires_in"] <= 86400
    assert "password_hash" not in auth["user"]

    login = client.post("/api/auth/login", json={"email": "JO@example.com", "password": PASSWORD})
    assert login.status_code == 200, login.text

    refreshed = client.post("/api/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
    assert refreshed.status_code == 200, refreshed.text

    me = client.get("/api/auth/me", headers=auth_header(refreshed.json()["access_token"]))
    assert me.status_code == 200
    assert me.json()["email"] == "jo@example.com"


def test_register_rejects_duplicates_and_short_passwords(client):
    register(client, "jo@example.com")
    dup = client.post("/api/auth/register", json={"name": "Jo", "email": "jo@example.com", "password": PASSWORD})
    assert dup.status_code == 409
    short = client.post("/api/auth/register", json={"name": "Al", "email": "al@example.com", "password": "abc"})
    assert short.status_code == 400
    missing = client.post("/api/auth/register", json={"email": "al@example.com"})
    assert missing.status_code == 400
    assert "detail" in missing.json()


def test_bad_login_and_refresh(client):
    register(client, "jo@example.com")
    bad = client.post("/api/auth/login", json={"email": "jo@example.com", "password": "wrong-password"})
    assert bad.status_code == 401
    auth = register(client, "al@example.com")
    wrong_type = client.post("/api/auth/refresh", json={"refresh_token": auth["access_token"]})
    assert wrong_type.status_code == 401


def test_missing_or_invalid_token_is_401(client):
    assert client.get("/api/permits").status_code == 401
    assert client.get("/api/permits", headers=auth_header("garbage")).status_code == 401
    assert client.post("/api/location/toggle", json={}).status_code == 401


def test_deleted_account_token_is_401(client, db):
    auth = register(client, "gone@example.com")
    run(user_store.delete_user(db, auth["user"]["id"]))
    response = client.get("/api/auth/me", headers=auth_header(auth["access_token"]))
    assert response.status_code == 401


def test_permit_approval_scenario(client, db):
    worker = register(client, "worker@example.com")
    created = client.post("/api/permits", json=permit_payload(), headers=auth_header(worker["access_token"]))
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["message"] == "Permit submitted successfully"
    permit = body["permit"]
    assert permit["status"] == "pending"
    assert permit["wpNumber"] == "1234"

    admin = make_admin(client, db, "admin@example.com")
    approved = client.put(
        f"/api/permits/{permit['id']}",
        json={"status": "approved"},
        headers=auth_header(admin["access_token"]),
    )
    assert approved.status_code == 200, approved.text
    assert approved.json()["permit"]["approvedBy"] == admin["user"]["id"]
    assert approved.json()["permit"]["approvedAt"] is not None

    other = register(client, "other@example.com")
    dup = client.post("/api/permits", json=permit_payload(), headers=auth_header(other["access_token"]))
    assert dup.status_code == 409
    assert dup.json()["detail"] == "WP Number already exists"


def test_permit_bad_payloads_are_400(client):
    worker = register(client, "worker@example.com")
    headers = auth_header(worker["access_token"])
    missing = client.post("/api/permits", json={"wpNumber": "1"}, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["detail"] == "All fields are required"
    bad_type = client.post(
        "/api/permits",
        json=permit_payload(location={"latitude": "north", "longitude": 0}),
        headers=headers,
    )
    assert bad_type.status_code == 400
    for days in ("99999999999999999999", 1e20):
        too_long = client.post(
            "/api/permits",
            json=permit_payload(wpNumber="BIG1", estimatedDays=days),
            headers=headers,
        )
        assert too_long.status_code == 400
        assert "at most" in too_long.json()["detail"]


def test_permit_listing_is_scoped(client, db):
    first = register(client, "first@example.com")
    second = register(client, "second@example.com")
    client.post("/api/permits", json=permit_payload(wpNumber="A"), headers=auth_header(first["access_token"]))
    theirs = client.post(
        "/api/permits", json=permit_payload(wpNumber="B"), headers=auth_header(second["access_token"])
    ).json()["permit"]

    mine = client.get("/api/permits", headers=auth_header(first["access_token"])).json()
    assert [item["wpNumber"] for item in mine["items"]] == ["A"]
    assert mine["pagination"]["totalItems"] == 1
    assert mine["items"][0]["user"]["email"] == "first@example.com"

    peek = client.get(f"/api/permits/{theirs['id']}", headers=auth_header(first["access_token"]))
    assert peek.status_code == 404

    admin = make_admin(client, db, "admin@example.com")
    everything = client.get("/api/permits?page=1&limit=1", headers=auth_header(admin["access_token"])).json()
    assert everything["pagination"] == {"current": 1, "total": 2, "count": 1, "totalItems": 2}


def test_users_cannot_use_admin_operations(client, db):
    worker = register(client, "worker@example.com")
    headers = auth_header(worker["access_token"])
    permit = client.post("/api/permits", json=permit_payload(), headers=headers).json()["permit"]
    assert client.put(f"/api/permits/{permit['id']}", json={"status": "approved"}, headers=headers).status_code == 403
    assert client.delete(f"/api/permits/{permit['id']}", headers=headers).status_code == 403
    assert client.get("/api/users", headers=headers).status_code == 403
    assert client.get("/api/admin/admins", headers=headers).status_code == 403
    new_admin = {"name": "X", "email": "x@example.com", "password": PASSWORD}
    assert client.post("/api/admin/admins", json=new_admin, headers=headers).status_code == 403


def test_admin_can_delete_permit(client, db):
    worker = register(client, "worker@example.com")
    permit = client.post(
        "/api/permits", json=permit_payload(), headers=auth_header(worker["access_token"])
    ).json()["permit"]
    admin = make_admin(client, db, "admin@example.com")
    headers = auth_header(admin["access_token"])
    deleted = client.delete(f"/api/permits/{permit['id']}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Permit deleted successfully"}
    assert client.get(f"/api/permits/{permit['id']}", headers=headers).status_code == 404


def test_location_toggle_and_update(client, db):
    worker = register(client, "worker@example.com")
    headers = auth_header(worker["access_token"])
    first = client.post("/api/location/toggle", json={}, headers=headers).json()
    second = client.post("/api/location/toggle", headers=headers).json()
    assert first["isLocationSharingEnabled"] is True
    assert second["isLocationSharingEnabled"] is False
    assert client.post("/api/location/toggle", json={"enabled": "yes"}, headers=headers).status_code == 400

    update = client.post("/api/location/update", json={"latitude": 12.5, "longitude": 3.25}, headers=headers)
    assert update.status_code == 200, update.text
    assert update.json()["location"]["address"] == "Unknown location"

    admin = make_admin(client, db, "admin@example.com")
    users = client.get("/api/users?withLocation=true", headers=auth_header(admin["access_token"])).json()["users"]
    assert [user["email"] for user in users] == ["worker@example.com"]
    assert users[0]["lastLocation"]["latitude"] == 12.5


def test_admin_management_guards(client, db):
    admin = make_admin(client, db, "admin@example.com")
    headers = auth_header(admin["access_token"])
    me_id = admin["user"]["id"]

    last = client.delete(f"/api/admin/admins/{me_id}", headers=headers)
    assert last.status_code == 400
    assert last.json()["detail"] == "You cannot delete your own account"

    created = client.post(
        "/api/admin/admins",
        json={"name": "Second", "email": "second@example.com", "password": PASSWORD},
        headers=headers,
    )
    assert created.status_code == 201, created.text
    second_id = created.json()["admin"]["id"]

    listing = client.get("/api/admin/admins", headers=headers).json()
    assert listing["pagination"]["totalItems"] == 2

    renamed = client.put(
        f"/api/admin/admins/{second_id}",
        json={"name": "Renamed", "email": "second@example.com"},
        headers=headers,
    )
    assert renamed.status_code == 200
    assert renamed.json()["admin"]["name"] == "Renamed"
    assert client.get(f"/api/admin/admins/{second_id}", headers=headers).json()["admin"]["name"] == "Renamed"

    assert client.delete(f"/api/admin/admins/{second_id}", headers=headers).status_code == 200
    assert client.get(f"/api/admin/admins/{second_id}", headers=headers).status_code == 404


def test_bootstrap_admin_created_on_startup(db, monkeypatch):
    from fastapi.testclient import TestClient

    from permitdesk.main import create_app

    monkeypatch.setenv("BOOTSTRAP_ADMIN_EMAIL", "root@example.com")
    monkeypatch.setenv("BOOTSTRAP_ADMIN_PASSWORD", "rootpass1")
    with TestClient(create_app(database=db)) as client:
        login = client.post("/api/auth/login", json={"email": "root@example.com", "password": "rootpass1"})
        assert login.status_code == 200, login.text
        assert login.json()["user"]["role"] == "admin"


def test_pages_render(client):
    for path in ("/", "/dashboard", "/permits/new", "/admin"):
        response = client.get(path)
        assert response.status_code == 200
        assert "PermitDesk" in response.text

from datetime import timedelta

import jwt
import pytest

from app.auth.auth import create_access_token
from app.auth.auth import decode_access_token
from app.core.config import settings
from app.core.errors import AuthError
from user.user import Role

PASSWORD = "securepassword123"


def new_user(**overrides):
    payload = {
        "username": "music_lover",
        "email": "Music.Lover@Example.com",
        "password": PASSWORD,
        "first_name": "Jane",
        "last_name": "Doe",
    }
    payload.update(overrides)
    return payload


async def test_register_returns_token_and_public_profile(client):
    response = await client.post("/api/auth/register", json=new_user())

    assert response.status_code == 201, response.text
    body = response.json()
    assert decode_access_token(body["token"]).user_id == body["user"]["id"]
    assert body["user"]["full_name"] == "Jane Doe"
    assert body["user"]["default_mood"] == "chill"
    assert "hashed_password" not in body["user"]
    assert "email" not in body["user"]


@pytest.mark.parametrize(
    ("overrides", "detail"),
    [
        ({"email": "other@example.com"}, "Username already taken"),
        ({"username": "someone_else"}, "Email already registered"),
    ],
)
async def test_register_conflicts(client, overrides, detail):
    await client.post("/api/auth/register", json=new_user())

    response = await client.post("/api/auth/register", json=new_user(**overrides))

    assert response.status_code == 409
    assert response.json()["detail"] == detail


async def test_register_validation(client):
    response = await client.post(
        "/api/auth/register", json=new_user(username="no spaces!", password="123")
    )

    assert response.status_code == 400
    fields = {e["field"] for e in response.json()["errors"]}
    assert fields == {"username", "password"}


@pytest.mark.parametrize("credential", ["music_lover", "MUSIC.LOVER@example.com"])
async def test_login_with_username_or_email(client, credential):
    await client.post("/api/auth/register", json=new_user())

    response = await client.post(
        "/api/auth/login", json={"credential": credential, "password": PASSWORD}
    )

    assert response.status_code == 200
    assert response.json()["user"]["username"] == "music_lover"
    assert response.json()["user"]["stats"]["last_login"] is not None


async def test_login_wrong_password(client, make_user):
    await make_user("listener")

    response = await client.post(
        "/api/auth/login", json={"credential": "listener", "password": "wrong-password"}
    )

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json() == {"detail": "Invalid credentials."}


async def test_login_deactivated_account(client, make_user):
    await make_user("sleeper", is_active=False)

    response = await client.post(
        "/api/auth/login", json={"credential": "sleeper", "password": PASSWORD}
    )

    assert response.status_code == 401
    assert "deactivated" in response.json()["detail"]


async def test_oauth2_token_endpoint(client, make_user):
    user = await make_user("listener")

    response = await client.post(
        "/api/auth/token", data={"username": "listener", "password": PASSWORD}
    )

    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"
    assert decode_access_token(response.json()["access_token"]).user_id == user.id


def test_expired_token_is_rejected():
    token = create_access_token(1, expires_delta=timedelta(seconds=-1))
    with pytest.raises(AuthError, match="expired"):
        decode_access_token(token)


def test_foreign_token_is_rejected():
    token = jwt.encode({"sub": "1"}, "x" * 32, algorithm="HS256")
    with pytest.raises(AuthError):
        decode_access_token(token)


def test_token_for_other_audience_is_rejected():
    token = jwt.encode(
        {"sub": "1", "aud": "someone-else", "iss": settings.TOKEN_ISSUER, "exp": 4102444800},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    with pytest.raises(AuthError):
        decode_access_token(token)


async def test_protected_route_without_token(client):
    response = await client.get("/api/auth/profile")

    assert response.status_code == 401
    assert response.json() == {"detail": "Authorization token required"}


async def test_token_of_deleted_user(client):
    response = await client.get(
        "/api/auth/profile", headers={"Authorization": f"Bearer {create_access_token(999)}"}
    )

    assert response.status_code == 401


async def test_profile_update(client, make_user, auth_headers):
    user = await make_user()

    response = await client.put(
        "/api/auth/profile",
        headers=auth_headers(user),
        json={
            "bio": "Lo-fi at night",
            "favorite_genres": ["Jazz", "ambient", "jazz"],
            "default_mood": "Focus",
            "auto_playlist": True,
        },
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["profile"]["bio"] == "Lo-fi at night"
    assert body["profile"]["favorite_genres"] == ["jazz", "ambient"]
    assert body["default_mood"] == "focus"
    assert body["auto_playlist"] is True


async def test_profile_update_rejects_mood_outside_defaults(client, make_user, auth_headers):
    user = await make_user()

    response = await client.put(
        "/api/auth/profile", headers=auth_headers(user), json={"default_mood": "dreamy"}
    )

    assert response.status_code == 400


async def test_change_password(client, make_user, auth_headers):
    user = await make_user("listener")
    headers = auth_headers(user)

    wrong = await client.post(
        "/api/auth/change-password",
        headers=headers,
        json={"current_password": "nope", "new_password": "another-secret"},
    )
    ok = await client.post(
        "/api/auth/change-password",
        headers=headers,
        json={"current_password": PASSWORD, "new_password": "another-secret"},
    )
    login = await client.post(
        "/api/auth/login", json={"credential": "listener", "password": "another-secret"}
    )

    assert wrong.status_code == 401
    assert ok.status_code == 200
    assert login.status_code == 200


async def test_refresh_token(client, make_user, auth_headers):
    user = await make_user()

    response = await client.post("/api/auth/refresh", headers=auth_headers(user))

    assert response.status_code == 200
    assert decode_access_token(response.json()["token"]).user_id == user.id


async def test_deactivate_revokes_access(client, make_user, auth_headers):
    user = await make_user()
    headers = auth_headers(user)

    response = await client.post(
        "/api/auth/deactivate", headers=headers, json={"password": PASSWORD}
    )
    after = await client.get("/api/auth/profile", headers=headers)

    assert response.status_code == 200
    assert after.status_code == 401


async def test_admin_lists_and_updates_users(client, make_user, auth_headers):
    admin = await make_user("admin", role=Role.ADMIN)
    user = await make_user("listener")

    listing = await client.get("/api/admin/users", headers=auth_headers(admin))
    patched = await client.patch(
        f"/api/admin/users/{user.id}",
        headers=auth_headers(admin),
        json={"is_active": False},
    )
    self_demote = await client.patch(
        f"/api/admin/users/{admin.id}", headers=auth_headers(admin), json={"role": "user"}
    )
    missing = await client.patch(
        "/api/admin/users/999", headers=auth_headers(admin), json={"is_active": True}
    )

    assert listing.status_code == 200
    assert listing.json()["total"] == 2
    assert patched.json()["is_active"] is False
    assert self_demote.status_code == 403
    assert missing.status_code == 404


async def test_admin_routes_require_admin_role(client, make_user, auth_headers):
    user = await make_user()

    response = await client.get("/api/admin/users", headers=auth_headers(user))

    assert response.status_code == 403

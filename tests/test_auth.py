"""Tests for login, token refresh and admin user management."""

from httpx import AsyncClient

from app.core.security import (create_access_token, create_refresh_token,
                               decode_access_token)

AUTH = "/api/v1/auth"


async def _login(client: AsyncClient, email: str, password: str = "secret123"):
    return await client.post(f"{AUTH}/login", data={"username": email, "password": password})


async def test_login_returns_tokens_and_cookies(async_client: AsyncClient, employee_user):
    resp = await _login(async_client, "JOAO@test.com ")
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert decode_access_token(data["access_token"])["role"] == "EMPLOYEE"
    cookies = " ".join(resp.headers.get_list("set-cookie"))
    assert "access_token=" in cookies
    assert "refresh_token=" in cookies
    assert "HttpOnly" in cookies


async def test_login_wrong_password(async_client: AsyncClient, employee_user):
    resp = await _login(async_client, "joao@test.com", "nope")
    assert resp.status_code == 401


async def test_me_with_bearer_token(async_client: AsyncClient, employee_user):
    token = create_access_token(employee_user.id, role=employee_user.role)
    resp = await async_client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "João Silva"


async def test_invalid_token_rejected(async_client: AsyncClient):
    resp = await async_client.get(f"{AUTH}/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401


async def test_refresh_token_cannot_be_used_as_access(async_client: AsyncClient, employee_user):
    token = create_refresh_token(employee_user.id)
    resp = await async_client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_refresh(async_client: AsyncClient, employee_user):
    refresh = create_refresh_token(employee_user.id)
    resp = await async_client.post(f"{AUTH}/refresh", json={"refresh_token": refresh})
    assert resp.status_code == 200
    assert decode_access_token(resp.json()["access_token"])["sub"] == str(employee_user.id)


async def test_refresh_with_bad_token(async_client: AsyncClient):
    resp = await async_client.post(f"{AUTH}/refresh", json={"refresh_token": "bad"})
    assert resp.status_code == 401


async def test_logout(async_client: AsyncClient):
    resp = await async_client.post(f"{AUTH}/logout")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Logged out"


async def test_admin_creates_user(async_client: AsyncClient, login_as, admin_user):
    login_as(admin_user)
    resp = await async_client.post(
        f"{AUTH}/users",
        json={"email": "Pedro@Test.com", "password": "segredo", "name": "Pedro", "role": "employee"},
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["email"] == "pedro@test.com"
    assert data["role"] == "EMPLOYEE"

    again = await async_client.post(
        f"{AUTH}/users",
        json={"email": "pedro@test.com", "password": "segredo", "name": "Pedro"},
    )
    assert again.status_code == 400


async def test_create_user_validation(async_client: AsyncClient, login_as, admin_user):
    login_as(admin_user)
    resp = await async_client.post(
        f"{AUTH}/users",
        json={"email": "x@test.com", "password": "123", "name": "X"},
    )
    assert resp.status_code == 422


async def test_employee_cannot_create_users(async_client: AsyncClient, login_as, employee_user):
    login_as(employee_user)
    resp = await async_client.post(
        f"{AUTH}/users",
        json={"email": "x@test.com", "password": "segredo", "name": "X"},
    )
    assert resp.status_code == 403

"""
API Tests for Authentication Endpoints
"""
import pytest
from httpx import AsyncClient

from academia.core.security import create_access_token
from academia.models import UserRole

API = "/api/v1/auth"


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_with_user_id(self, client: AsyncClient, student_user):
        response = await client.post(f"{API}/login", json={
            "login": student_user.user_id, "password": "password123",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["id"] == student_user.id
        assert data["user"]["role"] == "student"
        assert "hashed_password" not in data["user"]

    @pytest.mark.asyncio
    async def test_token_from_login_works(self, client: AsyncClient, teacher_user):
        login = await client.post(f"{API}/login", json={
            "login": teacher_user.email, "password": "password123",
        })
        token = login.json()["access_token"]

        response = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["email"] == teacher_user.email

    @pytest.mark.asyncio
    async def test_wrong_password(self, client: AsyncClient, student_user):
        response = await client.post(f"{API}/login", json={
            "login": student_user.user_id, "password": "wrong",
        })

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "AUTH_FAILED"
        assert body["error"]["message"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_missing_fields(self, client: AsyncClient):
        response = await client.post(f"{API}/login", json={"login": "x"})
        assert response.status_code == 422


class TestCurrentUser:

    @pytest.mark.asyncio
    async def test_requires_token(self, client: AsyncClient):
        response = await client.get(f"{API}/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get(f"{API}/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_deactivated_user_rejected(self, client: AsyncClient, make_user, department, auth_headers):
        inactive = await make_user(UserRole.TEACHER, department, is_active=False)

        response = await client.get(f"{API}/me", headers=auth_headers(inactive))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client: AsyncClient, db_session):
        token = create_access_token({"sub": "ghost", "role": "admin"})

        response = await client.get(f"{API}/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_request_id_header(self, client: AsyncClient, student_headers):
        response = await client.get(f"{API}/me", headers={**student_headers, "X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"


class TestRegister:

    @pytest.mark.asyncio
    async def test_admin_registers_user(self, client: AsyncClient, admin_headers, department):
        response = await client.post(f"{API}/register", headers=admin_headers, json={
            "user_id": "T500",
            "email": "t500@example.edu",
            "password": "password123",
            "first_name": "Meera",
            "last_name": "Iyer",
            "role": "teacher",
            "department_id": department.id,
            "employee_id": "E500",
        })

        assert response.status_code == 201
        assert response.json()["user"]["role"] == "teacher"
        assert response.json()["access_token"]

    @pytest.mark.asyncio
    async def test_student_cannot_register(self, client: AsyncClient, student_headers, department):
        response = await client.post(f"{API}/register", headers=student_headers, json={
            "user_id": "A1", "email": "a1@example.edu", "password": "password123",
            "first_name": "A", "last_name": "B", "role": "admin",
        })

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_AUTHORIZED"


class TestPasswordsAndProfile:

    @pytest.mark.asyncio
    async def test_change_password(self, client: AsyncClient, student_user, student_headers):
        response = await client.put(f"{API}/change-password", headers=student_headers, json={
            "current_password": "password123", "new_password": "brand-new-pass",
        })
        assert response.status_code == 200

        login = await client.post(f"{API}/login", json={
            "login": student_user.user_id, "password": "brand-new-pass",
        })
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, client: AsyncClient, student_headers):
        response = await client.put(f"{API}/change-password", headers=student_headers, json={
            "current_password": "nope", "new_password": "brand-new-pass",
        })

        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "current_password"

    @pytest.mark.asyncio
    async def test_profile_update(self, client: AsyncClient, student_headers):
        response = await client.put(f"{API}/profile", headers=student_headers, json={"address": "Hostel 4"})

        assert response.status_code == 200
        assert response.json()["address"] == "Hostel 4"

    @pytest.mark.asyncio
    async def test_reset_password_by_admin(self, client: AsyncClient, admin_headers, teacher_user):
        response = await client.post(f"{API}/reset-password", headers=admin_headers, json={
            "user_id": teacher_user.user_id, "new_password": "reset-pass-1",
        })
        assert response.status_code == 200

        login = await client.post(f"{API}/login", json={
            "login": teacher_user.user_id, "password": "reset-pass-1",
        })
        assert login.status_code == 200

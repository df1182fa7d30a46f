"""
Tests for admin login, bearer tokens and role checks.
"""

from sqlalchemy import select

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, TEST_BCRYPT_ROUNDS
from enxoval_api.models import Profile
from shared.config.constants import Roles
from shared.security.auth import sign_jwt, verify_jwt
from shared.security.password import hash_password, verify_password


class TestLogin:
    def test_login_success(self, client, seed_admin_user):
        response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "Bearer"
        assert data["expires_in"] == 3600
        assert data["user"] == {
            "id": seed_admin_user.id,
            "email": ADMIN_EMAIL,
            "full_name": "Test Admin",
            "role": "admin",
        }

        claims = verify_jwt(data["access_token"])
        assert claims["sub"] == str(seed_admin_user.id)
        assert claims["email"] == ADMIN_EMAIL
        assert "role" not in claims

    def test_email_is_case_insensitive(self, client, seed_admin_user):
        response = client.post("/api/auth/login", json={"email": "ADMIN@Test.com", "password": ADMIN_PASSWORD})
        assert response.status_code == 200

    def test_wrong_password(self, client, seed_admin_user):
        response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})

        assert response.status_code == 401
        assert response.json() == {"error": "Email ou senha inválidos"}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_unknown_user_same_message(self, client):
        response = client.post("/api/auth/login", json={"email": "ninguem@example.com", "password": "x"})

        assert response.status_code == 401
        assert response.json() == {"error": "Email ou senha inválidos"}

    def test_guest_can_log_in(self, client, seed_guest_user):
        response = client.post("/api/auth/login", json={"email": "convidado@test.com", "password": "guestpass123"})

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "user"

    def test_missing_password(self, client):
        response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL})

        assert response.status_code == 400
        assert response.json()["error"].startswith("password:")


class TestCurrentUser:
    def test_me(self, client, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["email"] == ADMIN_EMAIL
        assert response.json()["role"] == "admin"

    def test_missing_header(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Não autorizado"}

    def test_wrong_scheme(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Token abc"})

        assert response.status_code == 401
        assert response.json() == {"error": "Formato de autorização inválido"}

    def test_expired_token(self, client, seed_admin_user):
        token = sign_jwt({"sub": str(seed_admin_user.id), "email": ADMIN_EMAIL}, ttl_seconds=-60)

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == {"error": "Sessão expirada"}

    def test_token_for_deleted_account(self, client):
        token = sign_jwt({"sub": "4242", "email": "sumiu@example.com"})

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestRoleIsReadPerRequest:
    def test_demoted_admin_loses_access(self, client, db_session, auth_headers, seed_admin_user):
        assert client.post("/api/admin/dashboard", json={"action": "get_stats"}, headers=auth_headers).status_code == 200

        profile = db_session.scalar(select(Profile).where(Profile.user_id == seed_admin_user.id))
        profile.role = Roles.USER
        db_session.commit()

        response = client.post("/api/admin/dashboard", json={"action": "get_stats"}, headers=auth_headers)
        assert response.status_code == 403
        assert response.json() == {"error": "Sem permissão para acessar o painel administrativo"}


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("segredo", rounds=TEST_BCRYPT_ROUNDS)

        assert hashed.startswith("$2b$04$")
        assert verify_password("segredo", hashed)
        assert not verify_password("outro", hashed)

    def test_non_bcrypt_hash_never_matches(self):
        assert not verify_password("segredo", "segredo")
        assert not verify_password("segredo", "")

"""API tests for auth routes, the access-control dependencies and the error envelope."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from app.api.deps import get_auth_service
from app.core.database import get_db
from app.main import app
from tests.fakes import (
    ADMIN_ROLE,
    MANAGER_ROLE,
    STRONG_PASSWORD,
    VIEWER_ROLE,
    InMemoryUserStore,
    RecordingAuditLogger,
    build_auth_service,
    fast_hasher,
    token_service,
)

PREFIX = "/api/v1"


class _ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryUserStore()
        self.audit = RecordingAuditLogger()
        self.service = build_auth_service(store=self.store, audit=self.audit)
        app.dependency_overrides[get_auth_service] = lambda: self.service
        self.client = TestClient(app)
        password_hash = fast_hasher().hash(STRONG_PASSWORD)
        self.admin = self.store.add_user("admin", "admin@x.com", password_hash, role=ADMIN_ROLE)
        self.manager = self.store.add_user("manager", "manager@x.com", password_hash, role=MANAGER_ROLE)
        self.viewer = self.store.add_user("viewer", "viewer@x.com", password_hash, role=VIEWER_ROLE)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _auth(self, user) -> dict[str, str]:
        token = self.service.tokens.issue_access_token(user.id, user.email, user.role_name)
        return {"Authorization": f"Bearer {token}"}

    def _login(self, identifier: str = "viewer", password: str = STRONG_PASSWORD):
        return self.client.post(f"{PREFIX}/auth/login", json={"identifier": identifier, "password": password})


class TestLoginRoute(_ApiTestCase):
    def test_login_returns_token_user_and_cookie(self) -> None:
        response = self._login()
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertIn("accessToken", body)
        self.assertEqual(body["user"]["username"], "viewer")
        self.assertEqual(body["user"]["firstName"], "Test")
        self.assertNotIn("passwordHash", body["user"])
        self.assertNotIn("refreshToken", body)

        cookie = response.headers["set-cookie"]
        self.assertIn("refreshToken=", cookie)
        self.assertIn("HttpOnly", cookie)
        self.assertIn("SameSite=strict", cookie)
        self.assertIn(f"Path={PREFIX}/auth", cookie)
        self.assertIn("Max-Age=604800", cookie)
        self.assertNotIn("Secure", cookie)

    def test_login_audit_uses_peer_address_not_forwarded_header(self) -> None:
        response = self.client.post(
            f"{PREFIX}/auth/login",
            json={"identifier": "viewer", "password": STRONG_PASSWORD},
            headers={"X-Forwarded-For": "1.2.3.4"},
        )
        self.assertEqual(response.status_code, 200)
        login_events = [e for e in self.audit.events if e[0] == "LOGIN"]
        self.assertEqual(len(login_events), 1)
        self.assertEqual(login_events[0][2], "testclient")

    def test_identifier_is_case_insensitive(self) -> None:
        self.assertEqual(self._login("VIEWER@X.COM").status_code, 200)

    def test_bad_credentials_envelope(self) -> None:
        response = self._login(password="Wrong123!@#")
        self.assertEqual(response.status_code, 401)
        error = response.json()["error"]
        self.assertEqual(error["message"], "Invalid credentials provided")
        self.assertEqual(error["statusCode"], 401)
        self.assertEqual(error["code"], "unauthorized")
        self.assertEqual(self._login("ghost").json()["error"]["message"], error["message"])

    def test_missing_password_is_validation_error(self) -> None:
        response = self.client.post(f"{PREFIX}/auth/login", json={"identifier": "viewer"})
        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertTrue(error["message"].startswith("Validation error"))
        self.assertEqual(error["code"], "validation_error")

    def test_deactivated_account(self) -> None:
        self.store.deactivate(self.viewer.id)
        response = self._login()
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["message"], "Your account is deactivated")


class TestRefreshAndLogoutRoutes(_ApiTestCase):
    def test_refresh_rotates_cookie(self) -> None:
        login = self._login()
        first_cookie = self.client.cookies.get("refreshToken")
        response = self.client.post(f"{PREFIX}/auth/refresh")
        self.assertEqual(response.status_code, 200)
        self.assertNotEqual(response.json()["accessToken"], login.json()["accessToken"])
        self.assertNotEqual(self.client.cookies.get("refreshToken"), first_cookie)

    def test_refresh_without_cookie(self) -> None:
        response = self.client.post(f"{PREFIX}/auth/refresh")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["message"], "No refresh token provided")

    def test_refresh_token_in_body_is_ignored(self) -> None:
        token = self.service.tokens.issue_refresh_token(self.viewer.id)
        response = self.client.post(f"{PREFIX}/auth/refresh", json={"refreshToken": token})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["message"], "No refresh token provided")

    def test_logout_clears_cookie_and_audits(self) -> None:
        login = self._login()
        headers = {"Authorization": f"Bearer {login.json()['accessToken']}"}
        response = self.client.post(f"{PREFIX}/auth/logout", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Logout successful", "success": True})
        self.assertIsNone(self.client.cookies.get("refreshToken"))
        self.assertIn("LOGOUT", [e[0] for e in self.audit.events])

    def test_logout_without_auth_still_succeeds(self) -> None:
        response = self.client.post(f"{PREFIX}/auth/logout", headers={"Authorization": "Bearer junk"})
        self.assertEqual(response.status_code, 200)
        self.assertNotIn("LOGOUT", [e[0] for e in self.audit.events])


class TestCurrentUserGate(_ApiTestCase):
    """get_current_user distinguishes missing, invalid and expired tokens."""

    def test_me(self) -> None:
        response = self.client.get(f"{PREFIX}/users/me", headers=self._auth(self.viewer))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], self.viewer.id)
        self.assertEqual(response.json()["role"]["name"], "Viewer")

    def test_missing_token(self) -> None:
        response = self.client.get(f"{PREFIX}/users/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["message"], "Missing authorization token")

    def test_invalid_token(self) -> None:
        response = self.client.get(f"{PREFIX}/users/me", headers={"Authorization": "Bearer not.a.jwt"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "invalid_token")

    def test_expired_token(self) -> None:
        past = token_service(clock=lambda: datetime.now(UTC) - timedelta(hours=1))
        token = past.issue_access_token(self.viewer.id, self.viewer.email, "Viewer")
        response = self.client.get(f"{PREFIX}/users/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "token_expired")

    def test_refresh_token_as_bearer_rejected(self) -> None:
        token = self.service.tokens.issue_refresh_token(self.viewer.id)
        response = self.client.get(f"{PREFIX}/users/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)

    def test_deactivated_user_token(self) -> None:
        headers = self._auth(self.viewer)
        self.store.deactivate(self.viewer.id)
        response = self.client.get(f"{PREFIX}/users/me", headers=headers)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["message"], "User not found")


class TestPermissionAndRoleGates(_ApiTestCase):
    def test_list_users_requires_users_view(self) -> None:
        response = self.client.get(f"{PREFIX}/users", headers=self._auth(self.viewer))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["message"], "You don't have permission to users view")

    def test_list_users_with_permission(self) -> None:
        response = self.client.get(f"{PREFIX}/users", headers=self._auth(self.manager))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["users"]), 3)

    def test_get_unknown_user(self) -> None:
        response = self.client.get(f"{PREFIX}/users/nope", headers=self._auth(self.admin))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["message"], "User not found")

    def test_register_requires_admin_role(self) -> None:
        response = self.client.post(
            f"{PREFIX}/users/register",
            headers=self._auth(self.manager),
            json={
                "email": "new@x.com",
                "username": "newbie",
                "password": STRONG_PASSWORD,
                "firstName": "New",
                "lastName": "User",
                "roleId": VIEWER_ROLE.id,
            },
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["message"], "Forbidden")

    def test_admin_registers_user(self) -> None:
        response = self.client.post(
            f"{PREFIX}/users/register",
            headers={**self._auth(self.admin), "User-Agent": "api-test"},
            json={
                "email": "New@X.com",
                "username": "newbie",
                "password": STRONG_PASSWORD,
                "firstName": "New",
                "lastName": "User",
                "roleId": VIEWER_ROLE.id,
            },
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["email"], "new@x.com")
        self.assertEqual(body["role"]["name"], "Viewer")
        self.assertIn(("CREATE", body["id"], self.admin.id, "newbie"), self.audit.events)

    def test_register_weak_password(self) -> None:
        response = self.client.post(
            f"{PREFIX}/users/register",
            headers=self._auth(self.admin),
            json={
                "email": "new@x.com",
                "username": "newbie",
                "password": "weakpass",
                "firstName": "New",
                "lastName": "User",
                "roleId": VIEWER_ROLE.id,
            },
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("uppercase", response.json()["error"]["message"])

    def test_register_duplicate_email(self) -> None:
        response = self.client.post(
            f"{PREFIX}/users/register",
            headers=self._auth(self.admin),
            json={
                "email": "viewer@x.com",
                "username": "other",
                "password": STRONG_PASSWORD,
                "firstName": "New",
                "lastName": "User",
                "roleId": VIEWER_ROLE.id,
            },
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["message"], "Email address is already registered")


class TestErrorsAndHealth(_ApiTestCase):
    def test_unexpected_error_is_generic_500(self) -> None:
        async def boom(*args, **kwargs):
            raise RuntimeError("secret internals")

        self.service.login = boom
        client = TestClient(app, raise_server_exceptions=False)
        response = client.post(f"{PREFIX}/auth/login", json={"identifier": "viewer", "password": "x"})
        self.assertEqual(response.status_code, 500)
        error = response.json()["error"]
        self.assertEqual(error["message"], "Internal server error")
        self.assertNotIn("secret internals", response.text)

    def test_health(self) -> None:
        app.dependency_overrides[get_db] = lambda: MagicMock()
        response = self.client.get(f"{PREFIX}/health")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["database"], "healthy")

    def test_health_database_down(self) -> None:
        db = MagicMock()
        db.execute.side_effect = RuntimeError("down")
        app.dependency_overrides[get_db] = lambda: db
        body = self.client.get(f"{PREFIX}/health").json()
        self.assertEqual(body["database"], "unhealthy")
        self.assertEqual(body["status"], "degraded")


if __name__ == "__main__":
    unittest.main()

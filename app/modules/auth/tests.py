"""
Tests d'authentification et de gestion des comptes

- Connexion et token JWT
- Rôles (admin / employé) et machines autorisées
- Gestion des utilisateurs par l'administrateur
"""

import pytest
from datetime import timedelta
from uuid import uuid4

from app.common.exceptions import AuthenticationError, NotFoundError, ValidationError
from app.modules.auth.models import UserMachine, UserRole
from app.modules.auth.schemas import AuthContext, UserCreate, UserUpdate
from app.modules.auth.service import AuthService
from app.modules.auth.utils import create_access_token, decode_access_token, hash_password, verify_password
from app.modules.machines.models import MachineType


# ===== UTILITAIRES =====

class TestPasswordAndToken:
    """Hachage des mots de passe et tokens"""

    def test_password_hash(self):
        hashed = hash_password("atelier2025")
        assert hashed != "atelier2025"
        assert verify_password("atelier2025", hashed)
        assert not verify_password("autre", hashed)
        assert not verify_password("atelier2025", "")

    def test_token_round_trip(self):
        token = create_access_token({"sub": "abc", "role": "ADMIN"})
        payload = decode_access_token(token)
        assert payload["sub"] == "abc"
        assert payload["type"] == "access"

    def test_auth_context_machine_rights(self):
        employee = AuthContext(user_id=uuid4(), username="op", role=UserRole.EMPLOYEE, allowed_machines=[MachineType.CNC])
        admin = AuthContext(user_id=uuid4(), username="chef", role=UserRole.ADMIN)
        assert employee.can_use_machine(MachineType.CNC)
        assert not employee.can_use_machine(MachineType.LASER)
        assert admin.can_use_machine(MachineType.PANNEAUX)


# ===== SERVICE =====

class TestAuthService:
    """Connexion et comptes"""

    def test_authenticate(self, db_session, employee_user):
        user, token = AuthService(db_session).authenticate("operateur", "secret123")
        assert user.id == employee_user.id
        assert user.last_login is not None
        payload = decode_access_token(token)
        assert payload["sub"] == str(employee_user.id)
        assert payload["role"] == "EMPLOYEE"

    @pytest.mark.parametrize("username,password", [("operateur", "mauvais"), ("inconnu", "secret123")])
    def test_bad_credentials(self, db_session, employee_user, username, password):
        with pytest.raises(AuthenticationError):
            AuthService(db_session).authenticate(username, password)

    def test_inactive_user_cannot_login(self, db_session, employee_user):
        AuthService(db_session).deactivate_user(employee_user.id)
        with pytest.raises(AuthenticationError):
            AuthService(db_session).authenticate("operateur", "secret123")

    def test_create_user(self, db_session, admin_user):
        user = AuthService(db_session).create_user(
            UserCreate(
                username="karim",
                password="chants2025",
                first_name="Karim",
                last_name="Trabelsi",
                allowed_machines=[MachineType.CHAMPS, MachineType.CHAMPS],
            ),
            created_by=admin_user.id,
        )
        assert user.role == UserRole.EMPLOYEE
        assert user.machine_types == [MachineType.CHAMPS]
        assert user.password != "chants2025"

    def test_duplicate_username(self, db_session, employee_user):
        with pytest.raises(ValidationError) as exc_info:
            AuthService(db_session).create_user(
                UserCreate(username="operateur", password="secret123", first_name="A", last_name="B")
            )
        assert exc_info.value.field == "username"

    def test_assign_machines_replaces_set(self, db_session, employee_user):
        user = AuthService(db_session).assign_machines(
            employee_user.id, [MachineType.LASER, MachineType.PANNEAUX]
        )
        assert user.machine_types == [MachineType.LASER, MachineType.PANNEAUX]
        assert db_session.query(UserMachine).filter(UserMachine.user_id == employee_user.id).count() == 2

    def test_update_password(self, db_session, employee_user):
        AuthService(db_session).update_user(employee_user.id, UserUpdate(password="nouveau1"))
        AuthService(db_session).authenticate("operateur", "nouveau1")

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            AuthService(db_session).get_user(uuid4())


# ===== TESTS HTTP =====

class TestAuthEndpoints:
    """Routes /auth et /users"""

    def test_login(self, api, admin_user):
        response = api.post("/auth/login", json={"username": "admin", "password": "secret123"})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["role"] == "ADMIN"

        me = api.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["username"] == "admin"

    def test_login_failure_returns_401(self, api, admin_user):
        response = api.post("/auth/login", json={"username": "admin", "password": "faux"})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_missing_token(self, api):
        assert api.get("/auth/me").status_code in (401, 403)

    def test_invalid_token(self, api):
        response = api.get("/auth/me", headers={"Authorization": "Bearer pas-un-jwt"})
        assert response.status_code == 401

    def test_expired_token(self, api, admin_user):
        token = create_access_token({"sub": str(admin_user.id)}, expires_delta=timedelta(minutes=-1))
        assert api.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_non_uuid_subject(self, api):
        token = create_access_token({"sub": "admin"})
        assert api.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_deactivated_user_token_rejected(self, api, db_session, employee_user, employee_headers):
        AuthService(db_session).deactivate_user(employee_user.id)
        assert api.get("/auth/me", headers=employee_headers).status_code == 401

    def test_role_reloaded_on_each_request(self, api, db_session, employee_user, employee_headers):
        assert api.get("/users/", headers=employee_headers).status_code == 403
        AuthService(db_session).update_user(employee_user.id, UserUpdate(role=UserRole.ADMIN))
        assert api.get("/users/", headers=employee_headers).status_code == 200

    def test_user_management(self, api, admin_headers):
        response = api.post(
            "/users/",
            json={
                "username": "sami",
                "password": "laser123",
                "first_name": "Sami",
                "last_name": "Gharbi",
                "allowed_machines": ["LASER"],
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        user_id = response.json()["id"]
        assert response.json()["allowed_machines"] == ["LASER"]

        response = api.put(f"/users/{user_id}/machines", json={"machines": ["CNC", "LASER"]}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["allowed_machines"] == ["CNC", "LASER"]

        response = api.delete(f"/users/{user_id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_users_admin_only(self, api, employee_headers):
        response = api.post(
            "/users/",
            json={"username": "pirate", "password": "secret123", "first_name": "P", "last_name": "X"},
            headers=employee_headers,
        )
        assert response.status_code == 403

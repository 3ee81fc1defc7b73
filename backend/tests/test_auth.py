"""
Authentication and authorization tests.

Verifies:
- Registration creates a customer with a linked contact
- Login / logout round trip and token revocation
- Unauthenticated requests return 401, customers get 403 on admin routes
"""

import pytest

from mdesk.models import Contact, SessionToken
from mdesk.services import auth_service, session_service
from mdesk.services.auth_service import PasswordValidationError, RegistrationError

PASSWORD = "Password123!"


# =============================================================================
# REGISTRATION
# =============================================================================


class TestRegistration:

    def test_register_creates_customer_and_contact(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "name": "Meera Iyer",
            "email": "Meera@Example.com",
            "password": PASSWORD,
            "city": "Chennai",
        })

        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "customer"
        assert resp.json["user"]["email"] == "meera@example.com"
        assert resp.json["token"]

        contact = db_session.query(Contact).filter_by(email="meera@example.com").one()
        assert contact.contact_type == "customer"
        assert resp.json["user"]["contact_id"] == contact.id

    def test_public_register_ignores_role(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "name": "Sneaky", "email": "sneaky@example.com", "password": PASSWORD, "role": "admin",
        })

        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "customer"

    def test_duplicate_email(self, db_session, customer):
        with pytest.raises(RegistrationError) as exc:
            auth_service.register_user(name="Again", email="ASHA@example.com", password=PASSWORD)
        assert str(exc.value) == "User already exists"

    def test_weak_password(self, db_session):
        with pytest.raises(PasswordValidationError):
            auth_service.register_user(name="Weak", email="weak@example.com", password="short")

    def test_admin_gets_admin_contact(self, db_session, admin_user):
        assert admin_user.contact.contact_type == "admin"


# =============================================================================
# SESSIONS
# =============================================================================


class TestSessions:

    def test_login_wrong_password(self, client, db_session, customer):
        resp = client.post("/api/auth/login", json={"email": customer.email, "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_me_returns_caller(self, client, db_session, customer, customer_headers):
        resp = client.get("/api/auth/me", headers=customer_headers)

        assert resp.status_code == 200
        assert resp.json["user"]["email"] == customer.email

    def test_logout_revokes_token(self, client, db_session, customer, login):
        headers = login(customer.email)

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_token_stored_as_hash(self, db_session, customer):
        session, token = session_service.create_session(customer.id)

        assert session.token_hash != token
        assert db_session.query(SessionToken).filter_by(token_hash=session_service.hash_token(token)).count() == 1

    def test_identity_carries_contact(self, db_session, customer):
        _, token = session_service.create_session(customer.id)

        identity = session_service.validate_session(token)

        assert identity.user_id == customer.id
        assert identity.contact_id == customer.contact.id
        assert identity.is_admin is False

    def test_deactivated_user_token_rejected(self, db_session, customer):
        _, token = session_service.create_session(customer.id)
        customer.is_active = False
        db_session.commit()

        assert session_service.validate_session(token) is None


# =============================================================================
# ACCESS CONTROL
# =============================================================================


class TestUnauthenticatedAccess:
    """Protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/cart"),
            ("POST", "/api/orders"),
            ("GET", "/api/orders/mine"),
            ("POST", "/api/discounts/validate"),
            ("GET", "/api/products"),
            ("POST", "/api/purchases"),
            ("GET", "/api/bills"),
            ("POST", "/api/payments"),
            ("GET", "/api/invoices/mine"),
            ("GET", "/api/reports/sales-by-product"),
            ("PUT", "/api/settings"),
            ("POST", "/api/categories"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"


class TestCustomerDeniedBackOffice:
    """Customer role cannot reach admin routes."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("GET", "/api/orders"),
            ("POST", "/api/purchases"),
            ("GET", "/api/bills"),
            ("GET", "/api/invoices"),
            ("GET", "/api/contacts"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/reports/sales-by-customer"),
            ("GET", "/api/settings"),
            ("POST", "/api/discounts/offers"),
            ("POST", "/api/auth/users"),
            ("DELETE", "/api/brands/1"),
        ],
    )
    def test_forbidden(self, client, db_session, customer_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=customer_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_both_role_counts_as_admin(self, client, db_session, login):
        user = auth_service.register_user(name="Dual", email="dual@example.com", password=PASSWORD, role="both")
        headers = login(user.email)

        assert client.get("/api/orders", headers=headers).status_code == 200

    def test_admin_can_create_admin(self, client, db_session, admin_headers):
        resp = client.post("/api/auth/users", headers=admin_headers, json={
            "name": "Second Admin", "email": "second@example.com", "password": PASSWORD, "role": "admin",
        })

        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "admin"

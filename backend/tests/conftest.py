"""
Pytest fixtures for MDesk backend tests.

Provides an in-memory database, a fake payment gateway, users with
tokens, and a small catalog.
"""

import itertools

import pytest
from mdesk import create_app
from mdesk.extensions import db
from mdesk.models import Category, Contact
from mdesk.services import catalog_service
from mdesk.services import billing_service
from mdesk.services.auth_service import register_user
from mdesk.services.session_service import identity_for_user
from mdesk.services.payment_gateway import EXTENSION_KEY, GatewayError, PaymentIntent
from mdesk.services.settings_service import SNAPSHOT_KEY


PASSWORD = "Password123!"


class FakeGateway:
    """In-memory stand-in for StripeGateway."""

    def __init__(self):
        self.intents: dict[str, PaymentIntent] = {}
        self.created: list[dict] = []
        self.fail_create = False
        self._ids = itertools.count(1)

    def create_payment_intent(self, *, amount_cents: int, receipt_email=None, metadata=None) -> PaymentIntent:
        if self.fail_create:
            raise GatewayError("card_declined", status_code=402)
        n = next(self._ids)
        intent = PaymentIntent(
            id=f"pi_test_{n}",
            status="requires_payment_method",
            amount=amount_cents,
            currency="inr",
            client_secret=f"pi_test_{n}_secret",
            receipt_email=receipt_email,
        )
        self.intents[intent.id] = intent
        self.created.append({"amount_cents": amount_cents, "metadata": dict(metadata or {})})
        return intent

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        if intent_id not in self.intents:
            raise GatewayError("No such payment_intent", status_code=404)
        return self.intents[intent_id]

    def succeed(self, intent_id: str, amount: int | None = None) -> None:
        """Simulate the customer completing payment."""
        intent = self.intents[intent_id]
        self.intents[intent_id] = PaymentIntent(
            id=intent.id,
            status="succeeded",
            amount=intent.amount if amount is None else amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            receipt_email=intent.receipt_email,
        )


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'AUTOMATIC_INVOICING_DEFAULT': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions.pop(SNAPSHOT_KEY, None)

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.extensions.pop(SNAPSHOT_KEY, None)


@pytest.fixture(scope='function')
def gateway(app):
    fake = FakeGateway()
    previous = app.extensions.get(EXTENSION_KEY)
    app.extensions[EXTENSION_KEY] = fake
    yield fake
    app.extensions[EXTENSION_KEY] = previous


@pytest.fixture(scope='function')
def customer(db_session):
    """Customer account with a linked contact."""
    return register_user(name="Asha Rao", email="asha@example.com", password=PASSWORD, role="customer")


@pytest.fixture(scope='function')
def other_customer(db_session):
    return register_user(name="Ravi Menon", email="ravi@example.com", password=PASSWORD, role="customer")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return register_user(name="Store Admin", email="admin@example.com", password=PASSWORD, role="admin")


@pytest.fixture(scope='function')
def customer_identity(customer):
    return identity_for_user(customer)


@pytest.fixture(scope='function')
def admin_identity(admin_user):
    return identity_for_user(admin_user)


@pytest.fixture(scope='function')
def vendor(db_session):
    contact = Contact(name="Loom Textiles", contact_type="vendor", email="sales@loom.example")
    db_session.add(contact)
    db_session.commit()
    return contact


@pytest.fixture(scope='function')
def default_term(db_session):
    term = billing_service.ensure_default_term()
    db_session.commit()
    return term


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="Shirts")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def other_category(db_session):
    cat = Category(name="Trousers")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def shirt(db_session, category):
    """Published shirt with two SKUs, 750.00 each."""
    return catalog_service.create_product({
        "name": "Linen Shirt",
        "category_id": category.id,
        "material": "Linen",
        "published": True,
        "variants": [
            {"sku": "LS-M", "size": "M", "color": "Blue", "stock": 10,
             "sales_price_cents": 75000, "purchase_price_cents": 40000, "purchase_tax_bps": 500},
            {"sku": "LS-L", "size": "L", "color": "Blue", "stock": 5,
             "sales_price_cents": 75000, "purchase_price_cents": 40000, "purchase_tax_bps": 500},
        ],
        "images": [{"url": "https://cdn.example/ls-blue.jpg", "color": "Blue"}],
    })


@pytest.fixture(scope='function')
def trousers(db_session, other_category):
    """Published trousers, 30.00 per pair."""
    return catalog_service.create_product({
        "name": "Chino",
        "category_id": other_category.id,
        "published": True,
        "variants": [
            {"sku": "CH-32", "size": "32", "stock": 20,
             "sales_price_cents": 3000, "purchase_price_cents": 1500},
        ],
    })


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def customer_headers(client, customer):
    return auth_headers(get_auth_token(client, customer.email))


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def login(client):
    """Return a helper that logs in and builds Authorization headers."""
    def _login(email: str, password: str = PASSWORD) -> dict:
        return auth_headers(get_auth_token(client, email, password))
    return _login

"""
Pytest fixtures for MintStock backend tests.

Provides an in-memory database, a static role resolver, signed tokens
for each role, a recording delivery gateway and small data factories.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app import create_app
from app.extensions import db
from app.models import (
    Category,
    Location,
    Product,
    StockItem,
    Supplier,
    SupervisorLocation,
    LOCATION_TYPE_SITE,
    LOCATION_TYPE_WAREHOUSE,
)
from app.permissions import Role
from app.services.identity_service import StaticRoleResolver
from app.validation import DeliveryError


JWT_SECRET = "test-secret"

# username -> role known to the static resolver
USERS = {
    "admin": Role.ADMIN,
    "om": Role.OPERATIONS_MANAGER,
    "keeper": Role.WAREHOUSE_MANAGER,
    "buyer": Role.PROCUREMENT,
    "alice": Role.SUPERVISOR,
    "bob": Role.SUPERVISOR,
}


class FakeGateway:
    """Records deliveries instead of talking to SMTP / Telegram."""

    def __init__(self):
        self.emails = []
        self.documents = []
        self.messages = []
        self.fail = False

    def _check(self):
        if self.fail:
            raise DeliveryError("Delivery failed")

    def send_email(self, to, subject, body, attachments=None):
        self._check()
        self.emails.append({"to": to, "subject": subject, "body": body, "attachments": attachments or []})

    def send_telegram_document(self, chat_id, filename, content, caption=None):
        self._check()
        self.documents.append({"chat_id": chat_id, "filename": filename, "content": content, "caption": caption})

    def send_telegram_message(self, chat_id, text):
        self._check()
        self.messages.append({"chat_id": chat_id, "text": text})


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'JWT_SECRET': JWT_SECRET,
        'ROLE_RESOLVER': StaticRoleResolver(USERS),
        'DEFAULT_WAREHOUSE_ID': None,
        'UPLOAD_DIR': str(tmp_path_factory.mktemp("uploads")),
        'NOTIFY_EMAILS': [],
        'NOTIFY_TELEGRAM_CHAT_IDS': [],
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def gateway(app):
    """Recording delivery gateway installed for the duration of a test."""
    fake = FakeGateway()
    app.extensions["delivery_gateway"] = fake
    yield fake
    app.extensions.pop("delivery_gateway", None)
    app.config["NOTIFY_EMAILS"] = []
    app.config["NOTIFY_TELEGRAM_CHAT_IDS"] = []


def make_token(username, token_type="access", secret=JWT_SECRET, expires_in=3600):
    payload = {
        "sub": username,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(username):
    return {"Authorization": f"Bearer {make_token(username)}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin")


@pytest.fixture
def keeper_headers():
    return auth_headers("keeper")


@pytest.fixture
def buyer_headers():
    return auth_headers("buyer")


@pytest.fixture
def alice_headers():
    return auth_headers("alice")


@pytest.fixture
def bob_headers():
    return auth_headers("bob")


# =============================================================================
# DATA FACTORIES
# =============================================================================

@pytest.fixture
def warehouse(db_session):
    loc = Location(name="Central Warehouse", type=LOCATION_TYPE_WAREHOUSE, is_active=True)
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture
def site(db_session):
    loc = Location(name="Site North", type=LOCATION_TYPE_SITE, address="1 North St", is_active=True)
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture
def other_site(db_session):
    loc = Location(name="Site South", type=LOCATION_TYPE_SITE, is_active=True)
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture
def alice_site(db_session, site):
    """site with alice assigned as supervisor."""
    db_session.add(SupervisorLocation(supervisor_username="alice", location_id=site.id))
    db_session.commit()
    return site


@pytest.fixture
def category(db_session):
    cat = Category(name="Cleaning")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture
def make_product(db_session, category):
    def _make(name="Detergent", unit="l", is_active=True):
        product = Product(name=name, category_id=category.id, unit=unit, is_active=is_active)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def supplier(db_session):
    s = Supplier(
        name="Acme Supplies",
        contact="Jane Doe",
        email="orders@acme.test",
        telegram_id="424242",
        is_active=True,
    )
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def set_stock(db_session):
    def _set(location, product, quantity, limit_qty=None):
        row = db_session.query(StockItem).filter_by(location_id=location.id, product_id=product.id).first()
        if row is None:
            row = StockItem(location_id=location.id, product_id=product.id, quantity=quantity)
            db_session.add(row)
        row.quantity = quantity
        row.limit_qty = limit_qty
        db_session.commit()
        return row
    return _set


def stock_of(location, product):
    """Current ledger quantity read straight from the database."""
    db.session.expire_all()
    row = db.session.query(StockItem).filter_by(location_id=location.id, product_id=product.id).first()
    return row.quantity if row else 0

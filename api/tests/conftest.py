from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from cashdesk.core.security import create_access_token, hash_password
from cashdesk.db.session import build_engine, get_db
from cashdesk.db.store import SqlStore
from cashdesk.db.tables import metadata
from cashdesk.main import app
from cashdesk.services.notifier import NotificationResult, get_notifier

engine = build_engine("sqlite://")
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingNotifier:
    """Stands in for the sheets webhook; keeps every payload it was handed."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.payloads = []

    def notify(self, payload):
        self.payloads.append(payload)
        if self.fail:
            return NotificationResult(success=False, error="simulated outage")
        return NotificationResult(success=True)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and drop them after."""
    metadata.create_all(bind=engine)
    yield
    metadata.drop_all(bind=engine)


@pytest.fixture
def store():
    db = TestingSessionLocal()
    try:
        yield SqlStore(db)
    finally:
        db.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(notifier):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user(store):
    created = store.insert_user("cashier@corner-shop.com", hash_password("secret123"), "Ana Cashier")
    store.commit()
    return created


@pytest.fixture
def auth_headers(user):
    token = create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_product(store):
    def _make(name="Coffee", price="2.50", stock=10, **extra):
        product = store.insert_product(
            {"name": name, "price": Decimal(str(price)), "stock": stock, **extra}
        )
        store.commit()
        return product

    return _make


@pytest.fixture
def count_rows(store):
    def _count(table: str) -> int:
        return store.db.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()

    return _count

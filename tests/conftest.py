"""
Pytest fixtures for the POS API: an in-memory mongomock store and a TestClient bound to it.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import Store
from main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(upload_dir=str(tmp_path / "uploads"))


@pytest.fixture
def store():
    store = Store(mongomock.MongoClient()["pos_test"])
    store.ensure_indexes()
    return store


@pytest.fixture
def app(settings, store):
    return create_app(settings, store=store)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def product_id(store):
    """Insert a product directly and return its id."""
    return store.create_document("product", {"name": "Cola", "category": "Drinks", "size": "330ml",
                                             "barcode": "4006381333931", "price": "1.50", "photo": ""})

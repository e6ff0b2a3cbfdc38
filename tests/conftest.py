"""Shared pytest fixtures and configuration."""

import os
import pytest
from fastapi.testclient import TestClient

# Set test environment variables before the app reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PRODUCT_SYNC_INTERVAL_SECONDS"] = "0"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import models  # noqa: E402,F401
from database.base import Base  # noqa: E402
from database.connection import SessionLocal, engine  # noqa: E402
from tests.utils.factories import create_product, create_user  # noqa: E402


@pytest.fixture
def db():
    """Fresh schema on the shared in-memory database for every test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """HTTP client running the app's startup and shutdown hooks."""
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seller(db):
    return create_user(db, first_name="Sam", last_name="Seller")


@pytest.fixture
def buyer(db):
    return create_user(db, first_name="Bea", last_name="Buyer")


@pytest.fixture
def stranger(db):
    return create_user(db)


@pytest.fixture
def product(db, seller):
    return create_product(db, seller)

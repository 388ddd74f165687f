"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides test database, client, and authentication fixtures.

==============================================================================
"""

import os

# Keep the application off the on-disk database while tests import it
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import date
from typing import Dict, Generator, List

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from productscan.main import Application
from productscan.db.database import Base, get_db, get_session_factory
from productscan.db.models import Product, User
from productscan.core.security import get_security_manager


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

# In-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

app = Application(initialize_database=False).app


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database overrides."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# DATA FIXTURES
# ============================================================================

@pytest.fixture
def operator_user(db: Session) -> User:
    """Create an operator in the test database."""
    security = get_security_manager()
    user = User(
        username="operator",
        password_hash=security.hash_password("operator123"),
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db: Session) -> User:
    """A second operator, for ownership checks."""
    security = get_security_manager()
    user = User(
        username="someone",
        password_hash=security.hash_password("someone123"),
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def products(db: Session) -> List[Product]:
    """Known products; SN-001 is the Widget."""
    rows = [
        Product(
            serial_number="SN-001",
            product_name="Widget",
            product_code="WG-01",
            packaging="Box 12",
            production_order="PO-7781",
            production_date=date(2025, 1, 15),
            production_time="08:30",
            location="Gudang A"
        ),
        Product(serial_number="SN-002", product_name="Gadget"),
    ]
    db.add_all(rows)
    db.commit()
    return rows


# ============================================================================
# TOKEN FIXTURES
# ============================================================================

@pytest.fixture
def operator_token(operator_user: User) -> str:
    """Create access token for the operator."""
    security = get_security_manager()
    return security.create_access_token({
        "sub": operator_user.id,
        "username": operator_user.username
    })


@pytest.fixture
def operator_headers(operator_token: str) -> Dict[str, str]:
    """Authorization headers for the operator."""
    return {"Authorization": f"Bearer {operator_token}"}

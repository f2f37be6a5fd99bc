"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from treasury_gateway.api.main import create_app
from treasury_gateway.infrastructure.database.models import Base
from treasury_gateway.infrastructure.database.session import get_db
from treasury_gateway.domain.models import Frequency, Recurrence, TransactionType


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def monthly_rent() -> Recurrence:
    """Monthly 500.00 expense on the 15th, never generated"""
    return Recurrence(
        id="rec-1",
        owner_id="owner-1",
        company_id="company-1",
        type=TransactionType.EXPENSE,
        name="Office rent",
        base_amount=Decimal("500.00"),
        frequency=Frequency.MONTHLY,
        start_date=date(2025, 1, 15),
        day_of_month=15,
        generate_months_ahead=3,
        next_occurrence_date=date(2025, 1, 15),
        current_version_id="ver-1",
    )


@pytest.fixture
def rent_definition() -> dict:
    """Request body creating the monthly rent recurrence"""
    return {
        "company_id": "company-1",
        "type": "EXPENSE",
        "name": "Office rent",
        "base_amount": "500.00",
        "frequency": "MONTHLY",
        "day_of_month": 15,
        "start_date": "2025-01-15",
        "generate_months_ahead": 3,
        "payment_method": "TRANSFER",
    }

"""
PyTest Configuration for the Crystal API
Provides fixtures for testing with a throwaway SQLite database and mocked outbound services.
"""
import os

# The retry scheduler thread is not wanted inside the test client lifespan
os.environ.setdefault("WEBHOOK_RETRY_ENABLED", "false")

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from config.database import Base, get_db
from main import app
from webhooks.dispatcher import dispatcher
from webhooks.events import event_queue

TEST_USER_ID = "test_user_id"
TEST_USER_EMAIL = "test@example.com"

# ── SQLite for tests (no external DB required) ──
TEST_DATABASE_URL = os.getenv('TEST_DATABASE_URL', 'sqlite:///./test.db')

# SQLite needs check_same_thread=False for FastAPI's threaded test client
connect_args = {"check_same_thread": False} if "sqlite" in TEST_DATABASE_URL else {}
test_engine = create_engine(TEST_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@event.listens_for(test_engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    if "sqlite" in TEST_DATABASE_URL:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test with automatic rollback.
    """
    Base.metadata.create_all(bind=test_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(autouse=True)
def published_events(mocker, monkeypatch):
    """
    Keep published events on the queue instead of delivering them after each response.
    Tests read what the handlers published from the returned list.
    """
    for name in ("N8N_CRUSH_WEBHOOK_URL", "N8N_CONVERSATION_WEBHOOK_URL", "N8N_DASHBOARD_WEBHOOK_URL",
                 "N8N_ANALYTICS_WEBHOOK_URL", "N8N_PAYMENT_WEBHOOK_URL", "N8N_WEBHOOK_SECRET"):
        monkeypatch.delenv(name, raising=False)

    event_queue.clear()
    mocker.patch.object(dispatcher, "drain", AsyncMock(return_value={"events": 0, "deliveries": 0, "failed": 0}))

    class Published:
        def names(self):
            return [e.event for e in self.events()]

        def events(self):
            batch = event_queue.pop_batch(event_queue.max_size)
            for e in batch:
                event_queue.put(e)
            return batch

    yield Published()
    event_queue.clear()


@pytest.fixture(scope="function")
def client(db_session):
    """
    FastAPI TestClient with overridden database dependency.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_token(user_id: str = TEST_USER_ID, email: str = TEST_USER_EMAIL, **claims) -> str:
    from shared_utils.auth import create_access_token
    return create_access_token(user_id, email, **claims)


@pytest.fixture
def auth_headers():
    """
    Bearer headers for the test user, signed with the app secret.
    """
    import jwt
    from main import JWT_SECRET, JWT_ALGORITHM

    token = jwt.encode(
        {
            "sub": TEST_USER_ID,
            "email": TEST_USER_EMAIL,
            "user_metadata": {"full_name": "Test User"},
        },
        JWT_SECRET,
        algorithm=JWT_ALGORITHM
    )

    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers():
    """Bearer headers for a second user, for ownership checks."""
    return {"Authorization": f"Bearer {make_token('other_user_id', 'other@example.com')}"}


@pytest.fixture
def sample_profile(db_session):
    """Create the profile of the test user."""
    from models import Profile

    profile = Profile(id=TEST_USER_ID, email=TEST_USER_EMAIL, name="Test User")
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(profile)
    return profile


@pytest.fixture
def sample_crush(db_session, sample_profile):
    """Create a crush in the first stage for the test user."""
    from crushes.models import Crush

    crush = Crush(
        user_id=sample_profile.id,
        name="Ana",
        age=27,
        current_stage="Primeiro Contato",
        interest_level=70,
        position=0,
    )
    db_session.add(crush)
    db_session.commit()
    db_session.refresh(crush)
    return crush


@pytest.fixture
def sample_conversation(db_session, sample_crush):
    """Create an open Crystal conversation about the sample crush."""
    from conversations.models import Conversation

    conversation = Conversation(user_id=sample_crush.user_id, crush_id=sample_crush.id, type="crystal_chat")
    db_session.add(conversation)
    db_session.commit()
    db_session.refresh(conversation)
    return conversation


@pytest.fixture
def premium_subscription(db_session, sample_profile):
    """Give the test user an active premium subscription."""
    from subscriptions.models import Subscription

    now = datetime.utcnow()
    subscription = Subscription(
        user_id=sample_profile.id,
        plan_type="premium",
        status="active",
        started_at=now,
        expires_at=now + timedelta(days=30),
    )
    db_session.add(subscription)
    db_session.commit()
    db_session.refresh(subscription)
    return subscription


@pytest.fixture
def mock_crystal_reply(mocker):
    """Mock the model call behind a chat turn."""
    mock = mocker.patch('conversations.chat.crystal_reply', new_callable=AsyncMock)
    mock.return_value = "Oi! Me conta mais sobre ela 😊"
    return mock


@pytest.fixture
def mock_llm_complete(mocker):
    """Mock the raw completion call shared by insights and the chat integration."""
    from crystal.llm import llm

    mock = mocker.patch.object(llm, "complete", new_callable=AsyncMock)
    mock.return_value = "Resposta da Crystal"
    return mock


# Pytest configuration
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "unit: mark test as unit test")

"""
Shared fixtures: in-memory database, fake voice client, poller and API client.
"""
import os

# Must be set before callwave.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = os.environ.get("JWT_SECRET_KEY") or "callwave-test-jwt-secret-0123456789abcdef"

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from callwave.db.session import build_engine, get_db, init_db
from callwave.main import app
from callwave.models.campaign import BatchCall, Campaign, CampaignStatus
from callwave.services import get_batch_poller, get_pharmacy_service, get_voice_client
from callwave.services.batch_service import BatchPoller
from callwave.services.voice_client import VoiceClient

USER_ID = "user-1"


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test"""
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_campaign(db):
    """Insert a campaign (and optionally its batch) owned by USER_ID"""
    def _make(status=CampaignStatus.DRAFT, batch_id=None, user_id=USER_ID, name="Spring recall"):
        campaign = Campaign(
            user_id=user_id,
            campaign_id=str(uuid.uuid4()),
            name=name,
            status=status,
            agent_id="agent_123",
            phone_number_id="phnum_456"
        )
        db.add(campaign)
        if batch_id:
            db.add(BatchCall(
                user_id=user_id,
                campaign_id=campaign.campaign_id,
                batch_id=batch_id,
                status="pending"
            ))
        db.commit()
        db.refresh(campaign)
        return campaign
    return _make


# ============================================================================
# VOICE API / POLLER
# ============================================================================

@pytest.fixture
def voice_client():
    """Voice client double; every network method is an AsyncMock"""
    client = MagicMock(spec=VoiceClient)
    client.configured = True
    client.submit_batch = AsyncMock(return_value={
        "id": "batch_abc",
        "name": "Spring recall",
        "status": "pending",
        "total_calls_scheduled": 1,
    })
    client.get_batch = AsyncMock(return_value={"id": "batch_abc", "status": "completed", "recipients": []})
    client.get_conversation = AsyncMock(return_value={})
    return client


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def poller(voice_client, session_factory, sleep):
    return BatchPoller(voice_client, session_factory=session_factory, interval=10, max_polls=100, sleep=sleep)


# ============================================================================
# API CLIENT
# ============================================================================

@pytest.fixture
def pharmacy_service():
    service = MagicMock()
    service.handle_inbound = AsyncMock()
    return service


@pytest.fixture
def client(session_factory, voice_client, poller, pharmacy_service):
    """TestClient wired to the test database and service doubles"""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_voice_client] = lambda: voice_client
    app.dependency_overrides[get_batch_poller] = lambda: poller
    app.dependency_overrides[get_pharmacy_service] = lambda: pharmacy_service

    with TestClient(app) as test_client:
        test_client.headers.update({"X-User-Id": USER_ID})
        yield test_client

    app.dependency_overrides.clear()

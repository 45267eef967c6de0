"""Test fixtures and configuration."""

from datetime import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.booking.catalog import ServiceCatalog
from src.booking.orchestrator import SubmissionOrchestrator
from src.booking.session import BookingSession, SessionManager, SessionRegistry
from src.booking.store import BookingStore
from src.repositories.booking import BookingRepository
from src.schemas.booking import ClientInfo, ServiceCatalogEntry, TimeSlot
from src.wizard.engine import WizardEngine
from tests.factories import BOOKING_DATE, BOOKING_ID, CLIENT_ID, SERVICE_ID, raw_service


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.exists = AsyncMock(return_value=False)
    return redis


@pytest.fixture
def session_manager(mock_redis):
    """Create SessionManager with mock Redis."""
    return SessionManager(mock_redis)


@pytest.fixture
def api_client():
    """Mock API client that answers like a healthy backend."""
    client = MagicMock()
    client.get_services = AsyncMock(return_value=[raw_service()])
    client.get_available_time_slots = AsyncMock(
        return_value=[
            {"time": "09:00-10:00", "isAvailable": True},
            {"time": "10:00-11:00", "isAvailable": False},
            {"time": "14:00-15:00", "isAvailable": True},
        ]
    )
    client.create_client = AsyncMock(return_value={"_id": CLIENT_ID})
    client.create_booking = AsyncMock(
        return_value={
            "status": "success",
            "data": {"_id": BOOKING_ID, "reference": "RO-2026-0001"},
            "confirmationEmailSent": True,
            "internalNotificationSent": True,
        }
    )
    client.service_exists = AsyncMock(return_value=True)
    client.client_exists = AsyncMock(return_value=True)
    client.health_check = AsyncMock(return_value={"status": "healthy", "timestamp": "now"})
    return client


@pytest.fixture
def registry(session_manager, api_client):
    return SessionRegistry(session_manager, api_client)


@pytest.fixture
def engine(registry):
    """Create WizardEngine."""
    return WizardEngine(registry)


@pytest.fixture
def live_service():
    return ServiceCatalogEntry(
        identifier=SERVICE_ID,
        name="Investment Fraud Recovery",
        duration_minutes=90,
    )


@pytest.fixture
def slot():
    return TimeSlot(start=time(9, 0), end=time(10, 0))


@pytest.fixture
def client_info():
    return ClientInfo(
        first_name="Jane",
        last_name="O'Neil",
        email="Jane.ONeil@Example.com",
        phone="+44 7700 900123",
        case_type="investment-fraud",
        estimated_loss=25000,
        consent_to_contact=True,
        privacy_policy_accepted=True,
        data_processing_agreed=True,
    )


@pytest.fixture
def client_form():
    """Step-3 form values as a browser would post them."""
    return {
        "first_name": "  Jane ",
        "last_name": "O'Neil",
        "email": "jane.oneil@example.com",
        "phone": "+44 7700 900123",
        "case_type": "cryptocurrency-recovery",
        "estimated_loss": "£25,000",
        "urgency_level": "urgent",
        "preferred_contact": "phone",
        "consent_to_contact": True,
        "privacy_policy_accepted": True,
        "data_processing_agreed": True,
    }


@pytest.fixture
def store():
    return BookingStore(session_id="test-session")


@pytest.fixture
def filled_store(store, live_service, slot, client_info):
    """Store with steps 1-3 populated, sitting on the confirmation step."""
    store.set_selected_service(live_service)
    store.set_selected_date(BOOKING_DATE)
    store.set_selected_time_slot(slot)
    store.set_client_info(client_info)
    store.set_current_step(4)
    return store


@pytest.fixture
def orchestrator(filled_store, api_client):
    return SubmissionOrchestrator(
        filled_store,
        BookingRepository(api_client),
        lookup_client=api_client,
    )


@pytest.fixture
def booking_session(api_client):
    """A session wired the way the registry wires it."""
    store = BookingStore(session_id="wizard-session")
    return BookingSession(
        session_id="wizard-session",
        store=store,
        catalog=ServiceCatalog(api_client),
        orchestrator=SubmissionOrchestrator(store, BookingRepository(api_client), lookup_client=api_client),
    )

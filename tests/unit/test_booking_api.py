"""Tests for the booking HTTP API."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio

from src.api.v1.booking import get_today
from src.booking.errors import RemoteError
from src.main import app
from tests.factories import SERVICE_ID, TODAY

SCHEDULE = {"date": "2026-10-21", "start": "09:00", "end": "10:00"}


@pytest_asyncio.fixture
async def client(engine):
    app.state.engine = engine
    app.dependency_overrides[get_today] = lambda: TODAY
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


async def new_session(client) -> str:
    response = await client.post("/api/v1/booking/sessions")
    assert response.status_code == 201
    return response.json()["session_id"]


async def fill_wizard(client, session_id, client_form):
    base = f"/api/v1/booking/sessions/{session_id}"
    assert (await client.put(f"{base}/service", json={"service_id": SERVICE_ID})).status_code == 200
    assert (await client.put(f"{base}/schedule", json=SCHEDULE)).status_code == 200
    assert (await client.put(f"{base}/client-info", json=client_form)).status_code == 200


class TestSessions:
    @pytest.mark.asyncio
    async def test_create_and_read(self, client):
        session_id = await new_session(client)

        response = await client.get(f"/api/v1/booking/sessions/{session_id}")

        body = response.json()
        assert response.status_code == 200
        assert body["draft"]["current_step"] == 1
        assert body["max_reachable_step"] == 1
        assert body["catalog_mode"] == "unloaded"
        assert body["confirmation"] is None

    @pytest.mark.asyncio
    async def test_unknown_session(self, client):
        response = await client.get("/api/v1/booking/sessions/missing")
        assert response.status_code == 404


class TestWizardFlow:
    @pytest.mark.asyncio
    async def test_services(self, client):
        session_id = await new_session(client)
        response = await client.get(f"/api/v1/booking/sessions/{session_id}/services")

        body = response.json()
        assert response.status_code == 200
        assert body["options"][0]["identifier"] == SERVICE_ID

    @pytest.mark.asyncio
    async def test_fallback_services(self, client, api_client):
        api_client.get_services.side_effect = RemoteError("down")
        session_id = await new_session(client)

        body = (await client.get(f"/api/v1/booking/sessions/{session_id}/services")).json()
        state = (await client.get(f"/api/v1/booking/sessions/{session_id}")).json()

        assert len(body["options"]) == 4
        assert "service" in body["warnings"]
        assert state["catalog_mode"] == "fallback"

    @pytest.mark.asyncio
    async def test_slots(self, client):
        session_id = await new_session(client)
        base = f"/api/v1/booking/sessions/{session_id}"
        await client.put(f"{base}/service", json={"service_id": SERVICE_ID})

        response = await client.get(f"{base}/slots", params={"date": "2026-10-21"})

        assert [slot["start"] for slot in response.json()["options"]] == ["09:00:00", "14:00:00"]

    @pytest.mark.asyncio
    async def test_validation_errors_are_422(self, client):
        session_id = await new_session(client)
        response = await client.put(f"/api/v1/booking/sessions/{session_id}/service", json={})

        assert response.status_code == 422
        assert response.json()["errors"] == {"selected_service": "Please select a service"}

    @pytest.mark.asyncio
    async def test_skipping_ahead_is_409(self, client, client_form):
        session_id = await new_session(client)
        response = await client.put(f"/api/v1/booking/sessions/{session_id}/client-info", json=client_form)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_step_navigation(self, client, client_form):
        session_id = await new_session(client)
        await fill_wizard(client, session_id, client_form)
        base = f"/api/v1/booking/sessions/{session_id}"

        back = await client.post(f"{base}/step", json={"step": 2})
        assert back.json()["draft"]["current_step"] == 2

        forward = await client.post(f"{base}/step", json={"step": 4})
        assert forward.json()["draft"]["current_step"] == 4

    @pytest.mark.asyncio
    async def test_submit_and_download_calendar(self, client, client_form):
        session_id = await new_session(client)
        await fill_wizard(client, session_id, client_form)
        base = f"/api/v1/booking/sessions/{session_id}"

        response = await client.post(f"{base}/submit", json={"terms_accepted": True})

        result = response.json()
        assert response.status_code == 200
        assert result["success"] is True
        assert result["booking_reference"] == "RO-2026-0001"

        state = (await client.get(base)).json()
        assert state["draft"]["current_step"] == 1
        assert state["confirmation"]["result"]["booking_reference"] == "RO-2026-0001"

        ics = await client.get(f"{base}/confirmation.ics")
        assert ics.status_code == 200
        assert ics.headers["content-type"].startswith("text/calendar")
        assert "UID:RO-2026-0001@recoveryoffice.com" in ics.text

    @pytest.mark.asyncio
    async def test_submit_without_terms_is_422(self, client, client_form):
        session_id = await new_session(client)
        await fill_wizard(client, session_id, client_form)

        response = await client.post(f"/api/v1/booking/sessions/{session_id}/submit", json={})

        assert response.status_code == 422
        assert response.json()["error_kind"] == "validation"

    @pytest.mark.asyncio
    async def test_server_failure_reported_in_body(self, client, client_form, api_client):
        api_client.create_client.side_effect = RemoteError("email already registered", status_code=400)
        session_id = await new_session(client)
        await fill_wizard(client, session_id, client_form)

        response = await client.post(f"/api/v1/booking/sessions/{session_id}/submit", json={"terms_accepted": True})

        assert response.status_code == 200
        assert response.json()["error_kind"] == "client-creation"
        assert response.json()["error_message"] == "email already registered"

    @pytest.mark.asyncio
    async def test_calendar_needs_confirmation(self, client):
        session_id = await new_session(client)
        response = await client.get(f"/api/v1/booking/sessions/{session_id}/confirmation.ics")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_resets_draft(self, client, client_form):
        session_id = await new_session(client)
        await fill_wizard(client, session_id, client_form)

        response = await client.delete(f"/api/v1/booking/sessions/{session_id}")

        assert response.json()["draft"]["client_info"] is None
        assert response.json()["draft"]["current_step"] == 1


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_upstream(self, client):
        api = AsyncMock()
        api.health_check = AsyncMock(return_value={"status": "unhealthy", "timestamp": "now"})
        with patch("src.main.get_api_client", return_value=api):
            response = await client.get("/health")

        assert response.json() == {"status": "ok", "api": {"status": "unhealthy", "timestamp": "now"}}

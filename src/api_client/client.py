"""Recovery Office API client — the external HTTP API behind the booking wizard."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

import httpx
import structlog

from src.booking.errors import ApiUnavailableError, RemoteError
from src.config import settings

logger = structlog.get_logger()

# Lazy singleton
_client: Optional["RecoveryApiClient"] = None


def unwrap(payload: Any) -> Any:
    """Strip the ``{"status", "results", "data"}`` envelope if present."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def extract_error_message(response: httpx.Response) -> str:
    """Human-readable message from an error response, passed on verbatim."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]

    text = response.text.strip()
    return text or f"HTTP {response.status_code}"


class RecoveryApiClient:
    """Async wrapper around the services/clients/bookings endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._http = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.api_timeout_seconds,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        idempotency_key: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.warning("api_unreachable", method=method, path=path, error=str(e))
            raise ApiUnavailableError(
                "Unable to connect to our booking system. Please check your connection and try again."
            ) from e
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._request(method, path, **kwargs)
        if response.is_error:
            message = extract_error_message(response)
            logger.warning(
                "api_error_response",
                method=method,
                path=path,
                status=response.status_code,
                message=message,
            )
            raise RemoteError(message, status_code=response.status_code)
        try:
            return unwrap(response.json())
        except ValueError as e:
            raise RemoteError("Invalid response from booking system", status_code=response.status_code) from e

    # ─── Services ────────────────────────────────────────────────────

    async def get_services(self) -> list[dict]:
        """GET /services → raw service records."""
        services = await self._json("GET", "/services")
        if not isinstance(services, list):
            raise RemoteError("Invalid response structure from services API")
        return services

    async def get_available_time_slots(self, service_id: str, day: date) -> list[dict]:
        """GET /services/{id}/available-time-slots?date=YYYY-MM-DD."""
        slots = await self._json(
            "GET",
            f"/services/{service_id}/available-time-slots",
            params={"date": day.isoformat()},
        )
        if not isinstance(slots, list):
            raise RemoteError("Invalid response structure from availability API")
        return slots

    async def service_exists(self, service_id: str) -> bool:
        return await self._exists(f"/services/{service_id}")

    # ─── Clients & bookings ──────────────────────────────────────────

    async def create_client(self, payload: dict, idempotency_key: Optional[str] = None) -> dict:
        """POST /clients → created client record."""
        data = await self._json("POST", "/clients", json=payload, idempotency_key=idempotency_key)
        return data if isinstance(data, dict) else {}

    async def client_exists(self, client_id: str) -> bool:
        return await self._exists(f"/clients/{client_id}")

    async def create_booking(self, payload: dict, idempotency_key: Optional[str] = None) -> dict:
        """POST /bookings → created booking record (+ optional reference / email flags)."""
        response = await self._request("POST", "/bookings", json=payload, idempotency_key=idempotency_key)
        if response.is_error:
            message = extract_error_message(response)
            logger.warning("api_error_response", method="POST", path="/bookings", status=response.status_code)
            raise RemoteError(message, status_code=response.status_code)
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteError("Invalid response from booking system", status_code=response.status_code) from e
        # Email flags may sit next to the envelope rather than inside it
        return body if isinstance(body, dict) else {}

    async def _exists(self, path: str) -> bool:
        response = await self._request("GET", path)
        if response.status_code == 404:
            return False
        if response.is_error:
            raise RemoteError(extract_error_message(response), status_code=response.status_code)
        return True

    # ─── Health ──────────────────────────────────────────────────────

    async def health_check(self) -> dict:
        """GET /health. Never raises; reports healthy/unhealthy."""
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            response = await self._request("GET", "/health")
        except ApiUnavailableError:
            return {"status": "unhealthy", "timestamp": timestamp}
        status = "healthy" if response.is_success else "unhealthy"
        if status == "unhealthy":
            logger.warning("api_health_check_failed", status=response.status_code)
        return {"status": status, "timestamp": timestamp}


def get_api_client() -> RecoveryApiClient:
    """Get or create the singleton API client."""
    global _client

    if _client is None:
        _client = RecoveryApiClient()
        logger.info("api_client_initialized", base_url=_client.base_url)
    return _client


async def close_api_client() -> None:
    global _client

    if _client is not None:
        await _client.close()
        _client = None

"""Service catalog cache — live services from the API, or the built-in fallback list.

The cache loads once per wizard session. Its ``mode`` tells consumers whether
the entries carry server identifiers (``LIVE``) or placeholder slugs
(``FALLBACK``) that must never reach a submission.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog
from pydantic import ValidationError as SchemaError

from src.api_client.client import RecoveryApiClient
from src.booking.errors import RemoteError
from src.booking.identifiers import is_canonical_identifier
from src.schemas.booking import CatalogMode, ServiceCatalogEntry

logger = structlog.get_logger()

FALLBACK_SERVICES: tuple[ServiceCatalogEntry, ...] = (
    ServiceCatalogEntry(
        identifier="investment-fraud-recovery",
        name="Investment Fraud Recovery",
        description="Comprehensive recovery service for investment fraud cases",
        duration_minutes=90,
        price=0,  # free consultation
        features=[
            "Detailed case assessment",
            "Asset tracing and investigation",
            "Legal pathway recommendations",
            "Recovery strategy development",
            "Regulatory complaint assistance",
        ],
        category="fraud-recovery",
        is_fallback=True,
    ),
    ServiceCatalogEntry(
        identifier="cryptocurrency-recovery",
        name="Cryptocurrency Recovery",
        description="Specialized recovery for lost or stolen cryptocurrency",
        duration_minutes=75,
        price=0,
        features=[
            "Blockchain analysis and tracing",
            "Exchange cooperation protocols",
            "Wallet recovery procedures",
            "Smart contract investigation",
            "Cross-border recovery coordination",
        ],
        category="crypto-recovery",
        is_fallback=True,
    ),
    ServiceCatalogEntry(
        identifier="financial-scam-recovery",
        name="Financial Scam Recovery",
        description="Recovery assistance for various financial scams and fraud",
        duration_minutes=60,
        price=0,
        features=[
            "Scam verification and documentation",
            "Financial institution coordination",
            "Evidence collection and preservation",
            "Recovery timeline development",
            "Ongoing case management",
        ],
        category="scam-recovery",
        is_fallback=True,
    ),
    ServiceCatalogEntry(
        identifier="regulatory-complaint-assistance",
        name="Regulatory Complaint Assistance",
        description="Help with filing complaints to regulatory bodies",
        duration_minutes=45,
        price=0,
        features=[
            "Regulatory jurisdiction assessment",
            "Complaint preparation and filing",
            "Documentation organization",
            "Follow-up coordination",
            "Multi-jurisdiction submissions",
        ],
        category="regulatory",
        is_fallback=True,
    ),
)


def parse_service(raw: dict) -> Optional[ServiceCatalogEntry]:
    """Map an API service record to an entry; None if it is unusable."""
    if not isinstance(raw, dict):
        logger.warning("catalog_entry_rejected", identifier=None, reason="not_an_object")
        return None
    identifier = raw.get("_id") or raw.get("id") or raw.get("identifier")
    if not is_canonical_identifier(identifier):
        logger.warning("catalog_entry_rejected", identifier=identifier, reason="non_canonical_id")
        return None
    if not raw.get("name"):
        logger.warning("catalog_entry_rejected", identifier=identifier, reason="missing_name")
        return None

    try:
        return ServiceCatalogEntry(
            identifier=identifier,
            name=raw["name"],
            description=raw.get("description") or "",
            duration_minutes=int(raw.get("durationMinutes") or raw.get("duration") or 60),
            price=float(raw.get("price") or 0),
            is_active=raw.get("isActive", True) is not False,
            features=[str(f) for f in raw.get("features") or []],
            category=raw.get("category"),
        )
    except (SchemaError, TypeError, ValueError) as e:
        logger.warning("catalog_entry_rejected", identifier=identifier, reason=str(e))
        return None


class ServiceCatalog:
    """Memoized per-session catalog with an inspectable live/fallback mode."""

    def __init__(self, api_client: RecoveryApiClient):
        self.api_client = api_client
        self.mode = CatalogMode.UNLOADED
        self.last_error: Optional[str] = None
        self._services: list[ServiceCatalogEntry] = []
        self._lock = asyncio.Lock()

    @property
    def services(self) -> list[ServiceCatalogEntry]:
        return list(self._services)

    @property
    def is_fallback(self) -> bool:
        return self.mode == CatalogMode.FALLBACK

    async def load_services(self) -> list[ServiceCatalogEntry]:
        """Fetch once; later calls (and concurrent callers) get the memoized list."""
        async with self._lock:
            if self.mode != CatalogMode.UNLOADED:
                return self.services

            try:
                raw_services = await self.api_client.get_services()
                services = [s for s in (parse_service(raw) for raw in raw_services) if s]
                if not services:
                    raise RemoteError("Services API returned no bookable services")
            except RemoteError as e:
                self._activate_fallback(e.message)
            else:
                self._services = services
                self.mode = CatalogMode.LIVE
                logger.info("catalog_loaded", mode=self.mode.value, count=len(services))

            return self.services

    def _activate_fallback(self, reason: str) -> None:
        self._services = list(FALLBACK_SERVICES)
        self.mode = CatalogMode.FALLBACK
        self.last_error = reason
        logger.warning(
            "catalog_fallback_activated",
            reason=reason,
            count=len(self._services),
        )

    def get(self, identifier: str) -> Optional[ServiceCatalogEntry]:
        for service in self._services:
            if service.identifier == identifier:
                return service
        return None

    def active_services(self) -> list[ServiceCatalogEntry]:
        return [s for s in self._services if s.is_active]

    def is_submittable(self, service: ServiceCatalogEntry) -> bool:
        """Only live, canonical entries may be used in a submission."""
        return not service.is_fallback and is_canonical_identifier(service.identifier)

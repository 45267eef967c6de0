"""Wizard sessions — one shared store per visitor, snapshotted to Redis.

The registry is created once at application start. Every consumer asks it
for the session and gets the same ``BookingStore`` instance back, so all of
them see the latest mutation. Snapshots in Redis let a draft survive a
process restart within the session TTL.
"""

import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import redis.asyncio as redis
import structlog
from cachetools import TTLCache
from pydantic import BaseModel, Field

from src.api_client.client import RecoveryApiClient
from src.booking.catalog import ServiceCatalog
from src.booking.orchestrator import SubmissionOrchestrator
from src.booking.store import BookingStore
from src.config import settings
from src.repositories.booking import BookingRepository
from src.schemas.booking import BookingConfirmation, BookingDraft

logger = structlog.get_logger()


class SessionSnapshot(BaseModel):
    """What is persisted per session."""

    draft: BookingDraft = Field(default_factory=BookingDraft)
    confirmation: Optional[BookingConfirmation] = None


class SessionManager:
    """Manages draft snapshots in Redis with TTL."""

    def __init__(self, redis_client: redis.Redis, ttl: Optional[int] = None):
        self.redis = redis_client
        self.ttl = ttl or settings.session_ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"booking:{session_id}"

    async def get(self, session_id: str) -> Optional[SessionSnapshot]:
        """Get session snapshot from Redis."""
        data = await self.redis.get(self._key(session_id))
        if data:
            return SessionSnapshot.model_validate_json(data)
        return None

    async def save(self, session_id: str, store: BookingStore) -> None:
        """Save the store's current draft (and confirmation) with TTL."""
        snapshot = SessionSnapshot(draft=store.draft, confirmation=store.confirmation)
        await self.redis.setex(
            self._key(session_id),
            self.ttl,
            snapshot.model_dump_json(),
        )
        logger.debug(
            "session_saved",
            session_id=session_id,
            step=store.draft.current_step,
        )

    async def delete(self, session_id: str) -> None:
        """Delete session from Redis."""
        await self.redis.delete(self._key(session_id))

    async def exists(self, session_id: str) -> bool:
        """Check if session exists."""
        return bool(await self.redis.exists(self._key(session_id)))


@dataclass
class BookingSession:
    """Everything one wizard session shares across its consumers."""

    session_id: str
    store: BookingStore
    catalog: ServiceCatalog
    orchestrator: SubmissionOrchestrator


class SessionRegistry:
    """Single owner of all live sessions in this process."""

    def __init__(self, session_manager: SessionManager, api_client: RecoveryApiClient):
        self.session_manager = session_manager
        self.api_client = api_client
        # Idle sessions drop out of memory and are restored from Redis on demand
        self._sessions: TTLCache[str, BookingSession] = TTLCache(
            maxsize=settings.max_live_sessions,
            ttl=settings.session_ttl_seconds,
        )
        # Sessions with a submission in flight; never evicted
        self._held: dict[str, BookingSession] = {}

    def _build(self, session_id: str, snapshot: Optional[SessionSnapshot] = None) -> BookingSession:
        snapshot = snapshot or SessionSnapshot()
        store = BookingStore(draft=snapshot.draft, session_id=session_id)
        store.confirmation = snapshot.confirmation
        session = BookingSession(
            session_id=session_id,
            store=store,
            catalog=ServiceCatalog(self.api_client),
            orchestrator=SubmissionOrchestrator(
                store,
                BookingRepository(self.api_client),
                lookup_client=self.api_client,
            ),
        )
        self._sessions[session_id] = session
        return session

    async def create(self) -> BookingSession:
        session = self._build(uuid.uuid4().hex)
        await self.session_manager.save(session.session_id, session.store)
        logger.info("session_created", session_id=session.session_id)
        return session

    async def get(self, session_id: str) -> Optional[BookingSession]:
        """In-process session first, then a Redis snapshot, else None."""
        session = self._held.get(session_id) or self._sessions.get(session_id)
        if session is not None:
            self._sessions[session_id] = session
            return session

        snapshot = await self.session_manager.get(session_id)
        if snapshot is None:
            return None

        logger.info(
            "session_restored",
            session_id=session_id,
            step=snapshot.draft.current_step,
        )
        return self._build(session_id, snapshot)

    async def save(self, session: BookingSession) -> None:
        await self.session_manager.save(session.session_id, session.store)

    @asynccontextmanager
    async def hold(self, session: BookingSession) -> AsyncIterator[BookingSession]:
        """Keep ``session`` as the live instance until its submission returns."""
        self._held[session.session_id] = session
        try:
            yield session
        finally:
            if not (session.orchestrator.is_submitting or session.store.is_locked):
                self._held.pop(session.session_id, None)
                self._sessions[session.session_id] = session

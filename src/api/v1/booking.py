"""Booking wizard API — the HTTP face of the per-session booking store."""

from datetime import date
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from src.booking.calendar import build_ics, ics_filename
from src.booking.session import BookingSession
from src.schemas.api import (
    ClientInfoRequest,
    ScheduleRequest,
    ServiceSelectionRequest,
    SessionResponse,
    StepChangeRequest,
    StepResponse,
    SubmitRequest,
)
from src.schemas.booking import BookingStep, FailureKind, SubmissionResult
from src.wizard.engine import WizardEngine
from src.wizard.steps.base import StepResult

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/booking", tags=["booking"])


def get_engine(request: Request) -> WizardEngine:
    """FastAPI dependency for the wizard engine built in the app lifespan."""
    return request.app.state.engine


async def get_session(session_id: str, engine: WizardEngine = Depends(get_engine)) -> BookingSession:
    session = await engine.registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Booking session not found")
    return session


def get_today() -> Optional[date]:
    """Clock for date rules; overridden in tests."""
    return None


def _session_response(session: BookingSession) -> SessionResponse:
    store = session.store
    return SessionResponse(
        session_id=session.session_id,
        draft=store.draft,
        max_reachable_step=store.draft.max_reachable_step(),
        is_locked=store.is_locked,
        catalog_mode=session.catalog.mode,
        submission_state=session.orchestrator.state,
        confirmation=store.confirmation,
    )


def _step_response(session: BookingSession, result: StepResult) -> JSONResponse:
    body = StepResponse(
        ok=result.ok,
        current_step=session.store.draft.current_step,
        next_step=result.next_step,
        errors=result.errors,
        warnings=result.warnings,
        options=result.options,
        submission=result.submission,
    )
    status_code = 200 if result.ok else 422
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post("/sessions", status_code=201)
async def create_session(engine: WizardEngine = Depends(get_engine)) -> SessionResponse:
    session = await engine.registry.create()
    return _session_response(session)


@router.get("/sessions/{session_id}")
async def read_session(session: BookingSession = Depends(get_session)) -> SessionResponse:
    return _session_response(session)


@router.get("/sessions/{session_id}/services")
async def list_services(
    session: BookingSession = Depends(get_session),
    engine: WizardEngine = Depends(get_engine),
) -> JSONResponse:
    """Catalog for step 1; fetched from the API once per session."""
    result = await engine.options(session, BookingStep.SERVICE.value)
    return _step_response(session, result)


@router.put("/sessions/{session_id}/service")
async def select_service(
    body: ServiceSelectionRequest,
    session: BookingSession = Depends(get_session),
    engine: WizardEngine = Depends(get_engine),
) -> JSONResponse:
    result = await engine.handle_step(session, BookingStep.SERVICE.value, body.model_dump())
    return _step_response(session, result)


@router.get("/sessions/{session_id}/slots")
async def list_slots(
    day: str = Query(..., alias="date", description="YYYY-MM-DD"),
    session: BookingSession = Depends(get_session),
    engine: WizardEngine = Depends(get_engine),
) -> JSONResponse:
    result = await engine.options(session, BookingStep.SCHEDULE.value, date=day)
    return _step_response(session, result)


@router.put("/sessions/{session_id}/schedule")
async def select_schedule(
    body: ScheduleRequest,
    session: BookingSession = Depends(get_session),
    engine: WizardEngine = Depends(get_engine),
    today: Optional[date] = Depends(get_today),
) -> JSONResponse:
    result = await engine.handle_step(session, BookingStep.SCHEDULE.value, body.model_dump(), today=today)
    return _step_response(session, result)


@router.put("/sessions/{session_id}/client-info")
async def save_client_info(
    body: ClientInfoRequest,
    session: BookingSession = Depends(get_session),
    engine: WizardEngine = Depends(get_engine),
) -> JSONResponse:
    result = await engine.handle_step(session, BookingStep.CLIENT_INFO.value, body.model_dump())
    return _step_response(session, result)


@router.post("/sessions/{session_id}/step")
async def change_step(
    body: StepChangeRequest,
    session: BookingSession = Depends(get_session),
    engine: WizardEngine = Depends(get_engine),
) -> SessionResponse:
    """Edit/back navigation. Forward jumps past missing data are rejected (409)."""
    await engine.go_to_step(session, body.step)
    return _session_response(session)


@router.post("/sessions/{session_id}/submit")
async def submit_booking(
    body: SubmitRequest,
    session: BookingSession = Depends(get_session),
    engine: WizardEngine = Depends(get_engine),
    today: Optional[date] = Depends(get_today),
) -> JSONResponse:
    """Run the two-call submission; the result is never retried automatically."""
    result: SubmissionResult = await engine.submit(session, body.terms_accepted, today=today)
    status_code = 422 if result.error_kind == FailureKind.VALIDATION else 200
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.delete("/sessions/{session_id}")
async def cancel_booking(
    session: BookingSession = Depends(get_session),
    engine: WizardEngine = Depends(get_engine),
) -> SessionResponse:
    """Cancel: reset the draft. Always allowed, even mid-submission."""
    if session.orchestrator.is_submitting:
        logger.warning("booking_cancelled_mid_submission", session_id=session.session_id)
    await engine.reset(session)
    return _session_response(session)


@router.get("/sessions/{session_id}/confirmation.ics")
async def download_calendar(session: BookingSession = Depends(get_session)) -> Response:
    confirmation = session.store.confirmation
    if confirmation is None:
        raise HTTPException(status_code=404, detail="No confirmed booking in this session")

    return Response(
        content=build_ics(confirmation),
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="{ics_filename(confirmation)}"'},
    )

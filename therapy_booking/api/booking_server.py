"""
Booking API Server.

A FastAPI application exposing the therapist catalog, slot derivation,
booking and the internal virtual-session route. Each booking request runs
a BookingStateMachine in this process; the sessions it confirms are
reachable here by meeting id.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from therapy_booking.config import Settings, get_settings
from therapy_booking.exceptions import (
    BookingEngineError,
    InvalidInstrument,
    MalformedAvailability,
    MissingTherapistContext,
    PaymentInProgress,
    SlotUnavailable,
)
from therapy_booking.models.booking import Booking
from therapy_booking.models.payment import PaymentInstrument
from therapy_booking.models.session import SessionState
from therapy_booking.models.therapist import SearchCriteria, Therapist
from therapy_booking.services.booking import BookingStateMachine
from therapy_booking.services.directory import get_directory
from therapy_booking.services.session import SessionLifecycle, get_session_registry
from therapy_booking.services.slots import derive_slots

# ============================================================================
# Response Models
# ============================================================================


class SearchResponse(BaseModel):
    """Response model for therapist searches."""

    therapists: List[Therapist]
    total: int
    criteria: SearchCriteria
    summary: str


class FiltersResponse(BaseModel):
    """Filter choices computed over the whole catalog."""

    specialties: List[str]
    days: List[str]


class SlotsResponse(BaseModel):
    """Bookable slots for one therapist on one day."""

    therapist_id: str
    day: str
    slots: List[str]


class BookingRequest(BaseModel):
    """Request to book and pay for a slot."""

    therapist_id: str
    day: Optional[str] = Field(default=None, description="Day (defaults to the first listed)")
    slot: str = Field(description="Slot label, e.g. 10:00 AM")
    client_email: Optional[str] = Field(default=None, description="Where to send meeting details")
    payment: PaymentInstrument


class BookingResponse(BaseModel):
    """A confirmed booking and its session state."""

    booking: Booking
    confirmation_message: str
    session: SessionState


# ============================================================================
# FastAPI Application
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Booking API Server")
    get_directory()
    yield
    # Shutdown
    logger.info("Shutting down Booking API Server")
    get_session_registry().teardown_all()


app = FastAPI(
    title="Therapist Booking API",
    description="Therapist search, slot lookup, booking and virtual session state",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_therapist_or_404(therapist_id: str) -> Therapist:
    therapist = get_directory().get(therapist_id)
    if therapist is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Therapist not found",
        )
    return therapist


def _get_session_or_404(meeting_id: str) -> SessionLifecycle:
    session = get_session_registry().get(meeting_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return session


def get_booking_machine(settings: Settings = Depends(get_settings)) -> BookingStateMachine:
    """A fresh booking machine per request, wired to the process-wide services."""
    return BookingStateMachine(settings=settings)


_BOOKING_ERROR_STATUS = {
    MissingTherapistContext: status.HTTP_404_NOT_FOUND,
    SlotUnavailable: status.HTTP_409_CONFLICT,
    PaymentInProgress: status.HTTP_409_CONFLICT,
    InvalidInstrument: status.HTTP_400_BAD_REQUEST,
}


def _booking_http_error(error: BookingEngineError) -> HTTPException:
    status_code = next(
        (code for cls, code in _BOOKING_ERROR_STATUS.items() if isinstance(error, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    return HTTPException(status_code=status_code, detail=error.to_dict())


# ============================================================================
# API Endpoints
# ============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/api/v1/therapists", response_model=SearchResponse)
async def search_therapists(
    specialty: Optional[str] = Query(default=None, description="Filter by specialty"),
    day: Optional[str] = Query(default=None, description="Filter by available day"),
):
    """
    Search the catalog.

    An empty result is a normal response; its summary echoes the filters.
    """
    result = get_directory().search(specialty=specialty, day=day)
    return SearchResponse(
        therapists=result.therapists,
        total=len(result.therapists),
        criteria=result.criteria,
        summary=result.summary,
    )


@app.get("/api/v1/therapists/filters", response_model=FiltersResponse)
async def list_filters():
    """List specialty and day choices for the search form."""
    directory = get_directory()
    return FiltersResponse(
        specialties=directory.distinct_specialties(),
        days=directory.distinct_availability_days(),
    )


@app.get("/api/v1/therapists/{therapist_id}", response_model=Therapist)
async def get_therapist(therapist_id: str):
    """Get a specific therapist by ID."""
    return _get_therapist_or_404(therapist_id)


@app.get("/api/v1/therapists/{therapist_id}/slots", response_model=SlotsResponse)
async def get_slots(
    therapist_id: str,
    day: Optional[str] = Query(default=None, description="Day (defaults to the first listed)"),
):
    """Get bookable slots for a therapist on a day."""
    therapist = _get_therapist_or_404(therapist_id)
    day = day or therapist.first_available_day
    if day is None or day not in therapist.availability:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Therapist is not available on {day}",
        )

    try:
        slots = derive_slots(therapist.availability[day])
    except MalformedAvailability as e:
        raise HTTPException(
            status_code=422,
            detail=e.to_dict(),
        )

    return SlotsResponse(therapist_id=therapist.id, day=day, slots=slots)


@app.post(
    "/api/v1/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    request: BookingRequest,
    machine: BookingStateMachine = Depends(get_booking_machine),
):
    """
    Book a slot and pay for it in one call.

    On success the session is registered here and reachable through the
    returned session link (internal mode) or the session endpoints.
    """
    machine.client_email = request.client_email
    try:
        machine.search()
        machine.select_therapist(request.therapist_id)
        if request.day:
            machine.choose_day(request.day)
        machine.choose_slot(request.slot)
        machine.proceed_to_payment()
        booking = await machine.submit_payment(request.payment)
    except BookingEngineError as e:
        logger.warning(f"Booking request failed: {e.message}")
        raise _booking_http_error(e)

    return BookingResponse(
        booking=booking,
        confirmation_message=booking.confirmation_message,
        session=machine.session.snapshot(),
    )


@app.get("/api/v1/sessions/{meeting_id}", response_model=SessionState)
async def get_session(meeting_id: str):
    """Get the current state of a virtual session."""
    return _get_session_or_404(meeting_id).snapshot()


@app.post("/api/v1/sessions/{meeting_id}/mute", response_model=SessionState)
async def toggle_mute(meeting_id: str):
    """Toggle the local mute flag."""
    session = _get_session_or_404(meeting_id)
    session.toggle_mute()
    return session.snapshot()


@app.post("/api/v1/sessions/{meeting_id}/video", response_model=SessionState)
async def toggle_video(meeting_id: str):
    """Toggle the local video-off flag."""
    session = _get_session_or_404(meeting_id)
    session.toggle_video()
    return session.snapshot()


@app.post("/api/v1/sessions/{meeting_id}/end", response_model=SessionState)
async def end_session(meeting_id: str):
    """
    End a session. The client is expected to have confirmed first.

    The ended session is dropped; later requests for it return 404.
    """
    return _get_session_or_404(meeting_id).end()


# ============================================================================
# Run Server
# ============================================================================


def run_server(host: str = "0.0.0.0", port: int = 8080):
    """Run the booking API server."""
    import uvicorn

    # A single worker: sessions live in this process's registry.
    uvicorn.run(
        "therapy_booking.api.booking_server:app",
        host=host,
        port=port,
        reload=False,
        workers=1,
    )


if __name__ == "__main__":
    run_server()

"""
FastAPI application exposing the reconciliation engine to the dashboard.
"""

import asyncio
import threading
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import structlog

from .config import get_settings
from .exceptions import ReconciliationError
from .models import EntryKind, LedgerEntry, Match, MatchWindow, utc_now
from .reconciliation import ReconciliationService, build_service

logger = structlog.get_logger()

_service: Optional[ReconciliationService] = None
_service_lock = threading.Lock()


def get_service() -> ReconciliationService:
    """Lazily build the process-wide service (one ledger, one lock)."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = build_service(get_settings())
    return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting Reconciliation API", env=settings.app_env)
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.reports_dir.mkdir(parents=True, exist_ok=True)
    yield
    logger.info("Shutting down Reconciliation API")


app = FastAPI(
    title="Ledger Reconciliation Engine",
    description="Matches bank transactions with invoices and transfers",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class AutoReconcileRequest(BaseModel):
    max_date_delta_days: Optional[int] = None
    max_amount_delta_ratio: Optional[float] = None
    auto_confirm_threshold: Optional[float] = None


class ManualMatchRequest(BaseModel):
    entry_ids: List[str] = Field(min_length=2)


class MatchResponse(BaseModel):
    id: str
    entry_ids: List[str]
    confidence: float
    origin: str
    created_at: datetime
    reversed_at: Optional[datetime]
    is_active: bool


class EntryResponse(BaseModel):
    id: str
    kind: str
    date: date
    amount_cents: int
    amount: float
    currency: str
    description: str
    reconciled: bool
    account_id: Optional[str]
    reference: Optional[str]
    counterparty: Optional[str]
    status: Optional[str] = None


class CandidateResponse(BaseModel):
    source_id: str
    target_id: str
    score: float
    date_delta_days: int
    amount_delta_cents: int


class SummaryResponse(BaseModel):
    pass_id: str
    confirmed: int
    suggested: int
    still_unmatched: int
    matches: List[MatchResponse]
    suggestions: List[CandidateResponse]
    unmatched_ids: List[str]
    conflicts: List[str]
    cancelled: bool
    processing_time_seconds: float


def _match_response(match: Match) -> MatchResponse:
    return MatchResponse(**match.to_dict())


def _entry_response(entry: LedgerEntry) -> EntryResponse:
    return EntryResponse(**entry.to_dict())


def _http_error(error: ReconciliationError) -> HTTPException:
    logger.warning(
        "Reconciliation request failed",
        error=error.message,
        error_type=type(error).__name__,
    )
    return HTTPException(status_code=error.status_code, detail=error.message)


# API Endpoints
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": utc_now().isoformat()}


@app.post("/api/reconciliation/auto", response_model=SummaryResponse)
async def run_auto_reconcile(
    request: Optional[AutoReconcileRequest] = None,
    service: ReconciliationService = Depends(get_service),
):
    """Run one auto-reconcile pass and return its summary."""
    request = request or AutoReconcileRequest()
    defaults = service.settings
    window = MatchWindow(
        max_date_delta_days=(
            request.max_date_delta_days
            if request.max_date_delta_days is not None
            else defaults.max_date_delta_days
        ),
        max_amount_delta_ratio=(
            request.max_amount_delta_ratio
            if request.max_amount_delta_ratio is not None
            else defaults.max_amount_delta_ratio
        ),
    )

    try:
        summary = await asyncio.to_thread(
            service.run_auto_reconcile,
            window,
            request.auto_confirm_threshold,
        )
    except ReconciliationError as e:
        raise _http_error(e)

    return SummaryResponse(**summary.to_dict())


@app.get("/api/reconciliation/unreconciled", response_model=List[EntryResponse])
async def list_unreconciled(
    kind: Optional[EntryKind] = Query(default=None),
    as_of: Optional[date] = Query(default=None),
    service: ReconciliationService = Depends(get_service),
):
    """Entries not bound to an active match."""
    try:
        entries = await asyncio.to_thread(service.unreconciled_entries, kind, as_of)
    except ReconciliationError as e:
        raise _http_error(e)
    return [_entry_response(e) for e in entries]


@app.post("/api/reconciliation/matches", response_model=MatchResponse, status_code=201)
async def confirm_manual_match(
    request: ManualMatchRequest,
    service: ReconciliationService = Depends(get_service),
):
    """Manually match a set of entries."""
    try:
        match = await asyncio.to_thread(service.confirm_manual_match, request.entry_ids)
    except ReconciliationError as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(422, str(e))
    return _match_response(match)


@app.get("/api/reconciliation/matches/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: str,
    service: ReconciliationService = Depends(get_service),
):
    """Get a match, active or reversed."""
    try:
        match = await asyncio.to_thread(service.get_match, match_id)
    except ReconciliationError as e:
        raise _http_error(e)
    return _match_response(match)


@app.post("/api/reconciliation/matches/{match_id}/reverse", response_model=MatchResponse)
async def reverse_match(
    match_id: str,
    service: ReconciliationService = Depends(get_service),
):
    """Reverse a match; its entries become unreconciled again."""
    try:
        match = await asyncio.to_thread(service.reverse_match, match_id)
    except ReconciliationError as e:
        raise _http_error(e)
    return _match_response(match)


@app.get("/api/reconciliation/entries/{entry_id}/match", response_model=Optional[MatchResponse])
async def get_entry_match(
    entry_id: str,
    service: ReconciliationService = Depends(get_service),
):
    """The active match of an entry, or null."""
    try:
        match = await asyncio.to_thread(service.active_match, entry_id)
    except ReconciliationError as e:
        raise _http_error(e)
    return _match_response(match) if match else None

"""
veritas.main – FastAPI application entry point.

Builds the shared stores, the analysis gateway client and the per-user
scanner registry, and registers all API routes.

Start the server:
    uvicorn veritas.main:app --reload --port 8000
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Literal

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from veritas.ai.gateway import (
    AnalysisError,
    AnalysisRequest,
    AnalysisResult,
    ContentAnalyzer,
    MalformedAnalysis,
)
from veritas.auth import (
    CurrentUser,
    SessionRegistry,
    request_logging_middleware,
    require_admin,
    require_user,
)
from veritas.config import VeritasSettings, get_settings
from veritas.db.accounts import AccountStatus, FakeAccount, FakeAccountStore
from veritas.db.database import RecordNotFound, ScanRecord, ScanStore
from veritas.db.preferences import PreferenceStore, Preferences
from veritas.monitor.catalogue import load_catalogue
from veritas.monitor.controller import CardSnapshot
from veritas.monitor.registry import ScannerRegistry
from veritas.monitor.status import DisplayItem
from veritas.notify.realtime import ScanNotifier, alert_payload, alert_stream, format_sse

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Service container
# ---------------------------------------------------------------------------

@dataclass
class Services:
    settings:    VeritasSettings
    sessions:    SessionRegistry
    items:       list[DisplayItem]
    analyzer:    ContentAnalyzer
    store:       ScanStore
    accounts:    FakeAccountStore
    preferences: PreferenceStore
    notifier:    ScanNotifier
    registry:    ScannerRegistry


def build_services(
    settings: VeritasSettings, analyzer: ContentAnalyzer | None = None
) -> Services:
    items = load_catalogue(settings.catalogue_path)
    analyzer = analyzer or ContentAnalyzer.from_settings(settings)
    store = ScanStore(max_records=settings.max_history)
    notifier = ScanNotifier()
    store.add_listener(notifier.publish)
    preferences = PreferenceStore(Preferences(dwell_seconds=settings.dwell_threshold_seconds))
    registry = ScannerRegistry(
        items, analyzer, store, preferences, default_platform=settings.default_platform
    )
    return Services(
        settings=settings,
        sessions=SessionRegistry(),
        items=items,
        analyzer=analyzer,
        store=store,
        accounts=FakeAccountStore(),
        preferences=preferences,
        notifier=notifier,
        registry=registry,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def _sync_alert_feed(services: Services, user_id: str, prefs: Preferences) -> None:
    """End the user's open alert streams once notifications or monitoring are off."""
    if not (prefs.notifications_enabled and prefs.monitoring_active):
        services.notifier.close_owner(user_id)


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class SessionRequest(BaseModel):
    user_id: str = Field(min_length=1, description="User id asserted by the auth provider")


class SessionResponse(BaseModel):
    token:    str
    user_id:  str
    is_admin: bool


class MeResponse(BaseModel):
    user_id:     str
    is_admin:    bool
    preferences: Preferences


class PreferencesUpdate(BaseModel):
    monitoring_active:     bool | None = None
    notifications_enabled: bool | None = None
    alert_sound:           bool | None = None
    auto_scan:             bool | None = None
    dwell_seconds:         float | None = Field(default=None, ge=1, le=10)


class MonitoringRequest(BaseModel):
    enabled: bool


class PresenceRequest(BaseModel):
    present: bool = Field(description="True on pointer enter / touch start, False on leave / end")


class ScannerResponse(BaseModel):
    monitoring: bool
    items:      list[CardSnapshot]


class HistoryResponse(BaseModel):
    records: list[ScanRecord]
    total:   int


class AdminStats(BaseModel):
    total_scans:         int
    alerts_count:        int
    verified_count:      int
    fake_accounts_count: int
    pending_reports:     int


class ReportRequest(BaseModel):
    username: str = Field(min_length=1)
    platform: str | None = None
    reason:   str = Field(min_length=1)
    evidence: str | None = None


class AccountStatusUpdate(BaseModel):
    status: Literal["confirmed", "dismissed"]


StatusFilter = Literal["all", "verified", "alert", "unverified"]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

router = APIRouter(prefix="/api")


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/content", response_model=list[DisplayItem])
async def content(services: Services = Depends(get_services)) -> list[DisplayItem]:
    """The content catalogue offered to the scanner."""
    return services.items


# --- Session -----------------------------------------------------------------

@router.post("/auth/session", response_model=SessionResponse)
async def open_session(
    payload: SessionRequest, services: Services = Depends(get_services)
) -> SessionResponse:
    """Exchange an identity confirmed by the auth provider for a bearer token."""
    token = services.sessions.open(payload.user_id)
    return SessionResponse(
        token=token,
        user_id=payload.user_id,
        is_admin=payload.user_id in services.settings.admin_ids,
    )


@router.delete("/auth/session", status_code=204)
async def close_session(
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> Response:
    """Sign out and tear down the user's scanner session."""
    if user.token is not None:
        services.sessions.close(user.token)
    await services.registry.stop(user.user_id)
    services.notifier.close_owner(user.user_id)
    return Response(status_code=204)


@router.get("/me", response_model=MeResponse)
async def me(
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> MeResponse:
    return MeResponse(
        user_id=user.user_id,
        is_admin=user.is_admin,
        preferences=await services.preferences.load(user.user_id),
    )


# --- Preferences -------------------------------------------------------------

@router.get("/preferences", response_model=Preferences)
async def get_preferences(
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> Preferences:
    return await services.preferences.load(user.user_id)


@router.put("/preferences", response_model=Preferences)
async def update_preferences(
    payload: PreferencesUpdate,
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> Preferences:
    """
    Partially update preferences.

    ``monitoring_active`` is applied to a running scanner immediately; a new
    ``dwell_seconds`` takes effect from the next scanner session.
    """
    changes = payload.model_dump(exclude_none=True)
    monitoring = changes.pop("monitoring_active", None)
    if monitoring is not None and services.registry.active(user.user_id):
        await services.registry.set_monitoring(user.user_id, monitoring)
    elif monitoring is not None:
        changes["monitoring_active"] = monitoring
    prefs = await services.preferences.update(user.user_id, **changes)
    _sync_alert_feed(services, user.user_id, prefs)
    return prefs


# --- Scanner -----------------------------------------------------------------

@router.get("/scanner/items", response_model=ScannerResponse)
async def scanner_items(
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> ScannerResponse:
    """Current status, dwell progress and display view of every card."""
    controller = await services.registry.get(user.user_id)
    return ScannerResponse(monitoring=controller.monitoring, items=controller.snapshot())


@router.put("/scanner/monitoring", response_model=ScannerResponse)
async def scanner_monitoring(
    payload: MonitoringRequest,
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> ScannerResponse:
    """Turn protection on or off.  Turning it off clears all card results."""
    controller = await services.registry.set_monitoring(user.user_id, payload.enabled)
    _sync_alert_feed(services, user.user_id, await services.preferences.load(user.user_id))
    return ScannerResponse(monitoring=controller.monitoring, items=controller.snapshot())


@router.post("/scanner/items/{item_id}/presence", response_model=CardSnapshot)
async def scanner_presence(
    item_id: str,
    payload: PresenceRequest,
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> CardSnapshot:
    """Report pointer/touch presence over one card."""
    controller = await services.registry.get(user.user_id)
    try:
        controller.set_presence(item_id, payload.present)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Content item not found") from exc
    return next(s for s in controller.snapshot() if s.item.id == item_id)


@router.post("/scanner/reset", response_model=ScannerResponse)
async def scanner_reset(
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> ScannerResponse:
    controller = await services.registry.get(user.user_id)
    controller.reset_all()
    return ScannerResponse(monitoring=controller.monitoring, items=controller.snapshot())


# --- Analysis ----------------------------------------------------------------

@router.post("/analyze", response_model=AnalysisResult)
async def analyze(
    payload: AnalysisRequest,
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> AnalysisResult:
    """
    Ask the analysis gateway about one creator.

    An unreadable model answer yields a neutral ``unverified`` result; gateway
    rate limiting (429) and exhausted credits (402) are passed through.
    """
    try:
        return await services.analyzer.analyze(payload)
    except MalformedAnalysis as exc:
        logger.error("Failed to parse AI response: %s", exc)
        return AnalysisResult.incomplete()
    except AnalysisError as exc:
        logger.error("Error in analyze-content: %s", exc)
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


# --- History -----------------------------------------------------------------

@router.get("/history", response_model=HistoryResponse)
async def history(
    status: StatusFilter = "all",
    search: str | None = None,
    limit: int | None = None,
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> HistoryResponse:
    """The caller's scan records, newest first."""
    records, total = await services.store.query(
        owner_id=user.user_id,
        status=status,
        search=search,
        limit=limit or services.settings.history_page_limit,
    )
    return HistoryResponse(records=records, total=total)


@router.delete("/history/{record_id}", status_code=204)
async def delete_history(
    record_id: str,
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> Response:
    try:
        await services.store.delete(record_id, owner_id=user.user_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Failed to delete scan") from exc
    return Response(status_code=204)


# --- Notifications -----------------------------------------------------------

@router.get("/notifications/stream")
async def notifications_stream(
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> StreamingResponse:
    """
    Server-Sent Events feed of the caller's new ``alert`` scans.

    Only available while both notifications and monitoring are switched on.
    """
    prefs = await services.preferences.load(user.user_id)
    if not (prefs.notifications_enabled and prefs.monitoring_active):
        raise HTTPException(status_code=409, detail="Notifications are disabled")

    subscription = services.notifier.subscribe(user.user_id)

    async def events():
        async with subscription:
            yield format_sse("ready", {"user_id": user.user_id})
            async for record in alert_stream(subscription):
                yield format_sse("alert", alert_payload(record))

    return StreamingResponse(events(), media_type="text/event-stream")


@router.post("/reports", response_model=FakeAccount, status_code=201)
async def report_account(
    payload: ReportRequest,
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
) -> FakeAccount:
    """Report a suspected fake account for admin review."""
    return await services.accounts.report(
        payload.username, payload.reason, platform=payload.platform, evidence=payload.evidence
    )


# --- Admin -------------------------------------------------------------------

@router.get("/admin/scans", response_model=HistoryResponse)
async def admin_scans(
    status: StatusFilter = "all",
    search: str | None = None,
    _: CurrentUser = Depends(require_admin),
    services: Services = Depends(get_services),
) -> HistoryResponse:
    records, total = await services.store.query(
        status=status, search=search, limit=services.settings.admin_page_limit
    )
    return HistoryResponse(records=records, total=total)


@router.get("/admin/stats", response_model=AdminStats)
async def admin_stats(
    _: CurrentUser = Depends(require_admin),
    services: Services = Depends(get_services),
) -> AdminStats:
    counts = await services.store.counts_by_status()
    accounts = await services.accounts.list()
    return AdminStats(
        total_scans=sum(counts.values()),
        alerts_count=counts["alert"],
        verified_count=counts["verified"],
        fake_accounts_count=sum(1 for a in accounts if a.status == "confirmed"),
        pending_reports=sum(1 for a in accounts if a.status == "pending"),
    )


@router.get("/admin/accounts", response_model=list[FakeAccount])
async def admin_accounts(
    status: Literal["all", "pending", "confirmed", "dismissed"] = "all",
    search: str | None = None,
    _: CurrentUser = Depends(require_admin),
    services: Services = Depends(get_services),
) -> list[FakeAccount]:
    return await services.accounts.list(status=status, search=search)


@router.post("/admin/accounts", response_model=FakeAccount, status_code=201)
async def admin_add_account(
    payload: ReportRequest,
    _: CurrentUser = Depends(require_admin),
    services: Services = Depends(get_services),
) -> FakeAccount:
    return await services.accounts.report(
        payload.username, payload.reason, platform=payload.platform, evidence=payload.evidence
    )


@router.patch("/admin/accounts/{account_id}", response_model=FakeAccount)
async def admin_update_account(
    account_id: str,
    payload: AccountStatusUpdate,
    _: CurrentUser = Depends(require_admin),
    services: Services = Depends(get_services),
) -> FakeAccount:
    status: AccountStatus = payload.status
    try:
        return await services.accounts.set_status(account_id, status)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Failed to update status") from exc


@router.delete("/admin/accounts/{account_id}", status_code=204)
async def admin_delete_account(
    account_id: str,
    _: CurrentUser = Depends(require_admin),
    services: Services = Depends(get_services),
) -> Response:
    try:
        await services.accounts.delete(account_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="Failed to delete account") from exc
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    logger.info(
        "Veritas API starting - gateway=%s model=%s items=%d",
        services.settings.gateway_url, services.settings.gateway_model, len(services.items),
    )
    if not services.settings.gateway_api_key:
        logger.warning("VERITAS_GATEWAY_API_KEY is not set; every scan will come back unverified")
    yield
    await services.registry.close_all()
    logger.info("Veritas API shutdown - scanner sessions closed")


def create_app(
    settings: VeritasSettings | None = None,
    analyzer: ContentAnalyzer | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = settings or get_settings()
    services = build_services(settings, analyzer)

    app = FastAPI(
        title="Veritas – Content Verification API",
        version="1.0.0",
        description=(
            "Dwell-triggered verification of social media creators against a "
            "hosted analysis gateway, with scan history and admin review."
        ),
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.settings = settings
    app.state.sessions = services.sessions

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_logging_middleware)
    app.include_router(router)
    return app


app = create_app()

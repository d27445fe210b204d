# site_sentinel/api/endpoints.py
import asyncio
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from ..config import settings
from ..errors import (
    AnalysisError, AuthenticationError, InsufficientFundsError, InvalidTransitionError,
    PlanError, RecoveryError, SentinelError, SiteLimitError, SiteNotFoundError,
    SiteValidationError
)
from ..models import (
    CheckoutRequest, LoginRequest, ProfileUpdateRequest, PublicProfile,
    RecoveryEmailRequest, RecoveryResetRequest, RecoveryTokenRequest, ReportRequest,
    SiteCreateRequest, SiteSettingsRequest, TimeRange, UserProfile
)
from ..services import auth, billing, remediation, sites
from ..services.analysis import perform_ai_analysis
from ..services.reporting import build_report_html, create_pdf_report
from ..services.telemetry import generate_chart_data, mock_security_events, security_overview
from ..state import app_state
from ..storage import persist_state
from .websocket import manager

logger = logging.getLogger("Runner." + __name__)
router = APIRouter()


# --- Dependencies ---


def require_session() -> UserProfile:
    if not app_state.session_active:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return auth.current_user()


def require_plan(allowed_plans: List[str], feature: str):
    def dependency(user: UserProfile = Depends(require_session)) -> UserProfile:
        if not billing.has_feature_access(user, allowed_plans):
            raise HTTPException(
                status_code=403, detail=f"{feature} requires one of the plans: {', '.join(allowed_plans)}.")
        return user
    return dependency


def public_profile(user: UserProfile) -> dict:
    return PublicProfile(**user.model_dump()).model_dump()


def get_site_or_404(site_id: str):
    try:
        return sites.get_site_or_raise(site_id)
    except SiteNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# --- WebSocket Endpoint ---


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect as e:
        logger.info(
            f"WS client disconnected: {websocket.client} code={e.code}")
    except Exception as e:
        logger.error(f"WS error {websocket.client}: {e}", exc_info=False)
    finally:
        manager.disconnect(websocket)


# --- Authentication ---


@router.post("/auth/login", summary="Open a session with the stored credentials")
async def login_endpoint(body: LoginRequest):
    try:
        user = auth.login(body.email, body.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return {"status": "authenticated", "user": public_profile(user)}


@router.post("/auth/logout", summary="Close the current session")
async def logout_endpoint():
    auth.logout()
    return {"status": "logged_out"}


@router.get("/auth/session", summary="Report whether a session is active")
async def session_endpoint():
    return {"authenticated": app_state.session_active}


@router.post("/auth/recovery/request", summary="Start password recovery")
async def recovery_request_endpoint(body: RecoveryEmailRequest):
    try:
        auth.request_reset(body.email)
    except RecoveryError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"step": app_state.recovery_step}


@router.post("/auth/recovery/verify", summary="Validate the reset token")
async def recovery_verify_endpoint(body: RecoveryTokenRequest):
    try:
        auth.verify_reset_token(body.otp)
    except RecoveryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"step": app_state.recovery_step}


@router.post("/auth/recovery/reset", summary="Set a new password")
async def recovery_reset_endpoint(body: RecoveryResetRequest):
    try:
        auth.reset_password(body.new_password)
    except RecoveryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"step": "success", "message": "Neural Key Re-established. Access restored."}


# --- Sites ---


@router.get("/sites", summary="List monitored sites")
async def list_sites_endpoint(sort_by: str = "name", user: UserProfile = Depends(require_session)):
    try:
        ordered = sites.sort_sites(app_state.sites, sort_by)
    except SiteValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"sites": [s.model_dump() for s in ordered]}


@router.get("/sites/groups", summary="Group monitored sites")
async def group_sites_endpoint(by: str = "domain", user: UserProfile = Depends(require_session)):
    try:
        groups = sites.group_sites(app_state.sites, by)
    except SiteValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"by": by, "groups": {k: [s.model_dump() for s in v] for k, v in groups.items()}}


@router.post("/sites", status_code=201, summary="Add a site to the dashboard")
async def add_site_endpoint(body: SiteCreateRequest, user: UserProfile = Depends(require_session)):
    try:
        site = sites.create_site(body.name, body.url, body.tags)
    except SiteValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SiteLimitError as e:
        raise HTTPException(status_code=403, detail=str(e))
    await manager.broadcast({"type": "site_added", "site": site.model_dump()})
    return site.model_dump()


@router.get("/sites/{site_id}", summary="Site details with breach status")
async def get_site_endpoint(site_id: str, user: UserProfile = Depends(require_session)):
    site = get_site_or_404(site_id)
    return {"site": site.model_dump(), "breaches": sites.detect_breaches(site),
            "scan_in_progress": site_id in app_state.scans_in_progress}


@router.patch("/sites/{site_id}/settings", summary="Update alert thresholds and SLA")
async def update_site_settings_endpoint(site_id: str, body: SiteSettingsRequest,
                                        user: UserProfile = Depends(require_session)):
    get_site_or_404(site_id)
    site = sites.update_site_settings(site_id, body.thresholds, body.uptime_sla)
    return {"site": site.model_dump(), "breaches": sites.detect_breaches(site)}


@router.delete("/sites/{site_id}", summary="Remove a site from the dashboard")
async def remove_site_endpoint(site_id: str, user: UserProfile = Depends(require_session)):
    get_site_or_404(site_id)
    await remediation.cancel_site_tasks(site_id)
    site = sites.remove_site(site_id)
    await manager.broadcast({"type": "site_removed", "site_id": site_id})
    return {"status": "removed", "id": site.id}


@router.get("/sites/{site_id}/metrics", summary="Mock performance history")
async def site_metrics_endpoint(site_id: str, time_range: TimeRange = Query(TimeRange.DAILY, alias="range"),
                                user: UserProfile = Depends(require_session)):
    site = get_site_or_404(site_id)
    return {"site_id": site_id, "range": time_range.value, "points": generate_chart_data(site, time_range)}


@router.get("/stats", summary="Dashboard overview")
async def stats_endpoint(user: UserProfile = Depends(require_session)):
    return sites.stats_overview(app_state.sites)


# --- Security ---


@router.get("/security/events", summary="Security events log")
async def security_events_endpoint(user: UserProfile = Depends(require_session)):
    return {"events": [e.model_dump() for e in mock_security_events()]}


@router.get("/security/overview", summary="Threat surveillance summary")
async def security_overview_endpoint(user: UserProfile = Depends(require_session)):
    return {"cards": security_overview()}


@router.post("/sites/{site_id}/scan", summary="Run an AI vulnerability analysis")
async def scan_site_endpoint(site_id: str,
                             user: UserProfile = Depends(require_plan(settings.SCAN_PLANS, "Vulnerability scanning"))):
    site = get_site_or_404(site_id)
    if site_id in app_state.scans_in_progress:
        raise HTTPException(status_code=409, detail="A scan is already running for this site.")
    if not app_state.http_client:
        raise HTTPException(status_code=503, detail="HTTP Client not available.")

    app_state.scans_in_progress.add(site_id)
    await remediation.cancel_site_tasks(site_id)
    app_state.analyses.pop(site_id, None)
    try:
        analysis = await perform_ai_analysis(app_state.http_client, site.url)
    except AnalysisError as e:
        logger.error(f"AI analysis failed for {site.url}: {e}")
        raise HTTPException(status_code=502, detail=f"AI analysis failed: {e}")
    finally:
        app_state.scans_in_progress.discard(site_id)

    # The site may have been removed while the request was in flight
    if app_state.get_site(site_id) is None:
        raise HTTPException(status_code=404, detail="Site was removed during the scan.")
    app_state.analyses[site_id] = analysis
    return analysis.model_dump(mode="json")


@router.get("/sites/{site_id}/analysis", summary="Latest AI analysis for a site")
async def get_analysis_endpoint(site_id: str, user: UserProfile = Depends(require_session)):
    get_site_or_404(site_id)
    analysis = app_state.analyses.get(site_id)
    if analysis is None:
        raise HTTPException(status_code=404, detail="No analysis available. Run a scan first.")
    unfixed = sum(1 for v in analysis.vulnerabilities if v.status.value == "detected")
    return {**analysis.model_dump(mode="json"), "unfixed_count": unfixed,
            "fix_all_in_progress": site_id in app_state.fix_all_in_progress}


@router.post("/sites/{site_id}/vulnerabilities/{vuln_id}/fix", status_code=202,
             summary="Start remediation of one vulnerability")
async def fix_vulnerability_endpoint(site_id: str, vuln_id: str,
                                     user: UserProfile = Depends(require_session)):
    get_site_or_404(site_id)
    try:
        await remediation.start_fix(site_id, vuln_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SentinelError as e:
        raise HTTPException(status_code=404, detail=str(e))
    vuln = remediation.get_vulnerability(site_id, vuln_id)
    return vuln.model_dump(mode="json")


@router.post("/sites/{site_id}/vulnerabilities/fix-all", status_code=202,
             summary="Remediate every detected vulnerability in sequence")
async def fix_all_endpoint(site_id: str, user: UserProfile = Depends(require_session)):
    get_site_or_404(site_id)
    try:
        remediation.start_fix_all(site_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SentinelError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "fix_all_started", "site_id": site_id}


# --- Billing ---


@router.get("/plans", summary="Subscription plans and payment methods")
async def plans_endpoint():
    return {"plans": [p.model_dump() for p in billing.plan_catalogue()],
            "payment_methods": billing.PAYMENT_METHODS}


@router.post("/billing/checkout", summary="Simulate a plan purchase")
async def checkout_endpoint(body: CheckoutRequest, user: UserProfile = Depends(require_session)):
    try:
        user = billing.complete_payment(user, body.plan, body.method)
    except InsufficientFundsError as e:
        raise HTTPException(status_code=402, detail=str(e))
    except PlanError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"status": "completed", "user": public_profile(user)}


# --- Account ---


@router.get("/account", summary="Profile and site inventory")
async def account_endpoint(user: UserProfile = Depends(require_session)):
    return {"user": public_profile(user), "sites": [s.model_dump() for s in app_state.sites]}


@router.patch("/account/profile", summary="Update profile details")
async def update_profile_endpoint(body: ProfileUpdateRequest, user: UserProfile = Depends(require_session)):
    if body.name is not None:
        user.name = body.name.strip()
    if body.address is not None:
        user.address = body.address.strip()
    persist_state()
    return {"user": public_profile(user)}


# --- Reports ---


def _selected_sites(site_ids: List[str]):
    selected = [s for s in app_state.sites if s.id in site_ids]
    if not selected:
        raise HTTPException(status_code=400, detail="Select at least one property.")
    return selected


@router.post("/reports/print", response_class=HTMLResponse, summary="Print view of a batch report")
async def print_report_endpoint(body: ReportRequest,
                                user: UserProfile = Depends(require_plan(settings.REPORT_PLANS, "Batch reports"))):
    selected = _selected_sites(body.site_ids)
    return HTMLResponse(build_report_html(selected, body.time_range, app_state.analyses))


@router.post("/reports/pdf", summary="Download a batch report as PDF")
async def pdf_report_endpoint(body: ReportRequest,
                              user: UserProfile = Depends(require_plan(settings.REPORT_PLANS, "Batch reports"))):
    selected = _selected_sites(body.site_ids)
    html_content = build_report_html(selected, body.time_range, app_state.analyses)
    pdf_bytes = await asyncio.to_thread(create_pdf_report, html_content)
    headers = {
        'Content-Disposition': f'attachment; filename="Sentinel_Report_{datetime.now().strftime("%Y%m%d_%H%M")}.pdf"'}
    return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)


@router.get("/sites/{site_id}/audit", response_class=HTMLResponse, summary="Print view of one site's audit")
async def site_audit_endpoint(site_id: str, time_range: TimeRange = Query(TimeRange.DAILY, alias="range"),
                              user: UserProfile = Depends(require_session)):
    site = get_site_or_404(site_id)
    return HTMLResponse(build_report_html([site], time_range, app_state.analyses))

# site_sentinel/services/remediation.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import List

from ..api.websocket import manager
from ..config import settings
from ..errors import InvalidTransitionError, SentinelError
from ..models import Vulnerability, VulnerabilityStatus
from ..state import app_state

logger = logging.getLogger("Runner." + __name__)

ALLOWED_TRANSITIONS = {
    VulnerabilityStatus.DETECTED: VulnerabilityStatus.FIXING,
    VulnerabilityStatus.FIXING: VulnerabilityStatus.PATCHED,
}


def transition(vuln: Vulnerability, target: VulnerabilityStatus) -> Vulnerability:
    """Moves a vulnerability one step along detected -> fixing -> patched."""
    if ALLOWED_TRANSITIONS.get(vuln.status) != target:
        raise InvalidTransitionError(
            f"Vulnerability '{vuln.id}' cannot move from {vuln.status.value} to {target.value}.")
    vuln.status = target
    if target == VulnerabilityStatus.PATCHED:
        vuln.fixed_at = datetime.now(timezone.utc).isoformat()
    logger.info(f"Vulnerability '{vuln.id}' -> {target.value}")
    return vuln


def get_vulnerability(site_id: str, vuln_id: str) -> Vulnerability:
    analysis = app_state.analyses.get(site_id)
    if analysis is None:
        raise SentinelError(f"No analysis available for site '{site_id}'.")
    for vuln in analysis.vulnerabilities:
        if vuln.id == vuln_id:
            return vuln
    raise SentinelError(f"Vulnerability '{vuln_id}' not found.")


async def _broadcast(site_id: str, vuln: Vulnerability):
    await manager.broadcast({"type": "vulnerability_update", "site_id": site_id,
                             "vulnerability": vuln.model_dump(mode="json")})


def _track(site_id: str, task: asyncio.Task):
    tasks = app_state.remediation_tasks.setdefault(site_id, set())
    tasks.add(task)
    task.add_done_callback(tasks.discard)


async def _complete_fix(site_id: str, vuln: Vulnerability, delay: float):
    await asyncio.sleep(delay)
    transition(vuln, VulnerabilityStatus.PATCHED)
    await _broadcast(site_id, vuln)


async def start_fix(site_id: str, vuln_id: str) -> asyncio.Task:
    """Marks one vulnerability as fixing and schedules its patch after the fix delay."""
    vuln = get_vulnerability(site_id, vuln_id)
    transition(vuln, VulnerabilityStatus.FIXING)
    await _broadcast(site_id, vuln)
    task = asyncio.create_task(
        _complete_fix(site_id, vuln, settings.FIX_DELAY_SECONDS), name=f"fix_{site_id}_{vuln_id}")
    _track(site_id, task)
    return task


async def _fix_all_sequence(site_id: str, pending: List[Vulnerability]):
    try:
        for vuln in pending:
            # Fixed individually while the sequence was running
            if vuln.status != VulnerabilityStatus.DETECTED:
                continue
            transition(vuln, VulnerabilityStatus.FIXING)
            await _broadcast(site_id, vuln)
            await asyncio.sleep(settings.FIX_ALL_STEP_SECONDS)
            transition(vuln, VulnerabilityStatus.PATCHED)
            await _broadcast(site_id, vuln)
        logger.info(f"Fix-all finished for site {site_id}.")
    finally:
        app_state.fix_all_in_progress.discard(site_id)


def start_fix_all(site_id: str) -> asyncio.Task:
    """Drives every still-detected vulnerability through fixing to patched, one at a time."""
    if site_id in app_state.fix_all_in_progress:
        raise InvalidTransitionError("A fix-all sequence is already running for this site.")
    analysis = app_state.analyses.get(site_id)
    if analysis is None:
        raise SentinelError(f"No analysis available for site '{site_id}'.")
    pending = [v for v in analysis.vulnerabilities
               if v.status == VulnerabilityStatus.DETECTED]
    app_state.fix_all_in_progress.add(site_id)
    logger.info(f"Fix-all started for site {site_id}: {len(pending)} pending.")
    task = asyncio.create_task(
        _fix_all_sequence(site_id, pending), name=f"fix_all_{site_id}")
    _track(site_id, task)
    return task


async def cancel_site_tasks(site_id: str):
    """Cancels pending remediation work owned by a site."""
    tasks = app_state.remediation_tasks.pop(site_id, set())
    app_state.fix_all_in_progress.discard(site_id)
    pending = [t for t in tasks if not t.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
        logger.info(f"Cancelled {len(pending)} remediation task(s) for site {site_id}.")


async def cancel_all_tasks():
    site_ids = list(app_state.remediation_tasks.keys())
    await asyncio.gather(*(cancel_site_tasks(site_id) for site_id in site_ids))

# site_sentinel/services/sites.py
import logging
import re
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from operator import attrgetter
from typing import Dict, List, Optional
from urllib.parse import urlparse

from ..config import settings
from ..errors import SiteLimitError, SiteNotFoundError, SiteValidationError
from ..models import AlertThresholds, Site
from ..state import app_state

logger = logging.getLogger("Runner." + __name__)

SITE_NAME_PATTERN = re.compile(r'^[a-zA-Z0-9 ]+$')
STATUS_ORDER = {"online": 0, "warning": 1, "offline": 2}
SORT_OPTIONS = ("name", "uptime", "latency", "status")
GROUP_OPTIONS = ("domain", "status", "tag")
UNTAGGED = "untagged"


def validate_site_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise SiteValidationError("Property Name cannot be empty.")
    if not SITE_NAME_PATTERN.match(name):
        raise SiteValidationError(
            "Property Name must contain only alphanumeric characters and spaces.")
    return name


def normalize_url(url: str) -> str:
    url = url.strip()
    if not url:
        raise SiteValidationError("URL cannot be empty.")
    if '://' not in url:
        # "example.com" parses as a bare path, so look at the text itself
        host = url.split('/')[0]
        if not host:
            raise SiteValidationError(f"Invalid URL format: '{url}'.")
        is_local = host.startswith(("localhost", "127.0.0.1", "[::1]")) or re.match(
            r'^\d{1,3}(\.\d{1,3}){3}(:\d+)?$', host)
        url = ('http://' if is_local else 'https://') + url
    parsed_url = urlparse(url)
    if parsed_url.scheme not in ['http', 'https'] or not parsed_url.hostname:
        raise SiteValidationError(f"Invalid URL format: '{url}'.")
    return url


def parse_tags(raw: str) -> Optional[List[str]]:
    tags = [t.strip() for t in raw.split(',') if t.strip()]
    return tags or None


def seed_sites() -> List[Site]:
    now = datetime.now(timezone.utc).isoformat()
    return [
        Site(id="1", name="E-Commerce Store", url="https://myshop.com", status="online",
             uptime=99.98, response_time=245, last_checked=now, added_at="2023-10-01"),
        Site(id="2", name="Portfolio Site", url="https://johndoe.me", status="warning",
             uptime=98.5, response_time=850, last_checked=now, added_at="2023-11-15"),
    ]


def create_site(name: str, url: str, tags: str = "") -> Site:
    name = validate_site_name(name)
    url = normalize_url(url)
    user = app_state.user
    if user is not None and user.plan == "free" and len(app_state.sites) >= settings.FREE_PLAN_SITE_LIMIT:
        raise SiteLimitError(
            f"The free plan monitors up to {settings.FREE_PLAN_SITE_LIMIT} sites. Upgrade for unlimited sites.")
    now = datetime.now(timezone.utc)
    site = Site(
        id=uuid.uuid4().hex[:9],
        name=name,
        url=url,
        last_checked=now.isoformat(),
        added_at=now.date().isoformat(),
        tags=parse_tags(tags),
    )
    app_state.sites.insert(0, site)
    logger.info(f"Site added: {site.name} ({site.url})")
    return site


def get_site_or_raise(site_id: str) -> Site:
    site = app_state.get_site(site_id)
    if site is None:
        raise SiteNotFoundError(f"Site '{site_id}' not found.")
    return site


def update_site_settings(site_id: str, thresholds: Optional[AlertThresholds] = None,
                         uptime_sla: Optional[float] = None) -> Site:
    site = get_site_or_raise(site_id)
    if thresholds is not None:
        site.thresholds = thresholds
    if uptime_sla is not None:
        site.uptime_sla = uptime_sla
    logger.info(f"Settings updated for site {site.name}.")
    return site


def remove_site(site_id: str) -> Site:
    site = get_site_or_raise(site_id)
    app_state.sites = [s for s in app_state.sites if s.id != site_id]
    app_state.analyses.pop(site_id, None)
    logger.info(f"Site removed: {site.name}")
    return site


def sort_sites(sites: List[Site], by: str = "name") -> List[Site]:
    if by == "name":
        return sorted(sites, key=lambda s: s.name.casefold())
    if by == "uptime":
        return sorted(sites, key=lambda s: s.uptime, reverse=True)
    if by == "latency":
        return sorted(sites, key=lambda s: s.response_time)
    if by == "status":
        return sorted(sites, key=lambda s: STATUS_ORDER[s.status])
    raise SiteValidationError(
        f"Unknown sort option '{by}'. Expected one of: {', '.join(SORT_OPTIONS)}.")


def site_domain(site: Site) -> str:
    host = (urlparse(site.url).hostname or site.url).lower()
    return host[4:] if host.startswith("www.") else host


def first_tag(site: Site) -> str:
    return site.tags[0] if site.tags else UNTAGGED


def group_sites(sites: List[Site], by: str = "domain") -> Dict[str, List[Site]]:
    """Partitions sites into groups. A site with several tags is grouped under its first tag."""
    if by == "domain":
        key_fn = site_domain
    elif by == "status":
        key_fn = attrgetter("status")
    elif by == "tag":
        key_fn = first_tag
    else:
        raise SiteValidationError(
            f"Unknown group option '{by}'. Expected one of: {', '.join(GROUP_OPTIONS)}.")
    groups: Dict[str, List[Site]] = defaultdict(list)
    for site in sites:
        groups[key_fn(site)].append(site)
    return dict(groups)


def effective_thresholds(site: Site) -> AlertThresholds:
    return site.thresholds or AlertThresholds()


def detect_breaches(site: Site) -> dict:
    thresholds = effective_thresholds(site)
    sla = site.uptime_sla if site.uptime_sla is not None else settings.DEFAULT_UPTIME_SLA
    return {
        "latency_breach": site.response_time > thresholds.latency_ms,
        "sla_breach": site.uptime < sla,
        "thresholds": thresholds.model_dump(),
        "uptime_sla": sla,
    }


def stats_overview(sites: List[Site]) -> dict:
    count = len(sites) or 1
    return {
        "avg_uptime": round(sum(s.uptime for s in sites) / count, 2),
        "avg_response_time": round(sum(s.response_time for s in sites) / count),
        "security_alerts": sum(1 for s in sites if s.status in ("warning", "offline")),
        "active_properties": len(sites),
    }

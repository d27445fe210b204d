# site_sentinel/state.py
import asyncio
import threading
from typing import Optional, Dict, List, Set
from dataclasses import dataclass, field
import httpx

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .models import Site, AIAnalysis, UserProfile


@dataclass
class AppState:
    sites: List['Site'] = field(default_factory=list)
    session_active: bool = False
    user: Optional['UserProfile'] = None

    # Password recovery progress: "email" -> "otp" -> "new-password"
    recovery_step: str = "email"

    analyses: Dict[str, 'AIAnalysis'] = field(default_factory=dict)
    scans_in_progress: Set[str] = field(default_factory=set)
    fix_all_in_progress: Set[str] = field(default_factory=set)
    # Pending remediation timers, owned by the site they belong to
    remediation_tasks: Dict[str, Set[asyncio.Task]] = field(
        default_factory=dict)

    http_client: Optional[httpx.AsyncClient] = None
    store_lock: threading.Lock = field(default_factory=threading.Lock)

    def get_site(self, site_id: str) -> Optional['Site']:
        return next((s for s in self.sites if s.id == site_id), None)

    def reset(self):
        """Drops all in-memory state. Pending tasks must be cancelled first."""
        self.sites = []
        self.session_active = False
        self.user = None
        self.recovery_step = "email"
        self.analyses = {}
        self.scans_in_progress = set()
        self.fix_all_in_progress = set()
        self.remediation_tasks = {}


app_state = AppState()

# site_sentinel/models.py
from enum import Enum
from typing import Optional, List, Literal
from pydantic import BaseModel, Field

from .config import settings

SiteStatus = Literal["online", "warning", "offline"]
Severity = Literal["critical", "high", "medium", "low"]
PlanType = Literal["free", "weekly", "monthly", "yearly"]
PaymentMethod = Literal["wallet", "paypal"]


class VulnerabilityStatus(str, Enum):
    DETECTED = "detected"
    FIXING = "fixing"
    PATCHED = "patched"


class TimeRange(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class AlertThresholds(BaseModel):
    """Per-site alert limits; omitted fields fall back to the configured defaults."""
    latency_ms: int = Field(default_factory=lambda: settings.DEFAULT_LATENCY_THRESHOLD_MS, ge=0)
    error_rate_percent: float = Field(
        default_factory=lambda: settings.DEFAULT_ERROR_RATE_PERCENT, ge=0, le=100)
    uptime_percent: float = Field(default_factory=lambda: settings.DEFAULT_UPTIME_THRESHOLD, ge=0, le=100)


class Site(BaseModel):
    id: str
    name: str
    url: str
    status: SiteStatus = "online"
    uptime: float = 100.0
    response_time: int = 0
    last_checked: str
    added_at: str
    uptime_sla: Optional[float] = None
    thresholds: Optional[AlertThresholds] = None
    tags: Optional[List[str]] = None


class SecurityEvent(BaseModel):
    id: str
    timestamp: str
    severity: Severity
    type: str
    description: str
    site_name: str


class Vulnerability(BaseModel):
    id: str
    title: str
    description: str
    severity: Severity
    status: VulnerabilityStatus = VulnerabilityStatus.DETECTED
    remediation: str
    detailed_steps: List[str] = []
    detected_at: str
    fixed_at: Optional[str] = None


class AIAnalysis(BaseModel):
    url: str
    strengths: List[str]
    weaknesses: List[str]
    security_concerns: List[str]
    recommendations: List[str]
    cyber_crime_detection: str
    vulnerabilities: List[Vulnerability]
    generated_at: str


class UserProfile(BaseModel):
    id: str
    email: str
    name: str
    address: str = ""
    plan: PlanType = "free"
    wallet_balance: float = 0.0
    subscription_expiry: Optional[str] = None
    password_hash: str


class PublicProfile(BaseModel):
    """Profile as returned by the API, without credential material."""
    id: str
    email: str
    name: str
    address: str
    plan: PlanType
    wallet_balance: float
    subscription_expiry: Optional[str] = None


class Plan(BaseModel):
    id: PlanType
    name: str
    period: Optional[str] = None
    price: float
    features: List[str] = []
    highlighted: bool = False
    badge: Optional[str] = None


# --- Request Bodies ---


class SiteCreateRequest(BaseModel):
    name: str
    url: str
    tags: str = ""


class SiteSettingsRequest(BaseModel):
    thresholds: Optional[AlertThresholds] = None
    uptime_sla: Optional[float] = Field(None, ge=0, le=100)


class LoginRequest(BaseModel):
    email: str
    password: str


class RecoveryEmailRequest(BaseModel):
    email: str


class RecoveryTokenRequest(BaseModel):
    otp: str


class RecoveryResetRequest(BaseModel):
    new_password: str


class CheckoutRequest(BaseModel):
    plan: PlanType
    method: PaymentMethod = "wallet"


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None


class ReportRequest(BaseModel):
    site_ids: List[str]
    time_range: TimeRange = TimeRange.WEEKLY

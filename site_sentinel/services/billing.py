# site_sentinel/services/billing.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from ..config import settings
from ..errors import InsufficientFundsError, PlanError
from ..models import Plan, UserProfile
from ..storage import persist_state

logger = logging.getLogger("Runner." + __name__)

PAYMENT_METHODS = [
    {"id": "wallet", "label": "Sentinel Wallet"},
    {"id": "paypal", "label": "PayPal"},
]


def plan_catalogue() -> List[Plan]:
    prices = settings.PLAN_PRICES
    return [
        Plan(id="free", name="Free Tier", price=prices["free"],
             features=[f"Up to {settings.FREE_PLAN_SITE_LIMIT} Sites", "Threat Surveillance"]),
        Plan(id="weekly", name="Sentry Core", period="Week", price=prices["weekly"],
             features=["Unlimited Sites", "7-Day History", "Email Alerts"]),
        Plan(id="monthly", name="Neural Nexus", period="Month", price=prices["monthly"],
             features=["Vulnerability Shield", "30-Day History", "Neural Reports", "AI Insights"],
             highlighted=True),
        Plan(id="yearly", name="Sentinel Prime", period="Year", price=prices["yearly"],
             features=["Global Audit Hub", "365-Day History", "API Access", "Enterprise Support"],
             badge="Best Value"),
    ]


def get_plan(plan_id: str) -> Plan:
    plans: Dict[str, Plan] = {p.id: p for p in plan_catalogue()}
    if plan_id not in plans:
        raise PlanError(f"Unknown plan '{plan_id}'.")
    return plans[plan_id]


def check_payment(user: UserProfile, plan: Plan, method: str = "wallet"):
    """Raises when the payment cannot go ahead."""
    if user.plan == plan.id:
        raise PlanError(f"Plan '{plan.id}' is already active.")
    if method == "wallet" and user.wallet_balance < plan.price:
        raise InsufficientFundsError(user.wallet_balance, plan.price)


def complete_payment(user: UserProfile, plan_id: str, method: str = "wallet") -> UserProfile:
    plan = get_plan(plan_id)
    check_payment(user, plan, method)
    if method == "wallet":
        user.wallet_balance = round(user.wallet_balance - plan.price, 2)
    user.plan = plan.id
    period_days = settings.PLAN_PERIOD_DAYS.get(plan.id)
    user.subscription_expiry = (
        (datetime.now(timezone.utc) + timedelta(days=period_days)).isoformat()
        if period_days else None)
    persist_state()
    logger.info(
        f"Plan changed to '{plan.id}' for {user.email} via {method} (${plan.price:.2f}).")
    return user


def has_feature_access(user: UserProfile, allowed_plans: List[str]) -> bool:
    return user.plan in allowed_plans

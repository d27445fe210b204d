# site_sentinel/services/telemetry.py
# Mock telemetry. Nothing here is measured; every figure is drawn at read time.
import random
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from ..models import SecurityEvent, Site, TimeRange

RANGE_POINTS: Dict[TimeRange, tuple] = {
    TimeRange.DAILY: (24, "Hour"),
    TimeRange.WEEKLY: (7, "Day"),
    TimeRange.MONTHLY: (30, "Day"),
    TimeRange.YEARLY: (12, "Month"),
}


def generate_chart_data(site: Site, time_range: TimeRange = TimeRange.DAILY) -> List[dict]:
    points, label_prefix = RANGE_POINTS[time_range]
    uptime_base = 97 if site.status == "warning" else 99.8
    base_latency = 600 if site.status == "warning" else 150
    data = []
    for i in range(points):
        uptime = min(100.0, uptime_base + random.random() * 0.5 - 0.2)
        avg_latency = random.randint(0, 199) + base_latency
        peak_latency = int(avg_latency * (1.2 + random.random() * 0.5))
        data.append({
            "date": f"{label_prefix} {i + 1}",
            "visitors": random.randint(200, 699),
            "load_time": avg_latency,
            "peak_latency": peak_latency,
            "error_rate": random.random() * 1.5,
            "conversions": random.randint(10, 59),
            "uptime": round(uptime, 2),
        })
    return data


def mock_traffic_volume() -> int:
    return random.randint(1000, 5999)


def mock_security_events() -> List[SecurityEvent]:
    now = datetime.now(timezone.utc)

    def ago(**kwargs) -> str:
        return (now - timedelta(**kwargs)).isoformat()

    return [
        SecurityEvent(id="ev1", severity="critical", type="Database Injection", site_name="E-Commerce Store",
                      timestamp=ago(minutes=15), description="Suspicious payload detected in /api/v1/orders"),
        SecurityEvent(id="ev2", severity="high", type="DDoS Cluster Detected", site_name="Portfolio Site",
                      timestamp=ago(hours=2), description="Sudden spike of 50k requests from 3 regions"),
        SecurityEvent(id="ev3", severity="medium", type="Brute Force Attempt", site_name="E-Commerce Store",
                      timestamp=ago(hours=5), description="Multiple failed login attempts on admin panel"),
        SecurityEvent(id="ev4", severity="low", type="Outdated Library", site_name="Portfolio Site",
                      timestamp=ago(hours=24), description="Lodash 4.17.15 has known vulnerabilities"),
    ]


def security_overview() -> List[dict]:
    return [
        {"label": "Active Threats", "value": str(len(mock_security_events())),
         "note": "12% from yesterday"},
        {"label": "DDoS Mitigation", "value": "Active",
         "note": "All edge nodes functioning"},
        {"label": "Firewall Efficiency", "value": "99.8%",
         "note": "0.02% false positive rate"},
        {"label": "Cyber Crime Risk", "value": "Moderate",
         "note": "Industry baseline +2%"},
    ]

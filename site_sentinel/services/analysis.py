# site_sentinel/services/analysis.py
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..config import settings
from ..errors import AnalysisError
from ..models import AIAnalysis, Severity, Vulnerability

logger = logging.getLogger("Runner." + __name__)

DETECTION_SPACING = timedelta(minutes=15)

ANALYSIS_PROMPT = (
    "Analyze the website with URL: {url}. \n"
    "Provide a detailed report on its potential performance characteristics, security strengths, and vulnerabilities. \n"
    "Specifically look for:\n"
    "1. Performance strengths and weaknesses.\n"
    "2. Potential security breaches or common vulnerabilities associated with such sites.\n"
    "3. Cyber crime activity detection (simulated common patterns).\n"
    "4. Specific recommendations for improvement.\n"
    "5. A structured list of 3-5 specific vulnerabilities (simulated for this URL type). \n"
    "   For each vulnerability, provide:\n"
    "   - A clear title and description.\n"
    "   - Severity (critical, high, medium, low).\n"
    "   - A general remediation summary.\n"
    "   - A list of at least 3-5 detailed, step-by-step technical remediation instructions."
)


def _string_list(description: str) -> dict:
    return {"type": "ARRAY", "items": {"type": "STRING"}, "description": description}


RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "strengths": _string_list("List of architectural or performance strengths."),
        "weaknesses": _string_list("List of weaknesses or performance bottlenecks."),
        "securityConcerns": _string_list("Identified security risks or vulnerabilities."),
        "recommendations": _string_list("Actionable steps to improve the site."),
        "cyberCrimeDetection": {
            "type": "STRING",
            "description": "Summary of potential cyber crime patterns or risks detected."
        },
        "vulnerabilities": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "id": {"type": "STRING"},
                    "title": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "severity": {"type": "STRING", "enum": ["critical", "high", "medium", "low"]},
                    "status": {"type": "STRING", "enum": ["detected"]},
                    "remediation": {"type": "STRING"},
                    "detailedSteps": _string_list("Step-by-step technical instructions to fix the vulnerability."),
                },
                "required": ["id", "title", "description", "severity", "status", "remediation", "detailedSteps"]
            }
        }
    },
    "required": ["strengths", "weaknesses", "securityConcerns", "recommendations", "cyberCrimeDetection", "vulnerabilities"]
}


# --- Wire Payload (validated strictly, unknown keys ignored) ---


class _VulnerabilityPayload(BaseModel):
    model_config = ConfigDict(strict=True)

    id: str
    title: str
    description: str
    severity: Severity
    status: Literal["detected"]
    remediation: str
    detailed_steps: List[str] = Field(alias="detailedSteps")


class _AnalysisPayload(BaseModel):
    model_config = ConfigDict(strict=True)

    strengths: List[str]
    weaknesses: List[str]
    security_concerns: List[str] = Field(alias="securityConcerns")
    recommendations: List[str]
    cyber_crime_detection: str = Field(alias="cyberCrimeDetection")
    vulnerabilities: List[_VulnerabilityPayload]

    @model_validator(mode="after")
    def check_unique_ids(self):
        ids = [v.id for v in self.vulnerabilities]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate vulnerability id(s): {', '.join(duplicates)}")
        return self


def build_prompt(url: str) -> str:
    return ANALYSIS_PROMPT.format(url=url)


def build_request_payload(url: str) -> dict:
    return {
        "contents": [{"role": "user", "parts": [{"text": build_prompt(url)}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def extract_response_text(response_data: dict) -> str:
    try:
        parts = response_data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise AnalysisError(
            f"AI response has no candidate text ({type(e).__name__}).") from e
    if not text.strip():
        raise AnalysisError("AI returned an empty response.")
    return text.strip()


def parse_analysis(url: str, text: str, now: Optional[datetime] = None) -> AIAnalysis:
    """Decodes the model output and stamps detection times, 15 minutes apart per entry."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisError(
            f"Invalid JSON response: {e}. Response: '{text[:150]}...'") from e
    if not isinstance(raw, dict):
        raise AnalysisError(
            f"AI response is not a JSON object. Type: {type(raw).__name__}")
    try:
        payload = _AnalysisPayload.model_validate(raw)
    except ValidationError as e:
        raise AnalysisError(
            f"AI response does not match the analysis schema: {e.error_count()} error(s). {e.errors()[0]['loc']}: {e.errors()[0]['msg']}") from e

    now = now or datetime.now(timezone.utc)
    vulnerabilities = [
        Vulnerability(
            id=v.id,
            title=v.title,
            description=v.description,
            severity=v.severity,
            remediation=v.remediation,
            detailed_steps=v.detailed_steps,
            detected_at=(now - idx * DETECTION_SPACING).isoformat(),
        )
        for idx, v in enumerate(payload.vulnerabilities)
    ]
    return AIAnalysis(
        url=url,
        strengths=payload.strengths,
        weaknesses=payload.weaknesses,
        security_concerns=payload.security_concerns,
        recommendations=payload.recommendations,
        cyber_crime_detection=payload.cyber_crime_detection,
        vulnerabilities=vulnerabilities,
        generated_at=now.isoformat(),
    )


async def perform_ai_analysis(client: httpx.AsyncClient, url: str) -> AIAnalysis:
    """One generation round trip for `url`. Raises AnalysisError on any failure; no retries."""
    if not settings.AI_API_KEY:
        raise AnalysisError("AI API key is not configured (set API_KEY).")
    endpoint = f"{settings.AI_API_URL}/models/{settings.AI_MODEL_NAME}:generateContent"
    headers = {"x-goog-api-key": settings.AI_API_KEY}
    try:
        logger.debug(f"AI Request -> {endpoint} for {url}")
        response = await client.post(endpoint, json=build_request_payload(url), headers=headers,
                                     timeout=settings.AI_REQUEST_TIMEOUT)
        response.raise_for_status()
        response_data = response.json()
    except httpx.TimeoutException as e:
        raise AnalysisError(
            f"Request to {endpoint} timed out ({settings.AI_REQUEST_TIMEOUT}s).") from e
    except httpx.HTTPStatusError as e:
        raise AnalysisError(
            f"AI request failed: Status={e.response.status_code}") from e
    except httpx.RequestError as e:
        raise AnalysisError(
            f"AI request failed: {type(e).__name__} - {e}") from e
    except ValueError as e:
        raise AnalysisError(f"AI response body is not JSON: {e}") from e

    text = extract_response_text(response_data)
    logger.debug(f"AI Response <- Raw='{text[:150]}...'")
    analysis = parse_analysis(url, text)
    logger.info(
        f"AI analysis for {url}: {len(analysis.vulnerabilities)} vulnerabilities reported.")
    return analysis

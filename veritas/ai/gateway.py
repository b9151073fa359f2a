"""
veritas.ai.gateway – client for the hosted LLM analysis gateway.

ContentAnalyzer sends a creator's handle, bio, content type and platform to an
OpenAI-compatible chat-completions endpoint and validates the JSON opinion it
returns.  Every failure mode is raised as an AnalysisError subclass so callers
can decide whether to degrade (the scan controller) or surface it (the
/api/analyze route).
"""
from __future__ import annotations

import json
import logging
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from veritas.config import VeritasSettings

from .prompts import SYSTEM_PROMPT, build_user_prompt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class AnalysisError(Exception):
    """Base class for every analysis gateway failure."""
    status_code = 500


class GatewayNotConfigured(AnalysisError):
    pass


class GatewayRateLimited(AnalysisError):
    status_code = 429


class GatewayCreditsExhausted(AnalysisError):
    status_code = 402


class GatewayUnavailable(AnalysisError):
    """Transport failure, timeout, or a non-2xx reply."""


class MalformedAnalysis(AnalysisError):
    """The gateway answered but the content was not a valid analysis."""


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisRequest(_CamelModel):
    username: str = Field(min_length=1)
    bio: str = ""
    content_type: str
    platform: str | None = None
    image_url: str | None = None


class AnalysisDetails(_CamelModel):
    credential_check: str = ""
    content_analysis: str = ""
    risk_factors: list[str] = Field(default_factory=list)


class AnalysisResult(_CamelModel):
    verification_status: Literal["verified", "alert", "unverified"]
    alert_type: str | None = None
    alert_message: str | None = None
    confidence_score: float = Field(ge=0, le=100)
    deepfake_detected: bool = False
    credential_verified: bool = False
    analysis_details: AnalysisDetails = Field(default_factory=AnalysisDetails)

    @classmethod
    def incomplete(cls) -> "AnalysisResult":
        """Neutral result reported when the model's answer could not be read."""
        return cls(
            verification_status="unverified",
            confidence_score=50,
            analysis_details=AnalysisDetails(
                credential_check="Analysis incomplete",
                content_analysis="Could not complete full analysis",
                risk_factors=["Analysis parsing error"],
            ),
        )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json / ``` fence if the model added one."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_analysis(content: str) -> AnalysisResult:
    """
    Parse the model's reply into an AnalysisResult.

    Raises:
        MalformedAnalysis  Not JSON, or JSON that does not match the contract.
    """
    try:
        data = json.loads(strip_code_fence(content))
    except json.JSONDecodeError as exc:
        raise MalformedAnalysis("Failed to parse AI response") from exc
    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as exc:
        raise MalformedAnalysis("AI response does not match the analysis contract") from exc


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ContentAnalyzer:
    """
    Async client for the analysis gateway.

    Each call opens a short-lived httpx.AsyncClient bounded by
    *timeout_seconds*; a timeout is reported as GatewayUnavailable.
    *transport* is only used by tests.
    """

    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.model = model
        self.timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: VeritasSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ContentAnalyzer":
        return cls(
            url=settings.gateway_url,
            api_key=settings.gateway_api_key,
            model=settings.gateway_model,
            timeout_seconds=settings.analysis_timeout_seconds,
            transport=transport,
        )

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Ask the gateway for a verification opinion.

        Raises:
            GatewayNotConfigured     No API key.
            GatewayRateLimited       Gateway replied 429.
            GatewayCreditsExhausted  Gateway replied 402.
            GatewayUnavailable       Transport error, timeout, other non-2xx.
            MalformedAnalysis        Reply body or model content unreadable.
        """
        if not self.api_key:
            raise GatewayNotConfigured("Analysis gateway API key is not configured")

        logger.info(
            "Analyzing content from @%s on %s (%s)",
            request.username, request.platform or "unknown platform", request.content_type,
        )
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": build_user_prompt(
                        request.username,
                        request.bio,
                        request.content_type,
                        request.platform,
                        request.image_url,
                    ),
                },
            ],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise GatewayUnavailable("AI Gateway timed out") from exc
        except httpx.HTTPError as exc:
            raise GatewayUnavailable(f"AI Gateway unreachable: {exc}") from exc

        if response.status_code == 429:
            raise GatewayRateLimited("Rate limit exceeded. Please try again later.")
        if response.status_code == 402:
            raise GatewayCreditsExhausted("AI credits exhausted. Please add credits to continue.")
        if not response.is_success:
            logger.error("AI Gateway error: %d %s", response.status_code, response.text[:500])
            raise GatewayUnavailable(f"AI Gateway error: {response.status_code}")

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise MalformedAnalysis("No response from AI") from exc
        if not content:
            raise MalformedAnalysis("No response from AI")

        result = parse_analysis(content)
        logger.info("Analysis complete: %s", result.verification_status)
        return result

"""Gemini multimodal provider for design feedback.

Sends the design image with the review prompt to the Generative Language
REST API and turns the reply into validated ``FeedbackItem`` objects.
Provider failures are classified into the service error taxonomy so the
retry wrapper can tell quota signals, final errors and transient ones apart.
"""

import base64
import json
import re
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from designreview.app.core.logging import get_log_context, get_logger
from designreview.app.exceptions import (
    AICredentialError,
    AIProviderError,
    AIRateLimitError,
    AIResponseFormatError,
    ContentSafetyError,
)
from designreview.app.providers.models import FeedbackItem, improve_bounding_box

logger = get_logger(__name__)

PROVIDER_NAME = "gemini"

FEEDBACK_PROMPT = """You are an expert UX reviewer. Given a design screenshot, return ONLY a JSON array of feedback items.

Each item must follow this schema:
{
  "category": "accessibility" | "visual_hierarchy" | "content" | "ui_pattern",
  "severity": "high" | "medium" | "low",
  "roles": ["designer","reviewer","pm","developer"],
  "bbox": { "x": 0.12, "y": 0.34, "width": 0.10, "height": 0.08 },
  "anchorType": "bbox" | "point",
  "title": "Short title",
  "text": "1-2 sentence feedback",
  "recommendations": ["Specific actionable fix"]
}

Rules:
- Coordinates are fractions of the image between 0 and 1, measured from the top-left corner, rounded to 2 decimals.
- Fit each bbox tightly to the element: text without extra padding, buttons including their border, containers including their background.
- Each feedback belongs to exactly ONE category and lists 1-3 relevant roles.
- Provide 3-8 feedback items. If fewer than 3 issues exist, suggest improvements.
- Recommendations are always an array of specific, actionable fixes.
- Use "bbox" for UI elements and "point" for small hotspots such as icons.

Categories:
- "accessibility": WCAG compliance, color contrast, keyboard navigation, screen readers
- "visual_hierarchy": information structure, typography scale, emphasis, content flow
- "content": copy clarity, microcopy, labels, error messages, information architecture
- "ui_pattern": component consistency, interaction patterns, layout standards

Roles:
- "designer": visual design, layout, typography, color, spacing, branding
- "developer": technical implementation, accessibility compliance, performance
- "pm": user experience strategy, business requirements, feature clarity
- "reviewer": quality assurance, usability testing, best practices, edge cases

Severity:
- "high": blocks core functionality, major accessibility violations, critical UX issues
- "medium": impacts usability, minor accessibility issues, inconsistent patterns
- "low": polish, minor inconsistencies, enhancement opportunities

Return the JSON array only, without markdown or any text outside the array."""

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


def classify_provider_error(status_code: Optional[int], message: str) -> AIProviderError:
    """Map a failed provider call onto the service error taxonomy."""
    lowered = message.lower()

    if status_code == 429 or "quota" in lowered or "resource_exhausted" in lowered:
        return AIRateLimitError(f"Gemini API rate limit exceeded. {message}")
    if status_code in (401, 403) or "api key" in lowered:
        return AICredentialError()
    if "safety" in lowered:
        return ContentSafetyError()
    return AIProviderError(f"Failed to analyze image: {message}")


def parse_feedback(text: str, model_version: str) -> List[FeedbackItem]:
    """Extract and validate the feedback array from the model's text.

    Raises:
        AIResponseFormatError: If no valid feedback array is found
    """
    match = _JSON_ARRAY.search(text)
    if not match:
        raise AIResponseFormatError("No valid JSON array found in response")

    try:
        raw_items = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AIResponseFormatError(f"Response is not valid JSON: {e}") from e

    if not isinstance(raw_items, list):
        raise AIResponseFormatError("Response is not an array")

    items: List[FeedbackItem] = []
    for index, raw in enumerate(raw_items):
        try:
            item = FeedbackItem.model_validate(raw)
        except ValidationError as e:
            raise AIResponseFormatError(f"Invalid feedback item at index {index}") from e
        items.append(
            item.model_copy(
                update={
                    "bbox": improve_bounding_box(item.bbox),
                    "model_version": model_version,
                }
            )
        )
    return items


class GeminiProvider:
    """Client for Gemini ``generateContent``.

    Accepts an external ``httpx.AsyncClient`` for connection pooling, or
    opens one per call if none is given.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        model: str = "gemini-1.5-flash",
        temperature: float = 0.1,
        max_output_tokens: int = 4096,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, image: bytes, mime_type: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": FEEDBACK_PROMPT},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(image).decode("ascii"),
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        if self._http_client is not None:
            return await self._http_client.post(
                self.endpoint, json=payload, headers=headers, timeout=self.timeout
            )
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.endpoint, json=payload, headers=headers)

    async def analyze_image(self, image: bytes, mime_type: str) -> List[FeedbackItem]:
        """Ask the model for feedback on one design image.

        Raises:
            AICredentialError: If no API key is configured or it is rejected
            AIRateLimitError: On a provider quota or throttling signal
            ContentSafetyError: If the image is blocked by safety filters
            AIResponseFormatError: If the reply holds no valid feedback array
            AIProviderError: On network errors and other failures
        """
        if not self.is_configured:
            raise AICredentialError()

        logger.info(
            f"Starting Gemini analysis with model: {self.model}",
            extra=get_log_context(provider=PROVIDER_NAME),
        )

        try:
            response = await self._post(self.build_payload(image, mime_type))
        except httpx.TimeoutException as e:
            raise AIProviderError(f"Failed to analyze image: request timed out ({e})") from e
        except httpx.HTTPError as e:
            raise AIProviderError(f"Failed to analyze image: {e}") from e

        if response.status_code >= 400:
            raise classify_provider_error(response.status_code, _error_message(response))

        try:
            body = response.json()
        except ValueError as e:
            raise AIResponseFormatError("Provider returned a non-JSON body") from e

        text = self._extract_text(body)
        items = parse_feedback(text, self.model)
        logger.info(
            f"Gemini analysis completed with {len(items)} feedback items",
            extra=get_log_context(provider=PROVIDER_NAME),
        )
        return items

    @staticmethod
    def _extract_text(body: Dict[str, Any]) -> str:
        block_reason = (body.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentSafetyError()

        candidates = body.get("candidates") or []
        if not candidates:
            raise AIResponseFormatError("Provider returned no candidates")

        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            raise ContentSafetyError()

        parts = (candidate.get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"{response.status_code} {response.text[:200]}"
    error = data.get("error") if isinstance(data, dict) else None
    if not isinstance(error, dict):
        return f"{response.status_code} {response.text[:200]}"
    status = error.get("status", "")
    message = error.get("message", "")
    return f"[{response.status_code} {status}] {message}".strip()

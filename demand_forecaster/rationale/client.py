"""
Text-generation client used for forecast rationales.

API:   https://generativelanguage.googleapis.com/v1beta/
Docs:  https://ai.google.dev/api/generate-content

Credential setup (.env, gitignored):
  GEMINI_API_KEY=your_api_key

Request:
  POST {base_url}/models/{model_name}:generateContent
    → Header: x-goog-api-key
    → Body:   {"contents": [{"parts": [{"text": "<prompt>"}]}]}
    → Returns: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}

Every failure surfaces as one of the three ``RationaleError`` subclasses;
``RationaleGenerator`` turns all of them into the fallback template.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from demand_forecaster.config import RationaleConfig
from demand_forecaster.exceptions import (
    InvalidRationaleResponse,
    RationaleTimeout,
    RationaleUnavailable,
)

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Anything that turns a prompt into text within a timeout."""

    def complete(self, prompt: str, timeout_ms: int) -> str:
        """Return generated text.

        Raises:
            RationaleUnavailable, RationaleTimeout, InvalidRationaleResponse
        """
        ...


class GeminiTextGenerator:
    """Gemini ``generateContent`` client over httpx.

    Usage::

        generator = GeminiTextGenerator(config.rationale)
        text = generator.complete(prompt, timeout_ms=10_000)

    Pass ``client=`` to reuse a pooled ``httpx.Client`` (or an
    ``httpx.MockTransport``-backed client in tests); otherwise a short-lived
    client is opened per call.
    """

    def __init__(
        self,
        config: RationaleConfig,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config
        self._client = client

    @property
    def endpoint(self) -> str:
        base = self.config.base_url.rstrip("/")
        return f"{base}/models/{self.config.model_name}:generateContent"

    def complete(self, prompt: str, timeout_ms: int) -> str:
        if not self.config.api_key.strip():
            raise RationaleUnavailable("Text generator is not configured (no API key).")

        if self._client is not None:
            return self._post(self._client, prompt, timeout_ms)
        with httpx.Client() as client:
            return self._post(client, prompt, timeout_ms)

    def _post(self, client: httpx.Client, prompt: str, timeout_ms: int) -> str:
        try:
            resp = client.post(
                self.endpoint,
                headers={
                    "x-goog-api-key": self.config.api_key,
                    "Content-Type": "application/json",
                },
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=timeout_ms / 1000,
            )
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise RationaleTimeout(
                f"No response from {self.config.model_name} within {timeout_ms}ms."
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise RationaleUnavailable(
                f"{self.config.model_name} returned HTTP {exc.response.status_code}."
            ) from exc
        except httpx.HTTPError as exc:
            raise RationaleUnavailable(f"Request to text generator failed: {exc}") from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            raise InvalidRationaleResponse("Response body is not JSON.") from exc
        return extract_candidate_text(payload)


def extract_candidate_text(payload: Any) -> str:
    """Pull the first candidate's text out of a ``generateContent`` payload.

    Raises:
        InvalidRationaleResponse: If the payload has no non-blank text part.
    """
    try:
        parts = payload["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise InvalidRationaleResponse(
            "Response has no candidates[0].content.parts."
        ) from exc
    if not text.strip():
        raise InvalidRationaleResponse("Response text is empty.")
    return text


def build_text_generator(config: RationaleConfig) -> Optional[TextGenerator]:
    """Return the configured text generator, or ``None`` when disabled."""
    if not config.enabled:
        logger.info("Rationale text generation disabled; fallback template only.")
        return None
    return GeminiTextGenerator(config)

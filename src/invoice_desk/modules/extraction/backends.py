from __future__ import annotations

from typing import Any

import httpx

from invoice_desk.core.config import settings
from invoice_desk.core.logging import get_logger, log_event
from invoice_desk.modules.extraction.errors import (
    ConfigurationError,
    ErrorKind,
    ExtractionError,
    QuotaExceededError,
    UpstreamUnavailableError,
)

logger = get_logger(__name__)


class ExtractionBackend:
    """A generative model that turns a prompt into raw reply text."""

    name: str = ""

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when the backend cannot be called at all."""

    async def generate(self, prompt: str) -> str:  # pragma: no cover
        raise NotImplementedError


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500]
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or err.get("status") or "")
    return resp.text[:500]


class GeminiBackend(ExtractionBackend):
    name = "gemini"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.gemini_timeout_seconds
        self._transport = transport

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY not configured")

    async def generate(self, prompt: str) -> str:
        self.ensure_configured()

        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0},
        }
        log_event(logger, "extraction.upstream.call", backend=self.name, model=self.model)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                resp = await client.post(
                    url,
                    params={"key": self.api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"Gemini request failed: {e}") from e

        if resp.status_code >= 400:
            raise self._map_status_error(resp)

        try:
            body = resp.json()
        except ValueError as e:
            raise ExtractionError(f"Gemini returned a non-JSON body: {e}") from e
        return self._reply_text(body)

    def _map_status_error(self, resp: httpx.Response) -> ExtractionError:
        detail = _error_message(resp)
        status = resp.status_code
        if status == 429:
            return QuotaExceededError(f"[429 Too Many Requests] {detail}".strip())
        if status in (401, 403) or "API key not valid" in detail or "API_KEY_INVALID" in detail:
            return ConfigurationError(f"Gemini rejected the API key: {detail}")
        if status >= 500:
            return UpstreamUnavailableError(f"[{status}] Gemini unavailable: {detail}")
        return ExtractionError(
            f"[{status}] Gemini request rejected: {detail}", kind=ErrorKind.UPSTREAM_ERROR
        )

    @staticmethod
    def _reply_text(body: dict[str, Any]) -> str:
        feedback = body.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            raise ExtractionError(f"Gemini blocked the prompt: {feedback['blockReason']}")
        candidates = body.get("candidates") or []
        if not candidates:
            return ""
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
        return "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))


BACKENDS: dict[str, type[ExtractionBackend]] = {
    GeminiBackend.name: GeminiBackend,
}

# src/services/gemini_generator.py

"""Text generator backed by the Gemini ``generateContent`` REST API."""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.models.conversation import HistoryTurn

logger = logging.getLogger("catalog_assistant.generator")

_SAFETY_REASONS = frozenset({"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT"})


class GenerationError(Exception):
    """The generator failed to produce a usable reply (retryable)."""


class GenerationBlocked(GenerationError):
    """The generator refused the prompt on safety grounds (final)."""


class Generator(Protocol):
    def generate(
        self, prompt: str, history: Sequence[HistoryTurn],
    ) -> str: ...


class GeminiGenerator:
    """One ``generateContent`` call per :meth:`generate`.

    Retries belong to the caller; this class only classifies failures
    into :class:`GenerationError` and :class:`GenerationBlocked`.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        session: Any = None,
    ) -> None:
        self.settings = Settings()
        self.api_key = api_key or self.settings.GEMINI_API_KEY
        self.model = model or self.settings.GEMINI_MODEL
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    @property
    def url(self) -> str:
        return (
            f"{self.settings.GEMINI_ENDPOINT}/{self.model}:generateContent"
        )

    def build_payload(
        self,
        prompt: str,
        history: Sequence[HistoryTurn],
    ) -> dict[str, Any]:
        """Request body: prior turns as alternating roles, then *prompt*."""
        contents: list[dict[str, Any]] = []
        for turn in history:
            if turn.text:
                contents.append(
                    {"role": "user", "parts": [{"text": turn.text}]}
                )
            if turn.response:
                contents.append(
                    {"role": "model", "parts": [{"text": turn.response}]}
                )
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        return {
            "systemInstruction": {
                "parts": [{"text": self.settings.SYSTEM_INSTRUCTION}]
            },
            "contents": contents,
            "generationConfig": {
                "temperature": self.settings.GENERATION_TEMPERATURE,
            },
        }

    def generate(
        self,
        prompt: str,
        history: Sequence[HistoryTurn] = (),
    ) -> str:
        """Return the reply text for *prompt* given the user's *history*."""
        if not self.api_key:
            raise GenerationError("GEMINI_API_KEY is not configured")
        try:
            resp = self.session.post(
                self.url,
                headers={
                    "Content-Type": "application/json",
                    "x-goog-api-key": self.api_key,
                },
                json=self.build_payload(prompt, history),
                timeout=self.settings.REQUEST_TIMEOUT,
            )
        except Exception as exc:
            raise GenerationError(f"request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.warning("Gemini returned HTTP %d", resp.status_code)
            raise GenerationError(f"HTTP {resp.status_code}")
        try:
            data: dict[str, Any] = resp.json()
        except ValueError as exc:
            raise GenerationError("response is not JSON") from exc
        return self.parse_reply(data)

    @staticmethod
    def parse_reply(data: dict[str, Any]) -> str:
        """Extract the first candidate's text from a response body."""
        feedback = data.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            raise GenerationBlocked(str(feedback["blockReason"]))

        candidates = data.get("candidates") or []
        if not candidates:
            raise GenerationError("no response candidates")
        candidate = candidates[0]
        finish = str(candidate.get("finishReason", ""))
        if finish in _SAFETY_REASONS:
            logger.warning("Reply blocked by safety filter (%s)", finish)
            raise GenerationBlocked(finish)

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(str(p.get("text", "")) for p in parts)
        if not text.strip():
            raise GenerationError("empty reply")
        return text

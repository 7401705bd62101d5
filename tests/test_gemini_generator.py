# tests/test_gemini_generator.py

"""Tests for the Gemini REST generator."""

import unittest
from typing import Any
from unittest.mock import MagicMock

from src.config.settings import Settings
from src.models.conversation import HistoryTurn
from src.services.gemini_generator import (
    GeminiGenerator,
    GenerationBlocked,
    GenerationError,
)


def _response(status: int = 200, data: Any = None) -> MagicMock:
    """Build a mock HTTP response."""
    resp = MagicMock()
    resp.status_code = status
    if isinstance(data, Exception):
        resp.json.side_effect = data
    else:
        resp.json.return_value = data
    return resp


def _reply(text: str, finish: str = "STOP") -> dict[str, Any]:
    return {
        "candidates": [
            {
                "content": {"parts": [{"text": text}]},
                "finishReason": finish,
            }
        ]
    }


class TestGeminiGenerator(unittest.TestCase):
    """GeminiGenerator.generate with a mocked session."""

    def setUp(self) -> None:
        self.session = MagicMock()
        self.generator = GeminiGenerator(
            api_key="test-key", model="gemini-test", session=self.session
        )

    def test_url(self) -> None:
        self.assertEqual(
            self.generator.url,
            f"{Settings.GEMINI_ENDPOINT}/gemini-test:generateContent",
        )

    def test_successful_reply(self) -> None:
        self.session.post.return_value = _response(200, _reply("Salom!"))
        self.assertEqual(self.generator.generate("salom"), "Salom!")

        _, kwargs = self.session.post.call_args
        self.assertEqual(kwargs["headers"]["x-goog-api-key"], "test-key")
        self.assertEqual(kwargs["timeout"], Settings.REQUEST_TIMEOUT)

    def test_payload_replays_history(self) -> None:
        history = [
            HistoryTurn(text="monitor kerak", response="Qaysi budjet?"),
            HistoryTurn(text="300$"),
        ]
        payload = self.generator.build_payload("yana?", history)
        roles = [c["role"] for c in payload["contents"]]
        self.assertEqual(roles, ["user", "model", "user", "user"])
        self.assertEqual(
            payload["contents"][-1]["parts"][0]["text"], "yana?"
        )
        self.assertEqual(
            payload["generationConfig"]["temperature"],
            Settings.GENERATION_TEMPERATURE,
        )
        self.assertIn("systemInstruction", payload)

    def test_multi_part_text_joined(self) -> None:
        data = {
            "candidates": [
                {"content": {"parts": [{"text": "a"}, {"text": "b"}]}}
            ]
        }
        self.assertEqual(GeminiGenerator.parse_reply(data), "ab")

    # ── Failures ─────────────────────────────────────────

    def test_missing_key(self) -> None:
        generator = GeminiGenerator(api_key="", session=self.session)
        generator.api_key = ""
        with self.assertRaises(GenerationError):
            generator.generate("salom")
        self.session.post.assert_not_called()

    def test_http_error(self) -> None:
        self.session.post.return_value = _response(503, {})
        with self.assertRaises(GenerationError):
            self.generator.generate("salom")

    def test_transport_error(self) -> None:
        self.session.post.side_effect = ConnectionError("reset")
        with self.assertRaises(GenerationError):
            self.generator.generate("salom")

    def test_non_json_body(self) -> None:
        self.session.post.return_value = _response(
            200, ValueError("not json")
        )
        with self.assertRaises(GenerationError):
            self.generator.generate("salom")

    def test_safety_finish_reason_blocks(self) -> None:
        self.session.post.return_value = _response(
            200, _reply("", finish="SAFETY")
        )
        with self.assertRaises(GenerationBlocked):
            self.generator.generate("salom")

    def test_prompt_feedback_blocks(self) -> None:
        with self.assertRaises(GenerationBlocked):
            GeminiGenerator.parse_reply(
                {"promptFeedback": {"blockReason": "SAFETY"}}
            )

    def test_blocked_is_a_generation_error(self) -> None:
        self.assertTrue(issubclass(GenerationBlocked, GenerationError))

    def test_no_candidates(self) -> None:
        with self.assertRaises(GenerationError):
            GeminiGenerator.parse_reply({"candidates": []})

    def test_empty_text(self) -> None:
        with self.assertRaises(GenerationError) as ctx:
            GeminiGenerator.parse_reply(_reply("   "))
        self.assertNotIsInstance(ctx.exception, GenerationBlocked)


if __name__ == "__main__":
    unittest.main()

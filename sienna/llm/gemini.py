"""Google Gemini LLM implementation via REST API."""

from __future__ import annotations

import base64
import json
import logging
import time
import urllib.error
import urllib.request

from sienna.config import LLMConfig
from sienna.core import stats
from sienna.llm.interface import LLMInterface

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class GeminiLLM(LLMInterface):
    """LLM via Google Gemini REST API (generativelanguage.googleapis.com).

    No SDK dependency. One attempt per call; failures are counted in
    ``stats.llm_stats`` and raised to the caller.
    """

    def __init__(self, config: LLMConfig):
        self.model = config.gemini_model
        self.api_key = config.gemini_api_key
        if not self.api_key:
            raise ValueError("SIENNA_GEMINI_API_KEY is required for gemini backend")
        logger.info("Gemini LLM ready: %s", self.model)

    def _call(self, body: dict, tokens_in: int) -> str:
        req = urllib.request.Request(
            f"{API_BASE}/models/{self.model}:generateContent?key={self.api_key}",
            data=json.dumps(body).encode(),
            headers={"Content-Type": "application/json"},
        )
        t0 = time.monotonic()
        try:
            with urllib.request.urlopen(req, timeout=60) as resp:
                raw = resp.read()
            try:
                result = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ValueError(f"Gemini returned invalid JSON: {raw[:200]}") from e

            # candidates[0].content.parts[0].text
            candidates = result.get("candidates", [])
            if not candidates:
                raise ValueError(f"Gemini returned no candidates: {list(result.keys())}")
            parts = candidates[0].get("content", {}).get("parts", [])
            if not parts or "text" not in parts[0]:
                raise ValueError(f"Unexpected Gemini response structure: {candidates[0].keys()}")
            text = parts[0]["text"]
        except (urllib.error.URLError, TimeoutError, ConnectionError, ValueError) as e:
            logger.warning("Gemini call failed: %s", e)
            if stats.llm_stats:
                stats.llm_stats.record_error(str(e))
            raise

        if stats.llm_stats:
            stats.llm_stats.record_call(
                tokens_est=tokens_in + len(text) // 4,
                latency_ms=(time.monotonic() - t0) * 1000,
            )
        return text

    def describe_image(
        self, prompt: str, image: bytes, mime_type: str, max_tokens: int = 2048,
    ) -> str:
        body = {
            "contents": [{
                "role": "user",
                "parts": [
                    {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(image).decode()}},
                    {"text": prompt},
                ],
            }],
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": 0.3,
                "responseMimeType": "application/json",
            },
        }
        return self._call(body, len(prompt) // 4)

    def get_model_name(self) -> str:
        return self.model

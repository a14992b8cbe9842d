"""OpenAI-compatible LLM implementation.

Works with any API that speaks the /v1/chat/completions format:
  - OpenAI (api.openai.com)
  - Groq (api.groq.com)
  - Together AI (api.together.xyz)
  - Any OpenAI-compatible endpoint with vision support for describe_image()
"""

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


class OpenAICompatibleLLM(LLMInterface):
    """LLM via any OpenAI-compatible /v1/chat/completions endpoint."""

    def __init__(self, config: LLMConfig):
        self.model = config.openai_model
        self.api_key = config.openai_api_key
        self.base_url = config.openai_base_url.rstrip("/")
        if not self.api_key:
            raise ValueError("SIENNA_OPENAI_API_KEY is required for openai backend")
        logger.info("OpenAI-compatible LLM ready: %s at %s", self.model, self.base_url)

    def _complete(self, messages: list[dict], max_tokens: int, tokens_in_est: int) -> str:
        req = urllib.request.Request(
            f"{self.base_url}/v1/chat/completions",
            data=json.dumps({
                "model": self.model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": 0.3,
            }).encode(),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        t0 = time.monotonic()
        try:
            with urllib.request.urlopen(req, timeout=60) as resp:
                raw = resp.read()
            try:
                result = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ValueError(f"API returned invalid JSON: {raw[:200]}") from e

            # choices[0].message.content
            choices = result.get("choices", [])
            if not choices:
                raise ValueError(f"API returned no choices: {list(result.keys())}")
            content = choices[0].get("message", {}).get("content")
            if content is None:
                raise ValueError(f"Unexpected response structure: {choices[0].keys()}")
        except (urllib.error.URLError, TimeoutError, ConnectionError, ValueError) as e:
            logger.warning("OpenAI-compatible call failed: %s", e)
            if stats.llm_stats:
                stats.llm_stats.record_error(str(e))
            raise

        usage = result.get("usage", {})
        tokens_in = usage.get("prompt_tokens") or tokens_in_est
        tokens_out = usage.get("completion_tokens") or len(content) // 4
        if stats.llm_stats:
            stats.llm_stats.record_call(
                tokens_est=tokens_in + tokens_out,
                latency_ms=(time.monotonic() - t0) * 1000,
            )
        return content

    def describe_image(
        self, prompt: str, image: bytes, mime_type: str, max_tokens: int = 2048,
    ) -> str:
        data_url = f"data:{mime_type};base64,{base64.b64encode(image).decode()}"
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        }]
        return self._complete(messages, max_tokens, len(prompt) // 4)

    def get_model_name(self) -> str:
        return self.model

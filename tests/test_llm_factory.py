"""Test LLM factory: registration, routing, error handling, and the backends' request format."""

import base64
import json
import os
from unittest.mock import MagicMock, patch

import pytest

from sienna.config import LLMConfig
from sienna.core import stats
from sienna.llm import BUILT_IN_PROVIDERS, _providers, get_llm, register_llm_provider
from sienna.llm.gemini import GeminiLLM
from sienna.llm.interface import LLMInterface
from sienna.llm.openai_compat import OpenAICompatibleLLM

# 1x1 transparent PNG
PIXEL_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class StubLLM(LLMInterface):
    """Minimal stub for factory registration tests."""

    def describe_image(self, prompt, image, mime_type, max_tokens=2048):
        return "stub-response"

    def get_model_name(self):
        return "stub"


def _mock_response(data):
    """Create a mock urllib response."""
    body = data if isinstance(data, bytes) else json.dumps(data).encode()
    mock = MagicMock()
    mock.read.return_value = body
    mock.__enter__ = MagicMock(return_value=mock)
    mock.__exit__ = MagicMock(return_value=False)
    return mock


def _gemini_reply(text):
    return _mock_response({"candidates": [{"content": {"parts": [{"text": text}]}}]})


@pytest.fixture(autouse=True)
def _llm_stats():
    stats.init_llm_stats("test", "model")
    yield
    stats.llm_stats = None


# ── Factory routing ──────────────────────────────────────────


def test_factory_routes_gemini():
    llm = get_llm(LLMConfig(backend="gemini", gemini_api_key="k"))
    assert isinstance(llm, GeminiLLM)
    assert llm.get_model_name() == "gemini-2.0-flash"


def test_factory_routes_openai():
    llm = get_llm(LLMConfig(backend="openai", openai_api_key="k"))
    assert isinstance(llm, OpenAICompatibleLLM)
    assert llm.get_model_name() == "gpt-4o-mini"


def test_factory_routes_gemini_requires_key():
    """Gemini backend should raise if no API key is set."""
    cfg = LLMConfig(backend="gemini", gemini_api_key="")
    with pytest.raises(ValueError, match="SIENNA_GEMINI_API_KEY"):
        get_llm(cfg)


def test_factory_routes_openai_requires_key():
    """OpenAI backend should raise if no API key is set."""
    cfg = LLMConfig(backend="openai", openai_api_key="")
    with pytest.raises(ValueError, match="SIENNA_OPENAI_API_KEY"):
        get_llm(cfg)


def test_factory_unknown_backend():
    """Unknown backend should raise ValueError with available list."""
    cfg = LLMConfig(backend="does-not-exist")
    with pytest.raises(ValueError, match="does-not-exist"):
        get_llm(cfg)


# ── Registry ─────────────────────────────────────────────────


def test_register_and_retrieve():
    """Registered provider should be returned by get_llm."""
    register_llm_provider("test-stub", lambda cfg: StubLLM())
    try:
        llm = get_llm(LLMConfig(backend="test-stub"))
        assert isinstance(llm, StubLLM)
        assert llm.describe_image("Describe", PIXEL_PNG, "image/png") == "stub-response"
    finally:
        _providers.pop("test-stub", None)


def test_registry_overrides_builtin():
    """A registered provider with a built-in name should take priority."""
    register_llm_provider("gemini", lambda cfg: StubLLM())
    try:
        assert isinstance(get_llm(LLMConfig(backend="gemini")), StubLLM)
    finally:
        _providers.pop("gemini", None)


def test_built_in_providers_list():
    assert BUILT_IN_PROVIDERS == ["gemini", "openai"]


# ── Gemini request format ────────────────────────────────────


@patch("sienna.llm.gemini.urllib.request.urlopen")
def test_gemini_image_request(mock_urlopen):
    """describe_image() should send the image inline and ask for JSON back."""
    mock_urlopen.return_value = _gemini_reply('{"ok": true}')

    llm = GeminiLLM(LLMConfig(gemini_api_key="k"))
    assert llm.describe_image("What is this?", b"\x89PNG", "image/png") == '{"ok": true}'

    req = mock_urlopen.call_args[0][0]
    assert ":generateContent?key=k" in req.full_url
    body = json.loads(req.data)
    parts = body["contents"][0]["parts"]
    assert body["contents"][0]["role"] == "user"
    assert parts[0]["inlineData"] == {"mimeType": "image/png", "data": base64.b64encode(b"\x89PNG").decode()}
    assert parts[1]["text"] == "What is this?"
    assert body["generationConfig"]["responseMimeType"] == "application/json"
    assert stats.llm_stats.to_dict()["stats"]["calls"] == 1


@patch("sienna.llm.gemini.urllib.request.urlopen")
def test_gemini_max_tokens(mock_urlopen):
    mock_urlopen.return_value = _gemini_reply("{}")

    GeminiLLM(LLMConfig(gemini_api_key="k")).describe_image("x", b"img", "image/jpeg", max_tokens=256)

    body = json.loads(mock_urlopen.call_args[0][0].data)
    assert body["generationConfig"]["maxOutputTokens"] == 256


@patch("sienna.llm.gemini.urllib.request.urlopen")
def test_gemini_no_candidates_is_error(mock_urlopen):
    mock_urlopen.return_value = _mock_response({"promptFeedback": {}})

    with pytest.raises(ValueError, match="no candidates"):
        GeminiLLM(LLMConfig(gemini_api_key="k")).describe_image("x", b"img", "image/png")
    assert stats.llm_stats.to_dict()["stats"]["errors"] == 1
    assert mock_urlopen.call_count == 1  # no retry


# ── OpenAI-compatible request format ─────────────────────────


@patch("sienna.llm.openai_compat.urllib.request.urlopen")
def test_openai_image_request(mock_urlopen):
    """describe_image() should send a data URL; usage tokens feed the stats."""
    mock_urlopen.return_value = _mock_response({
        "choices": [{"message": {"content": "answer"}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5},
    })

    llm = OpenAICompatibleLLM(LLMConfig(backend="openai", openai_api_key="k"))
    assert llm.describe_image("Describe", b"jpg", "image/jpeg") == "answer"

    req = mock_urlopen.call_args[0][0]
    assert req.full_url == "https://api.openai.com/v1/chat/completions"
    assert req.get_header("Authorization") == "Bearer k"
    content = json.loads(req.data)["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "Describe"}
    assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert stats.llm_stats.to_dict()["stats"]["tokens_est"] == 15


@patch("sienna.llm.openai_compat.urllib.request.urlopen")
def test_openai_invalid_json(mock_urlopen):
    mock_urlopen.return_value = _mock_response(b"<html>")

    llm = OpenAICompatibleLLM(LLMConfig(backend="openai", openai_api_key="k"))
    with pytest.raises(ValueError, match="invalid JSON"):
        llm.describe_image("x", b"jpg", "image/jpeg")


# ── Live Gemini smoke test ───────────────────────────────────


@pytest.mark.skipif(
    not os.getenv("SIENNA_GEMINI_API_KEY"),
    reason="SIENNA_GEMINI_API_KEY not set, skipping live Gemini test",
)
def test_gemini_live():
    """Smoke test: describe a one-pixel image with the real Gemini API."""
    cfg = LLMConfig(
        backend="gemini",
        gemini_api_key=os.getenv("SIENNA_GEMINI_API_KEY"),
        gemini_model=os.getenv("SIENNA_GEMINI_MODEL", "gemini-2.0-flash"),
    )
    response = get_llm(cfg).describe_image(
        'Return {"pixels": <number of pixels in this image>} as JSON.', PIXEL_PNG, "image/png",
        max_tokens=50,
    )
    assert isinstance(json.loads(response), dict)

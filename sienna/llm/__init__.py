"""LLM backends used for image analysis and training-content generation.

``SIENNA_LLM_BACKEND`` picks one of the built-ins below, or any name added
at runtime with ``register_llm_provider``. Registered names win over built-ins.
"""

from __future__ import annotations

import importlib
import logging
from typing import Callable

from sienna.config import LLMConfig
from sienna.llm.interface import LLMInterface

logger = logging.getLogger(__name__)

LLMFactory = Callable[[LLMConfig], LLMInterface]

# backend name -> (module, class); imported only when selected
_BUILT_INS: dict[str, tuple[str, str]] = {
    "gemini": ("sienna.llm.gemini", "GeminiLLM"),
    "openai": ("sienna.llm.openai_compat", "OpenAICompatibleLLM"),
}
BUILT_IN_PROVIDERS = list(_BUILT_INS)

_providers: dict[str, LLMFactory] = {}


def register_llm_provider(name: str, factory: LLMFactory) -> None:
    """Make ``factory(config)`` the backend for ``SIENNA_LLM_BACKEND=name``."""
    _providers[name] = factory
    logger.info("Registered LLM provider: %s", name)


def get_llm(config: LLMConfig) -> LLMInterface:
    factory = _providers.get(config.backend)
    if factory is not None:
        return factory(config)

    target = _BUILT_INS.get(config.backend)
    if target is None:
        known = ", ".join(sorted({*BUILT_IN_PROVIDERS, *_providers}))
        raise ValueError(f"Unknown LLM backend: {config.backend!r}. Available: {known}")
    module_name, class_name = target
    backend_cls = getattr(importlib.import_module(module_name), class_name)
    return backend_cls(config)

"""LLM interface ABC. Implementations must provide describe_image()."""

from __future__ import annotations

from abc import ABC, abstractmethod


class LLMInterface(ABC):
    """Abstract base for LLM backends."""

    @abstractmethod
    def describe_image(
        self, prompt: str, image: bytes, mime_type: str, max_tokens: int = 2048,
    ) -> str:
        """Answer ``prompt`` about one image.

        Args:
            prompt: Instruction text sent alongside the image.
            image: Raw image bytes.
            mime_type: e.g. "image/png".
            max_tokens: Maximum response length.

        Returns:
            The generated text response.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier."""

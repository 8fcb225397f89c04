"""Gemini text-generation client."""

import logging
from dataclasses import dataclass

from google import genai
from google.genai import types

from heo.core.config import Settings
from heo.core.errors import ConfigurationError, UpstreamServiceError
from heo.core.logging import get_logger

SERVICE_NAME = "generation"


@dataclass
class GenerationConfig:
    """Sampling parameters passed straight through to the service."""

    temperature: float | None = 0.7
    max_output_tokens: int | None = 2048
    top_k: int | None = None
    top_p: float | None = None

    def to_sdk(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            top_k=self.top_k,
            top_p=self.top_p,
        )


def normalize_contents(prompt: str | types.Content | list[str | types.Content]) -> list[types.Content]:
    """Wrap plain strings as single-part user turns."""
    if isinstance(prompt, str):
        return [types.Content(role="user", parts=[types.Part(text=prompt)])]
    if isinstance(prompt, list):
        return [
            types.Content(role="user", parts=[types.Part(text=p)]) if isinstance(p, str) else p
            for p in prompt
        ]
    return [prompt]


class GenerationClient:
    """Sends a prompt to the text-generation service and returns raw text.

    No retries: retry policy belongs to the caller.
    """

    def __init__(
        self,
        api_key: str | None,
        model_name: str | None,
        logger: logging.Logger | None = None,
        client: genai.Client | None = None,
    ):
        if not api_key:
            raise ConfigurationError("Gemini API key is required but was not provided")
        if not model_name:
            raise ConfigurationError("Gemini generation model name is required but was not provided")

        self.model_name = model_name
        self.logger = logger or get_logger(__name__)
        self._client = client or genai.Client(api_key=api_key)

    @classmethod
    def from_settings(cls, settings: Settings, logger: logging.Logger | None = None) -> "GenerationClient":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model_name=settings.GEMINI_MODEL_NAME_GENERATION,
            logger=logger,
        )

    async def generate(
        self,
        prompt: str | types.Content | list[str | types.Content],
        config: GenerationConfig | None = None,
        model_name: str | None = None,
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Prompt text or pre-built contents
            config: Sampling parameters (defaults if omitted)
            model_name: Per-call model override

        Returns:
            Raw generated text

        Raises:
            UpstreamServiceError: If the call fails or the response has no text
        """
        model = model_name or self.model_name
        config = config or GenerationConfig()

        self.logger.info(
            f"Calling generation model {model}",
            extra={"model": model, "temperature": config.temperature},
        )

        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=normalize_contents(prompt),
                config=config.to_sdk(),
            )
        except Exception as e:
            self.logger.error(f"Generation call failed: {e}", extra={"model": model})
            raise UpstreamServiceError(SERVICE_NAME, f"Error communicating with Gemini: {e}") from e

        text = getattr(response, "text", None)
        if not isinstance(text, str):
            self.logger.error("Generation response carried no text payload", extra={"model": model})
            raise UpstreamServiceError(SERVICE_NAME, "Invalid response: expected a text string")

        self.logger.info(f"Generated {len(text)} chars", extra={"model": model})
        return text

"""Gemini embeddings generation with validation."""

import logging

from google import genai
from google.genai import types

from heo.core.config import Settings
from heo.core.errors import ConfigurationError, UpstreamServiceError
from heo.core.logging import get_logger
from heo.core.schemas_hypothesis import EmbeddingTask

SERVICE_NAME = "embedding"


class EmbeddingClient:
    """Embeds texts one request per text, all-or-nothing.

    Output order matches input order 1:1. Any failed or malformed response
    fails the whole batch; no partial list is ever returned.
    """

    def __init__(
        self,
        api_key: str | None,
        model_name: str | None,
        output_dimensionality: int | None = None,
        logger: logging.Logger | None = None,
        client: genai.Client | None = None,
    ):
        if not api_key:
            raise ConfigurationError("Gemini API key for embeddings is required")
        if not model_name:
            raise ConfigurationError("Gemini embedding model name is required")

        self.model_name = model_name
        self.output_dimensionality = output_dimensionality
        self.logger = logger or get_logger(__name__)
        self._client = client or genai.Client(api_key=api_key)

    @classmethod
    def from_settings(cls, settings: Settings, logger: logging.Logger | None = None) -> "EmbeddingClient":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model_name=settings.GEMINI_MODEL_NAME_EMBEDDING,
            output_dimensionality=settings.EMBEDDING_DIM,
            logger=logger,
        )

    async def embed_texts(
        self,
        texts: list[str],
        task: EmbeddingTask = EmbeddingTask.RETRIEVAL_DOCUMENT,
        title: str | None = None,
    ) -> list[list[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: Texts to embed
            task: Task intent; shapes how the service optimizes, not the output
            title: Document title, only sent for RETRIEVAL_DOCUMENT

        Returns:
            One vector per input text, in input order

        Raises:
            UpstreamServiceError: If any single embedding call fails, returns
                no vector, or returns a vector of inconsistent length
        """
        if not texts:
            self.logger.warning("No texts provided to embed")
            return []

        config = types.EmbedContentConfig(
            task_type=task.value,
            title=title if task == EmbeddingTask.RETRIEVAL_DOCUMENT else None,
            output_dimensionality=self.output_dimensionality,
        )

        embeddings: list[list[float]] = []
        for i, text in enumerate(texts):
            try:
                result = await self._client.aio.models.embed_content(
                    model=self.model_name,
                    contents=text,
                    config=config,
                )
            except Exception as e:
                self.logger.error(
                    f"Embedding call failed for text {i}: {text[:50]}...",
                    extra={"model": self.model_name, "error": str(e)},
                )
                raise UpstreamServiceError(SERVICE_NAME, f"Embedding call failed for text {i}: {e}") from e

            vector = _extract_vector(result)
            if vector is None:
                self.logger.error(
                    f"Malformed embedding response for text {i}",
                    extra={"model": self.model_name},
                )
                raise UpstreamServiceError(SERVICE_NAME, f"Failed to get embedding for text {i}")

            expected_dim = self.output_dimensionality or (len(embeddings[0]) if embeddings else None)
            if expected_dim is not None and len(vector) != expected_dim:
                raise UpstreamServiceError(
                    SERVICE_NAME,
                    f"Embedding dimension mismatch for text {i}: "
                    f"expected {expected_dim}, got {len(vector)}",
                )

            embeddings.append(vector)

        self.logger.info(
            f"Generated {len(embeddings)} embeddings using {self.model_name}",
            extra={"model": self.model_name, "count": len(embeddings), "task": task.value},
        )
        return embeddings


def _extract_vector(result) -> list[float] | None:
    embeddings = getattr(result, "embeddings", None)
    if not embeddings:
        return None
    values = getattr(embeddings[0], "values", None)
    if not values:
        return None
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError):
        return None

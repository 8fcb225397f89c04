"""Configuration management for the HEO hypothesis engine."""

from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    HEO_ENV: str = Field(default="dev", description="Environment: dev, test, staging, prod")

    # Gemini configuration (validated when a client is built, not at load time)
    GEMINI_API_KEY: str | None = Field(default=None, description="Gemini API key")
    GEMINI_MODEL_NAME_GENERATION: str = Field(
        default="gemini-1.5-flash-latest", description="Model for hypothesis generation"
    )
    GEMINI_MODEL_NAME_EMBEDDING: str = Field(
        default="text-embedding-004", description="Model for novelty embeddings"
    )
    EMBEDDING_DIM: int | None = Field(
        default=None, description="Requested output dimensionality (None = model default)"
    )

    # Generation defaults
    GENERATION_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature")
    GENERATION_MAX_OUTPUT_TOKENS: int = Field(default=2048, description="Max output tokens")
    GENERATION_TOP_K: int | None = Field(default=None, description="Top-k sampling")
    GENERATION_TOP_P: float | None = Field(default=None, description="Top-p sampling")

    # Triple-store (SPARQL endpoint)
    OXIGRAPH_ENDPOINT_URL: str = Field(
        default="http://localhost:7878", description="Base URL of the SPARQL store"
    )
    TRIPLE_STORE_TIMEOUT: float = Field(default=30.0, description="SPARQL request timeout (s)")

    # Content-addressable storage (IPFS HTTP API)
    IPFS_ENDPOINT: str = Field(
        default="http://localhost:5001/api/v0", description="IPFS HTTP API base URL"
    )
    IPFS_GATEWAY_URL: str = Field(
        default="https://ipfs.io/ipfs/", description="Read-only gateway base URL"
    )
    IPFS_TIMEOUT: float = Field(default=30.0, description="IPFS request timeout (s)")

    # Pipeline defaults
    MAX_HYPOTHESES: int = Field(default=5, description="Max hypotheses requested per query")
    NOVELTY_THRESHOLD: float = Field(default=0.5, description="Minimum novelty score to keep")
    ALLOW_QUERY_FALLBACK: bool = Field(
        default=False, description="Use the raw query as a hypothesis when parsing yields nothing"
    )
    EMBED_QUERY_WHEN_NO_CONTEXT: bool = Field(
        default=False, description="Score against the raw query when no context is retrieved"
    )
    CONTEXT_LIMIT: int = Field(default=20, description="Max context snippets per query")

    # Provenance graph
    GRAPH_FORMAT: str = Field(default="turtle", description="rdflib serialization format")
    LICENSE_URI: str = Field(
        default="https://creativecommons.org/licenses/by/4.0/",
        description="License attached to every hypothesis graph",
    )

    @property
    def is_production(self) -> bool:
        return self.HEO_ENV == "prod"


@dataclass
class PipelineConfig:
    """Behavioural switches for one Pipeline instance.

    Read-only after the pipeline is built; per-request overrides go through
    GenerationParams instead.
    """

    novelty_threshold: float = 0.5
    allow_query_fallback: bool = False
    embed_query_when_no_context: bool = False
    max_hypotheses: int = 5
    context_limit: int = 20

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            novelty_threshold=settings.NOVELTY_THRESHOLD,
            allow_query_fallback=settings.ALLOW_QUERY_FALLBACK,
            embed_query_when_no_context=settings.EMBED_QUERY_WHEN_NO_CONTEXT,
            max_hypotheses=settings.MAX_HYPOTHESES,
            context_limit=settings.CONTEXT_LIMIT,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If an environment variable has an invalid type
    """
    return Settings()

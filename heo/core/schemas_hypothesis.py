"""Pydantic models for hypothesis generation and provenance.

A Hypothesis only exists once its novelty score has cleared the threshold.
After that it is mutated exactly once, by the anchoring step:
- generated: scored, graph not yet anchored
- anchored: provenance graph stored, content_id set
- anchoring_failed: graph build or storage failed, score still valid
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================


class HypothesisStatus(str, Enum):
    """Lifecycle states for generated hypotheses."""

    GENERATED = "generated"
    ANCHORED = "anchored"
    ANCHORING_FAILED = "anchoring_failed"


class ReferenceType(str, Enum):
    """Kinds of external source a hypothesis can cite."""

    DOI = "DOI"
    URI = "URI"


class EmbeddingTask(str, Enum):
    """Task intent sent to the embedding service."""

    RETRIEVAL_QUERY = "RETRIEVAL_QUERY"
    RETRIEVAL_DOCUMENT = "RETRIEVAL_DOCUMENT"


# =============================================================================
# Context
# =============================================================================


class ContextSnippet(BaseModel):
    """A text snippet retrieved from the knowledge graph for one query."""

    text: str
    source: str | None = None  # IRI of the page/document the text came from

    def render(self) -> str:
        """Prompt form of the snippet."""
        if self.source:
            return f"[Source: {self.source}] {self.text}"
        return self.text


class CorpusItem(BaseModel):
    """An explicitly requested corpus entry and its content."""

    id: str
    content: str
    iri: str | None = None


# =============================================================================
# Hypothesis
# =============================================================================


class SourceReference(BaseModel):
    """A citation attached to a hypothesis."""

    type: ReferenceType = ReferenceType.URI
    value: str


class Hypothesis(BaseModel):
    """A scored hypothesis that survived the novelty threshold."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    text: str
    novelty_score: float
    status: HypothesisStatus = HypothesisStatus.GENERATED
    content_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime | None = None
    source_references: list[SourceReference] = Field(default_factory=list)
    used_context_ids: list[str] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Hypothesis text must not be empty")
        return value

    def model_post_init(self, __context) -> None:
        if self.updated_at is None:
            self.updated_at = self.created_at

    def mark_anchored(self, content_id: str) -> None:
        """Record a successful anchoring pass."""
        self._transition(HypothesisStatus.ANCHORED)
        self.content_id = content_id

    def mark_anchoring_failed(self) -> None:
        """Record a failed anchoring pass; the novelty score is kept."""
        self._transition(HypothesisStatus.ANCHORING_FAILED)
        self.content_id = None

    def _transition(self, status: HypothesisStatus) -> None:
        if self.status != HypothesisStatus.GENERATED:
            raise ValueError(
                f"Hypothesis {self.id} already left 'generated' (status={self.status.value})"
            )
        self.status = status
        self.updated_at = _utcnow()


# =============================================================================
# Requests
# =============================================================================


class GenerationParams(BaseModel):
    """Per-request overrides for one pipeline run."""

    max_hypotheses: int | None = Field(default=None, ge=1)
    novelty_threshold: float | None = None
    model_name: str | None = None
    temperature: float | None = None
    max_output_tokens: int | None = None
    top_k: int | None = None
    top_p: float | None = None


class HypothesisGenerationInput(BaseModel):
    """Input to the hypothesis pipeline."""

    query: str
    corpus_ids: list[str] = Field(default_factory=list)
    generation_params: GenerationParams = Field(default_factory=GenerationParams)

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be empty")
        return value.strip()

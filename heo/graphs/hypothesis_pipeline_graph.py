"""LangGraph pipeline for hypothesis generation, novelty scoring and anchoring.

Linear flow, no state re-entered:

    retrieve_context → generate → parse → embed → score → filter → anchor → finish

Shared upstream failures (retrieval, generation, embedding) degrade the run
to a reduced or empty result and jump straight to `finish`. Per-hypothesis
failures (graph build, storage) only mark that hypothesis `anchoring_failed`.
Only ConfigurationError escapes, and it is raised when the Pipeline is built.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import uuid4

from langgraph.graph import END, StateGraph

from heo.chains.generate_hypotheses import generate_hypothesis_text
from heo.core.config import PipelineConfig, Settings, get_settings
from heo.core.errors import SerializationError, UpstreamServiceError
from heo.core.hypothesis_parser import parse_hypotheses
from heo.core.logging import get_logger
from heo.core.provenance import ProvenanceGraphBuilder
from heo.core.retrieval import ContextRetriever
from heo.core.schemas_hypothesis import (
    ContextSnippet,
    CorpusItem,
    EmbeddingTask,
    Hypothesis,
    HypothesisGenerationInput,
    ReferenceType,
    SourceReference,
)
from heo.core.similarity import score_novelty
from heo.services.content_store import ContentStore
from heo.services.embeddings import EmbeddingClient
from heo.services.generation import GenerationClient, GenerationConfig
from heo.services.triple_store import TripleStoreClient

MAX_STEPS = 10


class PipelineStage(str, Enum):
    """Observable stages of one pipeline run."""

    RETRIEVING_CONTEXT = "retrieving_context"
    GENERATING = "generating"
    PARSING = "parsing"
    EMBEDDING = "embedding"
    SCORING = "scoring"
    FILTERING = "filtering"
    BUILDING_GRAPH = "building_graph"
    ANCHORING = "anchoring"
    DONE = "done"


@dataclass
class HypothesisPipelineState:
    """State for the hypothesis pipeline graph."""

    # Input fields
    request: HypothesisGenerationInput
    run_id: str
    max_hypotheses: int
    novelty_threshold: float
    generation_config: GenerationConfig

    # Processing state
    step_count: int = 0
    stage: PipelineStage = PipelineStage.RETRIEVING_CONTEXT
    stages: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    snippets: list[ContextSnippet] = field(default_factory=list)
    corpus_items: list[CorpusItem] = field(default_factory=list)
    raw_text: str | None = None
    statements: list[str] = field(default_factory=list)
    used_query_fallback: bool = False
    hypothesis_vectors: list[list[float]] = field(default_factory=list)
    context_vectors: list[list[float]] = field(default_factory=list)
    scores: list[float] = field(default_factory=list)

    # Output
    hypotheses: list[Hypothesis] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Outcome of one run, including degradations."""

    run_id: str
    hypotheses: list[Hypothesis]
    errors: list[str] = field(default_factory=list)
    stages: list[str] = field(default_factory=list)
    used_query_fallback: bool = False
    context_count: int = 0


def _check_max_steps(state: HypothesisPipelineState) -> int:
    """Return the incremented step count, raise if exceeded."""
    step_count = state.step_count + 1
    if step_count > MAX_STEPS:
        raise RuntimeError(f"Graph exceeded max steps ({MAX_STEPS})")
    return step_count


def _enter(state: HypothesisPipelineState, stage: PipelineStage) -> dict[str, Any]:
    """Common update for entering a stage."""
    return {
        "step_count": _check_max_steps(state),
        "stage": stage,
        "stages": state.stages + [stage.value],
    }


def classify_reference(value: str) -> ReferenceType:
    lowered = value.lower()
    if lowered.startswith(("10.", "doi:")) or "doi.org/" in lowered:
        return ReferenceType.DOI
    return ReferenceType.URI


def source_references_from(snippets: list[ContextSnippet]) -> list[SourceReference]:
    """One reference per distinct snippet source, in first-seen order."""
    sources = dict.fromkeys(s.source for s in snippets if s.source)
    return [SourceReference(type=classify_reference(src), value=src) for src in sources]


class Pipeline:
    """Hypothesis generation pipeline with all collaborators injected.

    Usage:
        pipeline = Pipeline.from_settings()
        hypotheses = await pipeline.run("CRISPR specificity")
    """

    def __init__(
        self,
        retriever: ContextRetriever,
        generation_client: GenerationClient,
        embedding_client: EmbeddingClient,
        graph_builder: ProvenanceGraphBuilder,
        content_store: ContentStore,
        config: PipelineConfig | None = None,
        generation_config: GenerationConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.retriever = retriever
        self.generation_client = generation_client
        self.embedding_client = embedding_client
        self.graph_builder = graph_builder
        self.content_store = content_store
        self.config = config or PipelineConfig()
        self.generation_config = generation_config or GenerationConfig()
        self.logger = logger or get_logger(__name__)
        self._compiled_graph = self._build_graph().compile()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        logger: logging.Logger | None = None,
        config: PipelineConfig | None = None,
    ) -> "Pipeline":
        """
        Build a pipeline from settings.

        Raises:
            ConfigurationError: If the Gemini key or a model name is missing
        """
        settings = settings or get_settings()
        config = config or PipelineConfig.from_settings(settings)
        content_store = ContentStore(
            api_url=settings.IPFS_ENDPOINT,
            gateway_url=settings.IPFS_GATEWAY_URL,
            is_production=settings.is_production,
            timeout=settings.IPFS_TIMEOUT,
            logger=logger,
        )
        triple_store = TripleStoreClient(
            settings.OXIGRAPH_ENDPOINT_URL, timeout=settings.TRIPLE_STORE_TIMEOUT, logger=logger
        )
        return cls(
            retriever=ContextRetriever(triple_store, limit=config.context_limit, logger=logger),
            generation_client=GenerationClient.from_settings(settings, logger=logger),
            embedding_client=EmbeddingClient.from_settings(settings, logger=logger),
            graph_builder=ProvenanceGraphBuilder(
                license_uri=settings.LICENSE_URI,
                content_url=content_store.gateway_url,
                fmt=settings.GRAPH_FORMAT,
                logger=logger,
            ),
            content_store=content_store,
            config=config,
            generation_config=GenerationConfig(
                temperature=settings.GENERATION_TEMPERATURE,
                max_output_tokens=settings.GENERATION_MAX_OUTPUT_TOKENS,
                top_k=settings.GENERATION_TOP_K,
                top_p=settings.GENERATION_TOP_P,
            ),
            logger=logger,
        )

    # =========================================================================
    # Nodes
    # =========================================================================

    async def retrieve_context(self, state: HypothesisPipelineState) -> dict[str, Any]:
        """Fetch knowledge-graph snippets and any requested corpus items."""
        update = _enter(state, PipelineStage.RETRIEVING_CONTEXT)
        request = state.request

        retrieval, corpus = await asyncio.gather(
            self.retriever.retrieve(request.query),
            self.retriever.load_corpus_items(request.corpus_ids),
        )

        errors = list(state.errors)
        if retrieval.error:
            errors.append(f"context retrieval failed: {retrieval.error}")
        if corpus.error:
            errors.append(f"corpus loading failed: {corpus.error}")

        self.logger.info(
            f"Retrieved {len(retrieval.snippets)} snippets and {len(corpus.items)} corpus items",
            extra={"run_id": state.run_id},
        )
        return {**update, "snippets": retrieval.snippets, "corpus_items": corpus.items, "errors": errors}

    async def generate(self, state: HypothesisPipelineState) -> dict[str, Any]:
        """Call the generation service with the composed prompt."""
        update = _enter(state, PipelineStage.GENERATING)
        params = state.request.generation_params

        try:
            raw_text = await generate_hypothesis_text(
                self.generation_client,
                query=state.request.query,
                snippets=state.snippets,
                max_hypotheses=state.max_hypotheses,
                config=state.generation_config,
                corpus_items=state.corpus_items,
                model_name=params.model_name,
            )
        except UpstreamServiceError as e:
            self.logger.error(f"Generation failed, ending run: {e}", extra={"run_id": state.run_id})
            return {**update, "raw_text": None, "errors": state.errors + [f"generation failed: {e}"]}

        if not raw_text.strip():
            self.logger.warning("Generation service returned no text", extra={"run_id": state.run_id})
            return {**update, "raw_text": None, "errors": state.errors + ["generation returned no text"]}

        return {**update, "raw_text": raw_text}

    def parse(self, state: HypothesisPipelineState) -> dict[str, Any]:
        """Extract statements; optionally fall back to the raw query."""
        update = _enter(state, PipelineStage.PARSING)

        statements = parse_hypotheses(state.raw_text or "", state.max_hypotheses)
        self.logger.info(f"Parsed {len(statements)} hypothesis statements", extra={"run_id": state.run_id})
        if statements:
            return {**update, "statements": statements}

        if self.config.allow_query_fallback:
            self.logger.info(
                "No statements parsed, using the query as a fallback hypothesis",
                extra={"run_id": state.run_id},
            )
            return {**update, "statements": [state.request.query], "used_query_fallback": True}

        self.logger.warning("No hypothesis statements parsed from generated text", extra={"run_id": state.run_id})
        return {**update, "statements": [], "errors": state.errors + ["parse yielded nothing"]}

    async def embed(self, state: HypothesisPipelineState) -> dict[str, Any]:
        """Embed hypotheses and context as two independent batches."""
        update = _enter(state, PipelineStage.EMBEDDING)

        context_texts = [item.content for item in state.corpus_items]
        context_texts.extend(snippet.text for snippet in state.snippets)
        context_task = EmbeddingTask.RETRIEVAL_DOCUMENT
        if not context_texts and self.config.embed_query_when_no_context:
            self.logger.info("No context retrieved; scoring against the raw query", extra={"run_id": state.run_id})
            context_texts = [state.request.query]
            context_task = EmbeddingTask.RETRIEVAL_QUERY

        try:
            hypothesis_vectors, context_vectors = await asyncio.gather(
                self.embedding_client.embed_texts(state.statements, task=EmbeddingTask.RETRIEVAL_QUERY),
                self._embed_context(context_texts, context_task),
            )
        except UpstreamServiceError as e:
            self.logger.error(f"Embedding failed, ending run: {e}", extra={"run_id": state.run_id})
            return {**update, "errors": state.errors + [f"embedding failed: {e}"]}

        return {**update, "hypothesis_vectors": hypothesis_vectors, "context_vectors": context_vectors}

    async def _embed_context(self, texts: list[str], task: EmbeddingTask) -> list[list[float]]:
        # No context is a valid input to scoring; nothing to send
        if not texts:
            return []
        return await self.embedding_client.embed_texts(texts, task=task)

    def score(self, state: HypothesisPipelineState) -> dict[str, Any]:
        """Convert max context similarity into novelty."""
        update = _enter(state, PipelineStage.SCORING)
        scores = score_novelty(state.hypothesis_vectors, state.context_vectors)
        return {**update, "scores": scores}

    def filter_by_novelty(self, state: HypothesisPipelineState) -> dict[str, Any]:
        """Materialize hypotheses that clear the novelty threshold."""
        update = _enter(state, PipelineStage.FILTERING)

        references = source_references_from(state.snippets)
        context_ids = [item.id for item in state.corpus_items]

        hypotheses = [
            Hypothesis(
                text=text,
                novelty_score=score,
                source_references=[ref.model_copy() for ref in references],
                used_context_ids=list(context_ids),
            )
            for text, score in zip(state.statements, state.scores)
            if score >= state.novelty_threshold
        ]

        self.logger.info(
            f"Kept {len(hypotheses)} of {len(state.statements)} hypotheses "
            f"(threshold={state.novelty_threshold})",
            extra={"run_id": state.run_id},
        )
        return {**update, "hypotheses": hypotheses}

    async def anchor(self, state: HypothesisPipelineState) -> dict[str, Any]:
        """Build and anchor a provenance graph per hypothesis, concurrently."""
        update = _enter(state, PipelineStage.BUILDING_GRAPH)
        update["stages"] = update["stages"] + [PipelineStage.ANCHORING.value]

        await asyncio.gather(*(self._anchor_one(h, state) for h in state.hypotheses))

        anchored = sum(1 for h in state.hypotheses if h.content_id)
        self.logger.info(
            f"Anchored {anchored} of {len(state.hypotheses)} hypotheses",
            extra={"run_id": state.run_id},
        )
        return {**update, "stage": PipelineStage.ANCHORING, "hypotheses": state.hypotheses}

    async def _anchor_one(self, hypothesis: Hypothesis, state: HypothesisPipelineState) -> None:
        try:
            graph_data = self.graph_builder.serialize(hypothesis, state.request.query)
            content_id = await self.content_store.store(graph_data)
        except (SerializationError, UpstreamServiceError) as e:
            self.logger.error(
                f"Error generating RDF or anchoring hypothesis: {e}",
                extra={"run_id": state.run_id, "hypothesis_id": hypothesis.id},
            )
            hypothesis.mark_anchoring_failed()
            return
        except Exception:
            # Injected collaborators may raise anything; siblings still proceed
            self.logger.exception(
                "Unexpected error anchoring hypothesis",
                extra={"run_id": state.run_id, "hypothesis_id": hypothesis.id},
            )
            hypothesis.mark_anchoring_failed()
            return

        hypothesis.mark_anchored(content_id)
        self.logger.info(
            "Hypothesis anchored",
            extra={"run_id": state.run_id, "hypothesis_id": hypothesis.id, "cid": content_id},
        )

    def finish(self, state: HypothesisPipelineState) -> dict[str, Any]:
        """Terminal stage for every run, degraded or not."""
        return {
            "stage": PipelineStage.DONE,
            "stages": state.stages + [PipelineStage.DONE.value],
        }

    # =========================================================================
    # Routing
    # =========================================================================

    @staticmethod
    def _after_generate(state: HypothesisPipelineState) -> str:
        return "parse" if state.raw_text else "finish"

    @staticmethod
    def _after_parse(state: HypothesisPipelineState) -> str:
        return "embed" if state.statements else "finish"

    @staticmethod
    def _after_embed(state: HypothesisPipelineState) -> str:
        return "score" if len(state.hypothesis_vectors) == len(state.statements) else "finish"

    @staticmethod
    def _after_filter(state: HypothesisPipelineState) -> str:
        return "anchor" if state.hypotheses else "finish"

    def _build_graph(self) -> StateGraph:
        """Build the hypothesis pipeline graph."""
        graph = StateGraph(HypothesisPipelineState)

        graph.add_node("retrieve_context", self.retrieve_context)
        graph.add_node("generate", self.generate)
        graph.add_node("parse", self.parse)
        graph.add_node("embed", self.embed)
        graph.add_node("score", self.score)
        graph.add_node("filter", self.filter_by_novelty)
        graph.add_node("anchor", self.anchor)
        graph.add_node("finish", self.finish)

        graph.set_entry_point("retrieve_context")
        graph.add_edge("retrieve_context", "generate")
        graph.add_conditional_edges("generate", self._after_generate, {"parse": "parse", "finish": "finish"})
        graph.add_conditional_edges("parse", self._after_parse, {"embed": "embed", "finish": "finish"})
        graph.add_conditional_edges("embed", self._after_embed, {"score": "score", "finish": "finish"})
        graph.add_edge("score", "filter")
        graph.add_conditional_edges("filter", self._after_filter, {"anchor": "anchor", "finish": "finish"})
        graph.add_edge("anchor", "finish")
        graph.add_edge("finish", END)

        return graph

    # =========================================================================
    # Entry points
    # =========================================================================

    def _initial_state(self, request: HypothesisGenerationInput) -> HypothesisPipelineState:
        params = request.generation_params
        defaults = self.generation_config
        return HypothesisPipelineState(
            request=request,
            run_id=str(uuid4()),
            max_hypotheses=params.max_hypotheses or self.config.max_hypotheses,
            novelty_threshold=(
                params.novelty_threshold
                if params.novelty_threshold is not None
                else self.config.novelty_threshold
            ),
            generation_config=GenerationConfig(
                temperature=params.temperature if params.temperature is not None else defaults.temperature,
                max_output_tokens=params.max_output_tokens or defaults.max_output_tokens,
                top_k=params.top_k if params.top_k is not None else defaults.top_k,
                top_p=params.top_p if params.top_p is not None else defaults.top_p,
            ),
        )

    async def run_with_report(self, request: HypothesisGenerationInput | str) -> PipelineResult:
        """
        Run the pipeline and report degradations alongside the hypotheses.

        Args:
            request: Generation input, or a bare query string

        Returns:
            PipelineResult (hypotheses possibly empty)

        Raises:
            pydantic.ValidationError: If the query is blank
        """
        if isinstance(request, str):
            request = HypothesisGenerationInput(query=request)

        initial_state = self._initial_state(request)
        self.logger.info(
            f"Starting hypothesis pipeline for query: {request.query[:100]}",
            extra={"run_id": initial_state.run_id},
        )

        final_state = await self._compiled_graph.ainvoke(initial_state)

        result = PipelineResult(
            run_id=initial_state.run_id,
            hypotheses=final_state["hypotheses"],
            errors=final_state["errors"],
            stages=final_state["stages"],
            used_query_fallback=final_state["used_query_fallback"],
            context_count=len(final_state["snippets"]) + len(final_state["corpus_items"]),
        )

        self.logger.info(
            "Completed hypothesis pipeline",
            extra={
                "run_id": result.run_id,
                "hypotheses": len(result.hypotheses),
                "errors": len(result.errors),
            },
        )
        return result

    async def run(self, request: HypothesisGenerationInput | str) -> list[Hypothesis]:
        """Run the pipeline and return the hypothesis records."""
        result = await self.run_with_report(request)
        return result.hypotheses

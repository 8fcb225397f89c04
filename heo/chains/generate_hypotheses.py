"""LLM chain for generating candidate scientific hypotheses (RAG).

Composes the prompt from the user query and the retrieved context, calls the
generation service, and hands back the raw text. Parsing the text into
statements is the parser's job (heo.core.hypothesis_parser).
"""

from heo.core.logging import get_logger
from heo.core.schemas_hypothesis import ContextSnippet, CorpusItem
from heo.services.generation import GenerationClient, GenerationConfig

logger = get_logger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"
NO_CONTEXT_MARKER = "No specific context retrieved from knowledge graph for this query."

PROMPT_TEMPLATE = """User Query: "{query}"

Context from Knowledge Graph:
---
{context}
---

Based on the user query and the provided context (if any), please generate up to {max_hypotheses} distinct, insightful, and testable scientific hypotheses.
For each hypothesis:
1. State the hypothesis clearly and concisely.
2. Briefly explain the reasoning or observation that leads to this hypothesis, referencing the context if applicable.
3. Suggest a potential type of experiment that could test this hypothesis (e.g., CRISPR experiment, clinical trial, PCR assay, computational simulation, literature review).

Format each hypothesis starting with "Hypothesis:" followed by the statement.
Example:
Hypothesis: Activation of protein X leads to increased cell proliferation in Y cells.
Reasoning: Context indicates protein X is upregulated in rapidly dividing Y cells.
Experiment Type: CRISPR knockout of protein X in Y cells, followed by proliferation assay.

Please provide your response as a numbered list of hypotheses.
"""


def render_context(
    snippets: list[ContextSnippet],
    corpus_items: list[CorpusItem] | None = None,
) -> str:
    """Join corpus items and snippets into the prompt's context block."""
    blocks = [item.content for item in corpus_items or []]
    blocks.extend(snippet.render() for snippet in snippets)
    return CONTEXT_SEPARATOR.join(blocks)


def build_hypothesis_prompt(
    query: str,
    snippets: list[ContextSnippet],
    max_hypotheses: int,
    corpus_items: list[CorpusItem] | None = None,
) -> str:
    """Fill the instruction template for one query."""
    context = render_context(snippets, corpus_items)
    return PROMPT_TEMPLATE.format(
        query=query,
        context=context or NO_CONTEXT_MARKER,
        max_hypotheses=max_hypotheses,
    )


async def generate_hypothesis_text(
    client: GenerationClient,
    query: str,
    snippets: list[ContextSnippet],
    max_hypotheses: int,
    config: GenerationConfig | None = None,
    corpus_items: list[CorpusItem] | None = None,
    model_name: str | None = None,
) -> str:
    """
    Generate raw hypothesis text for a query.

    Args:
        client: Generation client
        query: User query
        snippets: Retrieved context snippets (may be empty)
        max_hypotheses: Upper bound requested from the model
        config: Sampling parameters
        corpus_items: Explicit corpus entries to include ahead of snippets
        model_name: Per-call model override

    Returns:
        Raw generated text

    Raises:
        UpstreamServiceError: If the generation call fails
    """
    prompt = build_hypothesis_prompt(query, snippets, max_hypotheses, corpus_items)
    logger.debug(
        "Built hypothesis prompt",
        extra={"prompt_chars": len(prompt), "snippets": len(snippets)},
    )
    return await client.generate(prompt, config=config, model_name=model_name)

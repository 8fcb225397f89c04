"""Context retrieval from the knowledge graph.

Two lookups feed the generation prompt:
1. retrieve(): a templated SPARQL search over text-bearing predicates for
   literals containing the query (case-insensitive), plus a keyword join that
   pulls descriptive text from entities whose keywords match.
2. load_corpus_items(): explicit corpus entries requested by id.

Both degrade instead of raising: a failed store query yields an empty result
with the error recorded, and callers treat empty context as valid.

Usage:
    from heo.core.retrieval import ContextRetriever

    retriever = ContextRetriever(triple_store)
    result = await retriever.retrieve("CRISPR specificity")
    for snippet in result.snippets:
        print(snippet.render())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import quote

from heo.core.errors import UpstreamServiceError
from heo.core.logging import get_logger
from heo.core.schemas_hypothesis import ContextSnippet, CorpusItem
from heo.services.triple_store import TripleStoreClient, binding_value

DEFAULT_CONTEXT_LIMIT = 20
CORPUS_IRI_PREFIX = "urn:corpus:"

SPARQL_PREFIXES = """\
PREFIX schema: <http://schema.org/>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>
PREFIX skos: <http://www.w3.org/2004/02/skos/core#>
"""

TEXT_PREDICATES = [
    "schema:text",
    "schema:description",
    "rdfs:label",
    "rdfs:comment",
    "skos:prefLabel",
    "skos:altLabel",
    "skos:definition",
]


# =============================================================================
# Result Model
# =============================================================================


@dataclass
class RetrievalResult:
    """Result of one context lookup."""

    snippets: list[ContextSnippet] = field(default_factory=list)
    error: str | None = None  # Set when the store query failed

    @property
    def degraded(self) -> bool:
        return self.error is not None


@dataclass
class CorpusResult:
    """Result of loading explicit corpus items."""

    items: list[CorpusItem] = field(default_factory=list)
    error: str | None = None


# =============================================================================
# Query building
# =============================================================================


def escape_sparql_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted SPARQL string."""
    return (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def build_context_query(query: str, limit: int = DEFAULT_CONTEXT_LIMIT) -> str:
    """Build the SELECT query that finds snippets mentioning `query`."""
    needle = escape_sparql_literal(query)
    source = "OPTIONAL { ?s schema:mainEntityOfPage ?sourceDocument . }"

    branches = [f"?s {predicate} ?textualContent .\n    {source}" for predicate in TEXT_PREDICATES]
    branches.append(
        '?s schema:keywords ?keyword .\n'
        '    BIND(CONCAT("Keyword: ", STR(?keyword)) AS ?textualContent)\n'
        f"    {source}"
    )
    # Secondary join: entities tagged with a matching keyword contribute their
    # own descriptive text.
    branches.append(
        "?s schema:keywords ?keywordValue .\n"
        f"    FILTER(CONTAINS(LCASE(STR(?keywordValue)), LCASE('{needle}')))\n"
        "    { ?s schema:description ?textualContent . } UNION { ?s schema:text ?textualContent . }\n"
        f"    {source}"
    )
    union = "\n  } UNION {\n    ".join(branches)

    return (
        f"{SPARQL_PREFIXES}\n"
        "SELECT DISTINCT ?textualContent ?sourceDocument WHERE {\n"
        "  {\n"
        f"    {union}\n"
        "  }\n"
        f"  FILTER(CONTAINS(LCASE(STR(?textualContent)), LCASE('{needle}')))\n"
        '  FILTER(LANG(?textualContent) = "" || LANGMATCHES(LANG(?textualContent), "en"))\n'
        "}\n"
        f"LIMIT {int(limit)}\n"
    )


def corpus_iri(corpus_id: str) -> str:
    """IRI for a corpus id; ids that already look like IRIs pass through."""
    if ":" in corpus_id:
        return corpus_id
    return f"{CORPUS_IRI_PREFIX}{quote(corpus_id, safe='')}"


def build_corpus_query(corpus_ids: list[str]) -> str:
    """Build the SELECT query that loads content for explicit corpus items."""
    values = " ".join(f"<{corpus_iri(cid)}>" for cid in corpus_ids)
    return (
        f"{SPARQL_PREFIXES}\n"
        "SELECT ?item ?content WHERE {\n"
        f"  VALUES ?item {{ {values} }}\n"
        "  { ?item schema:text ?content . } UNION { ?item schema:description ?content . }\n"
        "}\n"
    )


# =============================================================================
# Result shaping
# =============================================================================


def dedupe_snippets(bindings: list[dict], limit: int = DEFAULT_CONTEXT_LIMIT) -> list[ContextSnippet]:
    """
    Collapse bindings into unique snippets keyed by text.

    A binding that carries a source replaces an earlier sourceless one with
    the same text; otherwise the first occurrence wins.
    """
    unique: dict[str, str | None] = {}
    for binding in bindings:
        text = binding_value(binding, "textualContent")
        if not text or not text.strip():
            continue
        source = binding_value(binding, "sourceDocument")
        if text not in unique or (unique[text] is None and source):
            unique[text] = source

    snippets = [ContextSnippet(text=text, source=source) for text, source in unique.items()]
    return snippets[:limit]


# =============================================================================
# Retriever
# =============================================================================


class ContextRetriever:
    """Fetches prompt context for a query from the triple-store."""

    def __init__(
        self,
        triple_store: TripleStoreClient,
        limit: int = DEFAULT_CONTEXT_LIMIT,
        logger: logging.Logger | None = None,
    ):
        self.triple_store = triple_store
        self.limit = limit
        self.logger = logger or get_logger(__name__)

    async def retrieve(self, query: str) -> RetrievalResult:
        """
        Find context snippets relevant to a query.

        Args:
            query: Natural-language query (must be non-empty after trimming)

        Returns:
            RetrievalResult with at most `limit` unique snippets; on store
            failure, no snippets and `error` set

        Raises:
            ValueError: If the query is blank
        """
        query = query.strip()
        if not query:
            raise ValueError("query must not be empty")

        sparql = build_context_query(query, self.limit)
        try:
            data = await self.triple_store.select(sparql)
        except UpstreamServiceError as e:
            self.logger.error(f"Context retrieval failed, continuing without context: {e}")
            return RetrievalResult(error=str(e))

        bindings = data["results"].get("bindings") or []
        snippets = dedupe_snippets(bindings, self.limit)

        self.logger.info(
            f"Retrieved {len(snippets)} context snippets",
            extra={"bindings": len(bindings), "first_chars": snippets[0].text[:100] if snippets else "N/A"},
        )
        return RetrievalResult(snippets=snippets)

    async def load_corpus_items(self, corpus_ids: list[str]) -> CorpusResult:
        """
        Load content for explicitly requested corpus items.

        Ids with no content in the store are left out of the result. When an
        item has several text literals they are joined in result order.
        """
        if not corpus_ids:
            return CorpusResult()

        # Preserve request order, drop duplicates
        ordered_ids = list(dict.fromkeys(corpus_ids))
        iri_to_id = {corpus_iri(cid): cid for cid in ordered_ids}

        try:
            data = await self.triple_store.select(build_corpus_query(ordered_ids))
        except UpstreamServiceError as e:
            self.logger.error(f"Corpus loading failed: {e}")
            return CorpusResult(error=str(e))

        contents: dict[str, list[str]] = {}
        for binding in data["results"].get("bindings") or []:
            iri = binding_value(binding, "item")
            content = binding_value(binding, "content")
            if iri in iri_to_id and content and content not in contents.setdefault(iri, []):
                contents[iri].append(content)

        items = [
            CorpusItem(id=iri_to_id[iri], iri=iri, content="\n".join(contents[iri]))
            for iri in iri_to_id
            if contents.get(iri)
        ]

        missing = len(ordered_ids) - len(items)
        if missing:
            self.logger.warning(f"{missing} requested corpus items have no content")
        self.logger.info(f"Loaded {len(items)} corpus items", extra={"requested": len(ordered_ids)})
        return CorpusResult(items=items)

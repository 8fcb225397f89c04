"""Provenance graph serialization for hypotheses.

Each hypothesis becomes a small RDF graph rooted at `urn:uuid:<id>`:

    <urn:uuid:ID> a sio:SIO_000283 ;                  # hypothesis
        schema:text "..." ;
        dcterms:created / dcterms:modified  xsd:dateTime ;
        schema:version "generated" ;                  # status
        sio:SIO_000794 1.0 ;                          # score, xsd:decimal
        prov:wasGeneratedBy <urn:heo:agent:hypothesis-engine:v0.1.0> ;
        prov:wasInformedBy "originating query" ;
        schema:license <https://creativecommons.org/licenses/by/4.0/> ;
        dcterms:references <urn:ref:DOI:...> ;        # per source reference
        prov:wasDerivedFrom <urn:corpus:...> .        # per used context id

If the hypothesis was already anchored, the graph also points at its content
address (schema:distribution) and a resolvable gateway URL.
"""

import logging
from decimal import Decimal
from typing import Callable
from urllib.parse import quote

from rdflib import Graph, Literal, Namespace, URIRef
from rdflib.namespace import DCAT, DCTERMS, PROV, RDF, RDFS, XSD

from heo.core.errors import SerializationError
from heo.core.logging import get_logger
from heo.core.retrieval import corpus_iri
from heo.core.schemas_hypothesis import Hypothesis, ReferenceType

SCHEMA = Namespace("http://schema.org/")
SIO = Namespace("http://semanticscience.org/resource/")

HYPOTHESIS_CLASS = SIO.SIO_000283
SCORE_PREDICATE = SIO.SIO_000794

AGENT_URI = "urn:heo:agent:hypothesis-engine:v0.1.0"
DEFAULT_LICENSE_URI = "https://creativecommons.org/licenses/by/4.0/"
DEFAULT_GATEWAY_URL = "https://ipfs.io/ipfs/"


def hypothesis_uri(hypothesis_id: str) -> URIRef:
    return URIRef(f"urn:uuid:{hypothesis_id}")


def reference_uri(ref_type: str, value: str) -> URIRef:
    return URIRef(f"urn:ref:{ref_type}:{quote(value, safe='')}")


def decimal_lexical(value: float) -> str:
    """xsd:decimal lexical form (no exponent)."""
    text = format(Decimal(repr(float(value))), "f")
    return text if "." in text else f"{text}.0"


class ProvenanceGraphBuilder:
    """Builds and serializes the provenance graph for one hypothesis."""

    def __init__(
        self,
        agent_uri: str = AGENT_URI,
        license_uri: str = DEFAULT_LICENSE_URI,
        content_url: Callable[[str], str] | None = None,
        fmt: str = "turtle",
        logger: logging.Logger | None = None,
    ):
        self.agent_uri = URIRef(agent_uri)
        self.license_uri = URIRef(license_uri)
        self.content_url = content_url or (lambda cid: f"{DEFAULT_GATEWAY_URL}{cid}")
        self.fmt = fmt
        self.logger = logger or get_logger(__name__)

    def build_graph(self, hypothesis: Hypothesis, original_query: str | None = None) -> Graph:
        """Assemble the triples for a hypothesis."""
        graph = Graph()
        graph.bind("rdf", RDF)
        graph.bind("rdfs", RDFS)
        graph.bind("schema", SCHEMA, replace=True)
        graph.bind("sio", SIO)
        graph.bind("prov", PROV)
        graph.bind("dcterms", DCTERMS)
        graph.bind("dcat", DCAT)
        graph.bind("xsd", XSD)

        subject = hypothesis_uri(hypothesis.id)
        updated_at = hypothesis.updated_at or hypothesis.created_at

        graph.add((subject, RDF.type, HYPOTHESIS_CLASS))
        graph.add((subject, SCHEMA.text, Literal(hypothesis.text)))
        graph.add((subject, DCTERMS.created, Literal(hypothesis.created_at.isoformat(), datatype=XSD.dateTime)))
        graph.add((subject, DCTERMS.modified, Literal(updated_at.isoformat(), datatype=XSD.dateTime)))
        graph.add((subject, SCHEMA.version, Literal(hypothesis.status.value)))
        graph.add(
            (subject, SCORE_PREDICATE, Literal(decimal_lexical(hypothesis.novelty_score), datatype=XSD.decimal))
        )
        graph.add((subject, PROV.wasGeneratedBy, self.agent_uri))

        if original_query:
            graph.add((subject, PROV.wasInformedBy, Literal(original_query)))

        graph.add((subject, SCHEMA.license, self.license_uri))

        # Not expected in the normal flow: graphs are built before anchoring
        if hypothesis.content_id:
            distribution = URIRef(f"ipfs://{hypothesis.content_id}")
            graph.add((subject, SCHEMA.distribution, distribution))
            graph.add((distribution, SCHEMA.contentUrl, URIRef(self.content_url(hypothesis.content_id))))

        for ref in hypothesis.source_references:
            ref_node = reference_uri(ref.type.value, ref.value)
            ref_class = SCHEMA.ScholarlyArticle if ref.type == ReferenceType.DOI else SCHEMA.Thing
            graph.add((subject, DCTERMS.references, ref_node))
            graph.add((ref_node, RDF.type, ref_class))
            graph.add((ref_node, SCHEMA.identifier, Literal(ref.value)))

        for context_id in hypothesis.used_context_ids:
            context_node = URIRef(corpus_iri(context_id))
            graph.add((subject, PROV.wasDerivedFrom, context_node))
            graph.add((context_node, RDF.type, DCAT.Dataset))

        return graph

    def serialize(self, hypothesis: Hypothesis, original_query: str | None = None) -> str:
        """
        Serialize the provenance graph for a hypothesis.

        Raises:
            SerializationError: If the graph cannot be built or serialized
        """
        try:
            graph = self.build_graph(hypothesis, original_query)
            data = graph.serialize(format=self.fmt)
        except Exception as e:
            self.logger.error(
                f"Failed to serialize provenance graph: {e}",
                extra={"hypothesis_id": hypothesis.id},
            )
            raise SerializationError(f"Could not serialize graph for {hypothesis.id}: {e}") from e

        if isinstance(data, bytes):
            data = data.decode("utf-8")

        self.logger.info(
            "Provenance graph generated",
            extra={"hypothesis_id": hypothesis.id, "triples": len(graph), "length": len(data)},
        )
        return data

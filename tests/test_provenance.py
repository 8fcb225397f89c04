"""Tests for provenance graph construction and serialization."""

from decimal import Decimal

import pytest
from rdflib import Graph, Literal, URIRef
from rdflib.namespace import DCAT, DCTERMS, PROV, RDF, XSD

from heo.core.errors import SerializationError
from heo.core.provenance import (
    AGENT_URI,
    DEFAULT_LICENSE_URI,
    HYPOTHESIS_CLASS,
    SCHEMA,
    SCORE_PREDICATE,
    ProvenanceGraphBuilder,
    decimal_lexical,
    hypothesis_uri,
    reference_uri,
)
from heo.core.schemas_hypothesis import Hypothesis, ReferenceType, SourceReference


@pytest.fixture
def hypothesis() -> Hypothesis:
    return Hypothesis(
        id="0b6c3c1e-7a51-4c1b-9a55-2f7e3f0d8a10",
        text="Guide RNA truncation reduces off-target cleavage by Cas9.",
        novelty_score=1.0,
        source_references=[
            SourceReference(type=ReferenceType.DOI, value="10.1038/nbt.2808"),
            SourceReference(type=ReferenceType.URI, value="http://example.org/paper"),
        ],
        used_context_ids=["paper-1"],
    )


def parse(data: str) -> Graph:
    graph = Graph()
    graph.parse(data=data, format="turtle")
    return graph


class TestSerialize:
    """Round-trips the serialized graph through rdflib's Turtle parser."""

    def test_core_triples(self, hypothesis):
        data = ProvenanceGraphBuilder().serialize(hypothesis, "CRISPR specificity")
        graph = parse(data)
        subject = hypothesis_uri(hypothesis.id)

        assert subject == URIRef("urn:uuid:0b6c3c1e-7a51-4c1b-9a55-2f7e3f0d8a10")
        assert (subject, RDF.type, HYPOTHESIS_CLASS) in graph
        assert graph.value(subject, SCHEMA.text) == Literal(hypothesis.text)
        assert graph.value(subject, SCHEMA.version) == Literal("generated")
        assert graph.value(subject, PROV.wasGeneratedBy) == URIRef(AGENT_URI)
        assert graph.value(subject, PROV.wasInformedBy) == Literal("CRISPR specificity")
        assert graph.value(subject, SCHEMA.license) == URIRef(DEFAULT_LICENSE_URI)

    def test_schema_prefix_is_http_schema_org(self, hypothesis):
        data = ProvenanceGraphBuilder().serialize(hypothesis)

        assert "@prefix schema: <http://schema.org/> ." in data
        assert "schema1:" not in data

    def test_score_is_decimal(self, hypothesis):
        graph = parse(ProvenanceGraphBuilder().serialize(hypothesis))
        score = graph.value(hypothesis_uri(hypothesis.id), SCORE_PREDICATE)

        assert score.datatype == XSD.decimal
        assert score.toPython() == Decimal("1.0")

    def test_timestamps_are_datetimes(self, hypothesis):
        graph = parse(ProvenanceGraphBuilder().serialize(hypothesis))
        subject = hypothesis_uri(hypothesis.id)

        created = graph.value(subject, DCTERMS.created)
        modified = graph.value(subject, DCTERMS.modified)
        assert created.datatype == XSD.dateTime
        assert modified.datatype == XSD.dateTime
        assert created.toPython() == hypothesis.created_at

    def test_references(self, hypothesis):
        graph = parse(ProvenanceGraphBuilder().serialize(hypothesis))
        subject = hypothesis_uri(hypothesis.id)
        doi = reference_uri("DOI", "10.1038/nbt.2808")
        uri = reference_uri("URI", "http://example.org/paper")

        assert set(graph.objects(subject, DCTERMS.references)) == {doi, uri}
        assert (doi, RDF.type, SCHEMA.ScholarlyArticle) in graph
        assert (uri, RDF.type, SCHEMA.Thing) in graph
        assert graph.value(doi, SCHEMA.identifier) == Literal("10.1038/nbt.2808")
        assert str(doi) == "urn:ref:DOI:10.1038%2Fnbt.2808"

    def test_used_context_ids(self, hypothesis):
        graph = parse(ProvenanceGraphBuilder().serialize(hypothesis))
        corpus = URIRef("urn:corpus:paper-1")

        assert (hypothesis_uri(hypothesis.id), PROV.wasDerivedFrom, corpus) in graph
        assert (corpus, RDF.type, DCAT.Dataset) in graph

    def test_no_query_no_informed_by(self, hypothesis):
        graph = parse(ProvenanceGraphBuilder().serialize(hypothesis))
        assert graph.value(hypothesis_uri(hypothesis.id), PROV.wasInformedBy) is None

    def test_distribution_only_when_content_id_set(self, hypothesis):
        builder = ProvenanceGraphBuilder(content_url=lambda cid: f"https://gateway.test/ipfs/{cid}")
        subject = hypothesis_uri(hypothesis.id)

        assert builder.build_graph(hypothesis).value(subject, SCHEMA.distribution) is None

        hypothesis.mark_anchored("bafyexample")
        graph = builder.build_graph(hypothesis)
        distribution = graph.value(subject, SCHEMA.distribution)

        assert distribution == URIRef("ipfs://bafyexample")
        assert graph.value(distribution, SCHEMA.contentUrl) == URIRef("https://gateway.test/ipfs/bafyexample")
        assert graph.value(subject, SCHEMA.version) == Literal("anchored")

    def test_custom_license(self, hypothesis):
        builder = ProvenanceGraphBuilder(license_uri="https://example.org/license")
        graph = builder.build_graph(hypothesis)
        assert graph.value(hypothesis_uri(hypothesis.id), SCHEMA.license) == URIRef("https://example.org/license")

    def test_other_formats(self, hypothesis):
        data = ProvenanceGraphBuilder(fmt="json-ld").serialize(hypothesis)
        assert isinstance(data, str)
        assert "urn:uuid:0b6c3c1e-7a51-4c1b-9a55-2f7e3f0d8a10" in data

    def test_unknown_format_raises_serialization_error(self, hypothesis):
        with pytest.raises(SerializationError):
            ProvenanceGraphBuilder(fmt="no-such-format").serialize(hypothesis)


@pytest.mark.parametrize(
    "value,lexical",
    [(1.0, "1.0"), (0, "0.0"), (0.75, "0.75"), (1e-7, "0.0000001"), (0.123456789, "0.123456789")],
)
def test_decimal_lexical(value, lexical):
    assert decimal_lexical(value) == lexical

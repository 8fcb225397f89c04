"""HEO: hypothesis generation, novelty scoring and provenance anchoring."""

"""Line-oriented extraction of hypothesis statements from generated text.

The model is asked for a numbered list, but nothing guarantees it complies,
so parsing is a best-effort filter:
- strip a leading "Hypothesis:" / "Hypothesis 1." style marker
- strip a leading list marker (digits, dots, asterisks, dashes), and a
  hypothesis marker that follows it
- keep lines longer than MIN_STATEMENT_LENGTH whose statement contains a space
- drop "Reasoning:" and "Experiment Type:" lines
- dedupe by exact text, keep generation order, stop at max_count

Length is measured on the trimmed line as the model wrote it, list marker
included, so "1. Beta statement here" survives while a bare "Short line"
does not.
"""

import re

from heo.core.errors import ParseYieldedNothing

MIN_STATEMENT_LENGTH = 20

_HYPOTHESIS_MARKER = re.compile(r"^Hypothesis\s*[:.\d-]*\s*", re.IGNORECASE)
_LIST_MARKER = re.compile(r"^[\d.*-]+\s*")
_EXCLUDED_PREFIXES = ("reasoning:", "experiment type:")


def clean_line(line: str) -> str:
    """Strip whitespace and leading hypothesis/list markers from one line."""
    cleaned = line.strip()
    cleaned = _HYPOTHESIS_MARKER.sub("", cleaned)
    cleaned = _LIST_MARKER.sub("", cleaned)
    # "1. Hypothesis: ..." carries the marker after the list number
    cleaned = _HYPOTHESIS_MARKER.sub("", cleaned)
    return cleaned


def is_statement(raw_line: str, cleaned: str) -> bool:
    """Whether a line looks like a hypothesis statement."""
    return (
        len(raw_line.strip()) > MIN_STATEMENT_LENGTH
        and " " in cleaned
        and not cleaned.lower().startswith(_EXCLUDED_PREFIXES)
    )


def parse_hypotheses(text: str, max_count: int) -> list[str]:
    """
    Extract up to `max_count` unique hypothesis statements.

    Args:
        text: Raw generated text
        max_count: Maximum number of statements to return

    Returns:
        Statements in generation order (possibly empty)
    """
    if max_count <= 0 or not text:
        return []

    statements: list[str] = []
    seen: set[str] = set()
    for line in text.splitlines():
        cleaned = clean_line(line)
        if not is_statement(line, cleaned) or cleaned in seen:
            continue
        seen.add(cleaned)
        statements.append(cleaned)
        if len(statements) >= max_count:
            break
    return statements


def parse_hypotheses_strict(text: str, max_count: int) -> list[str]:
    """Like parse_hypotheses, but raises ParseYieldedNothing on an empty yield."""
    statements = parse_hypotheses(text, max_count)
    if not statements:
        raise ParseYieldedNothing(f"No hypothesis statements found in {len(text)} chars of text")
    return statements

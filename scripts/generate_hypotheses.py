"""Generate, score and anchor hypotheses for a research query.

Usage:
    uv run python scripts/generate_hypotheses.py "<query>" \
        [--max N] [--threshold T] [--corpus-id ID ...] \
        [--allow-query-fallback] [--model NAME] [--show-graph] [--dump <path>]

Examples:
    # Default settings from the environment / .env
    uv run python scripts/generate_hypotheses.py "CRISPR specificity"

    # Keep everything, print the anchored graphs, dump the run to JSON
    uv run python scripts/generate_hypotheses.py "CRISPR specificity" \
        --threshold -1 --show-graph --dump /tmp/crispr-run.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path

# Ensure heo is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


async def run(args: argparse.Namespace) -> int:
    from heo.core.config import PipelineConfig, get_settings
    from heo.core.errors import ConfigurationError, UpstreamServiceError
    from heo.core.schemas_hypothesis import GenerationParams, HypothesisGenerationInput
    from heo.graphs.hypothesis_pipeline_graph import Pipeline
    from heo.services.content_store import is_placeholder_cid

    settings = get_settings()
    config = PipelineConfig.from_settings(settings)
    if args.allow_query_fallback:
        config = replace(config, allow_query_fallback=True)

    try:
        pipeline = Pipeline.from_settings(settings, config=config)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    request = HypothesisGenerationInput(
        query=args.query,
        corpus_ids=args.corpus_id or [],
        generation_params=GenerationParams(
            max_hypotheses=args.max,
            novelty_threshold=args.threshold,
            model_name=args.model,
        ),
    )

    result = await pipeline.run_with_report(request)

    print(f"\n{'='*60}")
    print(f"Run {result.run_id}: {len(result.hypotheses)} hypotheses")
    print(f"  Stages: {' -> '.join(result.stages)}")
    for error in result.errors:
        print(f"  Degraded: {error}")

    for i, hypothesis in enumerate(result.hypotheses, 1):
        print(f"\n{i}. {hypothesis.text}")
        print(f"   novelty={hypothesis.novelty_score:.3f} status={hypothesis.status.value}")
        if hypothesis.content_id:
            print(f"   content_id={hypothesis.content_id}")
            if args.show_graph and not is_placeholder_cid(hypothesis.content_id):
                try:
                    graph = await pipeline.content_store.retrieve(hypothesis.content_id)
                    print(graph.decode("utf-8"))
                except UpstreamServiceError as e:
                    print(f"   (could not fetch graph: {e})")

    if args.dump:
        payload = {
            "run_id": result.run_id,
            "query": request.query,
            "stages": result.stages,
            "errors": result.errors,
            "used_query_fallback": result.used_query_fallback,
            "hypotheses": [h.model_dump(mode="json") for h in result.hypotheses],
        }
        Path(args.dump).write_text(json.dumps(payload, indent=2))
        print(f"\nDumped run to {args.dump}")

    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate novel hypotheses for a research query")
    parser.add_argument("query", help="Free-text research query")
    parser.add_argument("--max", type=int, default=None, help="Max hypotheses to request")
    parser.add_argument("--threshold", type=float, default=None, help="Novelty threshold override")
    parser.add_argument("--corpus-id", action="append", help="Corpus item to include (repeatable)")
    parser.add_argument("--model", default=None, help="Generation model override")
    parser.add_argument(
        "--allow-query-fallback",
        action="store_true",
        help="Use the query itself when no hypothesis can be parsed",
    )
    parser.add_argument("--show-graph", action="store_true", help="Fetch and print anchored graphs")
    parser.add_argument("--dump", default=None, help="Write the run to a JSON file")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()

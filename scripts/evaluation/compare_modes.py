from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from time import perf_counter

from scripts.evaluation._env import configure_logging, load_dotenv_file

from admissions_rag.app.evaluation.service import ContextEvaluator
from admissions_rag.app.llm.providers import build_completion_service
from admissions_rag.app.orchestration.service import (
    PipelineResult,
    RetrievalPipeline,
    build_pipeline,
)
from admissions_rag.app.retrieval.contracts import RetrievalUnavailableError
from admissions_rag.app.retrieval.models import BALANCED_STRATEGY, PipelineMode
from admissions_rag.core.config import (
    AppConfig,
    load_app_config,
    with_runtime_gemini_key,
)

MODES = ("fast", "balanced", "smart")


async def run_comparison_mode(
    pipeline: RetrievalPipeline,
    query: str,
    mode: str,
) -> PipelineResult:
    if mode == "balanced":
        return await pipeline.run(query, BALANCED_STRATEGY, mode=PipelineMode.CUSTOM)
    return await pipeline.run_mode(query, PipelineMode(mode))


def resolve_config(gemini_key: str | None) -> AppConfig:
    return with_runtime_gemini_key(load_app_config(), gemini_key)


async def _run_query(
    pipeline: RetrievalPipeline,
    evaluator: ContextEvaluator,
    query: str,
    mode: str,
) -> dict[str, object]:
    start = perf_counter()
    try:
        result = await run_comparison_mode(pipeline, query, mode)
    except RetrievalUnavailableError as exc:
        return {"query": query, "mode": mode, "error": str(exc)}
    elapsed_ms = (perf_counter() - start) * 1000.0
    metrics = await evaluator.evaluate(query, result.context)
    return {
        "query": query,
        "mode": mode,
        "latency_ms": round(elapsed_ms, 2),
        "context_chars": len(result.context),
        "fragment_count": len(result.fragments),
        "fragment_sources": [fragment.source for fragment in result.fragments],
        "top_k": result.strategy.top_k,
        "degraded": result.trace.degraded,
        "degraded_stages": [
            stage.stage for stage in result.trace.stages if stage.status == "degraded"
        ],
        "metrics": metrics.as_dict(),
    }


async def _main_async(
    queries: list[str],
    output_file: Path | None,
    config: AppConfig,
) -> None:
    completion = build_completion_service(
        runtime_key=config.gemini_api_key,
        backend=config.completion_backend,
        model=config.completion_model,
        timeout_seconds=config.completion_timeout_seconds,
    )
    pipeline = build_pipeline(config, completion_service=completion)
    evaluator = ContextEvaluator(completion)

    rows: list[dict[str, object]] = []
    for query in queries:
        for mode in MODES:
            row = await _run_query(pipeline, evaluator, query, mode)
            rows.append(row)
            _print_row(row)

    payload = {"queries": queries, "results": rows, "summary": evaluator.statistics()}
    if output_file is not None:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def _print_row(row: dict[str, object]) -> None:
    if "error" in row:
        print(f"[{row['mode']}] {row['query']!r}: error {row['error']}")
        return
    metrics = row["metrics"]
    overall = metrics["overall"] if isinstance(metrics, dict) else 0.0
    print(
        f"[{row['mode']}] {row['query']!r}: {row['latency_ms']}ms, "
        f"{row['context_chars']} chars, overall={overall:.2f}"
    )


def _load_queries(args: argparse.Namespace) -> list[str]:
    if args.query:
        return [args.query]
    queries = json.loads(Path(args.queries).read_text(encoding="utf-8"))
    if not isinstance(queries, list) or not all(
        isinstance(item, str) for item in queries
    ):
        raise ValueError("Query file must be a JSON array of strings")
    return queries


def main() -> None:
    load_dotenv_file()
    parser = argparse.ArgumentParser(
        description="Compare fast, balanced and smart retrieval modes"
    )
    parser.add_argument("query", nargs="?", help="Single query to compare")
    parser.add_argument(
        "--queries",
        default="data/eval/admissions_queries.json",
        help="Path to JSON query list (used when no query is given)",
    )
    parser.add_argument(
        "--output",
        default=".tmp/evaluation/mode_comparison.json",
        help="Path for JSON comparison output",
    )
    parser.add_argument(
        "--gemini-key",
        default=None,
        help="Gemini API key for this run (overrides GEMINI_API_KEY)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log pipeline stages")
    args = parser.parse_args()

    configure_logging(args.verbose)
    asyncio.run(
        _main_async(
            _load_queries(args),
            Path(args.output),
            resolve_config(args.gemini_key),
        )
    )


if __name__ == "__main__":
    main()

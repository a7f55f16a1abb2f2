from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from admissions_rag.app.llm.providers import parse_ten_point_score
from admissions_rag.app.retrieval.contracts import CompletionService

LOGGER = logging.getLogger(__name__)

EVALUATION_CONTEXT_CHARS = 2000
NEUTRAL_SCORE = 0.5
METRIC_WEIGHTS = {
    "relevance": 0.4,
    "completeness": 0.3,
    "conciseness": 0.2,
    "faithfulness": 0.1,
}


@dataclass(frozen=True)
class EvaluationMetrics:
    relevance: float
    completeness: float
    conciseness: float
    overall: float
    faithfulness: float | None = None

    def as_dict(self) -> dict[str, float | None]:
        return asdict(self)


@dataclass(frozen=True)
class EvaluationRecord:
    timestamp: datetime
    query: str
    metrics: EvaluationMetrics
    context_length: int


def score_conciseness(context: str) -> float:
    words = context.split()
    if not words:
        return 0.0
    redundancy_ratio = len({word.lower() for word in words}) / len(words)

    score = 1.0
    if len(context) > 5000:
        score -= 0.2
    if len(context) > 8000:
        score -= 0.2
    if redundancy_ratio < 0.4:
        score -= 0.3
    return max(0.0, round(score, 4))


def overall_score(metrics: dict[str, float | None]) -> float:
    score = 0.0
    total_weight = 0.0
    for name, weight in METRIC_WEIGHTS.items():
        value = metrics.get(name)
        if value is None:
            continue
        score += value * weight
        total_weight += weight
    return score / total_weight if total_weight > 0 else 0.0


class ContextEvaluator:
    """Scores retrieved context for relevance, completeness and conciseness.

    Relevance, completeness and faithfulness are judged by the completion
    service on a 0-10 scale; an unusable judgement counts as neutral (0.5).
    Conciseness is computed locally from length and word redundancy.
    """

    def __init__(self, completion_service: CompletionService) -> None:
        self._completion_service = completion_service
        self._history: list[EvaluationRecord] = []

    async def evaluate(
        self,
        query: str,
        context: str,
        ground_truth_answer: str | None = None,
    ) -> EvaluationMetrics:
        relevance = await self._judge(_relevance_prompt(query, context), "relevance")
        completeness = await self._judge(
            _completeness_prompt(query, context), "completeness"
        )
        faithfulness = None
        if ground_truth_answer:
            faithfulness = await self._judge(
                _faithfulness_prompt(context, ground_truth_answer), "faithfulness"
            )
        conciseness = score_conciseness(context)
        metrics = EvaluationMetrics(
            relevance=relevance,
            completeness=completeness,
            conciseness=conciseness,
            faithfulness=faithfulness,
            overall=overall_score(
                {
                    "relevance": relevance,
                    "completeness": completeness,
                    "conciseness": conciseness,
                    "faithfulness": faithfulness,
                }
            ),
        )
        self._history.append(
            EvaluationRecord(
                timestamp=datetime.now(timezone.utc),
                query=query,
                metrics=metrics,
                context_length=len(context),
            )
        )
        return metrics

    def statistics(self) -> dict[str, object]:
        if not self._history:
            return {"total_evaluations": 0}

        stats: dict[str, object] = {}
        for name in ("relevance", "completeness", "conciseness", "overall"):
            values = [getattr(record.metrics, name) for record in self._history]
            stats[name] = {
                "average": sum(values) / len(values),
                "min": min(values),
                "max": max(values),
                "count": len(values),
            }
        stats["total_evaluations"] = len(self._history)
        stats["average_context_length"] = sum(
            record.context_length for record in self._history
        ) / len(self._history)
        return stats

    def recent(self, limit: int = 10) -> list[EvaluationRecord]:
        return list(reversed(self._history[-limit:]))

    def reset(self) -> None:
        self._history.clear()

    async def _judge(self, prompt: str, metric: str) -> float:
        try:
            text = await self._completion_service.complete(
                prompt,
                max_tokens=5,
                temperature=0.2,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Evaluation judgement failed; scoring as neutral",
                extra={"metric": metric},
                exc_info=exc,
            )
            return NEUTRAL_SCORE
        score = parse_ten_point_score(text) if isinstance(text, str) else None
        return NEUTRAL_SCORE if score is None else score


def _relevance_prompt(query: str, context: str) -> str:
    return (
        "Rate how relevant this retrieved context is for answering the query.\n\n"
        f'Query: "{query}"\n\n'
        f'Context: "{context[:EVALUATION_CONTEXT_CHARS]}"\n\n'
        "Rate from 0-10 where:\n"
        "- 10: Perfectly relevant, directly answers the query\n"
        "- 7-9: Highly relevant, contains most needed information\n"
        "- 4-6: Somewhat relevant, contains some useful information\n"
        "- 1-3: Barely relevant, mostly unrelated\n"
        "- 0: Completely irrelevant\n\n"
        "Respond with ONLY a number:"
    )


def _completeness_prompt(query: str, context: str) -> str:
    return (
        "Rate how complete this context is for fully answering the query.\n\n"
        f'Query: "{query}"\n\n'
        f'Context: "{context[:EVALUATION_CONTEXT_CHARS]}"\n\n'
        "Rate from 0-10 where:\n"
        "- 10: Contains all information needed for complete answer\n"
        "- 7-9: Contains most information, minor gaps\n"
        "- 4-6: Partial information, significant gaps\n"
        "- 1-3: Very incomplete, major information missing\n"
        "- 0: Missing all necessary information\n\n"
        "Respond with ONLY a number:"
    )


def _faithfulness_prompt(context: str, answer: str) -> str:
    return (
        "Does this answer only use information from the context, without "
        "hallucination?\n\n"
        f'Context: "{context[:EVALUATION_CONTEXT_CHARS]}"\n\n'
        f'Answer: "{answer}"\n\n'
        "Rate from 0-10 where:\n"
        "- 10: Perfectly faithful, every claim is in context\n"
        "- 7-9: Mostly faithful, minor extrapolations\n"
        "- 4-6: Some claims not in context\n"
        "- 1-3: Many claims not in context\n"
        "- 0: Completely hallucinated\n\n"
        "Respond with ONLY a number:"
    )

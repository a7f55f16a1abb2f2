from __future__ import annotations

import logging
import re

from admissions_rag.app.retrieval.contracts import CompletionService
from admissions_rag.app.retrieval.models import QueryIntent, Strategy

LOGGER = logging.getLogger(__name__)

DEFAULT_INTENT = QueryIntent.FACTUAL

# Exact facts must not be dropped: FACTUAL keeps the lowest floor and no compression.
STRATEGY_PRESETS: dict[QueryIntent, Strategy] = {
    QueryIntent.FACTUAL: Strategy(
        top_k=10,
        min_relevance_score=0.15,
        enable_diversity_selection=False,
        compression_target_ratio=1.0,
    ),
    QueryIntent.COMPARISON: Strategy(
        top_k=12,
        min_relevance_score=0.2,
        enable_diversity_selection=True,
        compression_target_ratio=0.95,
    ),
    QueryIntent.PROCEDURAL: Strategy(
        top_k=8,
        min_relevance_score=0.25,
        enable_diversity_selection=True,
        compression_target_ratio=0.95,
    ),
    QueryIntent.CONCEPTUAL: Strategy(
        top_k=10,
        min_relevance_score=0.2,
        enable_diversity_selection=True,
        compression_target_ratio=0.95,
    ),
}


def strategy_for_intent(intent: QueryIntent) -> Strategy:
    return STRATEGY_PRESETS.get(intent, STRATEGY_PRESETS[DEFAULT_INTENT])


def parse_intent_label(text: str) -> QueryIntent:
    match = re.search(r"[A-Za-z]+", text)
    if not match:
        return DEFAULT_INTENT
    label = match.group(0).upper()
    if label in {item.value for item in QueryIntent}:
        return QueryIntent(label)
    return DEFAULT_INTENT


def _classification_prompt(query: str) -> str:
    return (
        "Classify this query into ONE category:\n"
        "1. FACTUAL - Asking for specific facts, numbers, dates, requirements\n"
        "2. COMPARISON - Comparing options, programs, or alternatives\n"
        "3. PROCEDURAL - How to do something, steps, processes\n"
        "4. CONCEPTUAL - Understanding concepts, explanations\n\n"
        f'Query: "{query}"\n\n'
        "Category (one word):"
    )


class QueryRouter:
    def __init__(self, completion_service: CompletionService) -> None:
        self._completion_service = completion_service

    async def classify(self, query: str) -> QueryIntent:
        intent, _ = await self.classify_with_status(query)
        return intent

    async def classify_with_status(self, query: str) -> tuple[QueryIntent, bool]:
        try:
            text = await self._completion_service.complete(
                _classification_prompt(query),
                max_tokens=10,
                temperature=0.2,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Query routing failed; defaulting to factual strategy",
                extra={"query": query},
                exc_info=exc,
            )
            return DEFAULT_INTENT, True
        if not isinstance(text, str):
            return DEFAULT_INTENT, True
        return parse_intent_label(text), False

    async def route(self, query: str) -> Strategy:
        strategy, _ = await self.route_with_status(query)
        return strategy

    async def route_with_status(self, query: str) -> tuple[Strategy, bool]:
        intent, degraded = await self.classify_with_status(query)
        LOGGER.info("Query routed", extra={"intent": intent.value})
        return strategy_for_intent(intent), degraded

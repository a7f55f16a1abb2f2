from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from admissions_rag.app.retrieval.contracts import (
    EmbeddingProvider,
    KeywordSearchStore,
    RetrievalUnavailableError,
    VectorSearchStore,
)
from admissions_rag.app.retrieval.dedupe import normalize_content
from admissions_rag.app.retrieval.models import DocumentFragment
from admissions_rag.app.retrieval.query_patterns import (
    DEFAULT_QUERY_PATTERNS,
    QueryPatternCategory,
    match_categories,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_SIMILARITY_FLOOR = 0.3
SEMANTIC_WEIGHT = 0.6
KEYWORD_WEIGHT = 0.4
BOOSTED_SEMANTIC_WEIGHT = 0.3
BOOSTED_KEYWORD_WEIGHT = 0.7
PROBE_RESULT_LIMIT = 5
DEFAULT_MAX_PROBES = 10


@dataclass(frozen=True)
class HybridSearchPlan:
    query: str
    top_k: int
    categories: tuple[str, ...]
    keyword_limit: int
    semantic_weight: float
    keyword_weight: float
    probes: tuple[str, ...]

    @property
    def boosted(self) -> bool:
        return bool(self.categories)


def combine_search_results(
    semantic_fragments: list[DocumentFragment],
    keyword_fragments: list[DocumentFragment],
    semantic_weight: float,
    keyword_weight: float,
) -> list[DocumentFragment]:
    """Merge two ranked lists with rank-based weighted scores.

    Each list scores position ``i`` of ``n`` as ``1 - i / n`` times its
    weight. Fragments are keyed by normalized content, and a fragment found
    in both lists gets the sum of its two weighted scores.
    """
    merged: dict[str, DocumentFragment] = {}
    scores: dict[str, float] = {}

    for fragments, weight in (
        (semantic_fragments, semantic_weight),
        (keyword_fragments, keyword_weight),
    ):
        count = len(fragments)
        for index, fragment in enumerate(fragments):
            key = normalize_content(fragment.content)
            weighted = (1 - index / count) * weight
            if key in merged:
                scores[key] += weighted
            else:
                merged[key] = fragment
                scores[key] = weighted

    combined = [merged[key].with_score(scores[key]) for key in merged]
    return sorted(combined, key=lambda fragment: fragment.relevance_score, reverse=True)


class HybridRetriever:
    def __init__(
        self,
        *,
        embedding_provider: EmbeddingProvider,
        vector_store: VectorSearchStore,
        keyword_store: KeywordSearchStore,
        categories: tuple[QueryPatternCategory, ...] = DEFAULT_QUERY_PATTERNS,
        similarity_floor: float = DEFAULT_SIMILARITY_FLOOR,
        max_probes: int = DEFAULT_MAX_PROBES,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._keyword_store = keyword_store
        self._categories = categories
        self._similarity_floor = similarity_floor
        self._max_probes = max_probes

    def plan(self, query: str, top_k: int) -> HybridSearchPlan:
        matched = match_categories(query, self._categories)
        probes: list[str] = []
        for category in matched:
            probes.extend(category.probes_for(query))
        boosted = bool(matched)
        return HybridSearchPlan(
            query=query,
            top_k=top_k,
            categories=tuple(category.name for category in matched),
            keyword_limit=top_k * 2 if boosted else top_k,
            semantic_weight=BOOSTED_SEMANTIC_WEIGHT if boosted else SEMANTIC_WEIGHT,
            keyword_weight=BOOSTED_KEYWORD_WEIGHT if boosted else KEYWORD_WEIGHT,
            probes=tuple(probes[: self._max_probes]),
        )

    async def search(
        self,
        query: str,
        top_k: int,
        *,
        hybrid: bool = True,
    ) -> list[DocumentFragment]:
        fragments, _ = await self.search_with_status(query, top_k, hybrid=hybrid)
        return fragments

    async def search_with_status(
        self,
        query: str,
        top_k: int,
        *,
        hybrid: bool = True,
    ) -> tuple[list[DocumentFragment], bool]:
        """Search and report whether any fallback branch served the results."""
        if not hybrid:
            return await self._semantic_with_keyword_fallback(query, top_k)

        plan = self.plan(query, top_k)
        try:
            return await self._hybrid_search(plan), False
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Hybrid search failed; falling back to semantic search",
                extra={"query": query, "categories": plan.categories},
                exc_info=exc,
            )
        fragments, _ = await self._semantic_with_keyword_fallback(query, top_k)
        return fragments, True

    async def semantic_search(
        self,
        query: str,
        top_k: int,
        similarity_floor: float | None = None,
    ) -> list[DocumentFragment]:
        floor = self._similarity_floor if similarity_floor is None else similarity_floor
        vector = await asyncio.to_thread(self._embedding_provider.embed_query, query)
        return await asyncio.to_thread(
            self._vector_store.vector_search,
            vector,
            floor,
            top_k,
        )

    async def keyword_search(self, query: str, limit: int) -> list[DocumentFragment]:
        return await asyncio.to_thread(self._keyword_store.keyword_search, query, limit)

    async def _hybrid_search(self, plan: HybridSearchPlan) -> list[DocumentFragment]:
        if plan.probes:
            LOGGER.info(
                "Query pattern boost applied",
                extra={"categories": plan.categories, "probe_count": len(plan.probes)},
            )
        semantic, keyword, *probe_results = await asyncio.gather(
            self.semantic_search(plan.query, plan.top_k),
            self.keyword_search(plan.query, plan.keyword_limit),
            *(self.keyword_search(probe, PROBE_RESULT_LIMIT) for probe in plan.probes),
        )
        keyword_fragments = list(keyword)
        for rows in probe_results:
            keyword_fragments.extend(rows)
        return combine_search_results(
            semantic,
            keyword_fragments,
            plan.semantic_weight,
            plan.keyword_weight,
        )

    async def _semantic_with_keyword_fallback(
        self,
        query: str,
        top_k: int,
    ) -> tuple[list[DocumentFragment], bool]:
        try:
            return await self.semantic_search(query, top_k), False
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Semantic search failed; falling back to keyword search",
                extra={"query": query},
                exc_info=exc,
            )
        try:
            return await self.keyword_search(query, top_k), True
        except Exception as exc:
            raise RetrievalUnavailableError(
                "semantic and keyword search are both unavailable"
            ) from exc

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import lru_cache

from admissions_rag.app.llm.providers import build_completion_service
from admissions_rag.app.orchestration.telemetry import (
    PipelineTrace,
    StageTrace,
    create_trace_id,
    elapsed_ms,
    emit_pipeline_telemetry,
    skipped_stage,
    stage_trace,
)
from admissions_rag.app.retrieval.compression import (
    NOT_FOUND_CONTEXT,
    ContextCompressor,
)
from admissions_rag.app.retrieval.contracts import (
    CompletionService,
    EmbeddingProvider,
    KeywordSearchStore,
    VectorSearchStore,
)
from admissions_rag.app.retrieval.dedupe import dedupe_fragments
from admissions_rag.app.retrieval.diversity import select_diverse
from admissions_rag.app.retrieval.embeddings import build_embedding_provider
from admissions_rag.app.retrieval.hybrid import HybridRetriever
from admissions_rag.app.retrieval.models import (
    DEFAULT_STRATEGY,
    FAST_STRATEGY,
    DocumentFragment,
    PipelineMode,
    Strategy,
)
from admissions_rag.app.retrieval.query_patterns import load_query_patterns
from admissions_rag.app.retrieval.reformulation import QueryReformulator
from admissions_rag.app.retrieval.rerank import RelevanceReranker, filter_by_relevance
from admissions_rag.app.retrieval.seed_store import SeedKnowledgeBase
from admissions_rag.app.retrieval.supabase_store import (
    SupabaseKeywordStore,
    SupabaseVectorStore,
)
from admissions_rag.app.routing.service import QueryRouter
from admissions_rag.core.config import AppConfig, load_app_config, supabase_ready

LOGGER = logging.getLogger(__name__)

HYPOTHETICAL_DOCUMENT_FLOOR = 0.4


def _status(degraded: bool) -> str:
    return "degraded" if degraded else "ok"


@dataclass(frozen=True)
class PipelineResult:
    context: str
    fragments: tuple[DocumentFragment, ...]
    strategy: Strategy
    trace: PipelineTrace


class RetrievalPipeline:
    """Drives one query through the retrieval stages.

    Components are injected so any stage can be swapped for a fake in tests.
    Every call builds its own fragment lists; nothing is shared between calls.
    """

    def __init__(
        self,
        *,
        retriever: HybridRetriever,
        reformulator: QueryReformulator,
        reranker: RelevanceReranker,
        compressor: ContextCompressor,
        router: QueryRouter,
    ) -> None:
        self._retriever = retriever
        self._reformulator = reformulator
        self._reranker = reranker
        self._compressor = compressor
        self._router = router

    async def retrieve(self, query: str, strategy: Strategy | None = None) -> str:
        result = await self.run(query, strategy, mode=PipelineMode.CUSTOM)
        return result.context

    async def fast_retrieve(self, query: str) -> str:
        result = await self.run_mode(query, PipelineMode.FAST)
        return result.context

    async def smart_retrieve(self, query: str) -> str:
        result = await self.run_mode(query, PipelineMode.SMART)
        return result.context

    async def retrieve_context(
        self,
        query: str,
        strategy_or_mode: Strategy | PipelineMode | str = PipelineMode.SMART,
    ) -> str:
        if isinstance(strategy_or_mode, Strategy):
            return await self.retrieve(query, strategy_or_mode)
        result = await self.run_mode(query, PipelineMode(strategy_or_mode))
        return result.context

    async def run_mode(self, query: str, mode: PipelineMode) -> PipelineResult:
        if mode == PipelineMode.FAST:
            return await self.run(query, FAST_STRATEGY, mode=mode)
        if mode == PipelineMode.SMART:
            started = time.perf_counter()
            strategy, degraded = await self._router.route_with_status(query)
            route = stage_trace(
                "route",
                started,
                input_count=1,
                output_count=1,
                status=_status(degraded),
                detail=f"top_k={strategy.top_k}",
            )
            return await self.run(query, strategy, mode=mode, leading_stages=(route,))
        return await self.run(query, mode=PipelineMode.CUSTOM)

    async def run(
        self,
        query: str,
        strategy: Strategy | None = None,
        *,
        mode: PipelineMode = PipelineMode.CUSTOM,
        leading_stages: tuple[StageTrace, ...] = (),
    ) -> PipelineResult:
        active = strategy or DEFAULT_STRATEGY
        run_started = time.perf_counter()
        stages: list[StageTrace] = list(leading_stages)

        queries = await self._reformulate(query, active, stages)
        retrieved = await self._retrieve_all(query, queries, active, stages)

        started = time.perf_counter()
        unique = dedupe_fragments(retrieved)
        stages.append(
            stage_trace(
                "dedupe",
                started,
                input_count=len(retrieved),
                output_count=len(unique),
            )
        )

        if active.use_reranking:
            started = time.perf_counter()
            ranked, degraded = await self._reranker.rerank_with_status(query, unique)
            stages.append(
                stage_trace(
                    "rerank",
                    started,
                    input_count=len(unique),
                    output_count=len(ranked),
                    status=_status(degraded),
                )
            )
        else:
            ranked = unique
            stages.append(skipped_stage("rerank", len(unique)))

        started = time.perf_counter()
        filtered = filter_by_relevance(ranked, active.min_relevance_score)
        used_fallback = bool(ranked) and not any(
            fragment.relevance_score >= active.min_relevance_score
            for fragment in ranked
        )
        stages.append(
            stage_trace(
                "filter",
                started,
                input_count=len(ranked),
                output_count=len(filtered),
                status="fallback" if used_fallback else "ok",
                detail=f"min_relevance_score={active.min_relevance_score}",
            )
        )

        if active.enable_diversity_selection:
            started = time.perf_counter()
            final = select_diverse(filtered, active.top_k, active.mmr_lambda)
            stages.append(
                stage_trace(
                    "diversify",
                    started,
                    input_count=len(filtered),
                    output_count=len(final),
                )
            )
        else:
            final = filtered
            stages.append(skipped_stage("diversify", len(filtered)))

        started = time.perf_counter()
        if final:
            context, degraded = await self._compressor.compress_with_status(
                query, final, active.compression_target_ratio
            )
            compress_status = _status(degraded)
        else:
            context = NOT_FOUND_CONTEXT
            compress_status = "not_found"
        stages.append(
            stage_trace(
                "compress",
                started,
                input_count=len(final),
                output_count=len(final),
                status=compress_status,
                detail=f"target_ratio={active.compression_target_ratio}",
            )
        )

        trace = PipelineTrace(
            trace_id=create_trace_id(),
            mode=mode.value,
            query=query,
            stages=tuple(stages),
            latency_ms=elapsed_ms(run_started),
            context_chars=len(context),
        )
        emit_pipeline_telemetry(trace, LOGGER)
        return PipelineResult(
            context=context,
            fragments=tuple(final),
            strategy=active,
            trace=trace,
        )

    async def _reformulate(
        self,
        query: str,
        strategy: Strategy,
        stages: list[StageTrace],
    ) -> list[str]:
        if not strategy.use_query_expansion:
            stages.append(skipped_stage("reformulate", 1))
            return [query]
        started = time.perf_counter()
        queries, degraded = await self._reformulator.expand_with_status(query)
        stages.append(
            stage_trace(
                "reformulate",
                started,
                input_count=1,
                output_count=len(queries),
                status=_status(degraded),
            )
        )
        return queries

    async def _retrieve_all(
        self,
        query: str,
        queries: list[str],
        strategy: Strategy,
        stages: list[StageTrace],
    ) -> list[DocumentFragment]:
        started = time.perf_counter()
        fragments: list[DocumentFragment] = []
        degraded = False
        for candidate in queries:
            results, fell_back = await self._retriever.search_with_status(
                candidate,
                strategy.top_k,
                hybrid=strategy.use_hybrid_search,
            )
            fragments.extend(results)
            degraded = degraded or fell_back
        stages.append(
            stage_trace(
                "retrieve",
                started,
                input_count=len(queries),
                output_count=len(fragments),
                status=_status(degraded),
                detail="hybrid" if strategy.use_hybrid_search else "semantic",
            )
        )

        if strategy.use_hypothetical_document:
            fragments.extend(await self._hypothetical_fragments(query, strategy, stages))
        return fragments

    async def _hypothetical_fragments(
        self,
        query: str,
        strategy: Strategy,
        stages: list[StageTrace],
    ) -> list[DocumentFragment]:
        started = time.perf_counter()
        document = await self._reformulator.hypothetical_document(query)
        if document is None:
            stages.append(
                stage_trace(
                    "hypothetical_document",
                    started,
                    input_count=1,
                    output_count=0,
                    status="degraded",
                )
            )
            return []
        try:
            fragments = await self._retriever.semantic_search(
                document,
                strategy.top_k,
                similarity_floor=HYPOTHETICAL_DOCUMENT_FLOOR,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Hypothetical document search failed",
                extra={"query": query},
                exc_info=exc,
            )
            stages.append(
                stage_trace(
                    "hypothetical_document",
                    started,
                    input_count=1,
                    output_count=0,
                    status="degraded",
                )
            )
            return []
        stages.append(
            stage_trace(
                "hypothetical_document",
                started,
                input_count=1,
                output_count=len(fragments),
            )
        )
        return fragments


def build_stores(
    config: AppConfig,
    embedding_provider: EmbeddingProvider,
) -> tuple[VectorSearchStore, KeywordSearchStore]:
    if supabase_ready(config):
        vector_store = SupabaseVectorStore(
            url=config.supabase_url or "",
            api_key=config.supabase_key or "",
            match_function=config.supabase_match_function,
        )
        keyword_store = SupabaseKeywordStore(
            supabase_url=config.supabase_url or "",
            supabase_key=config.supabase_key or "",
            table_name=config.supabase_documents_table,
            search_config=config.keyword_search_config,
        )
        return vector_store, keyword_store

    LOGGER.info(
        "Supabase not configured; serving seed knowledge base",
        extra={"seed_documents_path": config.seed_documents_path},
    )
    seed = SeedKnowledgeBase.from_path(config.seed_documents_path, embedding_provider)
    return seed, seed


def build_pipeline(
    config: AppConfig,
    completion_service: CompletionService | None = None,
) -> RetrievalPipeline:
    embedding_provider = build_embedding_provider(
        dimensions=config.embedding_dimensions,
        runtime_key=config.gemini_api_key,
        model=config.embedding_model,
        backend=config.embedding_backend,
        max_chars=config.embedding_max_chars,
    )
    vector_store, keyword_store = build_stores(config, embedding_provider)
    completion = completion_service or build_completion_service(
        runtime_key=config.gemini_api_key,
        backend=config.completion_backend,
        model=config.completion_model,
        timeout_seconds=config.completion_timeout_seconds,
    )
    retriever = HybridRetriever(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        keyword_store=keyword_store,
        categories=load_query_patterns(config.query_patterns_path),
        similarity_floor=config.similarity_floor,
    )
    return RetrievalPipeline(
        retriever=retriever,
        reformulator=QueryReformulator(completion),
        reranker=RelevanceReranker(completion),
        compressor=ContextCompressor(completion),
        router=QueryRouter(completion),
    )


@lru_cache(maxsize=8)
def default_pipeline(config: AppConfig) -> RetrievalPipeline:
    """One pipeline per configuration; stores and seed vectors are reused across calls."""
    return build_pipeline(config)


async def retrieve_context(
    query: str,
    strategy_or_mode: Strategy | PipelineMode | str = PipelineMode.SMART,
    *,
    pipeline: RetrievalPipeline | None = None,
    config: AppConfig | None = None,
) -> str:
    if pipeline is None:
        pipeline = default_pipeline(config or load_app_config())
    return await pipeline.retrieve_context(query, strategy_or_mode)

from __future__ import annotations

import asyncio
import logging

from admissions_rag.app.llm.providers import parse_ten_point_score
from admissions_rag.app.retrieval.contracts import CompletionService
from admissions_rag.app.retrieval.models import DocumentFragment

LOGGER = logging.getLogger(__name__)

RERANK_CANDIDATE_LIMIT = 20
RERANK_CONTENT_CHARS = 500
UNRANKED_PENALTY = 0.5
FILTER_FALLBACK_COUNT = 3


def _scoring_prompt(query: str, content: str) -> str:
    return (
        "Rate the relevance of this document to the query on a scale of 0-10.\n"
        "Consider:\n"
        "- Direct answer to query: high score\n"
        "- Related but not directly answering: medium score\n"
        "- Unrelated or tangential: low score\n\n"
        f'Query: "{query}"\n\n'
        f'Document: "{content[:RERANK_CONTENT_CHARS]}"\n\n'
        "Respond with ONLY a number from 0-10:"
    )


class RelevanceReranker:
    def __init__(
        self,
        completion_service: CompletionService,
        candidate_limit: int = RERANK_CANDIDATE_LIMIT,
    ) -> None:
        self._completion_service = completion_service
        self._candidate_limit = candidate_limit

    async def rerank(
        self,
        query: str,
        fragments: list[DocumentFragment],
    ) -> list[DocumentFragment]:
        ranked, _ = await self.rerank_with_status(query, fragments)
        return ranked

    async def rerank_with_status(
        self,
        query: str,
        fragments: list[DocumentFragment],
    ) -> tuple[list[DocumentFragment], bool]:
        """Rerank and report whether any candidate kept its prior score."""
        if not fragments:
            return [], False
        try:
            candidates = fragments[: self._candidate_limit]
            outcomes = await asyncio.gather(
                *(
                    self._score_fragment(query, fragment, position)
                    for position, fragment in enumerate(candidates)
                )
            )
            remaining = [
                fragment.with_score(fragment.relevance_score * UNRANKED_PENALTY)
                for fragment in fragments[self._candidate_limit :]
            ]
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Reranking failed; keeping retrieval order",
                extra={"fragment_count": len(fragments)},
                exc_info=exc,
            )
            return list(fragments), True

        rescored = [fragment for fragment, _ in outcomes]
        ranked = sorted(
            [*rescored, *remaining],
            key=lambda fragment: fragment.relevance_score,
            reverse=True,
        )
        return ranked, not all(scored for _, scored in outcomes)

    async def _score_fragment(
        self,
        query: str,
        fragment: DocumentFragment,
        position: int,
    ) -> tuple[DocumentFragment, bool]:
        try:
            text = await self._completion_service.complete(
                _scoring_prompt(query, fragment.content),
                max_tokens=5,
                temperature=0.3,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Relevance scoring failed; keeping prior score",
                extra={"fragment_id": fragment.id, "rerank_position": position},
                exc_info=exc,
            )
            return fragment.model_copy(update={"rerank_position": position}), False

        score = parse_ten_point_score(text) if isinstance(text, str) else None
        if score is None:
            return fragment.model_copy(update={"rerank_position": position}), False
        return fragment.with_score(score, rerank_position=position), True


def filter_by_relevance(
    ranked: list[DocumentFragment],
    min_score: float,
) -> list[DocumentFragment]:
    filtered = [
        fragment for fragment in ranked if fragment.relevance_score >= min_score
    ]
    if not filtered and ranked:
        LOGGER.info(
            "No fragment passed the relevance threshold; keeping top candidates",
            extra={"min_score": min_score, "fallback_count": FILTER_FALLBACK_COUNT},
        )
        return ranked[:FILTER_FALLBACK_COUNT]
    return filtered

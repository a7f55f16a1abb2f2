import re

import pytest

from admissions_rag.app.retrieval.rerank import (
    FILTER_FALLBACK_COUNT,
    RERANK_CANDIDATE_LIMIT,
    RelevanceReranker,
    filter_by_relevance,
)
from tests.fakes import (
    FailingCompletionService,
    ScriptedCompletionService,
    make_fragment,
)

_DOCUMENT_NUMBER = re.compile(r'Document: "document number (\d+)"')


def _numbered_fragments(count: int, score: float = 0.5):
    return [
        make_fragment(f"doc-{index}", f"document number {index}", score)
        for index in range(count)
    ]


def _score_by_number(prompt: str) -> str:
    match = _DOCUMENT_NUMBER.search(prompt)
    assert match is not None
    return str(int(match.group(1)) % 10)


@pytest.mark.asyncio
async def test_rerank_orders_by_llm_score() -> None:
    fragments = [
        make_fragment("a", "fee table", 0.9),
        make_fragment("b", "hostel rules", 0.2),
    ]
    completion = ScriptedCompletionService(
        lambda prompt: "9" if 'Document: "hostel' in prompt else "3"
    )

    ranked = await RelevanceReranker(completion).rerank("hostel", fragments)

    assert [fragment.id for fragment in ranked] == ["b", "a"]
    assert ranked[0].relevance_score == pytest.approx(0.9)
    assert ranked[0].rerank_position == 1
    assert ranked[1].rerank_position == 0
    assert {call["temperature"] for call in completion.calls} == {0.3}
    assert {call["max_tokens"] for call in completion.calls} == {5}


@pytest.mark.asyncio
async def test_single_scoring_failure_keeps_prior_score() -> None:
    fragments = _numbered_fragments(20, score=0.55)

    def respond(prompt: str):
        if 'Document: "document number 4"' in prompt:
            return RuntimeError("timeout")
        return _score_by_number(prompt)

    ranked = await RelevanceReranker(ScriptedCompletionService(respond)).rerank(
        "query", fragments
    )

    assert len(ranked) == 20
    by_id = {fragment.id: fragment for fragment in ranked}
    assert by_id["doc-4"].relevance_score == pytest.approx(0.55)
    assert by_id["doc-4"].rerank_position == 4
    assert by_id["doc-9"].relevance_score == pytest.approx(0.9)
    assert by_id["doc-10"].relevance_score == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_fragments_beyond_candidate_limit_are_penalized() -> None:
    fragments = _numbered_fragments(RERANK_CANDIDATE_LIMIT + 5, score=0.8)
    completion = ScriptedCompletionService("10")

    ranked = await RelevanceReranker(completion).rerank("query", fragments)

    assert len(completion.calls) == RERANK_CANDIDATE_LIMIT
    tail = [fragment for fragment in ranked if fragment.rerank_position is None]
    assert len(tail) == 5
    assert all(fragment.relevance_score == pytest.approx(0.4) for fragment in tail)
    assert ranked[-1].rerank_position is None


@pytest.mark.asyncio
async def test_unparseable_and_out_of_range_scores() -> None:
    fragments = [
        make_fragment("words", "first", 0.6),
        make_fragment("huge", "second", 0.6),
        make_fragment("negative", "third", 0.6),
    ]
    replies = {"first": "very relevant", "second": "15", "third": "-2"}

    def respond(prompt: str) -> str:
        for content, reply in replies.items():
            if f'Document: "{content}"' in prompt:
                return reply
        return "5"

    ranked = await RelevanceReranker(ScriptedCompletionService(respond)).rerank(
        "query", fragments
    )

    scores = {fragment.id: fragment.relevance_score for fragment in ranked}
    assert scores == {"huge": 1.0, "words": 0.6, "negative": 0.0}
    assert all(0.0 <= score <= 1.0 for score in scores.values())


@pytest.mark.asyncio
async def test_rerank_with_offline_model_keeps_prior_scores() -> None:
    fragments = [make_fragment("a", "one", 0.3), make_fragment("b", "two", 0.7)]

    ranked = await RelevanceReranker(FailingCompletionService()).rerank(
        "query", fragments
    )

    assert [fragment.id for fragment in ranked] == ["b", "a"]
    assert [fragment.relevance_score for fragment in ranked] == [0.7, 0.3]


@pytest.mark.asyncio
async def test_rerank_empty_input() -> None:
    completion = ScriptedCompletionService("7")

    assert await RelevanceReranker(completion).rerank("query", []) == []
    assert completion.calls == []


def test_filter_keeps_fragments_at_threshold() -> None:
    ranked = [
        make_fragment("a", "a", 0.5),
        make_fragment("b", "b", 0.2),
        make_fragment("c", "c", 0.19),
    ]

    assert [fragment.id for fragment in filter_by_relevance(ranked, 0.2)] == ["a", "b"]


@pytest.mark.parametrize("count", [1, 2, 3, 7])
def test_filter_fallback_returns_top_candidates(count: int) -> None:
    ranked = [make_fragment(f"f{i}", f"content {i}", 0.01) for i in range(count)]

    filtered = filter_by_relevance(ranked, 0.9)

    assert len(filtered) == min(FILTER_FALLBACK_COUNT, count)
    assert filtered == ranked[: len(filtered)]


def test_filter_of_empty_ranking() -> None:
    assert filter_by_relevance([], 0.5) == []


@pytest.mark.asyncio
async def test_rerank_with_status_flags_kept_prior_scores() -> None:
    fragments = _numbered_fragments(3)

    def respond(prompt: str):
        if 'Document: "document number 1"' in prompt:
            return RuntimeError("timeout")
        return "6"

    _, healthy = await RelevanceReranker(
        ScriptedCompletionService("6")
    ).rerank_with_status("query", fragments)
    ranked, degraded = await RelevanceReranker(
        ScriptedCompletionService(respond)
    ).rerank_with_status("query", fragments)

    assert healthy is False
    assert degraded is True
    assert len(ranked) == 3

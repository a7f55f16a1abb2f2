from admissions_rag.app.retrieval.dedupe import (
    FINGERPRINT_LENGTH,
    content_fingerprint,
    dedupe_fragments,
    normalize_content,
)
from tests.fakes import make_fragment


def test_normalize_content_collapses_case_and_whitespace() -> None:
    assert normalize_content("  Fee   Structure\n\tNational ") == "fee structure national"


def test_dedupe_keeps_first_occurrence_in_order() -> None:
    fragments = [
        make_fragment("a", "NET schedule Series-1", 0.4),
        make_fragment("b", "Fee table", 0.9),
        make_fragment("c", "net   SCHEDULE series-1", 0.8),
    ]

    unique = dedupe_fragments(fragments)

    assert [fragment.id for fragment in unique] == ["a", "b"]
    assert unique[0].relevance_score == 0.4


def test_dedupe_is_idempotent() -> None:
    fragments = [
        make_fragment("a", "one"),
        make_fragment("b", "One"),
        make_fragment("c", "two"),
    ]

    once = dedupe_fragments(fragments)

    assert dedupe_fragments(once) == once


def test_fingerprint_only_covers_the_leading_prefix() -> None:
    prefix = "x" * FINGERPRINT_LENGTH
    first = make_fragment("a", prefix + " tail one")
    second = make_fragment("b", prefix + " tail two")

    assert content_fingerprint(first.content) == content_fingerprint(second.content)
    assert [fragment.id for fragment in dedupe_fragments([first, second])] == ["a"]


def test_dedupe_ignores_ids_and_scores() -> None:
    fragments = [
        make_fragment("same-id", "alpha", 0.1),
        make_fragment("same-id", "beta", 0.2),
    ]

    assert len(dedupe_fragments(fragments)) == 2


def test_dedupe_of_empty_list() -> None:
    assert dedupe_fragments([]) == []

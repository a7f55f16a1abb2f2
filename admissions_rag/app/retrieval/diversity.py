from __future__ import annotations

from admissions_rag.app.retrieval.models import DocumentFragment

DEFAULT_MMR_LAMBDA = 0.5


def _word_set(text: str) -> set[str]:
    return set(text.lower().split())


def jaccard_similarity(left: str, right: str) -> float:
    return _token_jaccard(_word_set(left), _word_set(right))


def select_diverse(
    fragments: list[DocumentFragment],
    k: int,
    lambda_: float = DEFAULT_MMR_LAMBDA,
) -> list[DocumentFragment]:
    """Greedy Maximal Marginal Relevance selection.

    Seeds with the most relevant fragment (the earliest one on ties) and then
    repeatedly takes the fragment maximizing
    ``lambda_ * relevance + (1 - lambda_) * (1 - max_similarity)``, where
    similarity is word-set Jaccard against everything already selected.
    """
    if len(fragments) <= k:
        return list(fragments)
    if k <= 0:
        return []

    remaining = list(fragments)
    seed_index = max(
        range(len(remaining)),
        key=lambda index: (remaining[index].relevance_score, -index),
    )
    selected = [remaining.pop(seed_index)]
    selected_tokens = [_word_set(selected[0].content)]
    remaining_tokens = [_word_set(fragment.content) for fragment in remaining]

    while len(selected) < k and remaining:
        best_index = 0
        best_score = float("-inf")
        for index, fragment in enumerate(remaining):
            candidate_tokens = remaining_tokens[index]
            max_similarity = max(
                _token_jaccard(candidate_tokens, tokens) for tokens in selected_tokens
            )
            score = lambda_ * fragment.relevance_score + (1 - lambda_) * (
                1 - max_similarity
            )
            if score > best_score:
                best_score = score
                best_index = index
        selected.append(remaining.pop(best_index))
        selected_tokens.append(remaining_tokens.pop(best_index))

    return selected


def _token_jaccard(left: set[str], right: set[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)

from __future__ import annotations

import math
import re


def tokenize(text: str) -> set[str]:
    return set(re.findall(r"[a-zA-Z0-9_]+", text.lower()))


def overlap_score(query: str, candidate: str) -> float:
    query_tokens = tokenize(query)
    if not query_tokens:
        return 0.0
    candidate_tokens = tokenize(candidate)
    hits = len(query_tokens.intersection(candidate_tokens))
    return hits / len(query_tokens)


def cosine_similarity(left: list[float], right: list[float]) -> float:
    if not left or not right or len(left) != len(right):
        return 0.0
    dot = sum(a * b for a, b in zip(left, right))
    left_norm = math.sqrt(sum(a * a for a in left))
    right_norm = math.sqrt(sum(b * b for b in right))
    if left_norm == 0 or right_norm == 0:
        return 0.0
    return dot / (left_norm * right_norm)

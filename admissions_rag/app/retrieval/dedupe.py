from __future__ import annotations

import re

from admissions_rag.app.retrieval.models import DocumentFragment

FINGERPRINT_LENGTH = 200

_WHITESPACE = re.compile(r"\s+")


def normalize_content(content: str) -> str:
    return _WHITESPACE.sub(" ", content.lower()).strip()


def content_fingerprint(content: str) -> str:
    return normalize_content(content)[:FINGERPRINT_LENGTH]


def dedupe_fragments(fragments: list[DocumentFragment]) -> list[DocumentFragment]:
    # Near-duplicates that only differ after the prefix are kept.
    seen: set[str] = set()
    unique: list[DocumentFragment] = []
    for fragment in fragments:
        fingerprint = content_fingerprint(fragment.content)
        if fingerprint in seen:
            continue
        seen.add(fingerprint)
        unique.append(fragment)
    return unique

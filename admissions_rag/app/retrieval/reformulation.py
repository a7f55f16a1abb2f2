from __future__ import annotations

import logging
import re

from admissions_rag.app.retrieval.contracts import CompletionService

LOGGER = logging.getLogger(__name__)

MAX_ALTERNATIVES = 2

_ENUMERATION_MARKER = re.compile(r"^[-•*\d.)\s]+")


def strip_enumeration(line: str) -> str:
    return _ENUMERATION_MARKER.sub("", line).strip()


def parse_alternatives(text: str, original: str) -> list[str]:
    alternatives: list[str] = []
    seen = {original.strip().lower()}
    for raw_line in text.strip().splitlines():
        candidate = strip_enumeration(raw_line)
        if not candidate:
            continue
        key = candidate.lower()
        if key in seen:
            continue
        seen.add(key)
        alternatives.append(candidate)
        if len(alternatives) == MAX_ALTERNATIVES:
            break
    return alternatives


class QueryReformulator:
    def __init__(self, completion_service: CompletionService) -> None:
        self._completion_service = completion_service

    async def expand(self, query: str) -> list[str]:
        queries, _ = await self.expand_with_status(query)
        return queries

    async def expand_with_status(self, query: str) -> tuple[list[str], bool]:
        """Return the query followed by up to two rephrasings, and a degraded flag.

        Expansion is best effort: any failure yields ``([query], True)``.
        """
        prompt = (
            "Given the user query, generate 2 alternative phrasings that capture "
            "the same intent but use different wording.\n"
            "This helps retrieve more relevant documents.\n\n"
            f'User Query: "{query}"\n\n'
            "Generate 2 alternative queries (one per line, no numbering):"
        )
        try:
            text = await self._completion_service.complete(
                prompt,
                max_tokens=150,
                temperature=0.7,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Query expansion failed; using original query only",
                extra={"query": query},
                exc_info=exc,
            )
            return [query], True
        if not isinstance(text, str):
            return [query], True
        return [query, *parse_alternatives(text, query)], False

    async def hypothetical_document(self, query: str) -> str | None:
        prompt = (
            "Given this question, write a detailed, factual answer as if you had "
            "perfect knowledge.\n\n"
            f'Question: "{query}"\n\n'
            "Detailed Answer:"
        )
        try:
            text = await self._completion_service.complete(
                prompt,
                max_tokens=300,
                temperature=0.7,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Hypothetical document generation failed",
                extra={"query": query},
                exc_info=exc,
            )
            return None
        if not isinstance(text, str) or not text.strip():
            return None
        return text.strip()

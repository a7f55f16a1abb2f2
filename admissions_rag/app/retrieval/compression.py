from __future__ import annotations

import logging
import math

from admissions_rag.app.retrieval.contracts import CompletionService
from admissions_rag.app.retrieval.models import DocumentFragment

LOGGER = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"
NOT_FOUND_CONTEXT = "No relevant information found in the knowledge base."
COMPRESSION_INPUT_CHARS = 8000
FALLBACK_FRAGMENT_COUNT = 5
MIN_COMPRESSION_TOKENS = 64
CHARS_PER_TOKEN = 2.5


def format_context(fragments: list[DocumentFragment]) -> str:
    blocks: list[str] = []
    for index, fragment in enumerate(fragments, start=1):
        source = fragment.source or fragment.metadata.get("source") or "Unknown"
        title = fragment.metadata.get("title")
        title_part = f" ({title})" if isinstance(title, str) and title else ""
        blocks.append(
            f"[Document {index}] Source: {source}{title_part}\n{fragment.content}"
        )
    return CONTEXT_SEPARATOR.join(blocks)


def _compression_prompt(query: str, context: str, target_length: int) -> str:
    return (
        "You are a context compression expert. Reduce the following context to "
        f"approximately {target_length} characters while keeping the information "
        "relevant to answering this query.\n\n"
        "IMPORTANT: Preserve ALL table data, dates, numbers, and structured "
        "information exactly as they appear. Keep relationships between columns "
        'clear (e.g., "Series-3: Islamabad - Apr 2026"). Remove only redundant '
        "explanatory text.\n\n"
        f'Query: "{query}"\n\n'
        f"Context:\n{context[:COMPRESSION_INPUT_CHARS]}\n\n"
        "Provide a compressed version maintaining ALL structured data, dates, and "
        "key facts:"
    )


class ContextCompressor:
    def __init__(self, completion_service: CompletionService) -> None:
        self._completion_service = completion_service

    async def compress(
        self,
        query: str,
        fragments: list[DocumentFragment],
        target_ratio: float,
    ) -> str:
        context, _ = await self.compress_with_status(query, fragments, target_ratio)
        return context

    async def compress_with_status(
        self,
        query: str,
        fragments: list[DocumentFragment],
        target_ratio: float,
    ) -> tuple[str, bool]:
        """Compress and report whether a fallback context was returned."""
        total_length = sum(len(fragment.content) for fragment in fragments)
        target_length = math.floor(total_length * target_ratio)
        formatted = format_context(fragments)
        if total_length <= target_length:
            return formatted, False

        try:
            text = await self._completion_service.complete(
                _compression_prompt(query, formatted, target_length),
                max_tokens=max(
                    MIN_COMPRESSION_TOKENS, math.floor(target_length / CHARS_PER_TOKEN)
                ),
                temperature=0.3,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Context compression failed; using leading fragments",
                extra={"fragment_count": len(fragments)},
                exc_info=exc,
            )
            return format_context(fragments[:FALLBACK_FRAGMENT_COUNT]), True

        compressed = text.strip() if isinstance(text, str) else ""
        if not compressed:
            return format_context(fragments[:FALLBACK_FRAGMENT_COUNT]), True
        if len(compressed) > len(formatted):
            return formatted, True

        LOGGER.info(
            "Context compressed",
            extra={
                "original_chars": total_length,
                "compressed_chars": len(compressed),
                "target_chars": target_length,
            },
        )
        return compressed, False

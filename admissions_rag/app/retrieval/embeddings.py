from __future__ import annotations

import hashlib
import logging

from admissions_rag.app.retrieval.contracts import EmbeddingProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MAX_CHARS = 8000


def hashed_vector(text: str, dimensions: int) -> list[float]:
    """Stable pseudo-embedding in [-1, 1] derived from chained SHA-256 digests.

    Identical text maps to identical vectors; unrelated text lands near zero
    cosine similarity, so offline semantic search only matches exact content.
    """
    digest = b""
    block = text.encode("utf-8")
    while len(digest) < dimensions:
        block = hashlib.sha256(block).digest()
        digest += block
    return [byte / 127.5 - 1.0 for byte in digest[:dimensions]]


class DeterministicEmbeddingProvider:
    def __init__(
        self,
        dimensions: int,
        max_chars: int = DEFAULT_EMBEDDING_MAX_CHARS,
    ) -> None:
        self._dimensions = dimensions
        self._max_chars = max_chars

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return hashed_vector(text[: self._max_chars], self._dimensions)


class GoogleGenerativeAIEmbeddingProvider:
    """Gemini embeddings with separate document and query task types."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        dimensions: int,
        max_chars: int = DEFAULT_EMBEDDING_MAX_CHARS,
    ) -> None:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        self._max_chars = max_chars
        self._document_client, self._query_client = (
            GoogleGenerativeAIEmbeddings(
                model=model,
                google_api_key=api_key,
                task_type=task_type,
                output_dimensionality=dimensions,
            )
            for task_type in ("RETRIEVAL_DOCUMENT", "RETRIEVAL_QUERY")
        )

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        rows = self._document_client.embed_documents(
            [text[: self._max_chars] for text in texts]
        )
        return [list(row) for row in rows]

    def embed_query(self, text: str) -> list[float]:
        return list(self._query_client.embed_query(text[: self._max_chars]))


def build_embedding_provider(
    *,
    dimensions: int,
    runtime_key: str | None,
    model: str,
    backend: str,
    max_chars: int = DEFAULT_EMBEDDING_MAX_CHARS,
) -> EmbeddingProvider:
    if backend != "google" or not runtime_key:
        return DeterministicEmbeddingProvider(dimensions, max_chars)

    try:
        return GoogleGenerativeAIEmbeddingProvider(
            api_key=runtime_key,
            model=model,
            dimensions=dimensions,
            max_chars=max_chars,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning(
            "Google embedding provider unavailable; using deterministic vectors",
            extra={"embedding_model": model},
            exc_info=exc,
        )
        return DeterministicEmbeddingProvider(dimensions, max_chars)

from __future__ import annotations

from typing import Protocol

from admissions_rag.app.retrieval.models import DocumentFragment


class RetrievalUnavailableError(RuntimeError):
    """Raised when neither semantic nor keyword search can serve a query."""


class CompletionUnavailableError(RuntimeError):
    """Raised by completion services that cannot produce text."""


class EmbeddingProvider(Protocol):
    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


class VectorSearchStore(Protocol):
    def vector_search(
        self,
        query_vector: list[float],
        similarity_floor: float,
        limit: int,
    ) -> list[DocumentFragment]: ...


class KeywordSearchStore(Protocol):
    def keyword_search(self, query_text: str, limit: int) -> list[DocumentFragment]: ...


class CompletionService(Protocol):
    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str: ...

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from admissions_rag.app.retrieval.contracts import EmbeddingProvider
from admissions_rag.app.retrieval.models import DocumentFragment
from admissions_rag.app.retrieval.scoring import cosine_similarity, overlap_score


class SeedKnowledgeBase:
    """In-memory knowledge base over a JSON seed file.

    Serves both search contracts so the pipeline runs without Supabase.
    """

    def __init__(
        self,
        documents: list[dict[str, Any]],
        embedding_provider: EmbeddingProvider,
    ) -> None:
        self._documents = [
            item
            for item in documents
            if isinstance(item.get("content"), str) and item["content"].strip()
        ]
        self._embedding_provider = embedding_provider
        self._vectors: list[list[float]] | None = None

    @classmethod
    def from_path(
        cls,
        path: str,
        embedding_provider: EmbeddingProvider,
    ) -> SeedKnowledgeBase:
        return cls(_load_seed_documents(path), embedding_provider)

    def __len__(self) -> int:
        return len(self._documents)

    def vector_search(
        self,
        query_vector: list[float],
        similarity_floor: float,
        limit: int,
    ) -> list[DocumentFragment]:
        scored: list[tuple[float, int]] = []
        for index, vector in enumerate(self._document_vectors()):
            similarity = cosine_similarity(query_vector, vector)
            if similarity >= similarity_floor:
                scored.append((similarity, index))
        scored.sort(key=lambda row: row[0], reverse=True)
        return [
            self._fragment(index, similarity) for similarity, index in scored[:limit]
        ]

    def keyword_search(self, query_text: str, limit: int) -> list[DocumentFragment]:
        scored: list[tuple[float, int]] = []
        for index, item in enumerate(self._documents):
            score = overlap_score(query_text, item["content"])
            if score > 0:
                scored.append((score, index))
        scored.sort(key=lambda row: row[0], reverse=True)
        return [self._fragment(index, score) for score, index in scored[:limit]]

    def _document_vectors(self) -> list[list[float]]:
        if self._vectors is None:
            self._vectors = self._embedding_provider.embed_documents(
                [item["content"] for item in self._documents]
            )
        return self._vectors

    def _fragment(self, index: int, score: float) -> DocumentFragment:
        item = self._documents[index]
        metadata = {
            key: value
            for key, value in item.items()
            if key not in {"id", "content"}
        }
        return DocumentFragment(
            id=str(item.get("id", f"seed_{index}")),
            content=item["content"],
            source=str(item.get("source", "Unknown")),
            metadata=metadata,
            relevance_score=max(0.0, min(1.0, score)),
        )


def _load_seed_documents(path: str) -> list[dict[str, Any]]:
    doc_file = Path(path)
    if not doc_file.exists():
        return []
    raw = json.loads(doc_file.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict) and "content" in item]

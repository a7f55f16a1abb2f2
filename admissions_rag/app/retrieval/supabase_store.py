from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
from supabase import Client, create_client

from admissions_rag.app.retrieval.models import DocumentFragment


def _vector_literal(values: list[float]) -> str:
    return "[" + ",".join(f"{value:.8f}" for value in values) + "]"


def fragment_from_row(
    row: dict[str, Any],
    index: int,
    default_score: float = 0.5,
) -> DocumentFragment | None:
    content = row.get("content")
    if not isinstance(content, str) or not content.strip():
        return None

    metadata = row.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}

    source = metadata.get("source") or row.get("source")
    if not isinstance(source, str) or not source.strip():
        source = "Unknown"

    row_id = row.get("id")
    if isinstance(row_id, (str, int)):
        fragment_id = str(row_id)
    else:
        fragment_id = f"doc_{index}"

    similarity = row.get("similarity")
    if isinstance(similarity, (int, float)) and similarity > 0:
        score = max(0.0, min(1.0, float(similarity)))
    else:
        score = default_score

    return DocumentFragment(
        id=fragment_id,
        content=content,
        source=source,
        metadata=metadata,
        relevance_score=score,
    )


def fragments_from_rows(rows: Any) -> list[DocumentFragment]:
    if not isinstance(rows, list):
        return []
    fragments: list[DocumentFragment] = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            continue
        fragment = fragment_from_row(row, index)
        if fragment is not None:
            fragments.append(fragment)
    return fragments


@dataclass(frozen=True)
class SupabaseVectorStore:
    url: str
    api_key: str
    match_function: str = "match_documents"
    timeout_seconds: float = 20.0

    @property
    def _rpc_url(self) -> str:
        return f"{self.url.rstrip('/')}/rest/v1/rpc"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def vector_search(
        self,
        query_vector: list[float],
        similarity_floor: float,
        limit: int,
    ) -> list[DocumentFragment]:
        payload = {
            "query_embedding": _vector_literal(query_vector),
            "match_threshold": similarity_floor,
            "match_count": limit,
        }
        endpoint = f"{self._rpc_url}/{self.match_function}"
        with httpx.Client(timeout=self.timeout_seconds) as client:
            response = client.post(
                endpoint,
                headers=self._headers(),
                content=json.dumps(payload),
            )
        response.raise_for_status()
        return fragments_from_rows(response.json())


class SupabaseKeywordStore:
    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        table_name: str = "documents",
        search_config: str = "english",
    ) -> None:
        self._table_name = table_name
        self._search_config = search_config
        self._client: Client = create_client(supabase_url, supabase_key)

    def keyword_search(self, query_text: str, limit: int) -> list[DocumentFragment]:
        response = (
            self._client.table(self._table_name)
            .select("id, content, metadata")
            .text_search(
                "content",
                query_text,
                options={"type": "web_search", "config": self._search_config},
            )
            .limit(limit)
            .execute()
        )
        return fragments_from_rows(response.data)

import json
from pathlib import Path

import pytest

from admissions_rag.app.orchestration.service import build_pipeline
from admissions_rag.app.retrieval.embeddings import DeterministicEmbeddingProvider
from admissions_rag.app.retrieval.seed_store import SeedKnowledgeBase
from admissions_rag.core.config import load_app_config

SEED_DOCUMENTS = [
    {
        "id": "net-schedule",
        "source": "net.md",
        "title": "NET Test Schedule",
        "content": "NET TEST SCHEDULE TABLE Series-4: Islamabad, Karachi - Jun 2026.",
    },
    {
        "id": "fee-table",
        "source": "fees.md",
        "content": "Tuition fee per semester for BS Computer Science is PKR 171,350.",
    },
    {"id": "blank", "content": "   "},
]


def _write_seed(tmp_path: Path) -> Path:
    seed_file = tmp_path / "seed_documents.json"
    seed_file.write_text(json.dumps(SEED_DOCUMENTS), encoding="utf-8")
    return seed_file


def test_seed_store_skips_blank_documents(tmp_path: Path) -> None:
    store = SeedKnowledgeBase.from_path(
        str(_write_seed(tmp_path)), DeterministicEmbeddingProvider(dimensions=32)
    )

    assert len(store) == 2


def test_missing_seed_file_is_empty(tmp_path: Path) -> None:
    store = SeedKnowledgeBase.from_path(
        str(tmp_path / "missing.json"), DeterministicEmbeddingProvider(dimensions=32)
    )

    assert len(store) == 0
    assert store.keyword_search("fee", 5) == []


def test_keyword_search_ranks_by_token_overlap(tmp_path: Path) -> None:
    store = SeedKnowledgeBase.from_path(
        str(_write_seed(tmp_path)), DeterministicEmbeddingProvider(dimensions=32)
    )

    results = store.keyword_search("Karachi Series-4 schedule", 5)

    assert [fragment.id for fragment in results] == ["net-schedule"]
    assert results[0].source == "net.md"
    assert results[0].metadata["title"] == "NET Test Schedule"
    assert 0.0 < results[0].relevance_score <= 1.0


def test_vector_search_returns_exact_match_first(tmp_path: Path) -> None:
    provider = DeterministicEmbeddingProvider(dimensions=32)
    store = SeedKnowledgeBase.from_path(str(_write_seed(tmp_path)), provider)

    query_vector = provider.embed_query(SEED_DOCUMENTS[1]["content"])
    results = store.vector_search(query_vector, similarity_floor=0.0, limit=1)

    assert [fragment.id for fragment in results] == ["fee-table"]
    assert results[0].relevance_score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_offline_pipeline_serves_seed_documents(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("SEED_DOCUMENTS_PATH", str(_write_seed(tmp_path)))
    monkeypatch.setenv("SIMILARITY_FLOOR", "0.0")
    pipeline = build_pipeline(load_app_config())

    context = await pipeline.smart_retrieve("When is NET Series-4 in Karachi?")

    assert "Karachi" in context
    assert context.startswith("[Document 1]")

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QueryIntent(str, Enum):
    FACTUAL = "FACTUAL"
    COMPARISON = "COMPARISON"
    PROCEDURAL = "PROCEDURAL"
    CONCEPTUAL = "CONCEPTUAL"


class PipelineMode(str, Enum):
    FAST = "fast"
    SMART = "smart"
    CUSTOM = "custom"


class DocumentFragment(BaseModel):
    id: str
    content: str
    source: str = "Unknown"
    metadata: dict[str, Any] = Field(default_factory=dict)
    relevance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    rerank_position: int | None = None

    def with_score(self, score: float, **updates: Any) -> DocumentFragment:
        bounded = max(0.0, min(1.0, float(score)))
        return self.model_copy(update={"relevance_score": bounded, **updates})


class Strategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    top_k: int = Field(default=10, ge=1)
    min_relevance_score: float = Field(default=0.2, ge=0.0, le=1.0)
    enable_diversity_selection: bool = True
    compression_target_ratio: float = Field(default=0.95, gt=0.0, le=1.0)
    use_query_expansion: bool = True
    use_hybrid_search: bool = True
    use_reranking: bool = True
    mmr_lambda: float = Field(default=0.5, ge=0.0, le=1.0)
    use_hypothetical_document: bool = False


DEFAULT_STRATEGY = Strategy()

FAST_STRATEGY = Strategy(
    top_k=8,
    min_relevance_score=0.3,
    enable_diversity_selection=True,
    compression_target_ratio=1.0,
    use_query_expansion=False,
    use_hybrid_search=True,
    use_reranking=False,
)

BALANCED_STRATEGY = Strategy(
    top_k=8,
    min_relevance_score=0.35,
    enable_diversity_selection=True,
    compression_target_ratio=0.85,
)

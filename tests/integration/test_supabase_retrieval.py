from __future__ import annotations

import os

import pytest

from admissions_rag.app.orchestration.service import build_pipeline
from admissions_rag.app.retrieval.compression import NOT_FOUND_CONTEXT
from admissions_rag.app.retrieval.models import PipelineMode
from admissions_rag.core.config import load_app_config, supabase_ready


_BACKEND_ENV = {
    name: os.getenv(name)
    for name in ("SUPABASE_URL", "SUPABASE_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY")
}


def _supabase_integration_ready() -> bool:
    return bool(_BACKEND_ENV["SUPABASE_URL"] and _BACKEND_ENV["SUPABASE_KEY"])


pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not _supabase_integration_ready(),
        reason="Supabase integration env vars are not configured",
    ),
]


@pytest.fixture
def supabase_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in _BACKEND_ENV.items():
        if value:
            monkeypatch.setenv(name, value)
    monkeypatch.setenv("USE_REAL_SUPABASE", "true")


@pytest.mark.asyncio
async def test_real_supabase_fast_retrieval_returns_context(supabase_env) -> None:
    config = load_app_config()
    assert supabase_ready(config)

    pipeline = build_pipeline(config)
    result = await pipeline.run_mode("What is the fee structure?", PipelineMode.FAST)

    assert result.context
    if result.context != NOT_FOUND_CONTEXT:
        assert result.context.startswith("[Document 1]")

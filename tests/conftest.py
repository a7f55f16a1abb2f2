from __future__ import annotations

import pytest

from admissions_rag.app.orchestration.service import default_pipeline
from admissions_rag.app.retrieval.models import DocumentFragment
from tests.fakes import make_fragment

_ENV_VARS = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "COMPLETION_BACKEND",
    "EMBEDDING_BACKEND",
    "USE_REAL_SUPABASE",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SIMILARITY_FLOOR",
    "SEED_DOCUMENTS_PATH",
    "QUERY_PATTERNS_PATH",
)


@pytest.fixture(autouse=True)
def isolate_backend_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_default_pipeline() -> None:
    default_pipeline.cache_clear()


@pytest.fixture
def fee_fragments() -> list[DocumentFragment]:
    return [
        make_fragment(
            "fee-1",
            "Tuition fee per semester for BS Computer Science is PKR 171,350.",
            0.9,
        ),
        make_fragment(
            "fee-2",
            "Admission processing fee PKR 35,000 is charged one time.",
            0.7,
        ),
        make_fragment(
            "hostel-1",
            "Hostel charges depend on room type and are billed per semester.",
            0.5,
        ),
        make_fragment(
            "deposit-1",
            "Security deposit PKR 10,000 is refundable at graduation.",
            0.3,
        ),
        make_fragment("calendar-1", "Academic calendar for the spring term.", 0.1),
        make_fragment("sports-1", "Sports complex opening hours.", 0.05),
    ]

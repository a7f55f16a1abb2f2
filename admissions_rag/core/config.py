from __future__ import annotations

import os
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class AppConfig:
    gemini_api_key: str | None
    completion_backend: str
    completion_model: str
    completion_timeout_seconds: int
    embedding_backend: str
    embedding_model: str
    embedding_dimensions: int
    embedding_max_chars: int
    use_real_supabase: bool
    supabase_url: str | None
    supabase_key: str | None
    supabase_documents_table: str
    supabase_match_function: str
    keyword_search_config: str
    similarity_floor: float
    seed_documents_path: str
    query_patterns_path: str | None


def _read_optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if not value:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _read_str_env(name: str, default: str) -> str:
    return _read_optional_env(name) or default


def _read_bool_env(name: str, default: bool) -> bool:
    value = _read_optional_env(name)
    if value is None:
        return default
    normalized = value.lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _read_int_env(name: str, default: int) -> int:
    value = _read_optional_env(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float_env(name: str, default: float) -> float:
    value = _read_optional_env(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    if parsed < 0:
        return default
    if parsed > 1:
        return 1.0
    return parsed


def load_app_config() -> AppConfig:
    return AppConfig(
        gemini_api_key=_read_optional_env("GEMINI_API_KEY")
        or _read_optional_env("GOOGLE_API_KEY"),
        completion_backend=_read_str_env("COMPLETION_BACKEND", "google").lower(),
        completion_model=_read_str_env("COMPLETION_MODEL", "gemini-2.5-flash"),
        completion_timeout_seconds=_read_int_env(
            "COMPLETION_TIMEOUT_SECONDS", default=20
        ),
        embedding_backend=_read_str_env(
            "EMBEDDING_BACKEND", "deterministic"
        ).lower(),
        embedding_model=_read_str_env(
            "EMBEDDING_MODEL", "models/gemini-embedding-001"
        ),
        embedding_dimensions=_read_int_env("EMBEDDING_DIMENSIONS", default=1536),
        embedding_max_chars=_read_int_env("EMBEDDING_MAX_CHARS", default=8000),
        use_real_supabase=_read_bool_env("USE_REAL_SUPABASE", default=False),
        supabase_url=_read_optional_env("SUPABASE_URL"),
        supabase_key=_read_optional_env("SUPABASE_KEY"),
        supabase_documents_table=_read_str_env(
            "SUPABASE_DOCUMENTS_TABLE", "documents"
        ),
        supabase_match_function=_read_str_env(
            "SUPABASE_MATCH_FUNCTION", "match_documents"
        ),
        keyword_search_config=_read_str_env("KEYWORD_SEARCH_CONFIG", "english"),
        similarity_floor=_read_float_env("SIMILARITY_FLOOR", default=0.3),
        seed_documents_path=_read_str_env(
            "SEED_DOCUMENTS_PATH", "data/knowledge_base/seed_documents.json"
        ),
        query_patterns_path=_read_optional_env("QUERY_PATTERNS_PATH"),
    )


def with_runtime_gemini_key(
    config: AppConfig,
    runtime_gemini_api_key: str | None,
) -> AppConfig:
    if runtime_gemini_api_key is None:
        return config
    key = runtime_gemini_api_key.strip()
    if not key:
        return config
    return replace(config, gemini_api_key=key)


def supabase_ready(config: AppConfig) -> bool:
    return bool(
        config.use_real_supabase and config.supabase_url and config.supabase_key
    )

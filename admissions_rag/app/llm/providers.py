from __future__ import annotations

import logging
import os
import re

from admissions_rag.app.retrieval.contracts import (
    CompletionService,
    CompletionUnavailableError,
)

LOGGER = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)")


class OfflineCompletionService:
    """Completion backend used when no model is configured.

    Every call raises, so each pipeline stage takes its documented
    degrade path (original query only, prior scores, uncompressed context,
    FACTUAL routing).
    """

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        _ = prompt
        _ = max_tokens
        _ = temperature
        raise CompletionUnavailableError("no completion backend configured")


class GeminiCompletionService:
    def __init__(self, *, api_key: str, model: str, timeout_seconds: int = 20) -> None:
        from langchain_google_genai import ChatGoogleGenerativeAI

        self._chat_model_class = ChatGoogleGenerativeAI
        self._api_key = api_key
        self._model = model
        self._timeout_seconds = timeout_seconds

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        client = self._chat_model_class(
            model=self._model,
            google_api_key=self._api_key,
            temperature=temperature,
            max_output_tokens=max_tokens,
            timeout=self._timeout_seconds,
            max_retries=1,
        )
        response = await client.ainvoke(prompt)
        text = getattr(response, "text", None)
        if not isinstance(text, str):
            text = str(response.content)
        return text


def build_completion_service(
    *,
    runtime_key: str | None,
    backend: str,
    model: str,
    timeout_seconds: int = 20,
) -> CompletionService:
    resolved_key = (
        runtime_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    )
    if backend == "google" and resolved_key:
        try:
            return GeminiCompletionService(
                api_key=str(resolved_key),
                model=model,
                timeout_seconds=timeout_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Gemini completion backend unavailable; running offline",
                extra={"completion_model": model},
                exc_info=exc,
            )
            return OfflineCompletionService()
    return OfflineCompletionService()


def parse_leading_number(text: str) -> float | None:
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    return float(match.group(1))


def parse_ten_point_score(text: str) -> float | None:
    value = parse_leading_number(text)
    if value is None:
        return None
    return max(0.0, min(1.0, value / 10.0))

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from uuid import uuid4

DEFAULT_TELEMETRY_TAG = "advanced-retrieval"


@dataclass(frozen=True)
class StageTrace:
    stage: str
    latency_ms: int
    input_count: int
    output_count: int
    status: str = "ok"
    detail: str | None = None


@dataclass(frozen=True)
class PipelineTrace:
    trace_id: str
    mode: str
    query: str
    stages: tuple[StageTrace, ...]
    latency_ms: int
    context_chars: int

    @property
    def degraded(self) -> bool:
        return any(stage.status in {"degraded", "fallback"} for stage in self.stages)


def create_trace_id() -> str:
    return f"trace-{uuid4().hex[:10]}"


def elapsed_ms(started_at: float) -> int:
    return max(int((time.perf_counter() - started_at) * 1000), 0)


def stage_trace(
    stage: str,
    started_at: float,
    *,
    input_count: int,
    output_count: int,
    status: str = "ok",
    detail: str | None = None,
) -> StageTrace:
    return StageTrace(
        stage=stage,
        latency_ms=elapsed_ms(started_at),
        input_count=input_count,
        output_count=output_count,
        status=status,
        detail=detail,
    )


def skipped_stage(stage: str, count: int) -> StageTrace:
    return StageTrace(
        stage=stage,
        latency_ms=0,
        input_count=count,
        output_count=count,
        status="skipped",
    )


def emit_pipeline_telemetry(
    trace: PipelineTrace,
    logger: logging.Logger | None = None,
) -> None:
    active_logger = logger or logging.getLogger(__name__)
    for stage in trace.stages:
        payload = {
            "tag": DEFAULT_TELEMETRY_TAG,
            "trace_id": trace.trace_id,
            "mode": trace.mode,
            **asdict(stage),
        }
        active_logger.info("retrieval_event %s", json.dumps(payload, sort_keys=True))
    active_logger.info(
        "retrieval_complete %s",
        json.dumps(
            {
                "tag": DEFAULT_TELEMETRY_TAG,
                "trace_id": trace.trace_id,
                "mode": trace.mode,
                "latency_ms": trace.latency_ms,
                "context_chars": trace.context_chars,
                "degraded": trace.degraded,
            },
            sort_keys=True,
        ),
    )

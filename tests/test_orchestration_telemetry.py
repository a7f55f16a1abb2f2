import logging
import time

from admissions_rag.app.orchestration.telemetry import (
    PipelineTrace,
    StageTrace,
    emit_pipeline_telemetry,
    skipped_stage,
    stage_trace,
)


def test_stage_trace_measures_latency() -> None:
    trace = stage_trace(
        "rerank", time.perf_counter(), input_count=5, output_count=5, detail="x"
    )

    assert trace.stage == "rerank"
    assert trace.latency_ms >= 0
    assert trace.status == "ok"


def test_skipped_stage_passes_counts_through() -> None:
    trace = skipped_stage("diversify", 4)

    assert (trace.input_count, trace.output_count, trace.status) == (4, 4, "skipped")


def test_trace_is_degraded_when_any_stage_fell_back() -> None:
    ok = StageTrace("dedupe", 1, 3, 3)
    fallback = StageTrace("filter", 0, 3, 3, status="fallback")

    assert not PipelineTrace("t", "fast", "q", (ok,), 1, 10).degraded
    assert PipelineTrace("t", "fast", "q", (ok, fallback), 1, 10).degraded


def test_emit_pipeline_telemetry_logs_structured_events(caplog) -> None:
    trace = PipelineTrace(
        trace_id="trace-123",
        mode="smart",
        query="NET dates",
        stages=(StageTrace("filter", 2, 6, 3, status="fallback"),),
        latency_ms=40,
        context_chars=512,
    )

    logger = logging.getLogger("test.telemetry")
    with caplog.at_level(logging.INFO, logger="test.telemetry"):
        emit_pipeline_telemetry(trace, logger=logger)

    assert any("retrieval_event" in message for message in caplog.messages)
    assert any('"trace_id": "trace-123"' in message for message in caplog.messages)
    assert any('"status": "fallback"' in message for message in caplog.messages)
    assert any('"degraded": true' in message for message in caplog.messages)
    assert all("NET dates" not in message for message in caplog.messages)

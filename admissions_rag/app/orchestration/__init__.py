from .service import (
    PipelineResult,
    RetrievalPipeline,
    build_pipeline,
    default_pipeline,
    retrieve_context,
)
from .telemetry import PipelineTrace, StageTrace, emit_pipeline_telemetry

__all__ = [
    "PipelineResult",
    "PipelineTrace",
    "RetrievalPipeline",
    "StageTrace",
    "build_pipeline",
    "default_pipeline",
    "emit_pipeline_telemetry",
    "retrieve_context",
]

"""Batch digestion: sequential task queue and the claim pipeline."""

from claim_organizer.digestion.pipeline import (
    ClaimPipeline,
    DocumentOutcome,
    DocumentStatus,
    PipelineConfig,
    PipelineStep,
    RunReport,
)
from claim_organizer.digestion.task_queue import SequentialTaskQueue, TaskResult

__all__ = [
    "ClaimPipeline",
    "DocumentOutcome",
    "DocumentStatus",
    "PipelineConfig",
    "PipelineStep",
    "RunReport",
    "SequentialTaskQueue",
    "TaskResult",
]

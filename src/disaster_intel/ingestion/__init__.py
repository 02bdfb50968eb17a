"""
Disaster ingestion: fetch, normalize, validate and merge hazard feeds.
"""

from disaster_intel.ingestion.base_pipeline import (
    IngestionPipeline,
    PipelineConfig,
    PipelineExecutionResult,
    PipelineStatus,
)
from disaster_intel.ingestion.deduplication import (
    MergeContractError,
    MergeResult,
    MergeStats,
    ProximityDeduplicator,
    merge_sources,
)
from disaster_intel.ingestion.orchestrator import IngestionReport, PipelineOrchestrator

__all__ = [
    "IngestionPipeline",
    "PipelineConfig",
    "PipelineExecutionResult",
    "PipelineStatus",
    "MergeContractError",
    "MergeResult",
    "MergeStats",
    "ProximityDeduplicator",
    "merge_sources",
    "IngestionReport",
    "PipelineOrchestrator",
]

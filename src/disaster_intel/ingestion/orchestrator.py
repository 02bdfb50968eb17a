"""
Pipeline Orchestrator.

Runs every registered source pipeline concurrently, tolerates partial
failure, and hands the surviving records to the cross-source merger.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from disaster_intel.ingestion.base_pipeline import (
    IngestionPipeline,
    PipelineExecutionResult,
    PipelineStatus,
)
from disaster_intel.ingestion.deduplication import MergeResult, ProximityDeduplicator
from disaster_intel.monitoring.logging import with_context
from disaster_intel.schemas.event import DisasterBatch, DisasterEvent

logger = logging.getLogger(__name__)


@dataclass
class IngestionReport:
    """Outcome of a full ingestion run: per-source results plus the merge."""

    run_id: str
    started_at: datetime
    ended_at: datetime
    results: Dict[str, PipelineExecutionResult] = field(default_factory=dict)
    merge: MergeResult = field(default_factory=MergeResult)

    @property
    def events(self) -> List[DisasterEvent]:
        return self.merge.events

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def failed_sources(self) -> List[str]:
        return [name for name, r in self.results.items() if r.status == PipelineStatus.FAILED]

    def to_batch(self) -> DisasterBatch:
        """Package the merged records for the display layer."""
        return DisasterBatch(
            batch_id=self.run_id,
            events=self.merge.events,
            generated_at=self.ended_at,
            total_count=len(self.merge.events),
            duplicates_removed=self.merge.stats.duplicates_removed,
        )

    def summary(self) -> Dict[str, Any]:
        stats = self.merge.stats
        return {
            "run_id": self.run_id,
            "timestamp": self.started_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "sources": {
                name: {
                    "status": r.status.value,
                    "fetched": r.total_events_processed,
                    "normalized": r.successful_events,
                    "dropped": r.failed_events,
                    "errors": [e.get("error") for e in r.errors],
                }
                for name, r in self.results.items()
            },
            "total_events": stats.total_events,
            "unique_events": len(self.merge.events),
            "duplicates_removed": stats.duplicates_removed,
            "source_breakdown": stats.source_breakdown,
            "category_breakdown": stats.category_breakdown,
        }


class PipelineOrchestrator:
    """
    Coordinates all source pipelines.

    Responsibilities:
    - Register and manage pipeline instances
    - Execute pipelines concurrently (a failed source contributes zero records)
    - Merge the per-source outputs into one deduplicated list
    - Track execution history and results
    """

    def __init__(self, merger: Optional[ProximityDeduplicator] = None):
        """Initialize the orchestrator."""
        self.logger = logging.getLogger("orchestrator")
        self.pipelines: Dict[str, IngestionPipeline] = {}
        self.execution_history: List[PipelineExecutionResult] = []
        self.merger = merger or ProximityDeduplicator()

    # ========================================================================
    # PIPELINE MANAGEMENT
    # ========================================================================

    def register_pipeline(self, source_name: str, pipeline: IngestionPipeline) -> None:
        """
        Register a pipeline instance.

        Registration order is merge order, which decides ties between
        equally ranked duplicates.

        Args:
            source_name: Unique identifier for the source
            pipeline: Configured IngestionPipeline instance
        """
        self.pipelines[source_name] = pipeline
        self.logger.info(f"Registered pipeline: {source_name} (type: {pipeline.source_type.value})")

    def get_pipeline(self, source_name: str) -> Optional[IngestionPipeline]:
        """Get a registered pipeline by name."""
        return self.pipelines.get(source_name)

    def list_pipelines(self) -> List[Dict[str, str]]:
        """List all registered pipelines with their types."""
        return [
            {"name": name, "type": p.source_type.value, "source_tag": p.source_tag}
            for name, p in self.pipelines.items()
        ]

    # ========================================================================
    # EXECUTION
    # ========================================================================

    async def execute_pipeline(
        self, source_name: str, run_id: Optional[str] = None, **kwargs
    ) -> PipelineExecutionResult:
        """
        Execute a single pipeline.

        Args:
            source_name: Name of the pipeline to execute
            run_id: Run identifier for log context
            **kwargs: Parameters passed to pipeline.execute()

        Returns:
            PipelineExecutionResult
        """
        pipeline = self.get_pipeline(source_name)
        if not pipeline:
            raise ValueError(f"Pipeline '{source_name}' not found")

        result = await pipeline.execute(run_id=run_id, **kwargs)
        self.execution_history.append(result)
        return result

    async def execute_all_pipelines(
        self, run_id: Optional[str] = None, **kwargs
    ) -> Dict[str, PipelineExecutionResult]:
        """
        Execute all registered pipelines concurrently.

        Returns:
            Dictionary mapping source_name -> PipelineExecutionResult, in
            registration order
        """
        names = list(self.pipelines)
        outcomes = await asyncio.gather(
            *(self.execute_pipeline(name, run_id=run_id, **kwargs) for name in names),
            return_exceptions=True,
        )

        results = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(f"Failed to execute {name}: {outcome}")
                outcome = self._failure_result(name, outcome)
                self.execution_history.append(outcome)
            results[name] = outcome
        return results

    def merge_results(
        self, results: Dict[str, PipelineExecutionResult], now: Optional[datetime] = None
    ) -> MergeResult:
        """Merge events from multiple pipeline results."""
        return self.merger.merge(*(r.events for r in results.values()), now=now)

    async def run_full_ingestion(self, now: Optional[datetime] = None, **kwargs) -> IngestionReport:
        """
        Execute all registered pipelines and merge their output.

        Args:
            now: Processing time for the merger's validity re-check
            **kwargs: Parameters passed to every pipeline

        Returns:
            IngestionReport with per-source results and the merge result
        """
        run_id = uuid.uuid4().hex[:12]
        log = with_context(self.logger, run_id=run_id, stage="ingest")
        log.info("Starting full ingestion run...")
        started_at = datetime.now(timezone.utc)

        results = await self.execute_all_pipelines(run_id=run_id, **kwargs)

        failed = [name for name, r in results.items() if r.status == PipelineStatus.FAILED]
        if failed:
            log.warning(f"Sources contributing no records: {', '.join(failed)}")

        merge = self.merge_results(results, now=now)

        with_context(self.logger, run_id=run_id, stage="merge").info(
            f"Merge complete: {len(merge.events)} unique events from "
            f"{merge.stats.total_events} normalized records"
        )

        return IngestionReport(
            run_id=run_id,
            started_at=started_at,
            ended_at=datetime.now(timezone.utc),
            results=results,
            merge=merge,
        )

    async def close(self) -> None:
        """Release adapter resources held by every pipeline."""
        for pipeline in self.pipelines.values():
            await pipeline.close()

    # ========================================================================
    # HISTORY & STATS
    # ========================================================================

    def get_execution_history(
        self, source_name: Optional[str] = None, limit: int = 10
    ) -> List[PipelineExecutionResult]:
        """Get execution history, optionally filtered by source."""
        results = self.execution_history

        if source_name:
            results = [r for r in results if r.source_name == source_name]

        return results[-limit:]

    def get_execution_stats(self, source_name: Optional[str] = None) -> Dict[str, Any]:
        """Get aggregate statistics about pipeline executions."""
        results = self.execution_history
        if source_name:
            results = [r for r in results if r.source_name == source_name]

        if not results:
            return {"total_executions": 0}

        successful = sum(1 for r in results if r.status != PipelineStatus.FAILED)
        total_events = sum(r.total_events_processed for r in results)
        total_successful = sum(r.successful_events for r in results)

        return {
            "total_executions": len(results),
            "successful_executions": successful,
            "success_rate": successful / len(results) * 100,
            "total_events_processed": total_events,
            "total_successful_events": total_successful,
            "average_events_per_run": total_events / len(results),
        }

    def _failure_result(self, source_name: str, error: BaseException) -> PipelineExecutionResult:
        pipeline = self.pipelines[source_name]
        now = datetime.now(timezone.utc)
        return PipelineExecutionResult(
            status=PipelineStatus.FAILED,
            source_name=source_name,
            source_type=pipeline.source_type,
            execution_id=f"{source_name}_failed",
            started_at=now,
            ended_at=now,
            errors=[{"error": str(error), "stage": "execution"}],
        )


def load_orchestrator_from_config(config_path: Optional[str] = None, settings=None) -> PipelineOrchestrator:
    """
    Create an orchestrator from YAML config.

    Uses PipelineFactory to create all enabled pipelines and the merger.

    Args:
        config_path: Path to ingestion.yaml

    Returns:
        Configured PipelineOrchestrator
    """
    from disaster_intel.ingestion.factory import PipelineFactory

    factory = PipelineFactory(config_path, settings=settings)
    orchestrator = PipelineOrchestrator(merger=factory.create_merger())

    for source_name, pipeline in factory.create_all_enabled_pipelines().items():
        orchestrator.register_pipeline(source_name, pipeline)

    return orchestrator

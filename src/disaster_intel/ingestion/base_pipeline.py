"""
Ingestion Pipeline.

A pipeline pairs one source adapter with one normalizer and runs the
per-source workflow from raw payload to validated DisasterEvent records.

Architecture:
    SourceAdapter (API/Spreadsheet) → IngestionPipeline → Normalizer → DisasterEvent

Any new feed needs:
1. An adapter (or the generic API/Spreadsheet adapter with a query builder)
2. A BaseNormalizer subclass
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from disaster_intel.ingestion.adapters import BaseSourceAdapter, SourceType
from disaster_intel.ingestion.normalization import BaseNormalizer, DroppedRecord
from disaster_intel.monitoring.logging import with_context
from disaster_intel.schemas.event import DisasterEvent


class PipelineStatus(str, Enum):
    """Status of a pipeline execution."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


@dataclass
class PipelineConfig:
    """
    Configuration for a pipeline instance.

    This is pipeline-level config, separate from adapter-level config.
    ``fetch_params`` are passed to the adapter on every execution unless
    overridden by keyword arguments to ``execute``.
    """

    source_name: str
    source_type: SourceType = SourceType.API
    fetch_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineExecutionResult:
    """Result of a pipeline execution."""

    status: PipelineStatus
    source_name: str
    source_type: SourceType
    execution_id: str
    started_at: datetime
    ended_at: datetime
    total_events_processed: int = 0
    successful_events: int = 0
    failed_events: int = 0
    events: List[DisasterEvent] = field(default_factory=list)
    dropped: List[DroppedRecord] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        """Calculate execution duration."""
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def success_rate(self) -> float:
        """Calculate success rate percentage."""
        if self.total_events_processed == 0:
            return 0.0
        return (self.successful_events / self.total_events_processed) * 100


class IngestionPipeline:
    """
    Fetch-then-normalize workflow for a single source.

    Workflow:
    1. Fetch raw records (via adapter)
    2. Normalize and validate (via normalizer; bad records are dropped)

    ``execute`` never raises: a failed fetch or an unexpected error yields a
    FAILED result with no events, which the orchestrator treats as an empty
    source.
    """

    def __init__(
        self,
        config: PipelineConfig,
        adapter: BaseSourceAdapter,
        normalizer: BaseNormalizer,
    ):
        """
        Initialize the pipeline.

        Args:
            config: PipelineConfig with pipeline settings
            adapter: Source adapter for data fetching
            normalizer: Normalizer for the source's record shape
        """
        self.config = config
        self.adapter = adapter
        self.normalizer = normalizer
        self.logger = logging.getLogger(f"pipeline.{config.source_name}")
        self.execution_id: Optional[str] = None

    @property
    def source_type(self) -> SourceType:
        """Get the source type from adapter."""
        return self.adapter.source_type

    @property
    def source_tag(self) -> str:
        return self.normalizer.source_tag

    async def execute(self, run_id: Optional[str] = None, **kwargs) -> PipelineExecutionResult:
        """
        Execute the full pipeline workflow.

        Args:
            run_id: Orchestrator run identifier, for log context
            **kwargs: Parameters passed to the adapter's fetch method

        Returns:
            PipelineExecutionResult with summary and events
        """
        self.execution_id = self._generate_execution_id()
        started_at = datetime.now(timezone.utc)
        log = with_context(self.logger, run_id=run_id, source_id=self.config.source_name, stage="fetch")
        log.info(f"Starting pipeline execution: {self.execution_id}")

        params = {**self.config.fetch_params, **kwargs}

        try:
            fetch_result = await self.adapter.fetch(**params)

            if not fetch_result.success:
                log.error(f"Fetch failed: {fetch_result.errors}")
                return self._failed(
                    started_at,
                    [{"error": e, "stage": "fetch"} for e in fetch_result.errors],
                    fetch_result.metadata,
                )

            log.info(f"Fetched {fetch_result.total_fetched} raw records")

            report = self.normalizer.normalize_with_report(fetch_result.raw_data)

        except Exception as e:
            log.error(f"Pipeline execution failed: {e}", exc_info=True)
            return self._failed(started_at, [{"error": str(e), "stage": "execution"}])

        status = PipelineStatus.PARTIAL_SUCCESS if report.dropped else PipelineStatus.SUCCESS
        if report.dropped and not report.events:
            status = PipelineStatus.FAILED

        result = PipelineExecutionResult(
            status=status,
            source_name=self.config.source_name,
            source_type=self.source_type,
            execution_id=self.execution_id,
            started_at=started_at,
            ended_at=datetime.now(timezone.utc),
            total_events_processed=report.total_records,
            successful_events=len(report.events),
            failed_events=report.dropped_count,
            events=report.events,
            dropped=report.dropped,
            metadata={
                **fetch_result.metadata,
                "fetch_duration_s": fetch_result.duration_seconds,
            },
        )

        with_context(self.logger, run_id=run_id, source_id=self.config.source_name, stage="normalize").info(
            f"Pipeline completed: {result.successful_events}/{result.total_events_processed} successful"
        )
        return result

    def _failed(
        self,
        started_at: datetime,
        errors: List[Dict[str, Any]],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PipelineExecutionResult:
        return PipelineExecutionResult(
            status=PipelineStatus.FAILED,
            source_name=self.config.source_name,
            source_type=self.source_type,
            execution_id=self.execution_id,
            started_at=started_at,
            ended_at=datetime.now(timezone.utc),
            errors=errors,
            metadata=metadata or {},
        )

    def _generate_execution_id(self) -> str:
        """Generate unique execution identifier."""
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        unique_id = str(uuid.uuid4())[:8]
        return f"{self.config.source_name}_{timestamp}_{unique_id}"

    async def close(self) -> None:
        await self.adapter.close()

"""
Unit tests for the orchestrator module.

Pipelines are replaced with mocks returning canned execution results so the
tests exercise concurrency, failure isolation and the merge hand-off.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from disaster_intel.configs.settings import Settings
from disaster_intel.ingestion.adapters import SourceType
from disaster_intel.ingestion.base_pipeline import (
    IngestionPipeline,
    PipelineExecutionResult,
    PipelineStatus,
)
from disaster_intel.ingestion.deduplication import ProximityDeduplicator
from disaster_intel.ingestion.orchestrator import (
    IngestionReport,
    PipelineOrchestrator,
    load_orchestrator_from_config,
)
from disaster_intel.schemas.event import DisasterBatch, DisasterCategory

# =============================================================================
# HELPERS
# =============================================================================


def make_result(name, events=(), status=PipelineStatus.SUCCESS, errors=None):
    now = datetime.now(timezone.utc)
    return PipelineExecutionResult(
        status=status,
        source_name=name,
        source_type=SourceType.API,
        execution_id=f"{name}_test",
        started_at=now,
        ended_at=now,
        total_events_processed=len(events),
        successful_events=len(events),
        events=list(events),
        errors=errors or [],
    )


def make_pipeline(result=None, side_effect=None, source_tag="USGS"):
    pipeline = MagicMock(spec=IngestionPipeline)
    pipeline.source_type = SourceType.API
    pipeline.source_tag = source_tag
    pipeline.execute = AsyncMock(return_value=result, side_effect=side_effect)
    pipeline.close = AsyncMock()
    return pipeline


@pytest.fixture
def orchestrator():
    return PipelineOrchestrator()


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestPipelineManagement:
    """Tests for registering and listing pipelines."""

    def test_register_and_get(self, orchestrator):
        pipeline = make_pipeline()
        orchestrator.register_pipeline("usgs", pipeline)

        assert orchestrator.get_pipeline("usgs") is pipeline
        assert orchestrator.get_pipeline("gdacs") is None

    def test_list_pipelines(self, orchestrator):
        orchestrator.register_pipeline("eonet", make_pipeline(source_tag="NASA EONET"))
        orchestrator.register_pipeline("usgs", make_pipeline(source_tag="USGS"))

        assert orchestrator.list_pipelines() == [
            {"name": "eonet", "type": "api", "source_tag": "NASA EONET"},
            {"name": "usgs", "type": "api", "source_tag": "USGS"},
        ]

    def test_default_merger(self, orchestrator):
        assert isinstance(orchestrator.merger, ProximityDeduplicator)


class TestExecution:
    """Tests for single and concurrent pipeline execution."""

    def test_execute_unknown_pipeline(self, orchestrator):
        with pytest.raises(ValueError, match="not found"):
            asyncio.run(orchestrator.execute_pipeline("gdacs"))

    def test_execute_pipeline_records_history(self, orchestrator):
        result = make_result("usgs")
        pipeline = make_pipeline(result)
        orchestrator.register_pipeline("usgs", pipeline)

        returned = asyncio.run(orchestrator.execute_pipeline("usgs", run_id="r1", limit=5))

        assert returned is result
        pipeline.execute.assert_awaited_once_with(run_id="r1", limit=5)
        assert orchestrator.get_execution_history() == [result]

    def test_execute_all_isolates_failures(self, orchestrator):
        orchestrator.register_pipeline("emdat", make_pipeline(side_effect=RuntimeError("disk gone")))
        orchestrator.register_pipeline("usgs", make_pipeline(make_result("usgs")))

        results = asyncio.run(orchestrator.execute_all_pipelines())

        assert list(results) == ["emdat", "usgs"]
        assert results["emdat"].status == PipelineStatus.FAILED
        assert results["emdat"].errors == [{"error": "disk gone", "stage": "execution"}]
        assert results["usgs"].status == PipelineStatus.SUCCESS
        assert len(orchestrator.execution_history) == 2

    def test_pipelines_run_concurrently(self, orchestrator):
        started = []

        def slow_pipeline(name):
            async def _execute(**kwargs):
                started.append(name)
                await asyncio.sleep(0.05)
                # every pipeline has started before the first one finishes
                assert len(started) == 3
                return make_result(name)

            return make_pipeline(side_effect=_execute)

        for name in ("emdat", "eonet", "usgs"):
            orchestrator.register_pipeline(name, slow_pipeline(name))

        results = asyncio.run(orchestrator.execute_all_pipelines())

        assert all(r.status == PipelineStatus.SUCCESS for r in results.values())

    def test_close_closes_every_pipeline(self, orchestrator):
        pipelines = [make_pipeline(), make_pipeline()]
        for i, pipeline in enumerate(pipelines):
            orchestrator.register_pipeline(f"p{i}", pipeline)

        asyncio.run(orchestrator.close())

        for pipeline in pipelines:
            pipeline.close.assert_awaited_once()


class TestRunFullIngestion:
    """Tests for the end-to-end run and its report."""

    def test_merges_across_sources(self, orchestrator, create_event, now):
        occurred = datetime(2024, 7, 14, 6, 0, tzinfo=timezone.utc)
        usgs = create_event(event_id="usgs-1", source_tag="USGS", occurred_at=occurred, magnitude=6.2)
        eonet = create_event(
            event_id="eonet-1",
            source_tag="NASA EONET",
            latitude=34.1,
            occurred_at=occurred + timedelta(hours=2),
        )
        flood = create_event(
            event_id="emdat-1",
            source_tag="EM-DAT",
            category=DisasterCategory.FLOOD,
            latitude=10.0,
            longitude=10.0,
            occurred_at=occurred - timedelta(days=3),
        )
        orchestrator.register_pipeline("emdat", make_pipeline(make_result("emdat", [flood]), source_tag="EM-DAT"))
        orchestrator.register_pipeline("eonet", make_pipeline(make_result("eonet", [eonet]), source_tag="NASA EONET"))
        orchestrator.register_pipeline("usgs", make_pipeline(make_result("usgs", [usgs])))

        report = asyncio.run(orchestrator.run_full_ingestion(now=now))

        assert isinstance(report, IngestionReport)
        assert len(report.run_id) == 12
        assert [e.event_id for e in report.events] == ["usgs-1", "emdat-1"]
        assert report.merge.stats.total_events == 3
        assert report.merge.stats.duplicates_removed == 1
        assert report.failed_sources == []

    def test_failed_source_contributes_nothing(self, orchestrator, create_event, now):
        failed = make_result("eonet", status=PipelineStatus.FAILED, errors=[{"error": "HTTP 503", "stage": "fetch"}])
        orchestrator.register_pipeline("eonet", make_pipeline(failed, source_tag="NASA EONET"))
        orchestrator.register_pipeline("usgs", make_pipeline(make_result("usgs", [create_event()])))

        report = asyncio.run(orchestrator.run_full_ingestion(now=now))

        assert report.failed_sources == ["eonet"]
        assert len(report.events) == 1

    def test_summary_and_batch(self, orchestrator, create_event, now):
        event = create_event(event_id="usgs-1")
        orchestrator.register_pipeline("usgs", make_pipeline(make_result("usgs", [event])))

        report = asyncio.run(orchestrator.run_full_ingestion(now=now))
        summary = report.summary()
        batch = report.to_batch()

        assert summary["run_id"] == report.run_id
        assert summary["sources"]["usgs"] == {
            "status": "success",
            "fetched": 1,
            "normalized": 1,
            "dropped": 0,
            "errors": [],
        }
        assert summary["unique_events"] == 1
        assert summary["category_breakdown"] == {"earthquake": 1}
        assert isinstance(batch, DisasterBatch)
        assert batch.batch_id == report.run_id
        assert batch.total_count == 1
        assert batch.events[0].event_id == "usgs-1"

    def test_no_pipelines(self, orchestrator, now):
        report = asyncio.run(orchestrator.run_full_ingestion(now=now))
        assert report.events == []
        assert report.results == {}


class TestExecutionStats:
    """Tests for history filtering and aggregate stats."""

    def test_empty_stats(self, orchestrator):
        assert orchestrator.get_execution_stats() == {"total_executions": 0}

    def test_stats_and_history(self, orchestrator, create_event):
        ok = make_result("usgs", [create_event(), create_event()])
        partial = make_result("usgs", [create_event()], status=PipelineStatus.PARTIAL_SUCCESS)
        failed = make_result("eonet", status=PipelineStatus.FAILED)
        orchestrator.execution_history.extend([ok, partial, failed])

        stats = orchestrator.get_execution_stats()

        assert stats["total_executions"] == 3
        assert stats["successful_executions"] == 2
        assert stats["total_events_processed"] == 3
        assert stats["average_events_per_run"] == 1.0
        assert orchestrator.get_execution_history("usgs") == [ok, partial]
        assert orchestrator.get_execution_history(limit=1) == [failed]
        assert orchestrator.get_execution_stats("eonet")["successful_executions"] == 0


class TestLoadOrchestratorFromConfig:
    """Tests for building an orchestrator from YAML."""

    def test_registers_enabled_sources(self, tmp_path):
        config = {
            "sources": {
                "eonet": {"type": "api", "base_url": "https://eonet.example.org", "endpoint": "events"},
                "usgs": {"type": "api", "enabled": False, "base_url": "https://usgs.example.org"},
            },
            "deduplication": {"strict_contracts": True},
        }
        path = tmp_path / "ingestion.yaml"
        path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")

        orchestrator = load_orchestrator_from_config(str(path), settings=Settings(_env_file=None))

        assert [p["name"] for p in orchestrator.list_pipelines()] == ["eonet"]
        assert orchestrator.merger.strict is True

    def test_uses_factory(self):
        with patch("disaster_intel.ingestion.factory.PipelineFactory") as factory_cls:
            factory = factory_cls.return_value
            factory.create_merger.return_value = ProximityDeduplicator()
            factory.create_all_enabled_pipelines.return_value = {"usgs": make_pipeline()}

            orchestrator = load_orchestrator_from_config("x.yaml")

        factory_cls.assert_called_once_with("x.yaml", settings=None)
        assert orchestrator.get_pipeline("usgs") is not None

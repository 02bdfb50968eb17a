"""
Unit tests for the factory module.
"""

from datetime import timedelta

import pytest
import yaml

from disaster_intel.configs.settings import CONFIG_DIR, Settings
from disaster_intel.ingestion.adapters import APIAdapter, SourceType, SpreadsheetAdapter
from disaster_intel.ingestion.base_pipeline import IngestionPipeline
from disaster_intel.ingestion.deduplication import DuplicateThreshold
from disaster_intel.ingestion.factory import PipelineFactory
from disaster_intel.ingestion.normalization import EmdatNormalizer, EonetNormalizer, UsgsNormalizer
from disaster_intel.schemas.event import DisasterCategory

PACKAGED_CONFIG = CONFIG_DIR / "ingestion.yaml"


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def config_file(tmp_path):
    config = {
        "sources": {
            "emdat": {"enabled": True, "type": "spreadsheet", "file_path": "emdat.xlsx"},
            "eonet": {
                "enabled": True,
                "type": "api",
                "base_url": "https://eonet.example.org/api/v3",
                "endpoint": "events",
                "params": {"mode": "recent", "days": 10},
            },
            "usgs": {"enabled": False, "type": "api", "base_url": "https://usgs.example.org"},
            "broken": {"enabled": True, "type": "api", "normalizer": "gdacs", "base_url": "https://x"},
        },
        "deduplication": {
            "strict_contracts": True,
            "thresholds": {"earthquake": {"radius_km": 25, "window_hours": 12}},
        },
    }
    path = tmp_path / "ingestion.yaml"
    path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return path


class TestPipelineFactoryConfig:
    """Tests for config loading and listing."""

    def test_missing_config(self, tmp_path, settings):
        factory = PipelineFactory(str(tmp_path / "missing.yaml"), settings=settings)
        with pytest.raises(FileNotFoundError):
            factory.list_sources()

    def test_list_sources(self, config_file, settings):
        sources = PipelineFactory(str(config_file), settings=settings).list_sources()

        assert sources["emdat"] == {"enabled": True, "type": "spreadsheet"}
        assert sources["usgs"]["enabled"] is False

    def test_list_enabled_sources(self, config_file, settings):
        enabled = PipelineFactory(str(config_file), settings=settings).list_enabled_sources()
        assert enabled == ["emdat", "eonet", "broken"]

    def test_get_source_config(self, config_file, settings):
        factory = PipelineFactory(str(config_file), settings=settings)
        assert factory.get_source_config("eonet")["endpoint"] == "events"
        assert factory.get_source_config("nope") is None

    def test_packaged_config_parses(self, settings):
        factory = PipelineFactory(str(PACKAGED_CONFIG), settings=settings)
        assert set(factory.list_enabled_sources()) == {"emdat", "eonet", "usgs"}


class TestCreatePipeline:
    """Tests for PipelineFactory.create_pipeline."""

    def test_api_pipeline(self, config_file, settings):
        pipeline = PipelineFactory(str(config_file), settings=settings).create_pipeline("eonet")

        assert isinstance(pipeline, IngestionPipeline)
        assert isinstance(pipeline.adapter, APIAdapter)
        assert isinstance(pipeline.normalizer, EonetNormalizer)
        assert pipeline.adapter.api_config.url == "https://eonet.example.org/api/v3/events"
        assert pipeline.adapter.query_builder is not None
        assert pipeline.config.fetch_params == {"mode": "recent", "days": 10}

    def test_spreadsheet_pipeline(self, config_file, settings):
        pipeline = PipelineFactory(str(config_file), settings=settings).create_pipeline("emdat")

        assert isinstance(pipeline.adapter, SpreadsheetAdapter)
        assert isinstance(pipeline.normalizer, EmdatNormalizer)
        assert pipeline.source_type == SourceType.SPREADSHEET
        assert pipeline.adapter.sheet_config.file_path == "emdat.xlsx"

    def test_emdat_path_from_settings(self, config_file):
        settings = Settings(_env_file=None, EMDAT_FILE_PATH="/data/override.xlsx")
        pipeline = PipelineFactory(str(config_file), settings=settings).create_pipeline("emdat")
        assert pipeline.adapter.sheet_config.file_path == "/data/override.xlsx"

    def test_future_tolerance_from_settings(self, config_file):
        settings = Settings(_env_file=None, FUTURE_TOLERANCE_DAYS=2)
        pipeline = PipelineFactory(str(config_file), settings=settings).create_pipeline("eonet")
        assert pipeline.normalizer.future_tolerance == timedelta(days=2)

    def test_unknown_source(self, config_file, settings):
        with pytest.raises(ValueError, match="not found"):
            PipelineFactory(str(config_file), settings=settings).create_pipeline("gdacs")

    def test_disabled_source(self, config_file, settings):
        with pytest.raises(ValueError, match="not enabled"):
            PipelineFactory(str(config_file), settings=settings).create_pipeline("usgs")

    def test_unknown_normalizer(self, config_file, settings):
        with pytest.raises(ValueError, match="Unknown normalizer"):
            PipelineFactory(str(config_file), settings=settings).create_pipeline("broken")

    def test_create_all_skips_broken_sources(self, config_file, settings):
        pipelines = PipelineFactory(str(config_file), settings=settings).create_all_enabled_pipelines()
        assert list(pipelines) == ["emdat", "eonet"]

    def test_packaged_usgs_pipeline(self, settings):
        pipeline = PipelineFactory(str(PACKAGED_CONFIG), settings=settings).create_pipeline("usgs")
        assert isinstance(pipeline.normalizer, UsgsNormalizer)
        assert pipeline.adapter.api_config.url == "https://earthquake.usgs.gov/fdsnws/event/1/query"


class TestCreateMerger:
    """Tests for PipelineFactory.create_merger."""

    def test_thresholds_and_strict_from_yaml(self, config_file, settings):
        merger = PipelineFactory(str(config_file), settings=settings).create_merger()

        assert merger.strict is True
        assert merger.thresholds[DisasterCategory.EARTHQUAKE] == DuplicateThreshold(25, 12)
        assert merger.thresholds[DisasterCategory.WILDFIRE] == DuplicateThreshold(100, 72)

    def test_strict_from_settings(self, settings):
        strict_settings = Settings(_env_file=None, MERGE_STRICT_CONTRACTS=True)
        merger = PipelineFactory(str(PACKAGED_CONFIG), settings=strict_settings).create_merger()
        assert merger.strict is True

    def test_packaged_defaults(self, settings):
        merger = PipelineFactory(str(PACKAGED_CONFIG), settings=settings).create_merger()
        assert merger.strict is False
        assert merger.thresholds[DisasterCategory.VOLCANO] == DuplicateThreshold(20, 168)

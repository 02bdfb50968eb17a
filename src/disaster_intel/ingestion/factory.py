"""
Pipeline Factory for config-driven pipeline creation.

Provides a unified interface to create pipelines from YAML configuration.

Usage:
    from disaster_intel.ingestion.factory import PipelineFactory

    factory = PipelineFactory()
    pipelines = factory.create_all_enabled_pipelines()
    merger = factory.create_merger()
"""

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from disaster_intel.configs.settings import Settings, get_settings
from disaster_intel.ingestion.adapters import (
    APIAdapter,
    APIAdapterConfig,
    BaseSourceAdapter,
    SpreadsheetAdapter,
    SpreadsheetAdapterConfig,
    SourceType,
)
from disaster_intel.ingestion.adapters.feeds import QUERY_BUILDERS, RESPONSE_PARSERS
from disaster_intel.ingestion.base_pipeline import IngestionPipeline, PipelineConfig
from disaster_intel.ingestion.deduplication import ProximityDeduplicator, thresholds_from_config
from disaster_intel.ingestion.normalization import (
    BaseNormalizer,
    EmdatNormalizer,
    EonetNormalizer,
    UsgsNormalizer,
)

logger = logging.getLogger(__name__)

NORMALIZERS = {
    "emdat": EmdatNormalizer,
    "eonet": EonetNormalizer,
    "usgs": UsgsNormalizer,
}


class PipelineFactory:
    """
    Factory for creating pipelines from YAML configuration.

    Reads source configurations from ingestion.yaml and creates
    appropriate pipeline instances (API or spreadsheet-based).
    """

    def __init__(self, config_path: Optional[str] = None, settings: Optional[Settings] = None):
        """
        Initialize the factory.

        Args:
            config_path: Path to ingestion.yaml. If not provided, uses settings.
            settings: Application settings (defaults to the cached instance)
        """
        self.settings = settings or get_settings()
        self.config_path = Path(config_path) if config_path else Path(self.settings.INGESTION_CONFIG_PATH)
        self._config: Optional[Dict] = None

    @property
    def config(self) -> Dict:
        """Load and cache configuration."""
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def _load_config(self) -> Dict:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config not found: {self.config_path}")

        with open(self.config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def get_source_config(self, source_name: str) -> Optional[Dict]:
        """
        Get configuration for a specific source.

        Args:
            source_name: Name of the source (e.g., "usgs")

        Returns:
            Source configuration dict or None if not found
        """
        sources = self.config.get("sources") or {}
        return sources.get(source_name)

    def list_sources(self) -> Dict[str, Dict]:
        """
        List all configured sources with their status.

        Returns:
            Dict mapping source_name -> {enabled: bool, type: str}
        """
        sources = self.config.get("sources") or {}
        return {
            name: {
                "enabled": cfg.get("enabled", True),
                "type": cfg.get("type", "api"),
            }
            for name, cfg in sources.items()
        }

    def list_enabled_sources(self) -> List[str]:
        """List names of all enabled sources."""
        return [name for name, info in self.list_sources().items() if info["enabled"]]

    def create_pipeline(self, source_name: str) -> IngestionPipeline:
        """
        Create a pipeline for the specified source.

        Args:
            source_name: Name of the source (e.g., "eonet", "usgs")

        Returns:
            Configured IngestionPipeline instance

        Raises:
            ValueError: If source not found, not enabled, or misconfigured
        """
        source_config = self.get_source_config(source_name)
        if not source_config:
            raise ValueError(f"Source '{source_name}' not found in configuration")

        if not source_config.get("enabled", True):
            raise ValueError(f"Source '{source_name}' is not enabled")

        normalizer = self._create_normalizer(source_name, source_config)
        adapter = self._create_adapter(source_name, source_config)

        config = PipelineConfig(
            source_name=source_name,
            source_type=adapter.source_type,
            fetch_params=dict(source_config.get("params") or {}),
        )
        return IngestionPipeline(config, adapter, normalizer)

    def _create_normalizer(self, source_name: str, source_config: Dict[str, Any]) -> BaseNormalizer:
        key = source_config.get("normalizer", source_name)
        normalizer_cls = NORMALIZERS.get(key)
        if normalizer_cls is None:
            raise ValueError(f"Unknown normalizer: {key}")
        return normalizer_cls(
            future_tolerance=timedelta(days=self.settings.FUTURE_TOLERANCE_DAYS)
        )

    def _create_adapter(self, source_name: str, source_config: Dict[str, Any]) -> BaseSourceAdapter:
        source_type = SourceType(source_config.get("type", "api"))

        if source_type == SourceType.SPREADSHEET:
            file_path = self.settings.EMDAT_FILE_PATH if source_name == "emdat" else None
            return SpreadsheetAdapter(
                SpreadsheetAdapterConfig(
                    source_id=source_name,
                    source_type=source_type,
                    request_timeout=self.settings.REQUEST_TIMEOUT,
                    file_path=file_path or source_config.get("file_path", ""),
                    sheet_name=source_config.get("sheet_name", 0),
                )
            )

        key = source_config.get("normalizer", source_name)
        return APIAdapter(
            APIAdapterConfig(
                source_id=source_name,
                source_type=source_type,
                request_timeout=self.settings.REQUEST_TIMEOUT,
                base_url=source_config.get("base_url", ""),
                endpoint=source_config.get("endpoint", ""),
                headers=source_config.get("headers") or {},
            ),
            query_builder=QUERY_BUILDERS.get(key),
            response_parser=RESPONSE_PARSERS.get(key),
        )

    def create_all_enabled_pipelines(self) -> Dict[str, IngestionPipeline]:
        """
        Create all enabled pipelines.

        A misconfigured source is logged and skipped so the others still run.

        Returns:
            Dict mapping source_name -> IngestionPipeline instance
        """
        pipelines = {}

        for source_name in self.list_enabled_sources():
            try:
                pipelines[source_name] = self.create_pipeline(source_name)
                logger.info(f"Created pipeline: {source_name}")
            except ValueError as e:
                logger.warning(f"Failed to create pipeline '{source_name}': {e}")

        return pipelines

    def create_merger(self) -> ProximityDeduplicator:
        """Build the cross-source merger from the ``deduplication`` block."""
        dedup_config = self.config.get("deduplication") or {}
        strict = dedup_config.get("strict_contracts", False) or self.settings.MERGE_STRICT_CONTRACTS
        return ProximityDeduplicator(
            thresholds=thresholds_from_config(dedup_config.get("thresholds")),
            strict=bool(strict),
            future_tolerance=timedelta(days=self.settings.FUTURE_TOLERANCE_DAYS),
        )

    def reload_config(self) -> None:
        """Reload configuration from disk."""
        self._config = None

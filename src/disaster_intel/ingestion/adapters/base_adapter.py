"""
Source adapter contract.

An adapter owns the I/O for one disaster feed (an HTTP endpoint or a
spreadsheet export) and hands back already-parsed rows. It never raises on a
transport failure: a feed that cannot be read yields ``success=False`` and no
rows, which the pipeline treats as an empty source.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceType(str, Enum):
    """How a feed is read."""

    API = "api"
    SPREADSHEET = "spreadsheet"


@dataclass
class FetchResult:
    """
    Raw rows read from one feed, plus timing and error details.

    ``raw_data`` is always empty when ``success`` is False.
    """

    success: bool
    source_type: SourceType
    raw_data: List[Dict[str, Any]] = field(default_factory=list)
    total_fetched: int = 0
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    fetch_started_at: Optional[datetime] = None
    fetch_ended_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if not (self.fetch_started_at and self.fetch_ended_at):
            return 0.0
        return (self.fetch_ended_at - self.fetch_started_at).total_seconds()


@dataclass
class AdapterConfig:
    """
    Settings shared by every feed adapter.

    ``source_id`` is the key of the feed in ingestion.yaml (``emdat``,
    ``eonet``, ``usgs``); ``request_timeout`` bounds a single read in seconds.
    """

    source_id: str
    source_type: SourceType
    request_timeout: float = 30.0


class BaseSourceAdapter(ABC):
    """
    Reads raw rows from one disaster feed.

    Concrete adapters implement ``fetch`` and ``_validate_config``; adapters
    holding a client override ``close``. Usable as an async context manager:

        async with APIAdapter(config) as adapter:
            result = await adapter.fetch(days=7)
    """

    def __init__(self, config: AdapterConfig):
        self.config = config
        self.logger = logging.getLogger(f"adapter.{config.source_id}")
        self._validate_config()

    @property
    def source_type(self) -> SourceType:
        return self.config.source_type

    @property
    def source_id(self) -> str:
        return self.config.source_id

    @abstractmethod
    async def fetch(self, **kwargs) -> FetchResult:
        """
        Read the feed once.

        Keyword arguments are feed-specific (``days``, ``limit``,
        ``min_magnitude``, ``mode`` for the HTTP feeds; ``limit`` for
        spreadsheets). Failures are reported in the result, not raised.
        """

    @abstractmethod
    def _validate_config(self) -> None:
        """Raise ValueError when the config cannot describe a readable feed."""

    async def close(self) -> None:
        """Release held clients. No-op for stateless adapters."""

    async def __aenter__(self) -> "BaseSourceAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

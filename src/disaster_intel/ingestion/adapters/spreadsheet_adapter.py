"""
Spreadsheet Source Adapter.

Adapter for tabular disaster exports (EM-DAT ``.xlsx`` or ``.csv``) read
from a local path or an HTTP(S) URL.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pandas as pd

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult, SourceType

logger = logging.getLogger(__name__)


@dataclass
class SpreadsheetAdapterConfig(AdapterConfig):
    """Configuration for spreadsheet adapters."""

    file_path: str = ""
    sheet_name: Any = 0

    def __post_init__(self):
        self.source_type = SourceType.SPREADSHEET

    @property
    def is_remote(self) -> bool:
        return self.file_path.startswith(("http://", "https://"))

    @property
    def is_csv(self) -> bool:
        return self.file_path.lower().split("?")[0].endswith(".csv")


def frame_to_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    """Rows as dicts keyed by the header row; blank cells become None."""
    frame = frame.rename(columns=lambda c: str(c).strip())
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.to_dict(orient="records")


class SpreadsheetAdapter(BaseSourceAdapter):
    """
    Adapter for spreadsheet exports.

    Only the first sheet is read (configurable via ``sheet_name``). Parsing
    runs in a worker thread so it does not block the event loop while the
    other feeds are in flight.
    """

    def __init__(self, config: SpreadsheetAdapterConfig):
        super().__init__(config)

    @property
    def sheet_config(self) -> SpreadsheetAdapterConfig:
        """Get typed config."""
        return self.config

    def _validate_config(self) -> None:
        if not self.sheet_config.file_path:
            raise ValueError("Spreadsheet adapter requires file_path")

    async def _read_bytes(self) -> bytes:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                self.sheet_config.file_path, timeout=self.sheet_config.request_timeout
            )
            response.raise_for_status()
            return response.content

    def _read_frame(self, content: Optional[bytes]) -> pd.DataFrame:
        source = io.BytesIO(content) if content is not None else Path(self.sheet_config.file_path)
        if self.sheet_config.is_csv:
            return pd.read_csv(source)
        return pd.read_excel(source, sheet_name=self.sheet_config.sheet_name, engine="openpyxl")

    async def fetch(self, limit: Optional[int] = None, **kwargs) -> FetchResult:
        """
        Read the export and return its rows.

        Args:
            limit: Keep only the first N rows

        Returns:
            FetchResult with one dict per row
        """
        fetch_started = datetime.now(timezone.utc)
        records: List[Dict[str, Any]] = []
        errors: List[str] = []

        try:
            content = await self._read_bytes() if self.sheet_config.is_remote else None
            frame = await asyncio.to_thread(self._read_frame, content)
            if limit:
                frame = frame.head(limit)
            records = frame_to_records(frame)
        except (httpx.HTTPError, OSError, ValueError) as e:
            logger.error(f"Spreadsheet read failed for {self.source_id}: {e}")
            errors.append(str(e))
            records = []

        return FetchResult(
            success=not errors,
            source_type=SourceType.SPREADSHEET,
            raw_data=records,
            total_fetched=len(records),
            errors=errors,
            metadata={"file_path": self.sheet_config.file_path},
            fetch_started_at=fetch_started,
            fetch_ended_at=datetime.now(timezone.utc),
        )

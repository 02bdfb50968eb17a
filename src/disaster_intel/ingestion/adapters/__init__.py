"""
Source Adapters for Disaster Ingestion.

Adapters provide a unified interface for fetching raw records:
- API sources (EONET, USGS JSON feeds)
- Spreadsheet sources (EM-DAT exports)

Usage:
    from disaster_intel.ingestion.adapters import APIAdapter, SpreadsheetAdapter

    adapter = APIAdapter(config, query_builder=build_usgs_query)
    result = await adapter.fetch(days=7)
"""

from .api_adapter import APIAdapter, APIAdapterConfig
from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult, SourceType
from .spreadsheet_adapter import SpreadsheetAdapter, SpreadsheetAdapterConfig

__all__ = [
    "AdapterConfig",
    "BaseSourceAdapter",
    "SourceType",
    "FetchResult",
    "APIAdapter",
    "APIAdapterConfig",
    "SpreadsheetAdapter",
    "SpreadsheetAdapterConfig",
]

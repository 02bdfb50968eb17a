"""
API Source Adapter.

Adapter for fetching data from JSON REST feeds.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchResult, SourceType

logger = logging.getLogger(__name__)


@dataclass
class APIAdapterConfig(AdapterConfig):
    """Configuration for API-based adapters."""

    base_url: str = ""
    endpoint: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.source_type = SourceType.API

    @property
    def url(self) -> str:
        if not self.endpoint:
            return self.base_url
        return f"{self.base_url.rstrip('/')}/{self.endpoint.lstrip('/')}"


class APIAdapter(BaseSourceAdapter):
    """
    Adapter for JSON REST feeds.

    Issues a single GET per fetch. There is no retry or backoff: a transport
    error, a non-2xx status or an undecodable body yields a failed
    FetchResult with no records.
    """

    def __init__(
        self,
        config: APIAdapterConfig,
        query_builder: Optional[Callable[..., Dict[str, Any]]] = None,
        response_parser: Optional[Callable[[Dict], List[Dict]]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the API adapter.

        Args:
            config: APIAdapterConfig with API settings
            query_builder: Function to build query parameters from kwargs
            response_parser: Function to extract the record list from a response
            client: Pre-built client (tests inject one with a mock transport)
        """
        self.query_builder = query_builder
        self.response_parser = response_parser
        self._client = client
        super().__init__(config)

    @property
    def api_config(self) -> APIAdapterConfig:
        """Get typed config."""
        return self.config

    def _validate_config(self) -> None:
        """Validate API configuration."""
        if not self.api_config.base_url:
            raise ValueError("API adapter requires base_url")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            headers = {
                "User-Agent": "disaster-intel/0.1",
                "Accept": "application/json",
                **self.api_config.headers,
            }
            self._client = httpx.AsyncClient(headers=headers)
        return self._client

    async def fetch(self, **kwargs) -> FetchResult:
        """
        Fetch records from the feed.

        Args:
            **kwargs: Parameters passed to query_builder

        Returns:
            FetchResult with raw data
        """
        fetch_started = datetime.now(timezone.utc)
        data: List[Dict[str, Any]] = []
        errors: List[str] = []
        metadata: Dict[str, Any] = {"api_calls": 0, "url": self.api_config.url}

        try:
            if self.query_builder:
                params = self.query_builder(**kwargs)
            else:
                params = self._default_query_builder(**kwargs)
            metadata["params"] = params

            client = self._get_client()
            response = await client.get(
                self.api_config.url,
                params=params,
                timeout=self.api_config.request_timeout,
            )
            metadata["api_calls"] += 1
            response.raise_for_status()
            payload = response.json()

            if self.response_parser:
                data = self.response_parser(payload)
            else:
                data = self._default_response_parser(payload)

        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.error(f"API fetch failed for {self.source_id}: {e}")
            errors.append(str(e))
            data = []

        return FetchResult(
            success=not errors,
            source_type=SourceType.API,
            raw_data=data,
            total_fetched=len(data),
            errors=errors,
            metadata=metadata,
            fetch_started_at=fetch_started,
            fetch_ended_at=datetime.now(timezone.utc),
        )

    def _default_query_builder(self, **kwargs) -> Dict[str, Any]:
        """Build a default query from keyword arguments."""
        return {k: v for k, v in kwargs.items() if v is not None}

    def _default_response_parser(self, response: Any) -> List[Dict]:
        """Parse a default response structure into a list of dicts."""
        if isinstance(response, list):
            return response
        if "data" in response:
            return response["data"] if isinstance(response["data"], list) else [response["data"]]
        return [response]

    async def close(self) -> None:
        """Close async HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

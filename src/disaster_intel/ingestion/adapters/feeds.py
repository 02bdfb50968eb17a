"""
Query builders and response parsers for the public hazard feeds.

- NASA EONET v3: ``GET {base}/events``
- USGS FDSN event service: ``GET {base}/query`` (GeoJSON)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

EONET_BASE_URL = "https://eonet.gsfc.nasa.gov/api/v3"
USGS_BASE_URL = "https://earthquake.usgs.gov/fdsnws/event/1"

EONET_ACTIVE_LIMIT = 100
EONET_RECENT_LIMIT = 500
EONET_RECENT_DAYS = 30

USGS_DEFAULT_DAYS = 7
USGS_DEFAULT_MIN_MAGNITUDE = 4.5
USGS_DEFAULT_LIMIT = 500

# "significant" preset
USGS_SIGNIFICANT = {"days": 30, "min_magnitude": 6.0, "limit": 1000}


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


# ============================================================================
# EONET
# ============================================================================


def build_eonet_query(
    mode: str = "active",
    days: Optional[int] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
    **kwargs,
) -> Dict[str, Any]:
    """
    Query parameters for the EONET events endpoint.

    Args:
        mode: "active" (open events) or "recent" (open and closed, ``days`` back)
        days: Look-back window for the recent mode
        limit: Maximum number of events
        now: Reference time for the look-back window

    Example:
        >>> build_eonet_query("recent", days=30, now=datetime(2024, 3, 31))
        {'start': '2024-03-01', 'limit': 500}
    """
    if mode == "active":
        return {"status": "open", "limit": limit or EONET_ACTIVE_LIMIT}
    if mode == "recent":
        start = _now(now) - timedelta(days=days or EONET_RECENT_DAYS)
        return {"start": start.strftime("%Y-%m-%d"), "limit": limit or EONET_RECENT_LIMIT}
    raise ValueError(f"Unknown EONET mode: {mode}")


def parse_eonet_response(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Extract the event list; a body without ``events`` is malformed."""
    events = response["events"]
    if not isinstance(events, list):
        raise TypeError("EONET 'events' is not a list")
    return events


# ============================================================================
# USGS
# ============================================================================


def build_usgs_query(
    days: Optional[int] = None,
    min_magnitude: Optional[float] = None,
    limit: Optional[int] = None,
    preset: Optional[str] = None,
    now: Optional[datetime] = None,
    **kwargs,
) -> Dict[str, Any]:
    """
    Query parameters for the FDSN ``query`` endpoint.

    Explicit arguments override the ``significant`` preset, which overrides
    the defaults (7 days, M4.5+, 500 events).
    """
    defaults = {
        "days": USGS_DEFAULT_DAYS,
        "min_magnitude": USGS_DEFAULT_MIN_MAGNITUDE,
        "limit": USGS_DEFAULT_LIMIT,
    }
    if preset == "significant":
        defaults.update(USGS_SIGNIFICANT)
    elif preset:
        raise ValueError(f"Unknown USGS preset: {preset}")

    days = days if days is not None else defaults["days"]
    min_magnitude = min_magnitude if min_magnitude is not None else defaults["min_magnitude"]
    limit = limit if limit is not None else defaults["limit"]

    end = _now(now)
    start = end - timedelta(days=days)
    return {
        "format": "geojson",
        "orderby": "time-asc",
        "starttime": _iso(start),
        "endtime": _iso(end),
        "minmagnitude": min_magnitude,
        "limit": limit,
    }


def parse_usgs_response(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Extract the GeoJSON feature list."""
    features = response["features"]
    if not isinstance(features, list):
        raise TypeError("USGS 'features' is not a list")
    return features


QUERY_BUILDERS = {
    "eonet": build_eonet_query,
    "usgs": build_usgs_query,
}

RESPONSE_PARSERS = {
    "eonet": parse_eonet_response,
    "usgs": parse_usgs_response,
}

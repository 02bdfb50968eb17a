"""
Shared pytest fixtures for the disaster ingestion test suite.

Provides reusable factories for DisasterEvent objects and raw source records.
"""

import logging
import uuid
from datetime import datetime, timezone

import pytest

from disaster_intel.schemas.event import (
    DisasterCategory,
    DisasterEvent,
    Severity,
    SourceTag,
)

NOW = datetime(2024, 8, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed processing time used across tests."""
    return NOW


@pytest.fixture
def clock():
    """Clock callable returning the fixed processing time."""
    return lambda: NOW


@pytest.fixture
def create_event():
    """
    Return a function that creates DisasterEvent objects with sensible defaults.

    Factory fixture to create DisasterEvent instances for testing.
    All defaults can be overridden via keyword arguments.

    Example:
        event = create_event(source_tag="USGS", latitude=10.0)
    """

    def _create_event(
        name: str = "Test Disaster",
        category: DisasterCategory = DisasterCategory.EARTHQUAKE,
        source_tag: str = SourceTag.USGS.value,
        occurred_at: datetime = None,
        **kwargs,
    ) -> DisasterEvent:
        if occurred_at is None:
            occurred_at = datetime(2024, 7, 15, 6, 0, tzinfo=timezone.utc)

        defaults = {
            "event_id": f"test-{uuid.uuid4().hex[:12]}",
            "name": name,
            "category": category,
            "severity": Severity.MODERATE,
            "latitude": 34.0,
            "longitude": -118.0,
            "occurred_at": occurred_at,
            "source_tag": source_tag,
        }

        # Merge defaults with provided kwargs
        defaults.update(kwargs)

        return DisasterEvent(**defaults)

    return _create_event


@pytest.fixture
def sample_event(create_event):
    """
    Return a single default test event.

    Useful for tests that need a basic event to work with.
    """
    return create_event()


# =============================================================================
# RAW SOURCE RECORDS
# =============================================================================


@pytest.fixture
def emdat_row():
    """A complete row of an EM-DAT public export."""
    return {
        "DisNo.": "2024-0321-USA",
        "Event Name": "Southern California wildfire",
        "Disaster Type": "Wildfire",
        "Disaster Subtype": "Forest fire",
        "Country": "United States of America",
        "Location": "Los Angeles County",
        "Latitude": 34.0,
        "Longitude": -118.0,
        "Start Year": 2024,
        "Start Month": 7,
        "Start Day": 10,
        "Total Deaths": 3,
        "Total Affected": 12000,
    }


@pytest.fixture
def eonet_event():
    """An open EONET v3 wildfire event with a single Point geometry."""
    return {
        "id": "EONET_6789",
        "title": "Wildfire - Los Angeles, California",
        "description": None,
        "link": "https://eonet.gsfc.nasa.gov/api/v3/events/EONET_6789",
        "closed": None,
        "categories": [{"id": "wildfires", "title": "Wildfires"}],
        "sources": [{"id": "IRWIN", "url": "https://irwin.doi.gov/observer/"}],
        "geometry": [
            {
                "magnitudeValue": 1200.0,
                "magnitudeUnit": "acres",
                "date": "2024-07-11T08:00:00Z",
                "type": "Point",
                "coordinates": [-118.02, 34.05],
            }
        ],
    }


@pytest.fixture
def usgs_feature():
    """A USGS GeoJSON earthquake feature."""
    return {
        "type": "Feature",
        "id": "ci40789012",
        "properties": {
            "mag": 6.2,
            "place": "12 km SSW of Ridgecrest, CA",
            "time": 1720936800000,  # 2024-07-14T06:00:00Z
            "url": "https://earthquake.usgs.gov/earthquakes/eventpage/ci40789012",
            "felt": 350,
            "alert": "yellow",
            "tsunami": 0,
            "type": "earthquake",
            "title": "M 6.2 - 12 km SSW of Ridgecrest, CA",
        },
        "geometry": {"type": "Point", "coordinates": [-117.7, 35.5, 8.4]},
    }


@pytest.fixture(autouse=True)
def restore_package_loggers():
    """Undo setup_logging so caplog keeps seeing records in later tests."""
    yield
    for name in ("disaster_intel", "normalizer", "adapter", "pipeline", "orchestrator"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

# src/disaster_intel/schemas/event.py
"""
Canonical Disaster Event Schema.

This schema normalizes disaster reports from heterogeneous sources (EM-DAT
spreadsheet exports, the NASA EONET natural-event feed, the USGS seismic feed)
into a unified data model consumed by the merger and the display layer.

Range checks (coordinates, timestamps) are deliberately left to
``disaster_intel.ingestion.validation`` so that a record can be built, inspected
and rejected with a diagnostic instead of failing at construction time.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================


class DisasterCategory(str, Enum):
    """
    Physical event category shared by all sources.
    """

    WILDFIRE = "wildfire"
    FLOOD = "flood"
    HURRICANE = "hurricane"
    DROUGHT = "drought"
    HEATWAVE = "heatwave"
    STORM = "storm"
    EARTHQUAKE = "earthquake"
    VOLCANO = "volcano"
    OTHER = "other"


class Severity(str, Enum):
    """
    Severity grade, derived per source.
    """

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class SourceTag(str, Enum):
    """
    Names of the known feeds, as carried in ``DisasterEvent.source_tag``.
    """

    EMDAT = "EM-DAT"
    EONET = "NASA EONET"
    USGS = "USGS"


# ============================================================================
# RELIEF INFORMATION
# ============================================================================


class ReliefLink(BaseModel):
    """
    A donation / relief organization attached to an event.

    Populated by a later enrichment step; normalizers always emit an empty list.
    """

    model_config = ConfigDict(frozen=True)

    organization: str
    url: str
    description: str = ""


# ============================================================================
# MAIN EVENT SCHEMA
# ============================================================================


class DisasterEvent(BaseModel):
    """
    Normalized disaster record.

    Records are immutable once created by a normalizer. The merger never edits
    a record; it only picks one representative per duplicate cluster.
    """

    model_config = ConfigDict(
        frozen=True,
        use_enum_values=False,
        json_schema_extra={
            "example": {
                "event_id": "usgs-us7000abcd",
                "original_id": "us7000abcd",
                "name": "M 6.4 - 12 km SSW of Example, Chile",
                "category": "earthquake",
                "latitude": -33.1,
                "longitude": -71.6,
                "occurred_at": "2024-03-01T12:30:00Z",
                "severity": "high",
                "impact_count": 0,
                "narrative": "Magnitude 6.4 earthquake 12 km SSW of Example, Chile on 2024-03-01 at 10.0 km depth.",
                "source_tag": "USGS",
                "source_url": "https://earthquake.usgs.gov/earthquakes/eventpage/us7000abcd",
                "magnitude": 6.4,
            }
        },
    )

    # ---- IDENTITY ----
    event_id: str = Field(
        description="Globally unique id: source prefix + native id of the source record"
    )
    original_id: Optional[str] = Field(
        default=None, description="Native identifier in the originating feed"
    )
    name: str

    # ---- CLASSIFICATION ----
    category: DisasterCategory = DisasterCategory.OTHER
    severity: Severity = Severity.LOW

    # ---- POSITION & TIME ----
    latitude: float
    longitude: float
    occurred_at: datetime

    # ---- IMPACT & DESCRIPTION ----
    impact_count: int = Field(
        default=0,
        ge=0,
        description="People affected; 0 when the source carries no impact data",
    )
    narrative: str = ""

    # ---- SOURCE METADATA ----
    source_tag: str = Field(
        description="Originating feed (e.g. 'USGS', 'NASA EONET', 'EM-DAT')"
    )
    source_url: Optional[str] = None
    image_url: Optional[str] = None
    magnitude: Optional[float] = None

    # ---- ENRICHMENT ----
    relief_links: List[ReliefLink] = Field(default_factory=list)

    @field_validator("occurred_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Interpret naive timestamps as UTC so all comparisons are aware."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def position(self) -> tuple:
        """(latitude, longitude) pair."""
        return (self.latitude, self.longitude)


# ============================================================================
# MERGED BATCH (for the display layer)
# ============================================================================


class DisasterBatch(BaseModel):
    """
    Container handed to the display layer after a merge.
    """

    batch_id: str = Field(description="Unique identifier for this batch")
    events: List[DisasterEvent]
    generated_at: datetime = Field(default_factory=_utc_now)
    total_count: int
    duplicates_removed: int = 0

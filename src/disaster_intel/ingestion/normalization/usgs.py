"""
USGS earthquake normalizer.

Maps GeoJSON features of the USGS FDSN event service into DisasterEvent
records. Geometry coordinates are ``[longitude, latitude, depth_km]`` and
``properties.time`` is epoch milliseconds.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from disaster_intel.ingestion.normalization.base_normalizer import (
    BaseNormalizer,
    RecordDropped,
    clean_number,
    clean_text,
    format_date,
    in_range,
)
from disaster_intel.ingestion.normalization.rules import (
    USGS_CATEGORY_RULES,
    USGS_SEVERITY_BANDS,
    CategoryTable,
    SeverityTable,
    grade,
    infer_category,
)
from disaster_intel.schemas.event import DisasterCategory, DisasterEvent, Severity, SourceTag

ID_PREFIX = "usgs"

# PAGER alert level -> narrative phrase
ALERT_LEVELS = {
    "green": "Low impact expected",
    "yellow": "Moderate impact expected",
    "orange": "Significant impact expected",
    "red": "Extreme impact expected",
}


class UsgsNormalizer(BaseNormalizer):
    """
    Normalizer for the near-real-time seismic feed.

    Severity is read straight off the magnitude. The feed has no
    population-impact data and none is estimated: ``impact_count`` is 0.
    """

    source_tag = SourceTag.USGS.value

    def __init__(
        self,
        category_rules: CategoryTable = USGS_CATEGORY_RULES,
        severity_bands: SeverityTable = USGS_SEVERITY_BANDS,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.category_rules = tuple(category_rules)
        self.severity_bands = tuple(severity_bands)

    def raw_id(self, raw: Dict[str, Any], index: int) -> Optional[str]:
        return clean_text(raw.get("id"))

    def normalize_record(self, raw: Dict[str, Any], index: int) -> DisasterEvent:
        geometry = raw.get("geometry") or {}
        coords = geometry.get("coordinates") or []
        if len(coords) < 2:
            raise RecordDropped("missing coordinates")
        longitude, latitude = clean_number(coords[0]), clean_number(coords[1])
        if not in_range(latitude, longitude):
            raise RecordDropped(f"coordinates out of range ({latitude}, {longitude})")

        props = raw.get("properties") or {}
        magnitude = clean_number(props.get("mag"))
        if magnitude is None:
            raise RecordDropped("missing magnitude")

        epoch_ms = clean_number(props.get("time"))
        if not epoch_ms:
            raise RecordDropped("missing event time")
        occurred_at = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)

        title = clean_text(props.get("title"))
        place = clean_text(props.get("place"))
        if not title and not place:
            raise RecordDropped("missing place and title")

        native_id = self.raw_id(raw, index)
        if not native_id:
            raise RecordDropped("missing id")

        return DisasterEvent(
            event_id=f"{ID_PREFIX}-{native_id}",
            original_id=native_id,
            name=title or place or f"M{magnitude:g} Earthquake",
            category=self.map_category(props),
            latitude=latitude,
            longitude=longitude,
            occurred_at=occurred_at,
            severity=self.calculate_severity(magnitude),
            impact_count=0,
            narrative=self.generate_narrative(raw, occurred_at),
            source_tag=self.source_tag,
            source_url=clean_text(props.get("url")),
            magnitude=magnitude,
        )

    # ------------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------------

    def map_category(self, props: Dict[str, Any]) -> DisasterCategory:
        """
        Classify from the event ``type`` property.

        Features without a type are earthquakes (the feed's default); typed
        non-seismic events (quarry blasts, explosions) fall back to other.
        """
        event_type = clean_text(props.get("type"))
        if not event_type:
            return DisasterCategory.EARTHQUAKE
        return infer_category(event_type, self.category_rules)

    def calculate_severity(self, magnitude: float) -> Severity:
        return grade(magnitude, self.severity_bands, inclusive=True)

    def generate_narrative(self, raw: Dict[str, Any], occurred_at: datetime) -> str:
        """
        Build a synopsis from magnitude, place, date, depth, tsunami flag,
        PAGER alert level and felt reports.

        Example:
            "Magnitude 6.1 earthquake 10 km N of Town on 2024-03-01 at 12.0 km
            depth Alert: Moderate impact expected Felt by 120 people."
        """
        props = raw.get("properties") or {}
        coords = (raw.get("geometry") or {}).get("coordinates") or []
        parts = []

        magnitude = clean_number(props.get("mag"))
        parts.append(f"Magnitude {magnitude:g} earthquake")

        place = clean_text(props.get("place"))
        if place:
            parts.append(place)

        parts.append(f"on {format_date(occurred_at)}")

        depth = clean_number(coords[2]) if len(coords) > 2 else None
        if depth is not None:
            parts.append(f"at {depth:.1f} km depth")

        if clean_number(props.get("tsunami")) == 1:
            parts.append("(Tsunami warning issued)")

        alert = clean_text(props.get("alert"))
        if alert and alert.lower() in ALERT_LEVELS:
            parts.append(f"Alert: {ALERT_LEVELS[alert.lower()]}")

        felt = clean_number(props.get("felt"))
        if felt and felt > 0:
            parts.append(f"Felt by {int(felt)} people")

        return " ".join(parts) + "."

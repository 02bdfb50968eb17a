"""
NASA EONET normalizer.

Maps EONET v3 event objects into DisasterEvent records. An event carries a
list of categories and a time-ordered list of geometries (Point or Polygon);
the most recent geometry gives the position and the first one gives the
start date.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from disaster_intel.ingestion.normalization.base_normalizer import (
    BaseNormalizer,
    RecordDropped,
    clean_number,
    clean_text,
    format_date,
    in_range,
)
from disaster_intel.ingestion.normalization.rules import (
    EONET_CATEGORY_RULES,
    EONET_DEFAULT_DURATION_BANDS,
    EONET_DURATION_RULES,
    CategoryTable,
    SeverityTable,
    grade,
    infer_category,
)
from disaster_intel.schemas.event import DisasterCategory, DisasterEvent, Severity, SourceTag

ID_PREFIX = "eonet"
SECONDS_PER_DAY = 86400


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp ("2024-01-02T00:00:00Z") into aware UTC."""
    text = clean_text(value)
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _point(coords: Any) -> Optional[Tuple[float, float]]:
    """(lon, lat) from a GeoJSON position, or None."""
    if not isinstance(coords, (list, tuple)) or len(coords) < 2:
        return None
    lon, lat = clean_number(coords[0]), clean_number(coords[1])
    if lon is None or lat is None:
        return None
    return lon, lat


def extract_coordinates(geometry: List[Dict[str, Any]]) -> Optional[Tuple[float, float]]:
    """
    Position of the most recent geometry entry as (latitude, longitude).

    Points are used as-is; polygons collapse to the mean of their outer-ring
    vertices (closing vertex excluded).
    """
    if not geometry:
        return None

    latest = geometry[-1] or {}
    geo_type = latest.get("type")
    coords = latest.get("coordinates")

    if geo_type == "Point":
        point = _point(coords)
        return (point[1], point[0]) if point else None

    if geo_type == "Polygon" and isinstance(coords, list) and coords:
        # GeoJSON nests rings: [[[lon, lat], ...]]; tolerate a bare ring too.
        ring = coords[0] if _point(coords[0]) is None else coords
        points = [p for p in (_point(c) for c in ring) if p is not None]
        if len(points) > 1 and points[0] == points[-1]:
            points = points[:-1]
        if points:
            lon = sum(p[0] for p in points) / len(points)
            lat = sum(p[1] for p in points) / len(points)
            return lat, lon

    return None


class EonetNormalizer(BaseNormalizer):
    """
    Normalizer for the near-real-time natural-event feed.

    The feed carries no population data, so ``impact_count`` is always 0.
    Severity follows the active duration of the event with category-specific
    bands (see ``rules.EONET_DURATION_RULES``).
    """

    source_tag = SourceTag.EONET.value

    def __init__(
        self,
        category_rules: CategoryTable = EONET_CATEGORY_RULES,
        duration_rules: Optional[Dict[DisasterCategory, Tuple[SeverityTable, Severity]]] = None,
        default_duration_bands: SeverityTable = EONET_DEFAULT_DURATION_BANDS,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.category_rules = tuple(category_rules)
        self.duration_rules = dict(duration_rules or EONET_DURATION_RULES)
        self.default_duration_bands = tuple(default_duration_bands)

    def raw_id(self, raw: Dict[str, Any], index: int) -> Optional[str]:
        return clean_text(raw.get("id"))

    def normalize_record(self, raw: Dict[str, Any], index: int) -> DisasterEvent:
        geometry = raw.get("geometry") or []
        if not isinstance(geometry, list):
            raise RecordDropped("geometry is not a list")

        coords = extract_coordinates(geometry)
        if coords is None:
            raise RecordDropped("missing coordinates")
        latitude, longitude = coords
        if not in_range(latitude, longitude):
            raise RecordDropped(f"coordinates out of range ({latitude}, {longitude})")

        title = clean_text(raw.get("title"))
        if not title:
            raise RecordDropped("missing title")

        categories = raw.get("categories") or []
        if not categories:
            raise RecordDropped("missing categories")

        started_at = parse_timestamp((geometry[0] or {}).get("date"))
        if started_at is None:
            raise RecordDropped("missing or invalid geometry date")

        native_id = self.raw_id(raw, index)
        if not native_id:
            raise RecordDropped("missing id")

        category = self.map_category(categories)
        return DisasterEvent(
            event_id=f"{ID_PREFIX}-{native_id}",
            original_id=native_id,
            name=title,
            category=category,
            latitude=latitude,
            longitude=longitude,
            occurred_at=started_at,
            severity=self.calculate_severity(raw, category, started_at),
            impact_count=0,
            narrative=self.generate_narrative(raw, started_at),
            source_tag=self.source_tag,
            source_url=clean_text(raw.get("link")),
            magnitude=clean_number((geometry[0] or {}).get("magnitudeValue")),
        )

    # ------------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------------

    def map_category(self, categories: List[Dict[str, Any]]) -> DisasterCategory:
        """Classify from the title of the first category."""
        first = categories[0] if categories else {}
        return infer_category(clean_text(first.get("title")), self.category_rules)

    def active_days(self, raw: Dict[str, Any], started_at: datetime) -> float:
        """Days from first observation until closure (or until now if open)."""
        ended_at = parse_timestamp(raw.get("closed")) or self.clock()
        return (ended_at - started_at).total_seconds() / SECONDS_PER_DAY

    def calculate_severity(
        self, raw: Dict[str, Any], category: DisasterCategory, started_at: datetime
    ) -> Severity:
        bands, floor = self.duration_rules.get(
            category, (self.default_duration_bands, Severity.LOW)
        )
        if not bands:
            return floor
        return grade(self.active_days(raw, started_at), bands, default=floor, inclusive=False)

    def generate_narrative(self, raw: Dict[str, Any], started_at: datetime) -> str:
        """
        Build a synopsis: title, status, description, magnitude and sources.

        Example:
            "Wildfire - Park Fire, California (Currently active) Wildfires
            detected on 2024-07-24. Source: IRWIN"
        """
        parts = [clean_text(raw.get("title"))]

        closed = parse_timestamp(raw.get("closed"))
        if closed is None:
            parts.append("(Currently active)")
        else:
            parts.append(f"(Ended {format_date(closed)})")

        description = clean_text(raw.get("description"))
        if description:
            parts.append(description)
        else:
            categories = raw.get("categories") or [{}]
            label = clean_text(categories[0].get("title")) or "Natural event"
            parts.append(f"{label} detected on {format_date(started_at)}.")

        first_geometry = (raw.get("geometry") or [{}])[0] or {}
        magnitude = clean_number(first_geometry.get("magnitudeValue"))
        if magnitude:
            unit = clean_text(first_geometry.get("magnitudeUnit")) or ""
            parts.append(f"Magnitude: {magnitude:g} {unit}".rstrip())

        sources = [clean_text(s.get("id")) for s in raw.get("sources") or [] if s]
        sources = [s for s in sources if s]
        if sources:
            parts.append(f"Source: {', '.join(sources)}")

        return " ".join(p for p in parts if p)

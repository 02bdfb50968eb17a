"""
EM-DAT spreadsheet normalizer.

Maps rows of an EM-DAT style export (one dict per row, keyed by column header)
into DisasterEvent records.

Row columns used:
- "DisNo.", "Event Name", "Disaster Type", "Disaster Subtype"
- "Country", "Location", "Latitude", "Longitude"
- "Start Year", "Start Month", "Start Day"
- "Total Deaths", "Total Affected"
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from disaster_intel.ingestion.normalization.base_normalizer import (
    BaseNormalizer,
    RecordDropped,
    clean_number,
    clean_text,
    format_count,
    in_range,
)
from disaster_intel.ingestion.normalization.rules import (
    EMDAT_CATEGORY_RULES,
    EMDAT_DEATH_WEIGHT,
    EMDAT_SEVERITY_BANDS,
    CategoryTable,
    SeverityTable,
    grade,
    infer_category,
)
from disaster_intel.schemas.event import DisasterCategory, DisasterEvent, Severity, SourceTag

ID_PREFIX = "emdat"


class EmdatNormalizer(BaseNormalizer):
    """
    Normalizer for the static historical spreadsheet source.

    Severity is a weighted function of reported deaths and affected people;
    rows without usable coordinates are dropped (EM-DAT encodes "unknown" as
    blank or 0).
    """

    source_tag = SourceTag.EMDAT.value

    def __init__(
        self,
        category_rules: CategoryTable = EMDAT_CATEGORY_RULES,
        severity_bands: SeverityTable = EMDAT_SEVERITY_BANDS,
        death_weight: int = EMDAT_DEATH_WEIGHT,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.category_rules = tuple(category_rules)
        self.severity_bands = tuple(severity_bands)
        self.death_weight = death_weight

    def raw_id(self, raw: Dict[str, Any], index: int) -> Optional[str]:
        return clean_text(raw.get("DisNo."))

    def normalize_record(self, raw: Dict[str, Any], index: int) -> DisasterEvent:
        latitude = clean_number(raw.get("Latitude"))
        longitude = clean_number(raw.get("Longitude"))
        if latitude is None or longitude is None or latitude == 0 or longitude == 0:
            raise RecordDropped("missing coordinates")
        if not in_range(latitude, longitude):
            raise RecordDropped(f"coordinates out of range ({latitude}, {longitude})")

        occurred_at = self._start_date(raw)
        affected = clean_number(raw.get("Total Affected")) or 0
        deaths = clean_number(raw.get("Total Deaths")) or 0

        native_id = self.raw_id(raw, index)
        event_id = f"{ID_PREFIX}-{native_id}" if native_id else f"{ID_PREFIX}-row-{index}"

        return DisasterEvent(
            event_id=event_id,
            original_id=native_id,
            name=self._name(raw, index),
            category=self.map_category(raw),
            latitude=latitude,
            longitude=longitude,
            occurred_at=occurred_at,
            severity=self.calculate_severity(affected, deaths),
            impact_count=int(max(affected, 0)),
            narrative=self.generate_narrative(raw),
            source_tag=self.source_tag,
        )

    # ------------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------------

    def map_category(self, raw: Dict[str, Any]) -> DisasterCategory:
        """Classify from the disaster type, then its subtype."""
        text = " ".join(
            t
            for t in (
                clean_text(raw.get("Disaster Type")),
                clean_text(raw.get("Disaster Subtype")),
            )
            if t
        )
        return infer_category(text, self.category_rules)

    def calculate_severity(self, affected: float, deaths: float) -> Severity:
        """Grade ``deaths * death_weight + affected`` against the bands."""
        weighted = (affected or 0) + (deaths or 0) * self.death_weight
        return grade(weighted, self.severity_bands, inclusive=True)

    def generate_narrative(self, raw: Dict[str, Any]) -> str:
        """
        Build a one-sentence synopsis from type, place and impact columns.

        Example:
            "Flood disaster in Kerala affecting 12,000 people with 35 casualties."
        """
        parts = []

        disaster_type = clean_text(raw.get("Disaster Type"))
        if disaster_type:
            parts.append(f"{disaster_type} disaster")

        place = clean_text(raw.get("Location")) or clean_text(raw.get("Country"))
        if place:
            parts.append(f"in {place}")

        affected = clean_number(raw.get("Total Affected"))
        if affected:
            parts.append(f"affecting {format_count(affected)} people")

        deaths = clean_number(raw.get("Total Deaths"))
        if deaths:
            parts.append(f"with {format_count(deaths)} casualties")

        return " ".join(parts) + "." if parts else "Natural disaster event."

    # ------------------------------------------------------------------------
    # Field helpers
    # ------------------------------------------------------------------------

    def _name(self, raw: Dict[str, Any], index: int) -> str:
        event_name = clean_text(raw.get("Event Name"))
        if event_name:
            return event_name
        disaster_type = clean_text(raw.get("Disaster Type"))
        country = clean_text(raw.get("Country"))
        if disaster_type and country:
            return f"{disaster_type} in {country}"
        if disaster_type or country:
            return disaster_type or country
        return f"Disaster {index + 1}"

    def _start_date(self, raw: Dict[str, Any]) -> datetime:
        year = clean_number(raw.get("Start Year")) or clean_number(raw.get("Year"))
        if not year:
            raise RecordDropped("missing start year")
        month = clean_number(raw.get("Start Month")) or 1
        day = clean_number(raw.get("Start Day")) or 1
        try:
            return datetime(int(year), int(month), int(day), tzinfo=timezone.utc)
        except ValueError as e:
            raise RecordDropped(f"invalid start date: {e}")

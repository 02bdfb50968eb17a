"""
Unit tests for the EM-DAT spreadsheet normalizer.
"""

from datetime import datetime, timezone

import pytest

from disaster_intel.ingestion.normalization import EmdatNormalizer
from disaster_intel.ingestion.normalization.rules import SeverityBand
from disaster_intel.schemas.event import DisasterCategory, Severity


@pytest.fixture
def normalizer(clock):
    return EmdatNormalizer(clock=clock)


class TestEmdatNormalizer:
    """Tests for EmdatNormalizer.normalize_record via normalize_with_report."""

    def test_complete_row(self, normalizer, emdat_row):
        [event] = normalizer.normalize([emdat_row])

        assert event.event_id == "emdat-2024-0321-USA"
        assert event.original_id == "2024-0321-USA"
        assert event.name == "Southern California wildfire"
        assert event.category == DisasterCategory.WILDFIRE
        assert event.latitude == 34.0
        assert event.longitude == -118.0
        assert event.occurred_at == datetime(2024, 7, 10, tzinfo=timezone.utc)
        assert event.impact_count == 12000
        assert event.source_tag == "EM-DAT"
        # 12000 affected + 3 deaths * 10
        assert event.severity == Severity.MODERATE
        assert event.narrative == (
            "Wildfire disaster in Los Angeles County affecting 12,000 people with 3 casualties."
        )

    @pytest.mark.parametrize("lat, lon", [(None, -118.0), (34.0, None), (0, -118.0), (34.0, 0), ("", "")])
    def test_missing_coordinates_dropped(self, normalizer, emdat_row, lat, lon):
        emdat_row.update({"Latitude": lat, "Longitude": lon})

        result = normalizer.normalize_with_report([emdat_row])

        assert result.events == []
        assert result.dropped[0].reason == "missing coordinates"
        assert result.dropped[0].raw_id == "2024-0321-USA"

    def test_out_of_range_coordinates_dropped(self, normalizer, emdat_row):
        emdat_row["Latitude"] = 134.0
        assert normalizer.normalize([emdat_row]) == []

    def test_nan_cells(self, normalizer, emdat_row):
        emdat_row.update({"Latitude": float("nan"), "Total Affected": float("nan")})
        assert normalizer.normalize([emdat_row]) == []

    def test_partial_date_defaults_to_first(self, normalizer, emdat_row):
        emdat_row.update({"Start Month": None, "Start Day": None})
        [event] = normalizer.normalize([emdat_row])
        assert event.occurred_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_year_column_fallback(self, normalizer, emdat_row):
        del emdat_row["Start Year"]
        emdat_row["Year"] = 2019
        [event] = normalizer.normalize([emdat_row])
        assert event.occurred_at.year == 2019

    def test_missing_year_dropped(self, normalizer, emdat_row):
        emdat_row["Start Year"] = None
        result = normalizer.normalize_with_report([emdat_row])
        assert result.dropped[0].reason == "missing start year"

    def test_invalid_date_dropped(self, normalizer, emdat_row):
        emdat_row.update({"Start Month": 2, "Start Day": 31})
        result = normalizer.normalize_with_report([emdat_row])
        assert result.dropped[0].reason.startswith("invalid start date")

    def test_row_without_identifier(self, normalizer, emdat_row):
        emdat_row["DisNo."] = None
        [event] = normalizer.normalize([{}, emdat_row])
        assert event.event_id == "emdat-row-1"
        assert event.original_id is None

    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({"Event Name": None}, "Wildfire in United States of America"),
            ({"Event Name": None, "Country": None}, "Wildfire"),
            ({"Event Name": None, "Disaster Type": None, "Disaster Subtype": None}, "United States of America"),
            ({"Event Name": None, "Disaster Type": None, "Country": None}, "Disaster 1"),
        ],
    )
    def test_name_fallbacks(self, normalizer, emdat_row, overrides, expected):
        emdat_row.update(overrides)
        [event] = normalizer.normalize([emdat_row])
        assert event.name == expected

    @pytest.mark.parametrize(
        "disaster_type, subtype, expected",
        [
            ("Flood", "Riverine flood", DisasterCategory.FLOOD),
            ("Storm", "Tropical cyclone", DisasterCategory.HURRICANE),
            ("Storm", "Convective storm", DisasterCategory.STORM),
            ("Extreme temperature", "Heat wave", DisasterCategory.HEATWAVE),
            ("Volcanic activity", "Ash fall", DisasterCategory.VOLCANO),
            ("Mass movement (wet)", "Landslide", DisasterCategory.OTHER),
        ],
    )
    def test_category(self, normalizer, emdat_row, disaster_type, subtype, expected):
        emdat_row.update({"Disaster Type": disaster_type, "Disaster Subtype": subtype})
        [event] = normalizer.normalize([emdat_row])
        assert event.category == expected

    @pytest.mark.parametrize(
        "affected, deaths, expected",
        [
            (0, 0, Severity.LOW),
            (9_999, 0, Severity.LOW),
            (10_000, 0, Severity.MODERATE),
            (0, 10_000, Severity.HIGH),
            (1_000_000, 0, Severity.CRITICAL),
            (None, 100_000, Severity.CRITICAL),
        ],
    )
    def test_severity(self, normalizer, emdat_row, affected, deaths, expected):
        emdat_row.update({"Total Affected": affected, "Total Deaths": deaths})
        [event] = normalizer.normalize([emdat_row])
        assert event.severity == expected

    def test_injected_severity_table(self, clock, emdat_row):
        normalizer = EmdatNormalizer(
            severity_bands=(SeverityBand(1, Severity.CRITICAL),), clock=clock
        )
        [event] = normalizer.normalize([emdat_row])
        assert event.severity == Severity.CRITICAL

    def test_narrative_fallback(self, normalizer):
        assert normalizer.generate_narrative({}) == "Natural disaster event."

    def test_narrative_uses_country_without_location(self, normalizer, emdat_row):
        emdat_row.update({"Location": None, "Total Deaths": None})
        assert normalizer.generate_narrative(emdat_row) == (
            "Wildfire disaster in United States of America affecting 12,000 people."
        )

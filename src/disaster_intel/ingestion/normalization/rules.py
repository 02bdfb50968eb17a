"""
Heuristic rule tables for category and severity inference.

Each table is an immutable, ordered association list. Order is part of the
contract: several keywords can co-occur in one text ("cyclone storm"), and the
first matching rule wins. Tables are handed to the normalizers at
construction time rather than read from module state, so a caller can swap in
its own table without touching the defaults.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from disaster_intel.schemas.event import DisasterCategory, Severity


@dataclass(frozen=True)
class CategoryRule:
    """Match if the lowercased text contains any of ``keywords``."""

    keywords: Tuple[str, ...]
    category: DisasterCategory

    def matches(self, text: str) -> bool:
        return any(kw in text for kw in self.keywords)


@dataclass(frozen=True)
class SeverityBand:
    """Severity assigned when a measure reaches ``threshold``."""

    threshold: float
    severity: Severity


CategoryTable = Sequence[CategoryRule]
SeverityTable = Sequence[SeverityBand]


# ============================================================================
# CATEGORY TABLES
# ============================================================================

# Spreadsheet export: matched against "Disaster Type" followed by
# "Disaster Subtype" so that "Storm / Tropical cyclone" lands on hurricane.
EMDAT_CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(("flood",), DisasterCategory.FLOOD),
    CategoryRule(("wildfire", "forest fire"), DisasterCategory.WILDFIRE),
    CategoryRule(("hurricane", "cyclone", "typhoon"), DisasterCategory.HURRICANE),
    CategoryRule(("drought",), DisasterCategory.DROUGHT),
    CategoryRule(("heat", "temperature"), DisasterCategory.HEATWAVE),
    CategoryRule(("storm", "wind"), DisasterCategory.STORM),
    CategoryRule(("earthquake", "seismic"), DisasterCategory.EARTHQUAKE),
    CategoryRule(("volcan",), DisasterCategory.VOLCANO),
)

# Natural-event feed: matched against the first category title.
EONET_CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(("wildfire", "fire"), DisasterCategory.WILDFIRE),
    CategoryRule(("flood",), DisasterCategory.FLOOD),
    CategoryRule(
        ("storm", "cyclone", "hurricane", "typhoon"), DisasterCategory.HURRICANE
    ),
    CategoryRule(("drought",), DisasterCategory.DROUGHT),
    CategoryRule(("heat", "temperature"), DisasterCategory.HEATWAVE),
    CategoryRule(("earthquake", "seismic"), DisasterCategory.EARTHQUAKE),
    CategoryRule(("volcano",), DisasterCategory.VOLCANO),
    CategoryRule(("snow", "ice"), DisasterCategory.STORM),
)

# Seismic feed: matched against the feature's event "type" property.
USGS_CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule(("earthquake", "seismic"), DisasterCategory.EARTHQUAKE),
    CategoryRule(("volcan",), DisasterCategory.VOLCANO),
)


# ============================================================================
# SEVERITY TABLES (descending thresholds)
# ============================================================================

# Weighted impact: deaths * 10 + affected, inclusive thresholds.
EMDAT_SEVERITY_BANDS: Tuple[SeverityBand, ...] = (
    SeverityBand(1_000_000, Severity.CRITICAL),
    SeverityBand(100_000, Severity.HIGH),
    SeverityBand(10_000, Severity.MODERATE),
)
EMDAT_DEATH_WEIGHT = 10

# Magnitude, inclusive thresholds.
USGS_SEVERITY_BANDS: Tuple[SeverityBand, ...] = (
    SeverityBand(8.0, Severity.CRITICAL),
    SeverityBand(6.0, Severity.HIGH),
    SeverityBand(5.0, Severity.MODERATE),
)

# Active duration in days, exclusive thresholds.
EONET_WILDFIRE_DURATION_BANDS: Tuple[SeverityBand, ...] = (
    SeverityBand(30, Severity.CRITICAL),
    SeverityBand(14, Severity.HIGH),
    SeverityBand(7, Severity.MODERATE),
)
EONET_VOLCANO_DURATION_BANDS: Tuple[SeverityBand, ...] = (
    SeverityBand(7, Severity.CRITICAL),
)
EONET_DEFAULT_DURATION_BANDS: Tuple[SeverityBand, ...] = (
    SeverityBand(60, Severity.CRITICAL),
    SeverityBand(30, Severity.HIGH),
    SeverityBand(14, Severity.MODERATE),
)

# category -> (bands, floor severity). Categories missing here use the
# default bands with a LOW floor; an empty band tuple means a fixed severity.
EONET_DURATION_RULES = {
    DisasterCategory.WILDFIRE: (EONET_WILDFIRE_DURATION_BANDS, Severity.LOW),
    DisasterCategory.VOLCANO: (EONET_VOLCANO_DURATION_BANDS, Severity.HIGH),
    DisasterCategory.EARTHQUAKE: ((), Severity.HIGH),
}


# ============================================================================
# EVALUATION
# ============================================================================


def infer_category(
    text: Optional[str],
    rules: CategoryTable,
    default: DisasterCategory = DisasterCategory.OTHER,
) -> DisasterCategory:
    """
    Return the category of the first rule whose keyword occurs in ``text``.

    Matching is case-insensitive substring matching, evaluated in table order.
    """
    if not text:
        return default
    lowered = text.lower()
    for rule in rules:
        if rule.matches(lowered):
            return rule.category
    return default


def grade(
    value: float,
    bands: SeverityTable,
    default: Severity = Severity.LOW,
    inclusive: bool = True,
) -> Severity:
    """
    Map a measure onto the first band it reaches.

    Args:
        value: Measure to grade (impact, magnitude, duration...)
        bands: Bands ordered by descending threshold
        default: Severity when no band is reached
        inclusive: Compare with >= when True, with > otherwise
    """
    for band in bands:
        if value >= band.threshold if inclusive else value > band.threshold:
            return band.severity
    return default

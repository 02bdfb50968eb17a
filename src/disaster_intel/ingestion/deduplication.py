"""
Module for disaster record deduplication strategies.

Provides deduplication strategies using the Strategy pattern:
- ExactMatchDeduplicator: Drop repeated identifiers (first occurrence kept)
- ProximityDeduplicator: Cross-source merge by category, distance and time

``merge_sources`` is the entry point used by the orchestrator: it cleans each
source list with the validator and hands the result to a ProximityDeduplicator.
"""

import logging
import math
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from disaster_intel.ingestion.validation import (
    FUTURE_TOLERANCE,
    clean_events,
    validate_event,
)
from disaster_intel.schemas.event import DisasterCategory, DisasterEvent, SourceTag

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


class MergeContractError(AssertionError):
    """An invalid record reached the merger (normalizer or caller bug)."""


# ============================================================================
# POLICY: thresholds, trust ranking, information score
# ============================================================================


@dataclass(frozen=True)
class DuplicateThreshold:
    """Maximum separation for two reports to describe the same event."""

    radius_km: float
    window_hours: float


DEFAULT_THRESHOLD = DuplicateThreshold(radius_km=50, window_hours=48)

DEFAULT_DUPLICATE_THRESHOLDS: Mapping[DisasterCategory, DuplicateThreshold] = {
    DisasterCategory.EARTHQUAKE: DuplicateThreshold(radius_km=50, window_hours=24),
    DisasterCategory.VOLCANO: DuplicateThreshold(radius_km=20, window_hours=168),
    DisasterCategory.WILDFIRE: DuplicateThreshold(radius_km=100, window_hours=72),
    DisasterCategory.HURRICANE: DuplicateThreshold(radius_km=200, window_hours=48),
    DisasterCategory.STORM: DuplicateThreshold(radius_km=200, window_hours=48),
    DisasterCategory.FLOOD: DuplicateThreshold(radius_km=100, window_hours=72),
    DisasterCategory.OTHER: DEFAULT_THRESHOLD,
}

# Higher wins. Unknown tags rank 0.
SOURCE_PRIORITY: Mapping[str, int] = {
    SourceTag.USGS.value: 3,
    SourceTag.EONET.value: 2,
    SourceTag.EMDAT.value: 1,
}


def thresholds_from_config(config: Optional[Dict[str, Any]]) -> Dict[DisasterCategory, DuplicateThreshold]:
    """
    Build a threshold mapping from the ``deduplication.thresholds`` YAML block.

    Example block:
        thresholds:
          earthquake: {radius_km: 50, window_hours: 24}
          default: {radius_km: 50, window_hours: 48}

    Categories missing from the block keep their built-in values; ``default``
    overrides the fallback used for ``other`` and unlisted categories.
    """
    thresholds = dict(DEFAULT_DUPLICATE_THRESHOLDS)
    for key, values in (config or {}).items():
        threshold = DuplicateThreshold(
            radius_km=float(values["radius_km"]),
            window_hours=float(values["window_hours"]),
        )
        if key == "default":
            thresholds[DisasterCategory.OTHER] = threshold
        else:
            thresholds[DisasterCategory(key)] = threshold
    return thresholds


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance on a spherical Earth (R = 6371 km)."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    # rounding can push a just outside [0, 1] for near-antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def hours_between(a: datetime, b: datetime) -> float:
    return abs((a - b).total_seconds()) / 3600


def information_score(event: DisasterEvent) -> int:
    """How much descriptive data a record carries."""
    narrative = event.narrative or ""
    score = 0
    if event.name and event.name.strip():
        score += 1
    if narrative.strip():
        score += 2
    if event.impact_count > 0:
        score += 1
    if event.magnitude:
        score += 1
    if event.source_url:
        score += 1
    if event.image_url:
        score += 1
    if event.relief_links:
        score += 2
    if len(narrative) > 50:
        score += 1
    if len(narrative) > 100:
        score += 1
    return score


def choose_better_record(current: DisasterEvent, candidate: DisasterEvent) -> DisasterEvent:
    """
    Pick the representative of two duplicates.

    Source trust dominates; information score breaks ties; exact ties keep
    ``current`` (the earlier-compared record).
    """
    current_rank = SOURCE_PRIORITY.get(current.source_tag, 0)
    candidate_rank = SOURCE_PRIORITY.get(candidate.source_tag, 0)

    if current_rank == candidate_rank:
        if information_score(current) >= information_score(candidate):
            return current
        return candidate

    return current if current_rank > candidate_rank else candidate


# ============================================================================
# RESULTS
# ============================================================================


@dataclass
class MergeStats:
    """
    Aggregate counts of a merge run.

    ``total_events`` and the breakdowns cover every valid input record,
    repeated identifiers included; ``duplicates_removed`` counts both repeated
    identifiers and proximity duplicates, so ``unique_events`` equals the
    output length. ``rejected_events`` counts invalid records only.
    """

    total_events: int = 0
    duplicates_removed: int = 0
    source_breakdown: Dict[str, int] = field(default_factory=dict)
    category_breakdown: Dict[str, int] = field(default_factory=dict)
    rejected_events: int = 0

    @property
    def unique_events(self) -> int:
        return self.total_events - self.duplicates_removed


@dataclass
class MergeResult:
    """Deduplicated, date-sorted records plus merge statistics."""

    events: List[DisasterEvent] = field(default_factory=list)
    stats: MergeStats = field(default_factory=MergeStats)


# ============================================================================
# STRATEGIES
# ============================================================================


class EventDeduplicator(ABC):
    """Abstract base for deduplication strategies."""

    @abstractmethod
    def deduplicate(self, events: List[DisasterEvent]) -> List[DisasterEvent]:
        """Deduplicate events and return unique set."""
        pass


class ExactMatchDeduplicator(EventDeduplicator):
    """Match by identifier (exact)."""

    def deduplicate(self, events: List[DisasterEvent]) -> List[DisasterEvent]:
        """
        Drop records whose identifier was already seen.

        Returns:
            List of unique events (first occurrence kept)
        """
        seen = set()
        unique_events = []

        for event in events:
            if event.event_id in seen:
                logger.warning(f"Repeated identifier dropped: {event.event_id}")
                continue
            seen.add(event.event_id)
            unique_events.append(event)

        return unique_events


class ProximityDeduplicator(EventDeduplicator):
    """
    Cross-source duplicate detection by category, distance and time.

    Two records describe the same physical event iff they come from different
    sources, share a category, and lie within the category's radius and time
    window (both bounds inclusive).

    Clustering walks the records in input order. Each unassigned record opens a
    cluster; later unassigned records are compared against the cluster's
    *current best* representative, so the anchor evolves as better records
    join. This is not a transitive closure: a chain A~B, B~C without A~C is
    still one cluster if B became the representative before C was compared.
    """

    def __init__(
        self,
        thresholds: Optional[Mapping[DisasterCategory, DuplicateThreshold]] = None,
        strict: bool = False,
        future_tolerance: timedelta = FUTURE_TOLERANCE,
    ):
        """
        Initialize the merger.

        Args:
            thresholds: Category -> DuplicateThreshold mapping
            strict: Raise MergeContractError on invalid input instead of
                dropping it
            future_tolerance: Forward-dating tolerance for the re-check
        """
        self.thresholds = dict(thresholds or DEFAULT_DUPLICATE_THRESHOLDS)
        self.strict = strict
        self.future_tolerance = future_tolerance

    def threshold_for(self, category: DisasterCategory) -> DuplicateThreshold:
        return self.thresholds.get(
            category, self.thresholds.get(DisasterCategory.OTHER, DEFAULT_THRESHOLD)
        )

    def are_duplicates(self, a: DisasterEvent, b: DisasterEvent) -> bool:
        """True when two records are reports of the same physical event."""
        if a.source_tag == b.source_tag:
            return False
        if a.category != b.category:
            return False

        threshold = self.threshold_for(a.category)
        distance = haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
        if distance > threshold.radius_km:
            return False
        return hours_between(a.occurred_at, b.occurred_at) <= threshold.window_hours

    def deduplicate(self, events: List[DisasterEvent]) -> List[DisasterEvent]:
        return self.merge(events).events

    def merge(self, *sources: Sequence[DisasterEvent], now: Optional[datetime] = None) -> MergeResult:
        """
        Merge any number of source lists into one deduplicated list.

        Args:
            *sources: Lists of already-validated records
            now: Processing time for the validity re-check

        Returns:
            MergeResult with records sorted by occurred_at, most recent first
        """
        incoming = [event for source in sources for event in (source or [])]
        valid = self._admit(incoming, now)
        admitted = ExactMatchDeduplicator().deduplicate(valid)

        stats = MergeStats(
            total_events=len(valid),
            rejected_events=len(incoming) - len(valid),
            source_breakdown=dict(Counter(e.source_tag or "Unknown" for e in valid)),
            category_breakdown=dict(Counter(_category_key(e) for e in valid)),
            # repeated identifiers count as duplicates of their first occurrence
            duplicates_removed=len(valid) - len(admitted),
        )

        unique_events: List[DisasterEvent] = []
        processed = [False] * len(admitted)

        for i, anchor in enumerate(admitted):
            if processed[i]:
                continue
            processed[i] = True
            best = anchor
            cluster_size = 1

            for j in range(i + 1, len(admitted)):
                if processed[j]:
                    continue
                candidate = admitted[j]
                if self.are_duplicates(best, candidate):
                    processed[j] = True
                    cluster_size += 1
                    best = choose_better_record(best, candidate)

            unique_events.append(best)
            stats.duplicates_removed += cluster_size - 1

        unique_events.sort(key=lambda e: e.occurred_at, reverse=True)

        logger.info(
            f"Merged {stats.total_events} disasters into {len(unique_events)} unique events "
            f"(removed {stats.duplicates_removed} duplicates)"
        )
        logger.debug(f"Source breakdown: {stats.source_breakdown}")
        logger.debug(f"Category breakdown: {stats.category_breakdown}")

        return MergeResult(events=unique_events, stats=stats)

    def _admit(self, events: List[DisasterEvent], now: Optional[datetime]) -> List[DisasterEvent]:
        """Re-check validity; invalid input is a contract violation."""
        admitted = []
        for event in events:
            valid, messages = validate_event(
                event, now=now, future_tolerance=self.future_tolerance
            )
            if valid:
                admitted.append(event)
                continue
            if self.strict:
                raise MergeContractError(
                    f"Invalid record reached the merger: {event.event_id}: {messages}"
                )
            logger.warning(f"Invalid record skipped by merger: {event.event_id}: {messages}")
        return admitted


def _category_key(event: DisasterEvent) -> str:
    category = event.category
    return category.value if isinstance(category, Enum) else str(category)


# ============================================================================
# ENTRY POINT
# ============================================================================


def merge_sources(
    emdat_events: Optional[Sequence[DisasterEvent]] = None,
    eonet_events: Optional[Sequence[DisasterEvent]] = None,
    usgs_events: Optional[Sequence[DisasterEvent]] = None,
    *,
    now: Optional[datetime] = None,
    merger: Optional[ProximityDeduplicator] = None,
) -> MergeResult:
    """
    Clean each source list and merge them into one deduplicated list.

    Any list may be empty or None; all empty yields an empty result with
    zero stats.
    """
    merger = merger or ProximityDeduplicator()
    tolerance = merger.future_tolerance

    clean_emdat = clean_events(emdat_events or [], now=now, future_tolerance=tolerance)
    clean_eonet = clean_events(eonet_events or [], now=now, future_tolerance=tolerance)
    clean_usgs = clean_events(usgs_events or [], now=now, future_tolerance=tolerance)

    logger.info(
        f"Cleaned disasters: EM-DAT ({len(clean_emdat)}), "
        f"EONET ({len(clean_eonet)}), USGS ({len(clean_usgs)})"
    )

    rejected = (
        len(emdat_events or []) + len(eonet_events or []) + len(usgs_events or [])
        - len(clean_emdat) - len(clean_eonet) - len(clean_usgs)
    )
    result = merger.merge(clean_emdat, clean_eonet, clean_usgs, now=now)
    result.stats.rejected_events += rejected
    return result

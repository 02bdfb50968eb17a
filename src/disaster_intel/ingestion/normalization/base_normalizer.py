"""
Base Normalizer.

Abstract base class for the per-source normalizers. A normalizer maps raw,
already-parsed source records into DisasterEvent instances and never raises on
a bad record: the record is dropped and reported as a diagnostic instead.

Architecture:
    raw records → normalize_record() → validate_event() → DisasterEvent list
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from disaster_intel.ingestion.validation import FUTURE_TOLERANCE, validate_event
from disaster_intel.schemas.event import DisasterEvent

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class RecordDropped(Exception):
    """Raised by ``normalize_record`` when a raw record cannot be used."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass
class DroppedRecord:
    """Diagnostic for a raw record excluded from the output."""

    index: int
    raw_id: Optional[str]
    reason: str


@dataclass
class NormalizationResult:
    """Output of a normalization run: kept events plus drop diagnostics."""

    source_tag: str
    events: List[DisasterEvent] = field(default_factory=list)
    dropped: List[DroppedRecord] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return len(self.events) + len(self.dropped)

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


class BaseNormalizer(ABC):
    """
    Abstract base class for source normalizers.

    Subclasses must:
    - Set ``source_tag``
    - Implement ``normalize_record`` (raise RecordDropped for unusable input)
    - Implement ``raw_id`` so diagnostics can name the offending record
    """

    source_tag: str = ""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        future_tolerance: timedelta = FUTURE_TOLERANCE,
    ):
        """
        Initialize the normalizer.

        Args:
            clock: Callable returning the processing time (UTC)
            future_tolerance: Forward-dating tolerance used during validation
        """
        self.clock = clock or utc_now
        self.future_tolerance = future_tolerance
        self.logger = logging.getLogger(f"normalizer.{self.source_tag or 'unknown'}")

    # ========================================================================
    # ABSTRACT METHODS - Must be implemented by subclasses
    # ========================================================================

    @abstractmethod
    def normalize_record(self, raw: Dict[str, Any], index: int) -> DisasterEvent:
        """
        Convert one raw record into a DisasterEvent.

        Args:
            raw: Raw record from the source payload
            index: Position of the record in the payload

        Raises:
            RecordDropped: If the record lacks usable data
        """

    @abstractmethod
    def raw_id(self, raw: Dict[str, Any], index: int) -> Optional[str]:
        """Native identifier of a raw record, for diagnostics."""

    # ========================================================================
    # CONCRETE METHODS
    # ========================================================================

    def normalize(self, raw_records: Iterable[Dict[str, Any]]) -> List[DisasterEvent]:
        """Normalize a batch and return only the valid events."""
        return self.normalize_with_report(raw_records).events

    def normalize_with_report(
        self, raw_records: Iterable[Dict[str, Any]]
    ) -> NormalizationResult:
        """
        Normalize a batch, keeping a diagnostic for every dropped record.

        Returns:
            NormalizationResult with events in input order
        """
        result = NormalizationResult(source_tag=self.source_tag)
        now = self.clock()

        for idx, raw in enumerate(raw_records or []):
            raw_id = self._safe_raw_id(raw, idx)
            try:
                if not isinstance(raw, dict):
                    raise RecordDropped(f"expected a mapping, got {type(raw).__name__}")
                event = self.normalize_record(raw, idx)
            except RecordDropped as e:
                self._drop(result, idx, raw_id, e.reason)
                continue
            except ValidationError as e:
                self._drop(result, idx, raw_id, f"schema error: {e.error_count()} field(s)")
                continue
            except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
                self.logger.debug(f"Malformed record {idx}", exc_info=True)
                self._drop(result, idx, raw_id, f"malformed record: {e}")
                continue

            is_valid, messages = validate_event(
                event, now=now, future_tolerance=self.future_tolerance
            )
            if not is_valid:
                self._drop(result, idx, raw_id, "; ".join(messages))
                continue

            result.events.append(event)

        self.logger.info(
            f"Normalized {len(result.events)}/{result.total_records} records "
            f"({result.dropped_count} dropped)"
        )
        return result

    def _drop(
        self, result: NormalizationResult, idx: int, raw_id: Optional[str], reason: str
    ) -> None:
        self.logger.warning(f"Dropped record {idx} ({raw_id}): {reason}")
        result.dropped.append(DroppedRecord(index=idx, raw_id=raw_id, reason=reason))

    def _safe_raw_id(self, raw: Any, idx: int) -> Optional[str]:
        if not isinstance(raw, dict):
            return None
        try:
            return self.raw_id(raw, idx)
        except (KeyError, TypeError, AttributeError):
            return None


# ============================================================================
# HELPERS shared by the source normalizers
# ============================================================================


def clean_number(value: Any) -> Optional[float]:
    """
    Coerce a raw numeric cell to float.

    Blank cells, NaN, booleans and unparsable strings become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def clean_text(value: Any) -> Optional[str]:
    """Trimmed string, or None for blanks / NaN cells."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def format_count(value: float) -> str:
    """Thousands-separated integer, e.g. 12,500."""
    return f"{int(value):,}"


def format_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def in_range(latitude: Optional[float], longitude: Optional[float]) -> bool:
    return (
        latitude is not None
        and longitude is not None
        and -90.0 <= latitude <= 90.0
        and -180.0 <= longitude <= 180.0
    )

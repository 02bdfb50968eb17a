"""
Normalization module for disaster records.

This package provides:
- BaseNormalizer / NormalizationResult: shared drop-and-report workflow
- EmdatNormalizer: spreadsheet export rows
- EonetNormalizer: NASA EONET natural-event objects
- UsgsNormalizer: USGS GeoJSON earthquake features
- rules: ordered keyword and severity tables
"""

from .base_normalizer import (
    BaseNormalizer,
    DroppedRecord,
    NormalizationResult,
    RecordDropped,
)
from .emdat import EmdatNormalizer
from .eonet import EonetNormalizer
from .usgs import UsgsNormalizer

__all__ = [
    "BaseNormalizer",
    "DroppedRecord",
    "NormalizationResult",
    "RecordDropped",
    "EmdatNormalizer",
    "EonetNormalizer",
    "UsgsNormalizer",
]

"""
Tabular export of merged disaster records.
"""

import json
from typing import List

import pandas as pd

from disaster_intel.schemas.event import DisasterEvent

COLUMNS = [
    "event_id",
    "original_id",
    "name",
    "category",
    "severity",
    "latitude",
    "longitude",
    "occurred_at",
    "impact_count",
    "magnitude",
    "source_tag",
    "source_url",
    "image_url",
    "narrative",
    "relief_links",
]


def events_to_dataframe(events: List[DisasterEvent]) -> pd.DataFrame:
    """
    Convert events to a flat pandas DataFrame, one row per record.

    Enum fields are stored as their string values and relief links as a JSON
    string; column order is fixed even for an empty list.
    """
    rows = []
    for event in events:
        rows.append(
            {
                "event_id": event.event_id,
                "original_id": event.original_id,
                "name": event.name,
                "category": event.category.value,
                "severity": event.severity.value,
                "latitude": event.latitude,
                "longitude": event.longitude,
                "occurred_at": event.occurred_at,
                "impact_count": event.impact_count,
                "magnitude": event.magnitude,
                "source_tag": event.source_tag,
                "source_url": event.source_url,
                "image_url": event.image_url,
                "narrative": event.narrative,
                "relief_links": json.dumps(
                    [link.model_dump() for link in event.relief_links], ensure_ascii=False
                ),
            }
        )

    df = pd.DataFrame(rows, columns=COLUMNS)
    if not df.empty:
        df["occurred_at"] = pd.to_datetime(df["occurred_at"], utc=True)
    return df

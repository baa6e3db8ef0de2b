from __future__ import annotations

import datetime as dt
import warnings
from typing import Any, Optional

import pandas as pd


def parse_timestamp(value: Any) -> Optional[dt.datetime]:
    """
    Parse whatever a source hands us (ISO string, date, datetime, epoch-less junk)
    into a timezone-aware UTC datetime. Unparsable or blank values return None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day, tzinfo=dt.timezone.utc)

    with warnings.catch_warnings():
        warnings.filterwarnings(
            "ignore", message="Could not infer format, so each element will be parsed individually, falling back to `dateutil`.")
        ts = pd.to_datetime(str(value), errors="coerce", utc=True)
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


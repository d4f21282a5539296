from __future__ import annotations

import io
from typing import List

import pandas as pd

from streams.models import SIGNAL_FIELDS, SignalVector

REQUIRED_COLUMNS = ("attention", "relaxation", "stress", "recognition")


def parse_readings_csv(content: bytes, max_rows: int = 10000) -> List[SignalVector]:
    """Parse an uploaded CSV of readings into clamped signal vectors.

    Column names are matched case-insensitively; ``blinkRate`` and
    ``blink_rate`` are both accepted. Missing optional band columns take the
    resting defaults, rows with a non-numeric required value are dropped.
    """
    try:
        df = pd.read_csv(io.BytesIO(content), nrows=max_rows)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise ValueError(f"Unreadable readings file: {exc}") from exc

    df.columns = [str(c).strip().lower().replace("blinkrate", "blink_rate") for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Readings file is missing columns: {', '.join(missing)}")

    columns = [c for c in SIGNAL_FIELDS if c in df.columns]
    numeric = df[columns].apply(pd.to_numeric, errors="coerce")
    numeric = numeric.dropna(subset=list(REQUIRED_COLUMNS)).clip(lower=0.0, upper=100.0)

    vectors: List[SignalVector] = []
    for row in numeric.to_dict(orient="records"):
        values = {k: float(v) for k, v in row.items() if pd.notna(v)}
        vectors.append(SignalVector(**values))
    return vectors

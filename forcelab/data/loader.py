"""Load OHLCV bars from local CSV or Parquet files.

Column names are matched case-insensitively; the date column may be
called ``date``, ``time``, ``datetime`` or ``timestamp``.  A missing
``volume`` column is read as zero volume.
"""

import logging
import pathlib

import pandas as pd

from forcelab.models import Bar, validate_bars

logger = logging.getLogger("forcelab.data")

_DATE_COLUMNS = ("date", "time", "datetime", "timestamp")
_PRICE_COLUMNS = ("open", "high", "low", "close")


def bars_from_frame(df: pd.DataFrame) -> list[Bar]:
    """Convert an OHLCV frame to validated bars.

    Timestamps with a time component keep it (``YYYY-MM-DDTHH:MM:SS``);
    midnight-only series are rendered as plain dates.

    Raises:
        ValueError: if a required column is missing or the rows violate
            the bar invariants (see ``validate_bars``).
    """
    df = df.rename(columns={c: str(c).strip().lower() for c in df.columns})

    date_col = next((c for c in _DATE_COLUMNS if c in df.columns), None)
    if date_col is None:
        raise ValueError(f"No date column found; expected one of {', '.join(_DATE_COLUMNS)}")
    missing = [c for c in _PRICE_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")

    df = df.dropna(subset=list(_PRICE_COLUMNS)).reset_index(drop=True)
    stamps = pd.to_datetime(df[date_col])
    if (stamps.dt.normalize() == stamps).all():
        dates = stamps.dt.strftime("%Y-%m-%d")
    else:
        dates = stamps.dt.strftime("%Y-%m-%dT%H:%M:%S")
    volume = df["volume"].fillna(0.0) if "volume" in df.columns else pd.Series(0.0, index=df.index)

    bars = [
        Bar(
            date=d,
            open=float(o),
            high=float(h),
            low=float(lo),
            close=float(c),
            volume=float(v),
        )
        for d, o, h, lo, c, v in zip(
            dates, df["open"], df["high"], df["low"], df["close"], volume
        )
    ]
    validate_bars(bars)
    return bars


def load_bars(path: str | pathlib.Path) -> list[Bar]:
    """Read bars from a ``.csv`` or ``.parquet`` file."""
    path = pathlib.Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path)
    elif suffix in (".parquet", ".pq"):
        df = pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported data file type '{suffix}' (use .csv or .parquet)")

    bars = bars_from_frame(df)
    logger.info("Loaded %d bars from %s", len(bars), path)
    return bars

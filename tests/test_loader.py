"""Tests for bar loading and validation."""

import math

import pandas as pd
import pytest

from forcelab.data.loader import bars_from_frame, load_bars
from forcelab.models import Bar, bars_from_records, validate_bars


# ── Helpers ──────────────────────────────────────────────────────────────


def _frame(n=5, **renames):
    df = pd.DataFrame(
        {
            "date": pd.date_range("2021-03-01", periods=n, freq="D"),
            "open": [100.0 + i for i in range(n)],
            "high": [102.0 + i for i in range(n)],
            "low": [99.0 + i for i in range(n)],
            "close": [101.0 + i for i in range(n)],
            "volume": [1000 * (i + 1) for i in range(n)],
        }
    )
    return df.rename(columns=renames)


def _make_bar(date, close=100.0, **overrides):
    fields = {
        "date": date,
        "open": close,
        "high": close + 1,
        "low": close - 1,
        "close": close,
        "volume": 10.0,
    }
    fields.update(overrides)
    return Bar(**fields)


# ── Loader ───────────────────────────────────────────────────────────────


class TestBarsFromFrame:
    def test_daily_frame(self):
        bars = bars_from_frame(_frame())
        assert len(bars) == 5
        assert bars[0] == Bar("2021-03-01", 100.0, 102.0, 99.0, 101.0, 1000.0)
        assert bars[-1].date == "2021-03-05"

    def test_column_names_are_case_insensitive(self):
        df = _frame(date="Timestamp")
        df.columns = [c if c == "Timestamp" else c.upper() for c in df.columns]
        bars = bars_from_frame(df)
        assert bars[1].open == 101.0

    def test_intraday_timestamps_keep_time(self):
        df = _frame(3)
        df["date"] = pd.date_range("2021-03-01 09:00", periods=3, freq="60min")
        bars = bars_from_frame(df)
        assert bars[0].date == "2021-03-01T09:00:00"
        assert bars[2].date == "2021-03-01T11:00:00"

    def test_missing_volume_reads_as_zero(self):
        bars = bars_from_frame(_frame().drop(columns=["volume"]))
        assert all(b.volume == 0.0 for b in bars)

    def test_rows_without_prices_are_dropped(self):
        df = _frame()
        df.loc[2, "close"] = float("nan")
        bars = bars_from_frame(df)
        assert [b.date for b in bars] == [
            "2021-03-01",
            "2021-03-02",
            "2021-03-04",
            "2021-03-05",
        ]

    def test_missing_price_column(self):
        with pytest.raises(ValueError, match="close"):
            bars_from_frame(_frame().drop(columns=["close"]))

    def test_missing_date_column(self):
        with pytest.raises(ValueError, match="date column"):
            bars_from_frame(_frame().drop(columns=["date"]))

    def test_unsorted_rows_are_rejected(self):
        df = _frame().iloc[::-1].reset_index(drop=True)
        with pytest.raises(ValueError, match="not after"):
            bars_from_frame(df)


class TestLoadBars:
    def test_csv(self, tmp_path):
        path = tmp_path / "prices.csv"
        _frame().to_csv(path, index=False)
        bars = load_bars(path)
        assert len(bars) == 5
        assert bars[0].date == "2021-03-01"

    def test_parquet(self, tmp_path):
        path = tmp_path / "prices.parquet"
        _frame().to_parquet(path, index=False)
        bars = load_bars(str(path))
        assert [b.close for b in bars] == [101.0, 102.0, 103.0, 104.0, 105.0]

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "prices.json"
        path.write_text("[]")
        with pytest.raises(ValueError, match="Unsupported"):
            load_bars(path)


# ── Validation ───────────────────────────────────────────────────────────


class TestValidateBars:
    def test_valid_series(self):
        validate_bars([_make_bar("2021-01-01"), _make_bar("2021-01-02")])
        validate_bars([])

    @pytest.mark.parametrize(
        "bar",
        [
            _make_bar("2021-01-02", high=99.5),
            _make_bar("2021-01-02", low=100.5),
            _make_bar("2021-01-02", volume=-1.0),
            _make_bar("2021-01-02", close=math.nan),
            _make_bar("2021-01-01"),
        ],
    )
    def test_invalid_second_bar(self, bar):
        with pytest.raises(ValueError, match="Bar 1"):
            validate_bars([_make_bar("2021-01-01"), bar])

    def test_bars_from_records(self):
        bars = bars_from_records(
            [
                {"date": "2021-01-01", "open": 1, "high": 2, "low": 0.5, "close": 1.5},
                {"date": "2021-01-02", "open": "1.5", "high": 3, "low": 1, "close": 2, "volume": 7},
            ]
        )
        assert bars[0].volume == 0.0
        assert bars[1].open == 1.5
        assert bars[1].volume == 7.0

"""
CSV candle loader.

Expected header: timestamp,open,high,low,close,volume with RFC 3339
timestamps. Rows that are short, or whose timestamp or prices do not parse,
are skipped. Candles are returned in ascending timestamp order.
"""

from decimal import Decimal
from pathlib import Path

import pandas as pd

from dcagrid.core.models import Candle
from dcagrid.utils.logger import get_logger

logger = get_logger(__name__)

COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]
PRICE_COLUMNS = COLUMNS[1:]


def load_frame(filepath: Path | str) -> pd.DataFrame:
    """
    Load and clean the CSV into a frame of valid rows.

    Numeric columns keep their original text so prices convert to Decimal
    exactly; the ``ts`` column holds the parsed UTC timestamp.
    """
    df = pd.read_csv(
        filepath,
        dtype=str,
        keep_default_na=False,
        on_bad_lines="skip",
        skipinitialspace=True,
    )
    if df.empty or df.shape[1] < len(COLUMNS):
        return pd.DataFrame(columns=COLUMNS + ["ts"])

    df = df.iloc[:, : len(COLUMNS)]
    df.columns = COLUMNS
    df = df.apply(lambda col: col.str.strip())

    df["ts"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce", format="ISO8601")
    numeric = df[PRICE_COLUMNS].apply(pd.to_numeric, errors="coerce")

    valid = df["ts"].notna() & numeric.notna().all(axis=1)
    skipped = int((~valid).sum())
    if skipped:
        logger.debug("csv_rows_skipped", file=str(filepath), skipped=skipped)

    return df[valid].sort_values("ts", kind="stable").reset_index(drop=True)


def load_candles(filepath: Path | str) -> list[Candle]:
    """
    Load candles from a CSV file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If no row could be parsed
    """
    df = load_frame(filepath)
    if df.empty:
        raise ValueError("no candles loaded")

    candles = [
        Candle(
            timestamp=row.ts.to_pydatetime(),
            open=Decimal(row.open),
            high=Decimal(row.high),
            low=Decimal(row.low),
            close=Decimal(row.close),
            volume=Decimal(row.volume),
        )
        for row in df.itertuples(index=False)
    ]

    logger.info(
        "candles_loaded",
        file=str(filepath),
        count=len(candles),
        first=candles[0].timestamp.isoformat(),
        last=candles[-1].timestamp.isoformat(),
    )
    return candles

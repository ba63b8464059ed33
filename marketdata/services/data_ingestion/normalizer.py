"""
Response Normalizer

Pure functions turning provider payloads into OHLCVBar records.

Timestamps are returned as naive UTC datetimes (the storage convention).
Prices are Decimals, volume an int. A row that cannot be placed in time
is skipped with a warning; a row with unreadable numbers is kept with zeros.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from marketdata.schemas.market import OhlcApiResponse, OHLCVBar, PriceInterval
from marketdata.services.base import RecordParseError

logger = logging.getLogger(__name__)

DATE_ONLY = "%Y-%m-%d"
DATE_TIME = "%Y-%m-%d %H:%M:%S"

# Date-series row keys: string field and typed field for each value
PRICE_FIELDS = {
    "open": ("1. open", "open"),
    "high": ("2. high", "high"),
    "low": ("3. low", "low"),
    "close": ("4. close", "close"),
}
VOLUME_FIELDS = ("5. volume", "volume")


def parse_timestamp(key: Optional[str]) -> datetime:
    """
    Parse a series key into a naive UTC datetime.

    Tried in order:
        2024-01-25T00:00:00Z   full instant (any offset)
        2024-01-25             UTC midnight
        2024-01-25 16:00:00    wall time read as UTC

    Raises:
        RecordParseError: If no form matches
    """
    if key is None or not str(key).strip():
        raise RecordParseError("Empty timestamp")
    text = str(key).strip()

    if "T" in text:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            if parsed.tzinfo is not None:
                return parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        except ValueError:
            pass

    for fmt in (DATE_ONLY, DATE_TIME):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    raise RecordParseError(f"Unparseable timestamp: {text}")


def to_decimal(text: Any, typed: Any = None) -> Decimal:
    """Typed value wins; otherwise parse the string; otherwise zero."""
    for value in (typed, text):
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, str) and not value.strip():
            continue
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            continue
        if result.is_finite():
            return result
    return Decimal("0")


def to_volume(text: Any, typed: Any = None) -> int:
    """Typed value wins; otherwise parse the string; otherwise zero."""
    for value in (typed, text):
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, str) and not value.strip():
            continue
        try:
            return max(int(Decimal(str(value).strip())), 0)
        except (InvalidOperation, ValueError, OverflowError):
            continue
    return 0


def select_time_series(response: OhlcApiResponse, interval: PriceInterval) -> Optional[dict[str, Any]]:
    """
    Pick the keyed sub-series for an interval.

    1m, 5m, 15m and 1h have their own series; every other interval reads
    the daily series. A chart block is used when no keyed series exists.
    """
    if interval == PriceInterval.ONE_MINUTE:
        series = response.time_series_1min
    elif interval == PriceInterval.FIVE_MINUTE:
        series = response.time_series_5min
    elif interval == PriceInterval.FIFTEEN_MINUTE:
        series = response.time_series_15min
    elif interval == PriceInterval.ONE_HOUR:
        series = response.time_series_60min
    else:
        series = response.time_series_daily

    if series is None and response.chart:
        series = flatten_chart(response.chart)
    return series


def flatten_chart(chart: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """
    Convert a chart-style block to the keyed form.

    chart.result[0].timestamp[] holds epoch seconds; the values sit in
    chart.result[0].indicators.quote[0].{open,high,low,close,volume}[].
    Keys are ISO instants (2024-01-25T00:00:00Z).
    """
    results = chart.get("result") or []
    if not results:
        return {}
    result = results[0] or {}
    timestamps = result.get("timestamp") or []
    quotes = (result.get("indicators") or {}).get("quote") or [{}]
    quote = quotes[0] or {}

    def value_at(field: str, index: int) -> Any:
        values = quote.get(field) or []
        return values[index] if index < len(values) else None

    series = {}
    for index, epoch in enumerate(timestamps):
        if epoch is None:
            continue
        try:
            ts = datetime.fromtimestamp(int(epoch), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            logger.warning(f"Skipping chart row with bad epoch: {epoch}")
            continue
        series[ts.strftime("%Y-%m-%dT%H:%M:%SZ")] = {
            "open": value_at("open", index),
            "high": value_at("high", index),
            "low": value_at("low", index),
            "close": value_at("close", index),
            "volume": value_at("volume", index),
        }
    return series


def to_bar(key: str, row: dict[str, Any]) -> OHLCVBar:
    """Build one bar from a series entry. Raises RecordParseError on a bad key."""
    if not isinstance(row, dict):
        raise RecordParseError(f"Row for {key} is not an object")
    prices = {
        name: to_decimal(row.get(text_field), row.get(typed_field))
        for name, (text_field, typed_field) in PRICE_FIELDS.items()
    }
    return OHLCVBar(
        timestamp=parse_timestamp(key),
        volume=to_volume(row.get(VOLUME_FIELDS[0]), row.get(VOLUME_FIELDS[1])),
        **prices,
    )


def normalize(response: OhlcApiResponse, interval: PriceInterval) -> list[OHLCVBar]:
    """
    Normalize a provider response into bars sorted by timestamp.

    Malformed rows are skipped with a warning. Keys that resolve to the same
    instant are kept once (first occurrence wins).
    """
    series = select_time_series(response, interval)
    if not series:
        return []

    bars: dict[datetime, OHLCVBar] = {}
    for key, row in series.items():
        try:
            bar = to_bar(key, row)
        except RecordParseError as e:
            logger.warning(f"Skipping malformed row: {e.message}")
            continue
        if bar.timestamp in bars:
            continue
        bars[bar.timestamp] = bar

    return sorted(bars.values(), key=lambda b: b.timestamp)

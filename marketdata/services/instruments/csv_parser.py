"""
Instrument CSV Parser

Parses the instruments reference CSV into InstrumentRow records.
Columns are located by header name (case-insensitive), independent of order.
Content with missing headers or no data rows parses to an empty list.
"""

import csv
import io
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

HEADER_EXCHANGE = "exchange"
HEADER_TRADING_SYMBOL = "trading_symbol"
HEADER_NAME = "name"
HEADER_SEGMENT = "segment"
HEADER_SERIES = "series"

REQUIRED_HEADERS = (
    HEADER_EXCHANGE,
    HEADER_TRADING_SYMBOL,
    HEADER_NAME,
    HEADER_SEGMENT,
    HEADER_SERIES,
)


@dataclass(frozen=True)
class InstrumentRow:
    """One reference row. Transient: never persisted directly."""

    exchange: str
    trading_symbol: str
    name: str
    segment: str
    series: str


def _index_of(headers: list[str], key: str) -> Optional[int]:
    for i, header in enumerate(headers):
        if header is not None and header.strip().lower() == key:
            return i
    return None


def parse_instruments(csv_body: Optional[str]) -> list[InstrumentRow]:
    """
    Parse CSV content. Rows shorter than the needed columns are skipped,
    as are lines the csv module cannot parse.
    """
    if not csv_body or not csv_body.strip():
        return []

    reader = csv.reader(io.StringIO(csv_body))
    try:
        headers = next(reader)
    except (StopIteration, csv.Error):
        return []

    indexes = {key: _index_of(headers, key) for key in REQUIRED_HEADERS}
    missing = [key for key, idx in indexes.items() if idx is None]
    if missing:
        logger.error(f"Required CSV columns not found: {missing}. Headers: {headers}")
        return []

    max_idx = max(indexes.values())
    rows = []
    dropped = 0
    while True:
        try:
            cols = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            # The reader resets on the next line
            dropped += 1
            logger.warning(f"Skipping malformed instruments CSV line {reader.line_num}: {e}")
            continue
        if len(cols) <= max_idx:
            continue
        rows.append(InstrumentRow(
            exchange=cols[indexes[HEADER_EXCHANGE]].strip(),
            trading_symbol=cols[indexes[HEADER_TRADING_SYMBOL]].strip(),
            name=cols[indexes[HEADER_NAME]].strip(),
            segment=cols[indexes[HEADER_SEGMENT]].strip(),
            series=cols[indexes[HEADER_SERIES]].strip(),
        ))

    if dropped:
        logger.warning(f"Dropped {dropped} malformed instruments CSV line(s)")
    return rows

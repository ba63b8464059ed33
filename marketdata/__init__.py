"""MarketData Ingest - OHLCV ingestion pipeline for NSE/BSE instruments."""

__version__ = "0.1.0"

"""Pytest fixtures: in-memory database, seed data and fake providers."""

from types import SimpleNamespace
from typing import Callable, Optional, Union

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketdata.db.models import Base, DataSource, Exchange, Stock
from marketdata.schemas.market import OhlcApiResponse, PriceInterval
from marketdata.services.data_ingestion.interface import MarketDataProvider, data_source_matches
from marketdata.services.data_ingestion.registry import ProviderRegistry
from marketdata.services.notifications.notifier import PriceUpdateNotifier


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def seeded(session_factory):
    """NSE/BSE exchanges, two NSE stocks and one active Alpha Vantage data source."""
    async with session_factory() as db:
        nse = Exchange(name="National Stock Exchange", code="NSE")
        bse = Exchange(name="Bombay Stock Exchange", code="BSE")
        db.add_all([nse, bse])
        await db.flush()

        reliance = Stock(symbol="RELIANCE", name="Reliance Industries", exchange_id=nse.id)
        tcs = Stock(symbol="TCS", name="Tata Consultancy Services", exchange_id=nse.id)
        alpha = DataSource(
            name="Alpha Vantage",
            provider_type="ALPHA_VANTAGE",
            api_endpoint="https://www.alphavantage.co/query",
            api_key="demo",
            is_active=True,
            priority=1,
        )
        db.add_all([reliance, tcs, alpha])
        await db.commit()

        return SimpleNamespace(
            nse_id=nse.id,
            bse_id=bse.id,
            reliance_id=reliance.id,
            tcs_id=tcs.id,
            data_source_id=alpha.id,
        )


class FakeProvider(MarketDataProvider):
    """Provider returning a canned response, or raising, and recording calls."""

    def __init__(
        self,
        name: str = "Fake",
        keyword: str = "alpha",
        response: Union[OhlcApiResponse, Exception, Callable, None] = None,
    ):
        self._name = name
        self.keyword = keyword
        self.response = response if response is not None else OhlcApiResponse()
        self.calls = []

    @property
    def name(self) -> str:
        return self._name

    def supports(self, data_source: DataSource) -> bool:
        return data_source_matches(
            data_source,
            endpoint_keywords=(self.keyword,),
            type_keywords=(self.keyword,),
            name_keywords=(self.keyword,),
        )

    async def fetch_ohlc_data(
        self,
        data_source: DataSource,
        symbol: str,
        interval: PriceInterval,
        exchange: Optional[str] = None,
    ) -> OhlcApiResponse:
        self.calls.append((data_source.id, symbol, interval, exchange))
        response = self.response
        if callable(response):
            response = await response(symbol)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def daily_response():
    """Three daily bars, the last one keyed as an ISO instant."""
    return OhlcApiResponse.model_validate({
        "Time Series (Daily)": {
            "2024-01-24": {
                "1. open": "2700.00", "2. high": "2725.50", "3. low": "2690.10",
                "4. close": "2710.25", "5. volume": "1200000",
            },
            "2024-01-25": {
                "1. open": "2710.25", "2. high": "2740.00", "3. low": "2705.00",
                "4. close": "2735.80", "5. volume": "1500000",
            },
            "2024-01-26T00:00:00Z": {
                "1. open": "2735.80", "2. high": "2750.00", "3. low": "2720.00",
                "4. close": "2745.00", "5. volume": "900000",
            },
        }
    })


@pytest.fixture
def notifier():
    return PriceUpdateNotifier(redis_client=None)


@pytest.fixture
def make_registry():
    def factory(*providers: MarketDataProvider) -> ProviderRegistry:
        return ProviderRegistry(providers)
    return factory


@pytest.fixture
async def http_server():
    """Start aiohttp test servers from a list of (method, path, handler)."""
    servers = []

    async def factory(routes) -> TestServer:
        app = web.Application()
        for method, path, handler in routes:
            app.router.add_route(method, path, handler)
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    yield factory
    for server in servers:
        await server.close()

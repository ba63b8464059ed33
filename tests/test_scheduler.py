"""Tests for the market data and Groww live data schedulers."""

import asyncio
from types import SimpleNamespace

from marketdata.db.models import DataSource, Stock
from marketdata.schemas.market import PriceInterval
from marketdata.services.base import ProviderHttpError
from marketdata.services.scheduler.groww_live import GrowwLiveDataScheduler
from marketdata.services.scheduler.market_data import MarketDataScheduler


class RecordingService:
    """Stands in for MarketDataService; fails or stalls for chosen symbols."""

    def __init__(self, session_factory, fail_ids=(), slow_ids=(), on_fetch=None):
        self.session_factory = session_factory
        self.fail_ids = set(fail_ids)
        self.slow_ids = set(slow_ids)
        self.on_fetch = on_fetch
        self.calls = []

    async def fetch_and_save(self, stock_id, data_source_id, interval=PriceInterval.ONE_DAY):
        self.calls.append((stock_id, data_source_id, interval))
        if self.on_fetch:
            self.on_fetch()
        if stock_id in self.slow_ids:
            await asyncio.sleep(5)
        if stock_id in self.fail_ids:
            raise ProviderHttpError("Failed to fetch data from Fake: 500 - boom", status=500)
        return SimpleNamespace(records_saved=1)


def make_scheduler(service, session_factory, **kwargs):
    options = dict(interval_ms=60000, initial_delay_ms=0, throttle_ms=0, fetch_timeout=1)
    options.update(kwargs)
    return MarketDataScheduler(service, session_factory=session_factory, **options)


class TestTick:
    """One pass over the instruments."""

    async def test_fetches_every_active_stock(self, session_factory, seeded):
        service = RecordingService(session_factory)
        scheduler = make_scheduler(service, session_factory, price_interval=PriceInterval.ONE_DAY)

        summary = await scheduler.tick()

        assert summary.total == 2
        assert summary.succeeded == 2
        assert summary.failed == 0
        assert not summary.interrupted
        assert service.calls == [
            (seeded.reliance_id, seeded.data_source_id, PriceInterval.ONE_DAY),
            (seeded.tcs_id, seeded.data_source_id, PriceInterval.ONE_DAY),
        ]

    async def test_failure_does_not_stop_tick(self, session_factory, seeded):
        service = RecordingService(session_factory, fail_ids={seeded.reliance_id})
        summary = await make_scheduler(service, session_factory).tick()

        assert summary.succeeded == 1
        assert summary.failed == 1
        assert [c[0] for c in service.calls] == [seeded.reliance_id, seeded.tcs_id]

    async def test_timeout_counts_as_failure(self, session_factory, seeded):
        service = RecordingService(session_factory, slow_ids={seeded.reliance_id})
        summary = await make_scheduler(service, session_factory, fetch_timeout=0.05).tick()

        assert summary.succeeded == 1
        assert summary.failed == 1

    async def test_inactive_stock_skipped(self, session_factory, seeded):
        async with session_factory() as db:
            stock = await db.get(Stock, seeded.tcs_id)
            stock.is_active = False
            await db.commit()

        service = RecordingService(session_factory)
        summary = await make_scheduler(service, session_factory).tick()

        assert summary.total == 1
        assert [c[0] for c in service.calls] == [seeded.reliance_id]

    async def test_highest_priority_source_used(self, session_factory, seeded):
        async with session_factory() as db:
            preferred = DataSource(
                name="Yahoo Finance", provider_type="YAHOO", api_endpoint="https://query1.finance.yahoo.com",
                is_active=True, priority=0,
            )
            unranked = DataSource(
                name="Grow API", provider_type="GROWW", api_endpoint="https://api.groww.in",
                is_active=True, priority=None,
            )
            db.add_all([preferred, unranked])
            await db.commit()
            preferred_id = preferred.id

        service = RecordingService(session_factory)
        await make_scheduler(service, session_factory).tick()

        assert {c[1] for c in service.calls} == {preferred_id}

    async def test_no_active_source(self, session_factory, seeded):
        async with session_factory() as db:
            ds = await db.get(DataSource, seeded.data_source_id)
            ds.is_active = False
            await db.commit()

        service = RecordingService(session_factory)
        summary = await make_scheduler(service, session_factory).tick()

        assert summary.total == 0
        assert service.calls == []

    async def test_no_stocks(self, session_factory):
        service = RecordingService(session_factory)
        summary = await make_scheduler(service, session_factory).tick()
        assert summary.total == 0

    async def test_stop_during_throttle_ends_tick(self, session_factory, seeded):
        scheduler = None

        def stop_now():
            scheduler.request_stop()

        service = RecordingService(session_factory, on_fetch=stop_now)
        scheduler = make_scheduler(service, session_factory, throttle_ms=10000)

        summary = await asyncio.wait_for(scheduler.tick(), timeout=2)

        assert summary.interrupted
        assert len(service.calls) == 1


class TestLoop:
    """Start/stop of the background loop."""

    async def test_runs_after_initial_delay_and_stops(self, session_factory, seeded):
        service = RecordingService(session_factory)
        scheduler = make_scheduler(service, session_factory, initial_delay_ms=10, interval_ms=50)

        await scheduler.start()
        assert scheduler.is_running
        await asyncio.sleep(0.2)
        await scheduler.stop()

        assert not scheduler.is_running
        assert len(service.calls) >= 2

    async def test_stop_before_initial_delay(self, session_factory, seeded):
        service = RecordingService(session_factory)
        scheduler = make_scheduler(service, session_factory, initial_delay_ms=10000)

        await scheduler.start()
        await scheduler.stop()

        assert service.calls == []

    async def test_start_twice_keeps_one_loop(self, session_factory, seeded):
        service = RecordingService(session_factory)
        scheduler = make_scheduler(service, session_factory, initial_delay_ms=10000)

        await scheduler.start()
        first_task = scheduler._task
        await scheduler.start()

        assert scheduler._task is first_task
        await scheduler.stop()


async def add_groww_source(session_factory, name="Grow API", is_active=True):
    async with session_factory() as db:
        ds = DataSource(
            name=name, provider_type="GROWW", api_endpoint="https://api.groww.in",
            is_active=is_active, priority=5,
        )
        db.add(ds)
        await db.commit()
        return ds.id


def make_groww_scheduler(service, session_factory):
    return GrowwLiveDataScheduler(
        service, session_factory=session_factory, interval_ms=60000, initial_delay_ms=0, fetch_timeout=1
    )


class TestGrowwLiveDataScheduler:
    """Daily polling against the Groww data source, chosen by name."""

    async def test_uses_groww_source_over_higher_priority(self, session_factory, seeded):
        groww_id = await add_groww_source(session_factory, name="groww api")
        service = RecordingService(session_factory)

        summary = await make_groww_scheduler(service, session_factory).tick()

        assert summary.total == 2
        assert summary.succeeded == 2
        assert service.calls == [
            (seeded.reliance_id, groww_id, PriceInterval.ONE_DAY),
            (seeded.tcs_id, groww_id, PriceInterval.ONE_DAY),
        ]

    async def test_grow_api_name_preferred(self, session_factory, seeded):
        await add_groww_source(session_factory, name="Groww API")
        grow_id = await add_groww_source(session_factory, name="GROW API")
        service = RecordingService(session_factory)

        await make_groww_scheduler(service, session_factory).tick()

        assert {c[1] for c in service.calls} == {grow_id}

    async def test_missing_source_is_noop(self, session_factory, seeded):
        service = RecordingService(session_factory)

        summary = await make_groww_scheduler(service, session_factory).tick()

        assert summary.total == 0
        assert service.calls == []

    async def test_inactive_source_is_noop(self, session_factory, seeded):
        await add_groww_source(session_factory, is_active=False)
        service = RecordingService(session_factory)

        summary = await make_groww_scheduler(service, session_factory).tick()

        assert summary.total == 0
        assert service.calls == []

    def test_defaults_from_settings(self, session_factory):
        scheduler = GrowwLiveDataScheduler(RecordingService(session_factory), session_factory=session_factory)

        assert scheduler.interval == 30
        assert scheduler.initial_delay == 5
        assert scheduler.throttle == 0
        assert scheduler.price_interval == PriceInterval.ONE_DAY

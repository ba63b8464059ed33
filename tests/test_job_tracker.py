"""Tests for ingestion job bookkeeping."""

import pytest

from marketdata.db.models import DataIngestionJob
from marketdata.schemas.market import JobStatus, PriceInterval
from marketdata.services.data_ingestion import job_tracker


class TestJobLifecycle:
    """RUNNING -> COMPLETED | FAILED, exactly once."""

    async def test_create_running_job(self, session_factory, seeded):
        async with session_factory() as db:
            job = await job_tracker.create_ohlc_fetch_job(
                db, seeded.data_source_id, seeded.reliance_id, PriceInterval.ONE_DAY
            )
            await db.commit()

        assert job.id is not None
        assert job.status == JobStatus.RUNNING
        assert job.job_type == "FETCH_OHLC"
        assert job.started_at is not None
        assert job.completed_at is None
        assert job.retry_count == 0
        assert job.interval_type == PriceInterval.ONE_DAY

    async def test_complete(self, session_factory, seeded):
        async with session_factory() as db:
            job = await job_tracker.create_ohlc_fetch_job(
                db, seeded.data_source_id, seeded.reliance_id, PriceInterval.ONE_DAY
            )
            job_tracker.complete_job(job, records_fetched=5, records_saved=3)
            await db.commit()

        async with session_factory() as db:
            stored = await db.get(DataIngestionJob, job.id)
            assert stored.status == JobStatus.COMPLETED
            assert stored.records_fetched == 5
            assert stored.records_saved == 3
            assert stored.completed_at >= stored.started_at
            assert stored.error_message is None

    def test_fail_truncates_message(self):
        job = DataIngestionJob(id=1, status=JobStatus.RUNNING)
        job_tracker.fail_job(job, "x" * 5000)
        assert job.status == JobStatus.FAILED
        assert len(job.error_message) == job_tracker.MAX_ERROR_MESSAGE_LENGTH
        assert job.completed_at is not None

    def test_short_message_kept(self):
        assert job_tracker.truncate_error("boom") == "boom"
        assert job_tracker.truncate_error(None) is None

    @pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED])
    def test_terminal_job_cannot_be_closed_again(self, status):
        job = DataIngestionJob(id=1, status=status)
        with pytest.raises(ValueError):
            job_tracker.complete_job(job, 1, 1)
        with pytest.raises(ValueError):
            job_tracker.fail_job(job, "again")

"""
Ingestion Job Tracker

Creates and closes DataIngestionJob audit rows.
A job is created RUNNING and updated exactly once, to COMPLETED or FAILED.
Callers own the session and the commit.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketdata.db.models import DataIngestionJob
from marketdata.schemas.market import JobStatus, PriceInterval

logger = logging.getLogger(__name__)

JOB_TYPE_FETCH_OHLC = "FETCH_OHLC"
MAX_ERROR_MESSAGE_LENGTH = 2000

TERMINAL_STATUSES = {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}


def truncate_error(message: Optional[str]) -> Optional[str]:
    if message is not None and len(message) > MAX_ERROR_MESSAGE_LENGTH:
        return message[:MAX_ERROR_MESSAGE_LENGTH]
    return message


async def create_ohlc_fetch_job(
    session: AsyncSession,
    data_source_id: int,
    stock_id: int,
    interval: PriceInterval,
    date_range_start: Optional[datetime] = None,
    date_range_end: Optional[datetime] = None,
) -> DataIngestionJob:
    """Create a RUNNING job and flush it so it has an id."""
    job = DataIngestionJob(
        data_source_id=data_source_id,
        stock_id=stock_id,
        job_type=JOB_TYPE_FETCH_OHLC,
        status=JobStatus.RUNNING,
        started_at=datetime.utcnow(),
        interval_type=interval,
        retry_count=0,
        date_range_start=date_range_start,
        date_range_end=date_range_end,
    )
    session.add(job)
    await session.flush()
    logger.info(f"Job {job.id} created: {JOB_TYPE_FETCH_OHLC} stock={stock_id} source={data_source_id}")
    return job


def _ensure_open(job: DataIngestionJob) -> None:
    if job.status in TERMINAL_STATUSES:
        raise ValueError(f"Job {job.id} already closed with status {job.status.value}")


def complete_job(
    job: DataIngestionJob,
    records_fetched: int,
    records_saved: int,
    error_message: Optional[str] = None,
) -> DataIngestionJob:
    """Mark a job COMPLETED with its counts."""
    _ensure_open(job)
    job.status = JobStatus.COMPLETED
    job.completed_at = datetime.utcnow()
    job.records_fetched = records_fetched
    job.records_saved = records_saved
    job.error_message = truncate_error(error_message)
    logger.info(f"Job {job.id} completed: fetched={records_fetched} saved={records_saved}")
    return job


def fail_job(job: DataIngestionJob, error_message: Optional[str]) -> DataIngestionJob:
    """Mark a job FAILED with a truncated error message."""
    _ensure_open(job)
    job.status = JobStatus.FAILED
    job.completed_at = datetime.utcnow()
    job.error_message = truncate_error(error_message)
    logger.warning(f"Job {job.id} failed: {job.error_message}")
    return job

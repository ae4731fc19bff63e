"""
Service for batch parsing of Trustpilot pages with job tracking.

This service creates parse jobs, runs them in fixed-size batches, tracks
progress via ParseJobRepository / ParseResultRepository, and isolates
per-URL failures so one bad page never aborts the job.

Architecture:
    BatchParseService -> ParseJobRepository / ParseResultRepository -> DB
    BatchParseService -> Fetcher (ScrapflyClient)  -> rendered HTML
    BatchParseService -> parse_review_page()       -> name, count, email

Job lifecycle:    running -> completed   (a job completes even if every URL fails)
Result lifecycle: pending -> processing -> completed | failed

Items inside a batch run concurrently; batches run one after another with
settings.PARSE_BATCH_DELAY_SECONDS between them to keep the scraping
provider from being hit in bursts.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Iterator, Optional, Sequence

from sqlalchemy.orm import Session

from src.core.config import settings
from src.core.database import SessionLocal
from src.core.review_parser import parse_review_page
from src.core.scrapfly_client import Fetcher, ScrapflyClient
from src.core.url_normalizer import normalize_review_url
from src.entities.parse_job import ParseJob
from src.entities.parse_result import ParseResult
from src.repositories.parse_job_repo import ParseJobRepository
from src.repositories.parse_result_repo import ParseResultRepository

logger = logging.getLogger(__name__)

INTERRUPTED_ERROR = "Processing interrupted"


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchParseService:
    """
    Service for batch parsing with job tracking.

    Handles:
    - Creating jobs and their per-URL result rows
    - Batched processing with bounded concurrency and a delay between batches
    - Graceful error handling (a failed URL never stops the job)
    - Cumulative progress updates after every batch
    """

    def __init__(
        self,
        session: Session,
        fetcher: Optional[Fetcher] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ) -> None:
        self.session = session
        self.job_repo = ParseJobRepository(session)
        self.result_repo = ParseResultRepository(session)
        self.fetcher = fetcher if fetcher is not None else ScrapflyClient()
        self.batch_size = batch_size or settings.PARSE_BATCH_SIZE
        self.batch_delay = (
            batch_delay if batch_delay is not None else settings.PARSE_BATCH_DELAY_SECONDS
        )

    async def create_parse_job(self, urls: list[str]) -> ParseJob:
        """
        Create a parse job with one result row per non-blank URL.

        Args:
            urls: Raw user input, Trustpilot URLs or bare domains

        Returns:
            The created job (status running)

        Raises:
            ValueError: If no usable URL was given or the list is too long
        """
        cleaned = [u.strip() for u in urls if isinstance(u, str) and u.strip()]
        if not cleaned:
            raise ValueError("URL list cannot be empty")
        if len(cleaned) > settings.MAX_URLS_PER_JOB:
            raise ValueError(
                f"Too many URLs: {len(cleaned)} (max {settings.MAX_URLS_PER_JOB})"
            )

        entries = [(url, normalize_review_url(url)) for url in cleaned]
        invalid = sum(1 for _, normalized in entries if normalized is None)

        job = self.job_repo.create_job(total_urls=len(entries))
        self.result_repo.create_results(job.id, entries)
        logger.info(
            "Created parse job %s with %d URLs (%d invalid)", job.id, len(entries), invalid
        )
        return job

    async def execute_parse_job(self, job_id: int) -> dict[str, Any]:
        """
        Execute a parse job: process every pending result, then complete the job.

        Args:
            job_id: ID of the job to execute

        Returns:
            Dict with job results summary

        Raises:
            ValueError: If job not found
        """
        job = self.job_repo.get_by_id(job_id)
        if not job:
            raise ValueError(f"Job {job_id} not found")

        if job.status == "completed":
            logger.info("Parse job %s already completed, skipping", job_id)
            return self._summary(job, batches=0)

        # Rows that were terminal before this run (invalid URLs, or rows from an
        # interrupted run) count too, so the final counters add up to total_urls.
        counts = self.result_repo.count_by_status(job_id)
        completed = counts.get("completed", 0)
        failed = counts.get("failed", 0)

        pending = self.result_repo.list_by_job(job_id, status="pending")
        if not pending:
            logger.info("Parse job %s has no pending URLs", job_id)
            return self._finish(job_id, batches=0)

        batches = list(chunked(pending, self.batch_size))
        logger.info(
            "Starting parse job %s: %d pending URLs in %d batches",
            job_id, len(pending), len(batches),
        )

        for idx, batch in enumerate(batches):
            targets = [(result.id, result.normalized_url) for result in batch]
            outcomes = await asyncio.gather(
                *(self._process_result(result_id, url) for result_id, url in targets)
            )

            succeeded = sum(1 for outcome in outcomes if outcome is True)
            lost = sum(1 for outcome in outcomes if outcome is False)
            completed += succeeded
            failed += lost
            self.job_repo.update_progress(job_id, completed, failed)
            logger.info(
                "Parse job %s batch %d/%d done: %d ok, %d failed",
                job_id, idx + 1, len(batches), succeeded, lost,
            )

            if idx < len(batches) - 1:
                await asyncio.sleep(self.batch_delay)

        return self._finish(job_id, batches=len(batches))

    def _finish(self, job_id: int, batches: int) -> dict[str, Any]:
        """
        Complete the job from the store's per-status counts.

        A job that still has pending or processing rows (claimed by another
        run, or whose failure could not be recorded) stays running; the
        stale-row sweep finalises it later.
        """
        counts = self.result_repo.count_by_status(job_id)
        unfinished = counts.get("pending", 0) + counts.get("processing", 0)
        if unfinished:
            logger.warning(
                "Parse job %s left running with %d unfinished results", job_id, unfinished
            )
            return self._summary(self.job_repo.get_by_id(job_id), batches=batches)

        completed = counts.get("completed", 0)
        failed = counts.get("failed", 0)
        job = self.job_repo.mark_completed(job_id, completed, failed)
        logger.info(
            "Parse job %s completed: %d completed, %d failed", job_id, completed, failed
        )
        return self._summary(job, batches=batches)

    async def _process_result(self, result_id: int, url: str) -> Optional[bool]:
        """
        Fetch, parse and store one result.

        Returns True when this run completed the row, False when it failed it,
        and None when the row was not this run's to finish (already claimed,
        or moved to failed by the stale-row sweep mid-fetch).

        Never raises: any error ends the result as failed.
        """
        try:
            if self.result_repo.mark_processing(result_id) is None:
                logger.info("Result %s is no longer pending, skipping", result_id)
                return None

            fetched = await self.fetcher.fetch(url)
            if not fetched.success:
                logger.warning("Fetch failed for %s: %s", url, fetched.error)
                return self._record_failure(result_id, fetched.error or "Fetch failed")

            parsed = parse_review_page(fetched.html)
            if self.result_repo.mark_completed(result_id, parsed) is None:
                logger.warning("Result %s left processing before %s was parsed", result_id, url)
                return None
            return True

        except Exception as e:
            logger.exception("Unexpected error while parsing %s", url)
            try:
                self.session.rollback()
                return self._record_failure(result_id, str(e) or e.__class__.__name__)
            except Exception:
                logger.exception("Could not record failure of result %s", result_id)
                return None

    def _record_failure(self, result_id: int, error_message: str) -> Optional[bool]:
        if self.result_repo.mark_failed(result_id, error_message) is None:
            return None
        return False

    def _summary(self, job: ParseJob, batches: int) -> dict[str, Any]:
        return {
            "job_id": job.id,
            "status": job.status,
            "total": job.total_urls,
            "completed": job.completed_urls,
            "failed": job.failed_urls,
            "batches": batches,
        }

    def get_job_status(self, job_id: int) -> Optional[tuple[ParseJob, list[ParseResult]]]:
        """
        Get a job and all of its results in creation order.

        Returns:
            ``(job, results)`` or None if the job does not exist
        """
        job = self.job_repo.get_by_id(job_id)
        if not job:
            return None
        return job, self.result_repo.list_by_job(job_id)

    def list_jobs(self, status: Optional[str] = None, limit: int = 100) -> list[ParseJob]:
        return self.job_repo.list_jobs(status=status, limit=limit)

    def recover_stale_results(self, older_than_minutes: Optional[int] = None) -> dict[str, Any]:
        """
        Reclaim jobs whose worker died.

        Results whose processing started more than *older_than_minutes* ago
        are marked failed. Every running job touched by such a result, or with
        no result activity since the cutoff, is then either completed (nothing
        left to process; counters recomputed from the store) or returned in
        ``jobs_resumed`` when it still has pending results. The caller is
        expected to schedule ``run_parse_job`` for each resumed job.
        """
        minutes = older_than_minutes or settings.STALE_PROCESSING_MINUTES
        cutoff = datetime.utcnow() - timedelta(minutes=minutes)

        # Idle jobs are found before the sweep stamps completed_at on stale rows.
        idle_job_ids = self.result_repo.list_idle_running_job_ids(cutoff)
        stale = self.result_repo.list_stale_processing(cutoff)
        stale_ids = [(result.id, result.job_id) for result in stale]
        recovered = 0
        for result_id, _ in stale_ids:
            if self.result_repo.mark_failed(result_id, INTERRUPTED_ERROR) is not None:
                recovered += 1

        jobs_completed = []
        jobs_resumed = []
        for job_id in sorted({job_id for _, job_id in stale_ids} | set(idle_job_ids)):
            job = self.job_repo.get_by_id(job_id)
            if not job or job.status == "completed":
                continue
            counts = self.result_repo.count_by_status(job_id)
            if counts.get("pending", 0):
                jobs_resumed.append(job_id)
            elif not counts.get("processing", 0):
                self.job_repo.mark_completed(
                    job_id, counts.get("completed", 0), counts.get("failed", 0)
                )
                jobs_completed.append(job_id)

        if recovered or jobs_completed or jobs_resumed:
            logger.warning(
                "Recovered %d stale results; completed jobs %s; resuming jobs %s",
                recovered, jobs_completed, jobs_resumed,
            )
        return {
            "recovered": recovered,
            "jobs_completed": jobs_completed,
            "jobs_resumed": jobs_resumed,
        }


async def run_parse_job(job_id: int) -> None:
    """
    Background entry point: run one job with its own session.

    Scheduled right after creation, and again by the recovery endpoint for
    each job the stale-row sweep resumes.
    """
    db = SessionLocal()
    try:
        service = BatchParseService(db)
        await service.execute_parse_job(job_id)
    except Exception:
        logger.exception("Background processing of parse job %s failed", job_id)
    finally:
        db.close()

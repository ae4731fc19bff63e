"""
Repository for parse job operations.

All SQL for the parse_jobs table lives here -- services must call these
methods rather than executing queries directly.

Counter writes are absolute (``update_progress`` sets the values computed by
BatchParseService from its in-memory tallies) rather than remote increments,
so the single writer per job never loses an update.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, List
from sqlalchemy.orm import Session
from sqlalchemy import select, update

from src.entities.parse_job import ParseJob
from src.repositories.base_repo import BaseRepository


class ParseJobRepository(BaseRepository[ParseJob]):
    """
    Repository for parse job operations.

    Extends BaseRepository with progress and lifecycle updates.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=ParseJob)

    def create_job(self, total_urls: int) -> ParseJob:
        """
        Create a new parse job in running status.

        Args:
            total_urls: Number of non-blank URLs submitted; never changes

        Returns:
            Created ParseJob entity
        """
        job = ParseJob(
            status="running",
            total_urls=total_urls,
            completed_urls=0,
            failed_urls=0,
        )
        return self.create(job, commit=True)

    def update_progress(
        self,
        job_id: int,
        completed_urls: int,
        failed_urls: int,
        commit: bool = True
    ) -> Optional[ParseJob]:
        """
        Persist cumulative progress counters for a running job.

        A completed job keeps its final counters; it is returned unchanged.

        Args:
            job_id: ID of the job to update
            completed_urls: Total results completed so far
            failed_urls: Total results failed so far
            commit: Whether to commit the transaction

        Returns:
            The ParseJob entity or None if not found
        """
        stmt = (
            update(ParseJob)
            .where(ParseJob.id == job_id)
            .where(ParseJob.status != "completed")
            .values(completed_urls=completed_urls, failed_urls=failed_urls)
        )
        self.session.execute(stmt)
        if commit:
            self.session.commit()
        return self.get_by_id(job_id)

    def mark_completed(
        self,
        job_id: int,
        completed_urls: int,
        failed_urls: int,
        commit: bool = True
    ) -> Optional[ParseJob]:
        """
        Mark a job as completed with its final counters.

        ``completed_at`` is only set the first time; a completed job is
        returned unchanged.

        Returns:
            The ParseJob entity or None if not found
        """
        stmt = (
            update(ParseJob)
            .where(ParseJob.id == job_id)
            .where(ParseJob.status != "completed")
            .values(
                status="completed",
                completed_urls=completed_urls,
                failed_urls=failed_urls,
                completed_at=datetime.utcnow(),
            )
        )
        self.session.execute(stmt)
        if commit:
            self.session.commit()
        return self.get_by_id(job_id)

    def get_jobs_by_status(
        self,
        status: str,
        limit: int = 100
    ) -> List[ParseJob]:
        """
        Get jobs with a specific status, newest first.
        """
        stmt = (
            select(ParseJob)
            .where(ParseJob.status == status)
            .order_by(ParseJob.created_at.desc(), ParseJob.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_jobs(self, status: Optional[str] = None, limit: int = 100) -> List[ParseJob]:
        """List jobs newest first, optionally filtered by status."""
        if status:
            return self.get_jobs_by_status(status, limit)
        stmt = (
            select(ParseJob)
            .order_by(ParseJob.created_at.desc(), ParseJob.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

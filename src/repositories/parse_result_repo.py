"""
Repository for per-URL parse results.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from src.core.review_parser import ParsedPage
from src.entities.parse_job import ParseJob
from src.entities.parse_result import ParseResult
from src.repositories.base_repo import BaseRepository

INVALID_URL_ERROR = "Invalid URL"


class ParseResultRepository(BaseRepository[ParseResult]):
    """
    Repository for parse result operations.

    Every status change is a single-row update by primary key, conditional on
    the current status, so a terminal row is never rewritten.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=ParseResult)

    def create_results(
        self, job_id: int, entries: Iterable[tuple[str, Optional[str]]]
    ) -> List[ParseResult]:
        """
        Create one result row per ``(url, normalized_url)`` pair.

        Rows without a normalized URL are created already failed and are
        never picked up by the batch processor.
        """
        now = datetime.utcnow()
        rows = []
        for url, normalized_url in entries:
            if normalized_url:
                rows.append(
                    ParseResult(
                        job_id=job_id,
                        url=url,
                        normalized_url=normalized_url,
                        status="pending",
                        created_at=now,
                    )
                )
            else:
                rows.append(
                    ParseResult(
                        job_id=job_id,
                        url=url,
                        normalized_url=None,
                        status="failed",
                        error_message=INVALID_URL_ERROR,
                        created_at=now,
                        completed_at=now,
                    )
                )
        return self.create_many(rows, commit=True)

    def list_by_job(self, job_id: int, status: Optional[str] = None) -> List[ParseResult]:
        """Results for a job in creation order, optionally filtered by status."""
        stmt = select(ParseResult).where(ParseResult.job_id == job_id)
        if status:
            stmt = stmt.where(ParseResult.status == status)
        stmt = stmt.order_by(ParseResult.created_at, ParseResult.id)
        return list(self.session.execute(stmt).scalars().all())

    def count_by_status(self, job_id: int) -> dict[str, int]:
        stmt = (
            select(ParseResult.status, func.count(ParseResult.id))
            .where(ParseResult.job_id == job_id)
            .group_by(ParseResult.status)
        )
        return {status: count for status, count in self.session.execute(stmt).all()}

    def _transition(
        self, result_id: int, from_statuses: tuple[str, ...], **values
    ) -> Optional[ParseResult]:
        """
        Move a result out of one of *from_statuses* in a single conditional UPDATE.

        Returns the updated row, or None when the row does not exist or has
        already left those statuses (e.g. failed by the stale-row sweep while
        its fetch was still in flight).
        """
        stmt = (
            update(ParseResult)
            .where(ParseResult.id == result_id)
            .where(ParseResult.status.in_(from_statuses))
            .values(**values)
        )
        changed = self.session.execute(stmt).rowcount
        self.session.commit()
        if not changed:
            return None
        return self.get_by_id(result_id)

    def mark_processing(self, result_id: int) -> Optional[ParseResult]:
        return self._transition(
            result_id, ("pending",), status="processing", started_at=datetime.utcnow()
        )

    def mark_completed(self, result_id: int, parsed: ParsedPage) -> Optional[ParseResult]:
        return self._transition(
            result_id,
            ("processing",),
            status="completed",
            service_name=parsed.service_name,
            review_count=parsed.review_count,
            email=parsed.email,
            completed_at=datetime.utcnow(),
        )

    def mark_failed(self, result_id: int, error_message: str) -> Optional[ParseResult]:
        # pending is allowed so an item that broke before it was claimed still terminates
        return self._transition(
            result_id,
            ("pending", "processing"),
            status="failed",
            error_message=error_message,
            completed_at=datetime.utcnow(),
        )

    def list_stale_processing(self, cutoff: datetime) -> List[ParseResult]:
        """Results stuck in processing since before *cutoff*."""
        stmt = (
            select(ParseResult)
            .where(ParseResult.status == "processing")
            .where(ParseResult.started_at < cutoff)
            .order_by(ParseResult.id)
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_idle_running_job_ids(self, cutoff: datetime) -> List[int]:
        """
        Running jobs none of whose results changed since *cutoff*.

        A row's latest activity is its completed_at, else started_at, else
        created_at.
        """
        last_activity = func.max(
            func.coalesce(
                ParseResult.completed_at, ParseResult.started_at, ParseResult.created_at
            )
        )
        stmt = (
            select(ParseResult.job_id)
            .join(ParseJob, ParseJob.id == ParseResult.job_id)
            .where(ParseJob.status == "running")
            .group_by(ParseResult.job_id)
            .having(last_activity < cutoff)
            .order_by(ParseResult.job_id)
        )
        return list(self.session.execute(stmt).scalars().all())

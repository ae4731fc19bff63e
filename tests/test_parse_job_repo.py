"""
Unit tests for the parse job and parse result repositories.
"""

import pytest
from datetime import datetime, timedelta

from src.core.review_parser import ParsedPage
from src.repositories.parse_job_repo import ParseJobRepository
from src.repositories.parse_result_repo import INVALID_URL_ERROR, ParseResultRepository


@pytest.fixture
def job_repo(db_session):
    return ParseJobRepository(db_session)


@pytest.fixture
def result_repo(db_session):
    return ParseResultRepository(db_session)


class TestParseJobRepository:
    """Test parse job repository functionality."""

    def test_create_job(self, job_repo):
        job = job_repo.create_job(total_urls=10)

        assert job.id is not None
        assert job.status == "running"
        assert job.total_urls == 10
        assert job.completed_urls == 0
        assert job.failed_urls == 0
        assert job.created_at is not None
        assert job.completed_at is None

    def test_update_progress(self, job_repo):
        job = job_repo.create_job(total_urls=10)

        updated = job_repo.update_progress(job.id, 4, 1)

        assert updated.completed_urls == 4
        assert updated.failed_urls == 1
        assert updated.status == "running"

    def test_update_progress_not_found(self, job_repo):
        assert job_repo.update_progress(999, 1, 1) is None

    def test_mark_completed(self, job_repo):
        job = job_repo.create_job(total_urls=3)

        updated = job_repo.mark_completed(job.id, 2, 1)

        assert updated.status == "completed"
        assert updated.completed_urls == 2
        assert updated.failed_urls == 1
        assert updated.completed_at is not None

    def test_mark_completed_only_once(self, job_repo):
        job = job_repo.create_job(total_urls=3)
        first = job_repo.mark_completed(job.id, 3, 0)
        completed_at = first.completed_at

        second = job_repo.mark_completed(job.id, 0, 3)

        assert second.completed_at == completed_at
        assert second.completed_urls == 3
        assert second.failed_urls == 0

    def test_list_jobs_by_status(self, job_repo):
        job1 = job_repo.create_job(total_urls=1)
        job_repo.create_job(total_urls=2)
        job_repo.mark_completed(job1.id, 1, 0)

        running = job_repo.list_jobs(status="running")
        completed = job_repo.list_jobs(status="completed")

        assert [j.total_urls for j in running] == [2]
        assert [j.id for j in completed] == [job1.id]

    def test_list_jobs_newest_first(self, job_repo):
        first = job_repo.create_job(total_urls=1)
        second = job_repo.create_job(total_urls=1)

        jobs = job_repo.list_jobs()

        assert [j.id for j in jobs][:2] == [second.id, first.id]


class TestParseResultRepository:
    """Test parse result repository functionality."""

    def test_create_results_invalid_url_is_failed(self, job_repo, result_repo):
        job = job_repo.create_job(total_urls=2)

        rows = result_repo.create_results(
            job.id,
            [("acme.com", "https://www.trustpilot.com/review/acme.com?languages=all"), ("???", None)],
        )

        assert [r.status for r in rows] == ["pending", "failed"]
        assert rows[1].error_message == INVALID_URL_ERROR
        assert rows[1].completed_at is not None
        assert rows[0].error_message is None

    def test_list_by_job_in_creation_order(self, job_repo, result_repo):
        job = job_repo.create_job(total_urls=3)
        result_repo.create_results(job.id, [("a", "https://a"), ("b", None), ("c", "https://c")])

        all_rows = result_repo.list_by_job(job.id)
        pending = result_repo.list_by_job(job.id, status="pending")

        assert [r.url for r in all_rows] == ["a", "b", "c"]
        assert [r.url for r in pending] == ["a", "c"]

    def test_list_by_job_scoped_to_job(self, job_repo, result_repo):
        job1 = job_repo.create_job(total_urls=1)
        job2 = job_repo.create_job(total_urls=1)
        result_repo.create_results(job1.id, [("a", "https://a")])
        result_repo.create_results(job2.id, [("b", "https://b")])

        assert [r.url for r in result_repo.list_by_job(job2.id)] == ["b"]

    def test_status_transitions(self, job_repo, result_repo):
        job = job_repo.create_job(total_urls=2)
        ok, bad = result_repo.create_results(job.id, [("a", "https://a"), ("b", "https://b")])

        processing = result_repo.mark_processing(ok.id)
        assert processing.status == "processing"
        assert processing.started_at is not None

        done = result_repo.mark_completed(
            ok.id, ParsedPage(service_name="Acme", review_count=0, email=None)
        )
        assert done.status == "completed"
        assert done.service_name == "Acme"
        assert done.review_count == 0
        assert done.email is None
        assert done.completed_at is not None

        failed = result_repo.mark_failed(bad.id, "HTTP 403")
        assert failed.status == "failed"
        assert failed.error_message == "HTTP 403"
        assert failed.completed_at is not None

    def test_count_by_status(self, job_repo, result_repo):
        job = job_repo.create_job(total_urls=3)
        result_repo.create_results(job.id, [("a", "https://a"), ("b", None), ("c", None)])

        assert result_repo.count_by_status(job.id) == {"pending": 1, "failed": 2}

    def test_list_stale_processing(self, db_session, job_repo, result_repo):
        job = job_repo.create_job(total_urls=2)
        old, fresh = result_repo.create_results(job.id, [("a", "https://a"), ("b", "https://b")])
        result_repo.mark_processing(old.id)
        result_repo.mark_processing(fresh.id)

        old.started_at = datetime.utcnow() - timedelta(hours=1)
        db_session.commit()

        stale = result_repo.list_stale_processing(datetime.utcnow() - timedelta(minutes=15))

        assert [r.id for r in stale] == [old.id]

    def test_list_idle_running_job_ids(self, db_session, job_repo, result_repo):
        idle = job_repo.create_job(total_urls=1)
        busy = job_repo.create_job(total_urls=1)
        done = job_repo.create_job(total_urls=1)
        [idle_row] = result_repo.create_results(idle.id, [("a", "https://a")])
        result_repo.create_results(busy.id, [("b", "https://b")])
        [done_row] = result_repo.create_results(done.id, [("c", "https://c")])
        job_repo.mark_completed(done.id, 0, 0)

        idle_row.created_at = datetime.utcnow() - timedelta(hours=1)
        done_row.created_at = datetime.utcnow() - timedelta(hours=1)
        db_session.commit()

        cutoff = datetime.utcnow() - timedelta(minutes=15)
        assert result_repo.list_idle_running_job_ids(cutoff) == [idle.id]


class TestStatusGuards:
    """Terminal states are never left, and jobs are frozen once completed."""

    @pytest.fixture
    def row(self, job_repo, result_repo):
        job = job_repo.create_job(total_urls=1)
        [row] = result_repo.create_results(job.id, [("a", "https://a")])
        return row

    def test_complete_requires_processing(self, result_repo, row):
        parsed = ParsedPage(service_name="Acme", review_count=1, email=None)

        assert result_repo.mark_completed(row.id, parsed) is None
        assert result_repo.get_by_id(row.id).status == "pending"

    def test_failed_row_is_not_completed(self, result_repo, row):
        result_repo.mark_processing(row.id)
        result_repo.mark_failed(row.id, "Processing interrupted")

        outcome = result_repo.mark_completed(
            row.id, ParsedPage(service_name="Acme", review_count=1, email=None)
        )

        assert outcome is None
        row = result_repo.get_by_id(row.id)
        assert row.status == "failed"
        assert row.error_message == "Processing interrupted"
        assert row.service_name is None

    def test_completed_row_is_not_failed_or_reclaimed(self, result_repo, row):
        result_repo.mark_processing(row.id)
        result_repo.mark_completed(row.id, ParsedPage(service_name="Acme", review_count=1, email=None))

        assert result_repo.mark_failed(row.id, "late error") is None
        assert result_repo.mark_processing(row.id) is None
        row = result_repo.get_by_id(row.id)
        assert row.status == "completed"
        assert row.error_message is None

    def test_processing_claimed_once(self, result_repo, row):
        assert result_repo.mark_processing(row.id) is not None
        assert result_repo.mark_processing(row.id) is None

    def test_pending_row_can_fail(self, result_repo, row):
        failed = result_repo.mark_failed(row.id, "boom")
        assert failed.status == "failed"

    def test_missing_row(self, result_repo):
        assert result_repo.mark_processing(999) is None
        assert result_repo.mark_failed(999, "x") is None

    def test_progress_ignored_after_completion(self, job_repo):
        job = job_repo.create_job(total_urls=2)
        job_repo.mark_completed(job.id, 0, 2)

        updated = job_repo.update_progress(job.id, 2, 0)

        assert (updated.completed_urls, updated.failed_urls) == (0, 2)

"""
Entity for tracking Trustpilot parse jobs.
A parse job is one user-submitted list of URLs with aggregate progress.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.entities.base import Base


class ParseJob(Base):
    """
    Tracks parse job metadata and progress.

    ``total_urls`` is fixed at creation; ``completed_urls`` and ``failed_urls``
    only grow and sum to ``total_urls`` once the job is completed.
    """

    __tablename__ = "parse_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="running", index=True
    )  # pending, running, completed

    total_urls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_urls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_urls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

"""
DTOs for parse job operations.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ParseJobCreate(BaseModel):
    """Request body for starting a parse job."""

    urls: list[str] = Field(
        ..., min_length=1, description="Trustpilot review URLs or bare company domains"
    )


class ParseJobAccepted(BaseModel):
    job_id: int


class ParseJobRead(BaseModel):
    """DTO for reading parse job progress."""

    id: int
    status: str
    total_urls: int
    completed_urls: int
    failed_urls: int
    created_at: datetime
    completed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ParseResultRead(BaseModel):
    """DTO for reading a per-URL parse result."""

    id: int
    job_id: int
    url: str
    normalized_url: str | None
    status: str
    service_name: str | None
    review_count: int | None
    email: str | None
    error_message: str | None
    created_at: datetime
    completed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ParseJobStatus(BaseModel):
    job: ParseJobRead
    results: list[ParseResultRead]


class StaleRecoveryResult(BaseModel):
    recovered: int = Field(..., ge=0, description="Results moved from processing to failed")
    jobs_completed: list[int] = Field(default_factory=list)
    jobs_resumed: list[int] = Field(
        default_factory=list, description="Running jobs with pending results, scheduled again"
    )


class ScrapflyBalance(BaseModel):
    balance: int | None

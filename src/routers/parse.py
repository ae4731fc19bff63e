from datetime import date
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from src.core.database import get_db
from src.core.scrapfly_client import ScrapflyClient
from src.dtos.parse_job_dto import (
    ParseJobAccepted,
    ParseJobCreate,
    ParseJobRead,
    ParseJobStatus,
    ParseResultRead,
    ScrapflyBalance,
    StaleRecoveryResult,
)
from src.services.batch_parse_service import BatchParseService, run_parse_job
from src.services.export_service import build_export_rows, generate_csv, generate_xlsx

router = APIRouter(prefix="/api/v1", tags=["parse"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post("/parse", status_code=status.HTTP_202_ACCEPTED, response_model=ParseJobAccepted)
async def start_parse_job(
    body: ParseJobCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    svc = BatchParseService(db)
    try:
        job = await svc.create_parse_job(body.urls)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(run_parse_job, job.id)
    return ParseJobAccepted(job_id=job.id)


@router.get("/parse", response_model=list[ParseJobRead])
async def list_parse_jobs(
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    jobs = BatchParseService(db).list_jobs(status=status_filter, limit=limit)
    return [ParseJobRead.model_validate(job) for job in jobs]


@router.post("/parse/recover", response_model=StaleRecoveryResult)
async def recover_stale_results(
    background_tasks: BackgroundTasks,
    older_than_minutes: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    outcome = BatchParseService(db).recover_stale_results(older_than_minutes)
    for job_id in outcome["jobs_resumed"]:
        background_tasks.add_task(run_parse_job, job_id)
    return outcome


@router.get("/parse/{job_id}", response_model=ParseJobStatus)
async def get_parse_job(job_id: int, db: Session = Depends(get_db)):
    found = BatchParseService(db).get_job_status(job_id)
    if found is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    job, results = found
    return ParseJobStatus(
        job=ParseJobRead.model_validate(job),
        results=[ParseResultRead.model_validate(r) for r in results],
    )


@router.get("/parse/{job_id}/export")
async def export_parse_job(
    job_id: int,
    fmt: Literal["xlsx", "csv"] = Query(default="xlsx", alias="format"),
    db: Session = Depends(get_db),
):
    found = BatchParseService(db).get_job_status(job_id)
    if found is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    _, results = found

    rows = build_export_rows(results)
    filename = f"trustpilot_{date.today().isoformat()}.{fmt}"
    if fmt == "csv":
        content, media_type = generate_csv(rows), "text/csv; charset=utf-8"
    else:
        content, media_type = generate_xlsx(rows), XLSX_MEDIA_TYPE
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/scrapfly/balance", response_model=ScrapflyBalance)
async def scrapfly_balance():
    result = ScrapflyClient().check_balance()
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)
    return ScrapflyBalance(balance=result.balance)

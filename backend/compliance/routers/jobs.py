from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from compliance.database import get_db
from compliance.dependencies import get_client_info, get_current_principal
from compliance.models.job import Job, Quote
from compliance.routers.files import file_to_response
from compliance.schemas.job import (
    AcceptQuoteRequest,
    JobCreate,
    JobDetailResponse,
    JobResponse,
    QuoteCreate,
    QuoteResponse,
)
from compliance.services import job_service
from compliance.services.audit_service import ClientInfo
from compliance.services.identity_service import Principal

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _job_to_response(job: Job) -> JobResponse:
    return JobResponse(
        id=job.id,
        user_id=job.user_id,
        title=job.title,
        description=job.description,
        status=job.status,
        professional_id=job.professional_id,
        quote_amount=job.quote_amount,
        quote_currency=job.quote_currency,
        accepted_at=job.accepted_at,
        finished_at=job.finished_at,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def _quote_to_response(quote: Quote) -> QuoteResponse:
    return QuoteResponse(
        id=quote.id,
        job_id=quote.job_id,
        professional_id=quote.professional_id,
        amount=quote.amount,
        currency=quote.currency,
        message=quote.message,
        status=quote.status,
        created_at=quote.created_at,
    )


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(
    req: JobCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    job = job_service.create_job(
        db, principal, req.title, req.description, file_ids=req.file_ids, client=client,
    )
    return _job_to_response(job)


@router.get("", response_model=list[JobResponse])
async def list_jobs(
    status: str | None = None,
    limit: int | None = Query(None, ge=1, le=500),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return [_job_to_response(j) for j in job_service.list_jobs(db, principal, status, limit)]


@router.get("/{job_id}", response_model=JobDetailResponse)
async def get_job(
    job_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    detail = job_service.get_job(db, principal, job_id)
    return JobDetailResponse(
        job=_job_to_response(detail["job"]),
        files=[file_to_response(f) for f in detail["files"]],
        quotes=[_quote_to_response(q) for q in detail["quotes"]],
    )


@router.post("/{job_id}/start-review", response_model=JobResponse)
async def start_review(
    job_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    return _job_to_response(job_service.start_review(db, principal, job_id, client=client))


@router.post("/{job_id}/quotes", response_model=QuoteResponse, status_code=201)
async def create_quote(
    job_id: str,
    req: QuoteCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    quote = job_service.create_quote(
        db, principal, job_id, req.amount, currency=req.currency, message=req.message,
        client=client,
    )
    return _quote_to_response(quote)


@router.post("/{job_id}/accept-quote", response_model=JobResponse)
async def accept_quote(
    job_id: str,
    req: AcceptQuoteRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    job = job_service.accept_quote(db, principal, job_id, req.quote_id, client=client)
    return _job_to_response(job)


@router.post("/{job_id}/finish", response_model=JobResponse)
async def finish_job(
    job_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    return _job_to_response(job_service.finish_job(db, principal, job_id, client=client))

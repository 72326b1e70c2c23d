"""Job and quote negotiation.

Jobs only move forward::

    POR_REVISAR -> REVISION_EN_PROGRESO -> COTIZACION -> TRABAJO_EN_PROGRESO -> FINALIZADO

Quotes may arrive while the job is still in one of the first two states.
Every transition is a conditional UPDATE guarded on the statuses the caller
read; when another request got there first no row matches and
``ConflictingTransition`` is raised instead of silently overwriting.
"""

import logging
import math
import uuid

from sqlalchemy import update
from sqlalchemy.orm import Session

from compliance.errors import ConflictingTransition, Forbidden, NotFound, ValidationError
from compliance.models.file import File
from compliance.models.job import Job, Quote
from compliance.services.audit_service import ClientInfo, record_audit
from compliance.services.identity_service import Principal, Role, authorize
from compliance.utils.clock import utc_now

logger = logging.getLogger("compliance.jobs")

POR_REVISAR = "POR_REVISAR"
REVISION_EN_PROGRESO = "REVISION_EN_PROGRESO"
COTIZACION = "COTIZACION"
TRABAJO_EN_PROGRESO = "TRABAJO_EN_PROGRESO"
FINALIZADO = "FINALIZADO"

JOB_STATUSES = [POR_REVISAR, REVISION_EN_PROGRESO, COTIZACION, TRABAJO_EN_PROGRESO, FINALIZADO]
QUOTABLE_STATUSES = (POR_REVISAR, REVISION_EN_PROGRESO)

QUOTE_PENDING = "PENDING"
QUOTE_ACCEPTED = "ACCEPTED"
QUOTE_REJECTED = "REJECTED"

REVIEWER_ROLES = (Role.PROFESSIONAL, Role.ADMIN)


def can_view_job(principal: Principal, job: Job) -> bool:
    if principal.role == Role.USER.value:
        return job.user_id == principal.user_id
    return True


def _load_job(db: Session, principal: Principal, job_id: str) -> Job:
    job = db.get(Job, job_id)
    if not job or not can_view_job(principal, job):
        raise NotFound("Job not found")
    return job


def _transition(db: Session, job_id: str, expected: tuple[str, ...], **values) -> None:
    result = db.execute(
        update(Job)
        .where(Job.id == job_id, Job.status.in_(expected))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise ConflictingTransition(
            "Job is no longer in state " + " or ".join(expected),
            details={"expected": list(expected)},
        )


def create_job(
    db: Session,
    principal: Principal,
    title: str,
    description: str | None = None,
    file_ids: list[str] | None = None,
    client: ClientInfo | None = None,
) -> Job:
    authorize(principal, [Role.USER])
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required", code="MissingFields",
                              details={"title": "This field is required"})

    now = utc_now()
    job = Job(
        id=str(uuid.uuid4()),
        user_id=principal.user_id,
        title=title,
        description=(description or "").strip() or None,
        status=POR_REVISAR,
        quote_currency="CLP",
        created_at=now,
        updated_at=now,
    )
    db.add(job)
    db.flush()

    adopted = 0
    if file_ids:
        # Only the caller's own loose uploads are attached; anything else is skipped.
        adopted = (
            db.query(File)
            .filter(
                File.id.in_(file_ids),
                File.uploaded_by == principal.user_id,
                File.job_id.is_(None),
            )
            .update({File.job_id: job.id}, synchronize_session=False)
        )
    db.commit()
    db.refresh(job)

    record_audit(db, "JOB_CREATED", "job", job.id, actor_id=principal.user_id,
                 details={"title": title, "file_count": adopted}, client=client)
    return job


def list_jobs(db: Session, principal: Principal, status: str | None = None,
              limit: int | None = None) -> list[Job]:
    if status and status not in JOB_STATUSES:
        raise ValidationError(f"Unknown job status: {status}", details={"status": status})
    q = db.query(Job)
    if principal.role == Role.USER.value:
        q = q.filter(Job.user_id == principal.user_id)
    if status:
        q = q.filter(Job.status == status)
    q = q.order_by(Job.created_at.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def get_job(db: Session, principal: Principal, job_id: str) -> dict:
    job = _load_job(db, principal, job_id)
    files = db.query(File).filter(File.job_id == job.id).order_by(File.created_at).all()
    quotes = db.query(Quote).filter(Quote.job_id == job.id).order_by(Quote.created_at).all()
    return {"job": job, "files": files, "quotes": quotes}


def start_review(db: Session, principal: Principal, job_id: str,
                 client: ClientInfo | None = None) -> Job:
    authorize(principal, REVIEWER_ROLES)
    job = _load_job(db, principal, job_id)
    if job.status == REVISION_EN_PROGRESO:
        return job

    _transition(db, job.id, (POR_REVISAR,), status=REVISION_EN_PROGRESO, updated_at=utc_now())
    db.commit()
    db.refresh(job)
    record_audit(db, "JOB_REVIEW_STARTED", "job", job.id, actor_id=principal.user_id, client=client)
    return job


def create_quote(
    db: Session,
    principal: Principal,
    job_id: str,
    amount: float | None,
    currency: str | None = None,
    message: str | None = None,
    client: ClientInfo | None = None,
) -> Quote:
    authorize(principal, REVIEWER_ROLES)
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise ValidationError("Quote amount must be a finite number greater than zero",
                              details={"amount": "Must be greater than zero"})
    job = _load_job(db, principal, job_id)

    now = utc_now()
    if job.status in QUOTABLE_STATUSES:
        _transition(db, job.id, QUOTABLE_STATUSES, status=COTIZACION, updated_at=now)
    else:
        # Already quoting is fine; anything later means a quote was accepted.
        _transition(db, job.id, (COTIZACION,), updated_at=now)

    quote = Quote(
        id=str(uuid.uuid4()),
        job_id=job.id,
        professional_id=principal.user_id,
        amount=amount,
        currency=(currency or "CLP").strip().upper() or "CLP",
        message=message,
        status=QUOTE_PENDING,
        created_at=now,
    )
    db.add(quote)
    db.commit()
    db.refresh(quote)

    record_audit(db, "QUOTE_CREATED", "quote", quote.id, actor_id=principal.user_id,
                 details={"job_id": job.id, "amount": amount, "currency": quote.currency},
                 client=client)
    return quote


def accept_quote(db: Session, principal: Principal, job_id: str, quote_id: str,
                 client: ClientInfo | None = None) -> Job:
    authorize(principal, [Role.USER])
    job = _load_job(db, principal, job_id)

    quote = db.query(Quote).filter(Quote.id == quote_id, Quote.job_id == job.id).first()
    if not quote:
        raise NotFound("Quote not found")

    now = utc_now()
    claimed = db.execute(
        update(Quote)
        .where(Quote.id == quote.id, Quote.status == QUOTE_PENDING)
        .values(status=QUOTE_ACCEPTED)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        db.rollback()
        raise ConflictingTransition("Quote is no longer pending")

    _transition(
        db, job.id, (COTIZACION,),
        status=TRABAJO_EN_PROGRESO,
        professional_id=quote.professional_id,
        quote_amount=quote.amount,
        quote_currency=quote.currency,
        accepted_at=now,
        updated_at=now,
    )

    siblings = [
        row.id for row in db.query(Quote.id).filter(
            Quote.job_id == job.id,
            Quote.id != quote.id,
            Quote.status == QUOTE_PENDING,
        )
    ]
    if siblings:
        db.execute(
            update(Quote)
            .where(Quote.id.in_(siblings), Quote.status == QUOTE_PENDING)
            .values(status=QUOTE_REJECTED)
            .execution_options(synchronize_session=False)
        )
    db.commit()
    db.refresh(job)

    logger.info("Job %s accepted quote %s (%d siblings rejected)", job.id, quote.id, len(siblings))
    record_audit(db, "QUOTE_ACCEPTED", "job", job.id, actor_id=principal.user_id,
                 details={"quote_id": quote.id, "amount": quote.amount,
                          "rejected_quote_ids": siblings},
                 client=client)
    return job


def finish_job(db: Session, principal: Principal, job_id: str,
               client: ClientInfo | None = None) -> Job:
    authorize(principal, REVIEWER_ROLES)
    job = _load_job(db, principal, job_id)
    if job.professional_id and not principal.is_admin and job.professional_id != principal.user_id:
        raise Forbidden("Only the assigned professional can finish this job")
    if job.status == FINALIZADO:
        return job

    now = utc_now()
    _transition(db, job.id, (TRABAJO_EN_PROGRESO,), status=FINALIZADO,
                finished_at=now, updated_at=now)
    db.commit()
    db.refresh(job)
    record_audit(db, "JOB_FINISHED", "job", job.id, actor_id=principal.user_id, client=client)
    return job

"""Companies and their workers.

A company and everything below it belongs to the user who registered it.
Other users get the same ``NotFound`` a missing id would produce; admins see
every tenant.
"""

import logging
import mimetypes
import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from compliance.config import settings
from compliance.errors import Conflict, NotFound, ValidationError
from compliance.models.company import Company
from compliance.models.worker import Worker
from compliance.services import file_service
from compliance.services.audit_service import ClientInfo, record_audit
from compliance.services.identity_service import Principal, Role, authorize
from compliance.services.storage_service import object_store
from compliance.utils.clock import utc_now
from compliance.utils.rut import format_rut, is_valid_rut, is_well_formed

logger = logging.getLogger("compliance.registry")

REGISTRY_ROLES = (Role.USER, Role.ADMIN)

COMPANY_STATUSES = {"ACTIVE", "INACTIVE", "SUSPENDED"}
WORKER_STATUSES = {"ACTIVE", "INACTIVE"}

COMPANY_REQUIRED = ("name", "rut", "city", "region")
COMPANY_OPTIONAL = ("industry", "address", "phone", "email", "website", "description")
WORKER_REQUIRED = ("first_name", "last_name", "rut")
WORKER_OPTIONAL = ("email", "phone", "job_title", "department", "additional_comments")


def normalize_rut(value: str | None, field: str = "rut") -> str:
    if not value or not is_well_formed(value):
        raise ValidationError("Invalid RUT", code="InvalidRut",
                              details={field: "Expected a RUT like 12.345.678-5"})
    if settings.verify_rut_check_digit and not is_valid_rut(value):
        raise ValidationError("Invalid RUT check digit", code="InvalidRut",
                              details={field: "Check digit does not match"})
    return format_rut(value)


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _require(data: dict, fields: tuple[str, ...]) -> None:
    missing = {f: "This field is required" for f in fields if not _clean(data.get(f))}
    if missing:
        raise ValidationError("Missing required fields", code="MissingFields", details=missing)


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------

def resolve_company(db: Session, principal: Principal, company_id: str) -> Company:
    company = db.get(Company, company_id)
    if not company or (not principal.is_admin and company.user_id != principal.user_id):
        raise NotFound("Company not found")
    return company


def resolve_worker(db: Session, principal: Principal, worker_id: str) -> Worker:
    worker = db.get(Worker, worker_id)
    if not worker or (not principal.is_admin and worker.company.user_id != principal.user_id):
        raise NotFound("Worker not found")
    return worker


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------

def _company_rut_taken(db: Session, owner_id: str, rut: str, exclude_id: str | None = None) -> bool:
    q = db.query(Company.id).filter(Company.user_id == owner_id, Company.rut == rut)
    if exclude_id:
        q = q.filter(Company.id != exclude_id)
    return q.first() is not None


def _validate_employees(value: Any) -> None:
    if value is not None and value < 0:
        raise ValidationError("employees_count cannot be negative",
                              details={"employees_count": "Must be zero or more"})


def create_company(db: Session, principal: Principal, data: dict,
                   client: ClientInfo | None = None) -> Company:
    authorize(principal, REGISTRY_ROLES)
    _require(data, COMPANY_REQUIRED)
    rut = normalize_rut(data["rut"])
    _validate_employees(data.get("employees_count"))

    if _company_rut_taken(db, principal.user_id, rut):
        raise Conflict("A company with this RUT already exists", code="DuplicateTaxId")

    now = utc_now()
    company = Company(
        id=str(uuid.uuid4()),
        user_id=principal.user_id,
        name=_clean(data["name"]),
        rut=rut,
        city=_clean(data["city"]),
        region=_clean(data["region"]),
        employees_count=data.get("employees_count"),
        status="ACTIVE",
        created_at=now,
        updated_at=now,
    )
    for field in COMPANY_OPTIONAL:
        setattr(company, field, _clean(data.get(field)))

    db.add(company)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A company with this RUT already exists", code="DuplicateTaxId")
    db.refresh(company)

    record_audit(db, "COMPANY_CREATED", "company", company.id, actor_id=principal.user_id,
                 details={"rut": rut}, client=client)
    return company


def list_companies(db: Session, principal: Principal) -> list[Company]:
    authorize(principal, REGISTRY_ROLES)
    return (
        db.query(Company)
        .filter(Company.user_id == principal.user_id)
        .order_by(Company.created_at.desc())
        .all()
    )


def get_company(db: Session, principal: Principal, company_id: str) -> Company:
    authorize(principal, REGISTRY_ROLES)
    return resolve_company(db, principal, company_id)


def update_company(db: Session, principal: Principal, company_id: str, changes: dict,
                   client: ClientInfo | None = None) -> Company:
    authorize(principal, REGISTRY_ROLES)
    company = resolve_company(db, principal, company_id)

    missing = {f: "This field cannot be empty" for f in COMPANY_REQUIRED
               if f in changes and not _clean(changes[f])}
    if missing:
        raise ValidationError("Missing required fields", code="MissingFields", details=missing)

    if "rut" in changes:
        changes["rut"] = normalize_rut(changes["rut"])
        if _company_rut_taken(db, company.user_id, changes["rut"], exclude_id=company.id):
            raise Conflict("A company with this RUT already exists", code="DuplicateTaxId")
    if "status" in changes and changes["status"] not in COMPANY_STATUSES:
        raise ValidationError("Invalid company status",
                              details={"status": f"Must be one of {sorted(COMPANY_STATUSES)}"})
    if "employees_count" in changes:
        _validate_employees(changes["employees_count"])

    for field, value in changes.items():
        setattr(company, field, _clean(value))
    company.updated_at = utc_now()
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A company with this RUT already exists", code="DuplicateTaxId")
    db.refresh(company)

    record_audit(db, "COMPANY_UPDATED", "company", company.id, actor_id=principal.user_id,
                 details={"fields": sorted(changes)}, client=client)
    return company


def soft_delete_company(db: Session, principal: Principal, company_id: str,
                        client: ClientInfo | None = None) -> Company:
    """Deactivate a company. Workers and stored files are left untouched."""
    authorize(principal, REGISTRY_ROLES)
    company = resolve_company(db, principal, company_id)
    company.status = "INACTIVE"
    company.updated_at = utc_now()
    db.commit()
    db.refresh(company)

    record_audit(db, "COMPANY_DEACTIVATED", "company", company.id,
                 actor_id=principal.user_id, client=client)
    return company


# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------

def _worker_rut_taken(db: Session, company_id: str, rut: str, exclude_id: str | None = None) -> bool:
    q = db.query(Worker.id).filter(Worker.company_id == company_id, Worker.rut == rut)
    if exclude_id:
        q = q.filter(Worker.id != exclude_id)
    return q.first() is not None


def list_workers(db: Session, principal: Principal, company_id: str) -> list[Worker]:
    authorize(principal, REGISTRY_ROLES)
    company = resolve_company(db, principal, company_id)
    return (
        db.query(Worker)
        .filter(Worker.company_id == company.id)
        .order_by(Worker.created_at.desc())
        .all()
    )


def get_worker(db: Session, principal: Principal, worker_id: str) -> Worker:
    authorize(principal, REGISTRY_ROLES)
    return resolve_worker(db, principal, worker_id)


def create_worker(db: Session, principal: Principal, data: dict,
                  client: ClientInfo | None = None) -> Worker:
    authorize(principal, REGISTRY_ROLES)
    if not data.get("company_id"):
        raise ValidationError("Missing required fields", code="MissingFields",
                              details={"company_id": "This field is required"})
    company = resolve_company(db, principal, data["company_id"])
    _require(data, WORKER_REQUIRED)
    rut = normalize_rut(data["rut"])

    if _worker_rut_taken(db, company.id, rut):
        raise Conflict("A worker with this RUT already exists in the company",
                       code="DuplicateWorkerRut")

    now = utc_now()
    worker = Worker(
        id=str(uuid.uuid4()),
        company_id=company.id,
        first_name=_clean(data["first_name"]),
        last_name=_clean(data["last_name"]),
        rut=rut,
        status="ACTIVE",
        created_at=now,
        updated_at=now,
    )
    for field in WORKER_OPTIONAL:
        setattr(worker, field, _clean(data.get(field)))

    db.add(worker)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A worker with this RUT already exists in the company",
                       code="DuplicateWorkerRut")
    db.refresh(worker)

    record_audit(db, "WORKER_CREATED", "worker", worker.id, actor_id=principal.user_id,
                 details={"company_id": company.id, "rut": rut}, client=client)
    return worker


def update_worker(db: Session, principal: Principal, worker_id: str, changes: dict,
                  client: ClientInfo | None = None) -> Worker:
    authorize(principal, REGISTRY_ROLES)
    worker = resolve_worker(db, principal, worker_id)

    missing = {f: "This field cannot be empty" for f in WORKER_REQUIRED
               if f in changes and not _clean(changes[f])}
    if missing:
        raise ValidationError("Missing required fields", code="MissingFields", details=missing)

    if "rut" in changes:
        changes["rut"] = normalize_rut(changes["rut"])
        if _worker_rut_taken(db, worker.company_id, changes["rut"], exclude_id=worker.id):
            raise Conflict("A worker with this RUT already exists in the company",
                           code="DuplicateWorkerRut")
    if "status" in changes and changes["status"] not in WORKER_STATUSES:
        raise ValidationError("Invalid worker status",
                              details={"status": f"Must be one of {sorted(WORKER_STATUSES)}"})

    for field, value in changes.items():
        setattr(worker, field, _clean(value))
    worker.updated_at = utc_now()
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A worker with this RUT already exists in the company",
                       code="DuplicateWorkerRut")
    db.refresh(worker)

    record_audit(db, "WORKER_UPDATED", "worker", worker.id, actor_id=principal.user_id,
                 details={"fields": sorted(changes)}, client=client)
    return worker


def hard_delete_worker(db: Session, principal: Principal, worker_id: str,
                       client: ClientInfo | None = None) -> None:
    """Delete a worker and its document rows.

    Stored objects (documents, photo) are not removed here; an external
    reconciliation job reclaims orphaned keys.
    """
    authorize(principal, REGISTRY_ROLES)
    worker = resolve_worker(db, principal, worker_id)
    document_count = len(worker.documents)
    company_id = worker.company_id
    db.delete(worker)
    db.commit()

    record_audit(db, "WORKER_DELETED", "worker", worker_id, actor_id=principal.user_id,
                 details={"company_id": company_id, "documents_removed": document_count},
                 client=client)


# ---------------------------------------------------------------------------
# Worker photo
# ---------------------------------------------------------------------------

def set_worker_photo(db: Session, principal: Principal, worker_id: str, filename: str,
                     mime: str | None, content: bytes, client: ClientInfo | None = None) -> Worker:
    authorize(principal, REGISTRY_ROLES)
    worker = resolve_worker(db, principal, worker_id)
    file_service.validate_payload(content, mime, max_bytes=settings.max_photo_bytes,
                                  allowed=file_service.IMAGE_MIME_TYPES)

    previous = worker.profile_image_key
    worker.profile_image_key = file_service.store_object(f"workers/{worker.id}", filename, content)
    worker.updated_at = utc_now()
    db.commit()
    db.refresh(worker)

    if previous:
        object_store.delete(previous)
    record_audit(db, "WORKER_PHOTO_UPDATED", "worker", worker.id,
                 actor_id=principal.user_id, client=client)
    return worker


def get_worker_photo(db: Session, principal: Principal, worker_id: str) -> tuple[bytes, str]:
    authorize(principal, REGISTRY_ROLES)
    worker = resolve_worker(db, principal, worker_id)
    if not worker.profile_image_key:
        raise NotFound("Worker has no photo")
    content = object_store.get(worker.profile_image_key)
    if content is None:
        raise NotFound("Photo missing from storage")
    mime = mimetypes.guess_type(worker.profile_image_key)[0] or "application/octet-stream"
    return content, mime


def delete_worker_photo(db: Session, principal: Principal, worker_id: str,
                        client: ClientInfo | None = None) -> Worker:
    authorize(principal, REGISTRY_ROLES)
    worker = resolve_worker(db, principal, worker_id)
    previous = worker.profile_image_key
    if not previous:
        return worker
    worker.profile_image_key = None
    worker.updated_at = utc_now()
    db.commit()
    db.refresh(worker)

    if not object_store.delete(previous):
        logger.warning("Photo object %s for worker %s was not removed", previous, worker.id)
    record_audit(db, "WORKER_PHOTO_DELETED", "worker", worker.id,
                 actor_id=principal.user_id, client=client)
    return worker

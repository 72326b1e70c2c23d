"""Worker document lifecycle.

Stored statuses form a small machine::

    UNDER_REVIEW -> IN_REVIEW | APPROVED | REJECTED
    IN_REVIEW    -> IN_REVIEW | APPROVED | REJECTED
    APPROVED, REJECTED are final

Two more statuses only exist when reading:

* ``PENDING``: no row exists for a worker and document type.
* ``EXPIRED``: the expiry date is in the past and the document was not
  rejected. Storage is never rewritten for it.

A re-upload inserts a new row; the newest row per type is the current one.
"""

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from compliance.config import settings
from compliance.errors import ConflictingTransition, NotFound, ValidationError
from compliance.models.document import WorkerDocument, WorkerDocumentType
from compliance.models.worker import Worker
from compliance.services import file_service
from compliance.services.audit_service import ClientInfo, record_audit
from compliance.services.file_service import Payload
from compliance.services.identity_service import Principal, Role, authorize
from compliance.services.registry_service import resolve_worker
from compliance.services.storage_service import object_store
from compliance.utils.clock import parse_date, today as current_day, utc_now

logger = logging.getLogger("compliance.documents")

UNDER_REVIEW = "UNDER_REVIEW"
IN_REVIEW = "IN_REVIEW"
APPROVED = "APPROVED"
REJECTED = "REJECTED"
PENDING = "PENDING"
EXPIRED = "EXPIRED"

STORED_STATUSES = (UNDER_REVIEW, IN_REVIEW, APPROVED, REJECTED)
REVIEWABLE_STATUSES = (UNDER_REVIEW, IN_REVIEW)

TRANSITIONS = {
    UNDER_REVIEW: {IN_REVIEW, APPROVED, REJECTED},
    IN_REVIEW: {IN_REVIEW, APPROVED, REJECTED},
    APPROVED: set(),
    REJECTED: set(),
}

DOCUMENT_ROLES = (Role.USER, Role.ADMIN)
DATE_FIELDS = ("emission_date", "expiry_date")
REVIEW_FIELDS = ("status", "admin_comments")


def days_remaining(expiry_date: str | None, today: date | None = None) -> int | None:
    """Whole calendar days until expiry; negative once expired."""
    expiry = parse_date(expiry_date)
    if expiry is None:
        return None
    return (expiry - (today or current_day())).days


def effective_status(document: WorkerDocument, today: date | None = None) -> str:
    if document.status != REJECTED and document.expiry_date:
        expiry = parse_date(document.expiry_date)
        if expiry < (today or current_day()):
            return EXPIRED
    return document.status


@dataclass(frozen=True)
class DocumentView:
    """The current state of one document type for one worker.

    ``document`` is None when nothing was ever uploaded, which reads as
    ``PENDING``.
    """

    document_type: WorkerDocumentType
    document: WorkerDocument | None = None
    as_of: date | None = None

    @property
    def is_missing(self) -> bool:
        return self.document is None

    @property
    def status(self) -> str:
        if self.document is None:
            return PENDING
        return effective_status(self.document, self.as_of)

    @property
    def days_remaining(self) -> int | None:
        if self.document is None:
            return None
        return days_remaining(self.document.expiry_date, self.as_of)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def list_document_types(db: Session) -> list[WorkerDocumentType]:
    return db.query(WorkerDocumentType).order_by(WorkerDocumentType.order_index).all()


def _get_document_type(db: Session, type_id: str | None) -> WorkerDocumentType:
    doc_type = db.get(WorkerDocumentType, type_id) if type_id else None
    if not doc_type:
        raise NotFound("Document type not found")
    return doc_type


def _resolve_document(db: Session, principal: Principal, document_id: str) -> WorkerDocument:
    doc = db.get(WorkerDocument, document_id)
    if not doc or (not principal.is_admin and doc.worker.company.user_id != principal.user_id):
        raise NotFound("Document not found")
    return doc


def current_documents_by_type(db: Session, worker_id: str) -> dict[str, WorkerDocument]:
    """Newest document per type for a worker."""
    docs = (
        db.query(WorkerDocument)
        .filter(WorkerDocument.worker_id == worker_id)
        .order_by(WorkerDocument.created_at.desc())
        .all()
    )
    current: dict[str, WorkerDocument] = {}
    for doc in docs:
        current.setdefault(doc.document_type_id, doc)
    return current


def document_status_for_type(db: Session, principal: Principal, worker_id: str, type_id: str,
                             today: date | None = None) -> DocumentView:
    authorize(principal, DOCUMENT_ROLES)
    worker = resolve_worker(db, principal, worker_id)
    doc_type = _get_document_type(db, type_id)
    latest = (
        db.query(WorkerDocument)
        .filter(WorkerDocument.worker_id == worker.id,
                WorkerDocument.document_type_id == doc_type.id)
        .order_by(WorkerDocument.created_at.desc())
        .first()
    )
    return DocumentView(document_type=doc_type, document=latest, as_of=today)


def list_for_worker(db: Session, principal: Principal, worker_id: str) -> list[WorkerDocument]:
    authorize(principal, DOCUMENT_ROLES)
    worker = resolve_worker(db, principal, worker_id)
    return (
        db.query(WorkerDocument)
        .join(WorkerDocumentType, WorkerDocument.document_type_id == WorkerDocumentType.id)
        .filter(WorkerDocument.worker_id == worker.id)
        .order_by(WorkerDocumentType.order_index, WorkerDocument.created_at.desc())
        .all()
    )


def get_document(db: Session, principal: Principal, document_id: str) -> WorkerDocument:
    authorize(principal, DOCUMENT_ROLES)
    return _resolve_document(db, principal, document_id)


def list_pending(db: Session, principal: Principal) -> list[WorkerDocument]:
    """Documents waiting for review, oldest first."""
    authorize(principal, [Role.ADMIN])
    return (
        db.query(WorkerDocument)
        .filter(WorkerDocument.status.in_(REVIEWABLE_STATUSES))
        .order_by(WorkerDocument.created_at)
        .all()
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _parse_field(value: str | None, field: str) -> date | None:
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date", code="InvalidDate",
                              details={field: value})


def _check_dates(doc_type: WorkerDocumentType, emission_date: str | None,
                 expiry_date: str | None) -> tuple[str | None, str | None]:
    emission = _parse_field(emission_date, "emission_date")
    expiry = _parse_field(expiry_date, "expiry_date")
    if doc_type.requires_expiry_date and expiry is None:
        raise ValidationError(f"{doc_type.name} requires an expiry date", code="MissingExpiryDate",
                              details={"expiry_date": "This field is required"})
    if emission and expiry and emission >= expiry:
        raise ValidationError("Emission date must be before the expiry date",
                              code="InvalidDateRange",
                              details={"emission_date": emission.isoformat(),
                                       "expiry_date": expiry.isoformat()})
    return (emission.isoformat() if emission else None,
            expiry.isoformat() if expiry else None)


def _check_back_file(doc_type: WorkerDocumentType, has_back: bool) -> None:
    if doc_type.requires_front_back and not has_back:
        raise ValidationError(f"{doc_type.name} requires both sides", code="MissingBackFile",
                              details={"file_back": "This file is required"})


def _check_key(key: str, worker_id: str, principal: Principal, field: str) -> None:
    scopes = (f"{principal.user_id}/", f"documents/{worker_id}/")
    if not key.startswith(scopes) or ".." in key:
        raise ValidationError("File key is outside your upload scope", code="InvalidFileKey",
                              details={field: key})
    if not object_store.exists(key):
        raise ValidationError("File key does not exist", code="InvalidFileKey",
                              details={field: key})


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def _insert(db: Session, principal: Principal, worker: Worker, doc_type: WorkerDocumentType,
            dates: tuple[str | None, str | None], file_key: str, file_key_back: str | None,
            file_name: str | None, file_size: int | None, mime_type: str | None,
            client: ClientInfo | None) -> WorkerDocument:
    now = utc_now()
    doc = WorkerDocument(
        id=str(uuid.uuid4()),
        worker_id=worker.id,
        document_type_id=doc_type.id,
        status=UNDER_REVIEW,
        emission_date=dates[0],
        expiry_date=dates[1],
        file_key=file_key,
        file_key_back=file_key_back,
        file_name=file_name,
        file_size=file_size,
        mime_type=mime_type,
        uploaded_by=principal.user_id,
        created_at=now,
        updated_at=now,
    )
    db.add(doc)
    db.commit()
    db.refresh(doc)

    record_audit(db, "DOCUMENT_UPLOADED", "worker_document", doc.id, actor_id=principal.user_id,
                 details={"worker_id": worker.id, "document_type": doc_type.code,
                          "file_name": file_name},
                 client=client)
    return doc


def upload_document(
    db: Session,
    principal: Principal,
    worker_id: str,
    document_type_id: str,
    front: Payload,
    back: Payload | None = None,
    emission_date: str | None = None,
    expiry_date: str | None = None,
    client: ClientInfo | None = None,
) -> WorkerDocument:
    authorize(principal, DOCUMENT_ROLES)
    worker = resolve_worker(db, principal, worker_id)
    doc_type = _get_document_type(db, document_type_id)
    _check_back_file(doc_type, back is not None)
    dates = _check_dates(doc_type, emission_date, expiry_date)

    file_service.validate_payload(front.content, front.mime)
    if back is not None:
        file_service.validate_payload(back.content, back.mime)

    scope = f"documents/{worker.id}"
    file_key = file_service.store_object(scope, front.filename, front.content)
    file_key_back = file_service.store_object(scope, back.filename, back.content) if back else None

    return _insert(db, principal, worker, doc_type, dates, file_key, file_key_back,
                   front.filename, len(front.content), front.mime, client)


def register_document(db: Session, principal: Principal, data: dict,
                      client: ClientInfo | None = None) -> WorkerDocument:
    """Create a document from files already placed in storage."""
    authorize(principal, DOCUMENT_ROLES)
    missing = {f: "This field is required"
               for f in ("worker_id", "document_type_id", "file_key") if not data.get(f)}
    if missing:
        raise ValidationError("Missing required fields", code="MissingFields", details=missing)

    worker = resolve_worker(db, principal, data["worker_id"])
    doc_type = _get_document_type(db, data["document_type_id"])
    _check_back_file(doc_type, bool(data.get("file_key_back")))
    dates = _check_dates(doc_type, data.get("emission_date"), data.get("expiry_date"))

    _check_key(data["file_key"], worker.id, principal, "file_key")
    if data.get("file_key_back"):
        _check_key(data["file_key_back"], worker.id, principal, "file_key_back")

    return _insert(db, principal, worker, doc_type, dates, data["file_key"],
                   data.get("file_key_back"), data.get("file_name"), data.get("file_size"),
                   data.get("mime_type"), client)


# ---------------------------------------------------------------------------
# Review and edits
# ---------------------------------------------------------------------------

def _apply_status(db: Session, principal: Principal, doc: WorkerDocument, target: str) -> bool:
    if target not in STORED_STATUSES:
        raise ValidationError(f"Unknown document status: {target}",
                              details={"status": f"Must be one of {list(STORED_STATUSES)}"})
    current = doc.status
    if target == current and current in REVIEWABLE_STATUSES and target != IN_REVIEW:
        return False
    if target not in TRANSITIONS[current]:
        raise ConflictingTransition(f"Cannot change a document from {current} to {target}",
                                    details={"from": current, "to": target})

    now = utc_now()
    result = db.execute(
        update(WorkerDocument)
        .where(WorkerDocument.id == doc.id, WorkerDocument.status == current)
        .values(status=target, reviewed_by=principal.user_id, reviewed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise ConflictingTransition("Document status changed while you were reviewing it")
    return True


def update_document(db: Session, principal: Principal, document_id: str, changes: dict[str, Any],
                    client: ClientInfo | None = None) -> WorkerDocument:
    """Apply a partial update.

    Owners may only edit the dates; ``status`` and ``admin_comments`` from a
    non-admin are dropped without error.
    """
    authorize(principal, DOCUMENT_ROLES)
    doc = _resolve_document(db, principal, document_id)

    allowed = DATE_FIELDS + REVIEW_FIELDS if principal.is_admin else DATE_FIELDS
    changes = {k: v for k, v in changes.items() if k in allowed}
    if not changes:
        return doc

    previous_status = doc.status
    if any(f in changes for f in DATE_FIELDS):
        dates = _check_dates(
            doc.document_type,
            changes.get("emission_date", doc.emission_date),
            changes.get("expiry_date", doc.expiry_date),
        )
        doc.emission_date, doc.expiry_date = dates

    status_changed = False
    if changes.get("status") is not None:
        status_changed = _apply_status(db, principal, doc, changes["status"])
    if "admin_comments" in changes:
        doc.admin_comments = (changes["admin_comments"] or "").strip() or None
    doc.updated_at = utc_now()
    db.commit()
    db.refresh(doc)

    record_audit(db, "DOCUMENT_UPDATED", "worker_document", doc.id, actor_id=principal.user_id,
                 details={"fields": sorted(changes)}, client=client)
    if status_changed:
        logger.info("Document %s moved %s -> %s", doc.id, previous_status, doc.status)
        record_audit(db, "DOCUMENT_STATUS_CHANGED", "worker_document", doc.id,
                     actor_id=principal.user_id,
                     details={"from": previous_status, "to": doc.status,
                              "admin_comments": doc.admin_comments},
                     client=client)
    return doc


def delete_document(db: Session, principal: Principal, document_id: str,
                    client: ClientInfo | None = None) -> None:
    authorize(principal, DOCUMENT_ROLES)
    doc = _resolve_document(db, principal, document_id)
    keys = [k for k in (doc.file_key, doc.file_key_back) if k]
    worker_id = doc.worker_id
    db.delete(doc)
    db.commit()

    # Owners' deletes leave objects for the reconciliation job.
    removed = [k for k in keys if file_service.delete_object(principal, k)]
    if principal.is_admin and len(removed) != len(keys):
        logger.warning("Document %s: %d of %d objects removed", document_id, len(removed), len(keys))

    record_audit(db, "DOCUMENT_DELETED", "worker_document", document_id,
                 actor_id=principal.user_id,
                 details={"worker_id": worker_id, "objects_removed": len(removed)},
                 client=client)


# ---------------------------------------------------------------------------
# Downloads
# ---------------------------------------------------------------------------

def download_url(db: Session, principal: Principal, document_id: str) -> dict:
    doc = get_document(db, principal, document_id)
    base = f"{settings.api_prefix}/documents/{doc.id}/file"
    return {
        "front_url": f"{base}?side=front",
        "back_url": f"{base}?side=back" if doc.file_key_back else None,
    }


def download_document_file(db: Session, principal: Principal, document_id: str,
                           side: str = "front") -> tuple[str, str, bytes]:
    """Return ``(filename, mime, content)`` for one side of a document."""
    if side not in ("front", "back"):
        raise ValidationError("side must be 'front' or 'back'", details={"side": side})
    doc = get_document(db, principal, document_id)

    key = doc.file_key if side == "front" else doc.file_key_back
    if not key:
        raise NotFound("Document has no back file")
    content = object_store.get(key)
    if content is None:
        raise NotFound("Document file missing from storage")

    if side == "front":
        filename = doc.file_name or key.rsplit("/", 1)[-1]
        mime = doc.mime_type or mimetypes.guess_type(key)[0]
    else:
        filename = key.rsplit("/", 1)[-1].split("-", 1)[-1]
        mime = mimetypes.guess_type(key)[0] or doc.mime_type
    return filename, mime or "application/octet-stream", content


# ---------------------------------------------------------------------------
# Worker profile
# ---------------------------------------------------------------------------

def worker_profile(db: Session, principal: Principal, worker_id: str,
                   today: date | None = None) -> dict:
    """Worker plus one view per catalog type and a completeness summary."""
    authorize(principal, DOCUMENT_ROLES)
    worker = resolve_worker(db, principal, worker_id)
    catalog = list_document_types(db)
    current = current_documents_by_type(db, worker.id)
    views = [DocumentView(t, current.get(t.id), as_of=today) for t in catalog]

    counts = {APPROVED: 0, EXPIRED: 0, REJECTED: 0}
    pending = 0
    for view in views:
        if view.status in counts:
            counts[view.status] += 1
        else:
            pending += 1

    return {
        "worker": worker,
        "documents": views,
        "completeness": {
            "has_photo": bool(worker.profile_image_key),
            "documents_approved": counts[APPROVED],
            "documents_pending": pending,
            "documents_expired": counts[EXPIRED],
            "documents_rejected": counts[REJECTED],
            "percentage_complete": round(counts[APPROVED] / len(catalog) * 100) if catalog else 0,
        },
    }

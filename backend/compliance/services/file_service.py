import uuid
from dataclasses import dataclass

from fastapi import UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session

from compliance.config import settings
from compliance.errors import FileTooLarge, NotFound, UnsupportedMediaType, ValidationError
from compliance.models.document import WorkerDocument
from compliance.models.file import File
from compliance.models.job import Job
from compliance.services.audit_service import ClientInfo, record_audit
from compliance.services.identity_service import Principal, Role
from compliance.services.job_service import can_view_job
from compliance.services.storage_service import generate_key, object_store
from compliance.utils.clock import utc_now

ALLOWED_MIME_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
]

IMAGE_MIME_TYPES = ["image/*"]


@dataclass(frozen=True)
class Payload:
    filename: str
    mime: str | None
    content: bytes


def is_allowed_mime(mime: str | None, allowed: list[str]) -> bool:
    normalized = (mime or "").split(";")[0].strip().lower()
    if not normalized:
        return False
    for candidate in allowed:
        if candidate.endswith("/*"):
            if normalized.startswith(candidate[:-1]):
                return True
        elif normalized == candidate:
            return True
    return False


def validate_payload(content: bytes, mime: str | None, max_bytes: int | None = None,
                     allowed: list[str] | None = None) -> None:
    max_bytes = max_bytes if max_bytes is not None else settings.max_upload_bytes
    if len(content) > max_bytes:
        raise FileTooLarge(f"File too large (max {max_bytes} bytes)")
    if not is_allowed_mime(mime, allowed or ALLOWED_MIME_TYPES):
        raise UnsupportedMediaType(f"File type not allowed: {mime or 'unknown'}")
    if not content:
        raise ValidationError("Empty file", code="EmptyFile")


async def read_upload(upload: UploadFile, max_bytes: int | None = None) -> bytes:
    """Read an upload in chunks, rejecting it as soon as it passes max_bytes."""
    max_bytes = max_bytes if max_bytes is not None else settings.max_upload_bytes
    size = 0
    chunks: list[bytes] = []
    while True:
        chunk = await upload.read(1024 * 1024)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise FileTooLarge(f"File too large (max {max_bytes} bytes)")
        chunks.append(chunk)
    return b"".join(chunks)


def store_object(scope: str, filename: str, content: bytes) -> str:
    key = generate_key(scope, filename)
    object_store.put(key, content)
    return key


def upload_file(
    db: Session,
    principal: Principal,
    filename: str,
    mime: str | None,
    content: bytes,
    job_id: str | None = None,
    client: ClientInfo | None = None,
) -> File:
    validate_payload(content, mime)

    if job_id:
        job = db.get(Job, job_id)
        if not job or not can_view_job(principal, job):
            raise NotFound("Job not found")

    key = store_object(principal.user_id, filename, content)
    record = File(
        id=str(uuid.uuid4()),
        job_id=job_id,
        uploaded_by=principal.user_id,
        filename=filename,
        storage_key=key,
        mime=mime,
        size=len(content),
        created_at=utc_now(),
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    record_audit(
        db, "FILE_UPLOAD", "file", record.id,
        actor_id=principal.user_id,
        details={"filename": filename, "size": len(content), "mime": mime, "job_id": job_id},
        client=client,
    )
    return record


def _referencing_document(db: Session, key: str) -> WorkerDocument | None:
    return (
        db.query(WorkerDocument)
        .filter(or_(WorkerDocument.file_key == key, WorkerDocument.file_key_back == key))
        .first()
    )


def get_file(db: Session, principal: Principal, file_id: str) -> File:
    record = db.get(File, file_id)
    # Users only reach their own uploads; reviewers see everything, like jobs.
    if not record or (principal.role == Role.USER.value and record.uploaded_by != principal.user_id):
        raise NotFound("File not found")
    # An upload registered as a worker document follows the document rule.
    doc = _referencing_document(db, record.storage_key)
    if doc and not principal.is_admin and doc.worker.company.user_id != principal.user_id:
        raise NotFound("File not found")
    return record


def download_file(db: Session, principal: Principal, file_id: str,
                  client: ClientInfo | None = None) -> tuple[File, bytes]:
    record = get_file(db, principal, file_id)
    content = object_store.get(record.storage_key)
    if content is None:
        raise NotFound("File missing from storage")
    record_audit(db, "FILE_DOWNLOAD", "file", record.id, actor_id=principal.user_id, client=client)
    return record, content


def delete_object(principal: Principal, key: str | None) -> bool:
    """Best-effort removal of a stored object. Document files: admins only."""
    if not key or not principal.is_admin:
        return False
    return object_store.delete(key)

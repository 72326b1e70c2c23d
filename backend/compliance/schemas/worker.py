from pydantic import BaseModel

from compliance.schemas.document import DocumentTypeResponse, WorkerDocumentResponse


class WorkerCreate(BaseModel):
    company_id: str
    first_name: str
    last_name: str
    rut: str
    email: str | None = None
    phone: str | None = None
    job_title: str | None = None
    department: str | None = None
    additional_comments: str | None = None


class WorkerUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    rut: str | None = None
    email: str | None = None
    phone: str | None = None
    job_title: str | None = None
    department: str | None = None
    additional_comments: str | None = None
    status: str | None = None


class WorkerResponse(BaseModel):
    id: str
    company_id: str
    first_name: str
    last_name: str
    rut: str
    email: str | None
    phone: str | None
    job_title: str | None
    department: str | None
    profile_image_key: str | None
    additional_comments: str | None
    status: str
    created_at: str
    updated_at: str


class DocumentSlot(BaseModel):
    document_type: DocumentTypeResponse
    status: str
    days_remaining: int | None
    document: WorkerDocumentResponse | None


class ProfileCompleteness(BaseModel):
    has_photo: bool
    documents_approved: int
    documents_pending: int
    documents_expired: int
    documents_rejected: int
    percentage_complete: int


class WorkerProfileResponse(BaseModel):
    worker: WorkerResponse
    documents: list[DocumentSlot]
    completeness: ProfileCompleteness

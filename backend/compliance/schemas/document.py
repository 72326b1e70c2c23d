from pydantic import BaseModel


class DocumentTypeResponse(BaseModel):
    id: str
    code: str
    name: str
    description: str | None
    requires_front_back: bool
    requires_expiry_date: bool
    order_index: int


class DocumentCreate(BaseModel):
    worker_id: str
    document_type_id: str
    file_key: str
    file_key_back: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    emission_date: str | None = None
    expiry_date: str | None = None


class DocumentUpdate(BaseModel):
    emission_date: str | None = None
    expiry_date: str | None = None
    status: str | None = None
    admin_comments: str | None = None


class WorkerDocumentResponse(BaseModel):
    id: str
    worker_id: str
    document_type_id: str
    document_type_code: str | None = None
    status: str
    effective_status: str
    days_remaining: int | None
    emission_date: str | None
    expiry_date: str | None
    file_key: str
    file_key_back: str | None
    file_name: str | None
    file_size: int | None
    mime_type: str | None
    uploaded_by: str | None
    reviewed_by: str | None
    reviewed_at: str | None
    admin_comments: str | None
    created_at: str
    updated_at: str


class DocumentStatusResponse(BaseModel):
    worker_id: str
    document_type_id: str
    status: str
    days_remaining: int | None
    document: WorkerDocumentResponse | None


class DownloadUrlResponse(BaseModel):
    front_url: str
    back_url: str | None

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from compliance.database import get_db
from compliance.dependencies import get_client_info, get_current_principal
from compliance.models.document import WorkerDocument, WorkerDocumentType
from compliance.schemas.document import (
    DocumentCreate,
    DocumentStatusResponse,
    DocumentTypeResponse,
    DocumentUpdate,
    DownloadUrlResponse,
    WorkerDocumentResponse,
)
from compliance.services import document_service
from compliance.services.audit_service import ClientInfo
from compliance.services.file_service import Payload, read_upload
from compliance.services.identity_service import Principal
from compliance.utils.filesystem import attachment_headers

router = APIRouter(prefix="/documents", tags=["documents"])


def type_to_response(doc_type: WorkerDocumentType) -> DocumentTypeResponse:
    return DocumentTypeResponse(
        id=doc_type.id,
        code=doc_type.code,
        name=doc_type.name,
        description=doc_type.description,
        requires_front_back=bool(doc_type.requires_front_back),
        requires_expiry_date=bool(doc_type.requires_expiry_date),
        order_index=doc_type.order_index,
    )


def document_to_response(doc: WorkerDocument) -> WorkerDocumentResponse:
    return WorkerDocumentResponse(
        id=doc.id,
        worker_id=doc.worker_id,
        document_type_id=doc.document_type_id,
        document_type_code=doc.document_type.code if doc.document_type else None,
        status=doc.status,
        effective_status=document_service.effective_status(doc),
        days_remaining=document_service.days_remaining(doc.expiry_date),
        emission_date=doc.emission_date,
        expiry_date=doc.expiry_date,
        file_key=doc.file_key,
        file_key_back=doc.file_key_back,
        file_name=doc.file_name,
        file_size=doc.file_size,
        mime_type=doc.mime_type,
        uploaded_by=doc.uploaded_by,
        reviewed_by=doc.reviewed_by,
        reviewed_at=doc.reviewed_at,
        admin_comments=doc.admin_comments,
        created_at=doc.created_at,
        updated_at=doc.updated_at,
    )


@router.get("/types", response_model=list[DocumentTypeResponse])
async def list_document_types(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return [type_to_response(t) for t in document_service.list_document_types(db)]


@router.get("/pending", response_model=list[WorkerDocumentResponse])
async def list_pending(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Review queue for admins, oldest first."""
    return [document_to_response(d) for d in document_service.list_pending(db, principal)]


@router.get("/worker/{worker_id}", response_model=list[WorkerDocumentResponse])
async def list_worker_documents(
    worker_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    docs = document_service.list_for_worker(db, principal, worker_id)
    return [document_to_response(d) for d in docs]


@router.get("/worker/{worker_id}/types/{type_id}", response_model=DocumentStatusResponse)
async def document_status(
    worker_id: str,
    type_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    view = document_service.document_status_for_type(db, principal, worker_id, type_id)
    return DocumentStatusResponse(
        worker_id=worker_id,
        document_type_id=view.document_type.id,
        status=view.status,
        days_remaining=view.days_remaining,
        document=document_to_response(view.document) if view.document else None,
    )


@router.post("/upload", response_model=WorkerDocumentResponse, status_code=201)
async def upload_document(
    worker_id: str = Form(...),
    document_type_id: str = Form(...),
    emission_date: str | None = Form(None),
    expiry_date: str | None = Form(None),
    file: UploadFile = File(...),
    file_back: UploadFile | None = File(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    front = Payload(file.filename or "document", file.content_type, await read_upload(file))
    back = None
    if file_back is not None and file_back.filename:
        back = Payload(file_back.filename, file_back.content_type, await read_upload(file_back))

    doc = document_service.upload_document(
        db, principal, worker_id, document_type_id, front, back,
        emission_date=emission_date or None,
        expiry_date=expiry_date or None,
        client=client,
    )
    return document_to_response(doc)


@router.post("", response_model=WorkerDocumentResponse, status_code=201)
async def create_document(
    req: DocumentCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    doc = document_service.register_document(db, principal, req.model_dump(), client=client)
    return document_to_response(doc)


@router.get("/{document_id}", response_model=WorkerDocumentResponse)
async def get_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return document_to_response(document_service.get_document(db, principal, document_id))


@router.put("/{document_id}", response_model=WorkerDocumentResponse)
async def update_document(
    document_id: str,
    req: DocumentUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    doc = document_service.update_document(
        db, principal, document_id, req.model_dump(exclude_unset=True), client=client,
    )
    return document_to_response(doc)


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    document_service.delete_document(db, principal, document_id, client=client)


@router.get("/{document_id}/download-url", response_model=DownloadUrlResponse)
async def download_url(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return document_service.download_url(db, principal, document_id)


@router.get("/{document_id}/file")
async def download_document_file(
    document_id: str,
    side: str = Query("front"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    filename, mime, content = document_service.download_document_file(
        db, principal, document_id, side,
    )
    return Response(
        content=content,
        media_type=mime,
        headers=attachment_headers(filename),
    )

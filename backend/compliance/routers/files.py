from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from compliance.database import get_db
from compliance.dependencies import get_client_info, get_current_principal
from compliance.models.file import File as StoredFile
from compliance.schemas.file import FileResponse
from compliance.services import file_service
from compliance.services.audit_service import ClientInfo
from compliance.services.identity_service import Principal
from compliance.utils.filesystem import attachment_headers

router = APIRouter(prefix="/files", tags=["files"])


def file_to_response(record: StoredFile) -> FileResponse:
    return FileResponse(
        id=record.id,
        job_id=record.job_id,
        uploaded_by=record.uploaded_by,
        filename=record.filename,
        storage_key=record.storage_key,
        mime=record.mime,
        size=record.size,
        version=record.version,
        status=record.status,
        created_at=record.created_at,
    )


@router.post("/upload", response_model=FileResponse, status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    job_id: str | None = Form(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    content = await file_service.read_upload(file)
    record = file_service.upload_file(
        db, principal, file.filename or "file", file.content_type, content,
        job_id=job_id or None, client=client,
    )
    return file_to_response(record)


@router.get("/{file_id}", response_model=FileResponse)
async def get_file(
    file_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return file_to_response(file_service.get_file(db, principal, file_id))


@router.get("/{file_id}/download")
async def download_file(
    file_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    record, content = file_service.download_file(db, principal, file_id, client=client)
    return Response(content=content, media_type=record.mime,
                    headers=attachment_headers(record.filename))

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from compliance.config import settings
from compliance.database import get_db
from compliance.dependencies import get_client_info, require_roles
from compliance.models.worker import Worker
from compliance.routers.documents import document_to_response, type_to_response
from compliance.schemas.worker import (
    DocumentSlot,
    ProfileCompleteness,
    WorkerCreate,
    WorkerProfileResponse,
    WorkerResponse,
    WorkerUpdate,
)
from compliance.services import document_service, registry_service
from compliance.services.audit_service import ClientInfo
from compliance.services.file_service import read_upload
from compliance.services.identity_service import Principal

router = APIRouter(prefix="/workers", tags=["workers"])

registry_access = require_roles(*registry_service.REGISTRY_ROLES)


def _worker_to_response(worker: Worker) -> WorkerResponse:
    return WorkerResponse(
        id=worker.id,
        company_id=worker.company_id,
        first_name=worker.first_name,
        last_name=worker.last_name,
        rut=worker.rut,
        email=worker.email,
        phone=worker.phone,
        job_title=worker.job_title,
        department=worker.department,
        profile_image_key=worker.profile_image_key,
        additional_comments=worker.additional_comments,
        status=worker.status,
        created_at=worker.created_at,
        updated_at=worker.updated_at,
    )


@router.get("", response_model=list[WorkerResponse])
async def list_workers(
    company_id: str = Query(...),
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
):
    return [_worker_to_response(w) for w in registry_service.list_workers(db, principal, company_id)]


@router.post("", response_model=WorkerResponse, status_code=201)
async def create_worker(
    req: WorkerCreate,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    worker = registry_service.create_worker(db, principal, req.model_dump(), client=client)
    return _worker_to_response(worker)


@router.get("/{worker_id}", response_model=WorkerResponse)
async def get_worker(
    worker_id: str,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
):
    return _worker_to_response(registry_service.get_worker(db, principal, worker_id))


@router.put("/{worker_id}", response_model=WorkerResponse)
async def update_worker(
    worker_id: str,
    req: WorkerUpdate,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    worker = registry_service.update_worker(
        db, principal, worker_id, req.model_dump(exclude_unset=True), client=client,
    )
    return _worker_to_response(worker)


@router.delete("/{worker_id}", status_code=204)
async def delete_worker(
    worker_id: str,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    """Hard delete. The worker's documents go with it."""
    registry_service.hard_delete_worker(db, principal, worker_id, client=client)


@router.get("/{worker_id}/profile", response_model=WorkerProfileResponse)
async def worker_profile(
    worker_id: str,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
):
    profile = document_service.worker_profile(db, principal, worker_id)
    return WorkerProfileResponse(
        worker=_worker_to_response(profile["worker"]),
        documents=[
            DocumentSlot(
                document_type=type_to_response(view.document_type),
                status=view.status,
                days_remaining=view.days_remaining,
                document=document_to_response(view.document) if view.document else None,
            )
            for view in profile["documents"]
        ],
        completeness=ProfileCompleteness(**profile["completeness"]),
    )


@router.post("/{worker_id}/photo", response_model=WorkerResponse)
async def upload_photo(
    worker_id: str,
    file: UploadFile = File(...),
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    content = await read_upload(file, settings.max_photo_bytes)
    worker = registry_service.set_worker_photo(
        db, principal, worker_id, file.filename or "photo", file.content_type, content,
        client=client,
    )
    return _worker_to_response(worker)


@router.get("/{worker_id}/photo")
async def get_photo(
    worker_id: str,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
):
    content, mime = registry_service.get_worker_photo(db, principal, worker_id)
    return Response(content=content, media_type=mime)


@router.delete("/{worker_id}/photo", response_model=WorkerResponse)
async def delete_photo(
    worker_id: str,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    worker = registry_service.delete_worker_photo(db, principal, worker_id, client=client)
    return _worker_to_response(worker)

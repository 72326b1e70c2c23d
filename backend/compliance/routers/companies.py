from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from compliance.database import get_db
from compliance.dependencies import get_client_info, require_roles
from compliance.models.company import Company
from compliance.schemas.company import CompanyCreate, CompanyResponse, CompanyUpdate
from compliance.services import registry_service
from compliance.services.audit_service import ClientInfo
from compliance.services.identity_service import Principal

router = APIRouter(prefix="/companies", tags=["companies"])

registry_access = require_roles(*registry_service.REGISTRY_ROLES)


def _company_to_response(company: Company) -> CompanyResponse:
    return CompanyResponse(
        id=company.id,
        user_id=company.user_id,
        name=company.name,
        rut=company.rut,
        industry=company.industry,
        address=company.address,
        city=company.city,
        region=company.region,
        phone=company.phone,
        email=company.email,
        website=company.website,
        employees_count=company.employees_count,
        description=company.description,
        logo_key=company.logo_key,
        status=company.status,
        created_at=company.created_at,
        updated_at=company.updated_at,
    )


@router.get("", response_model=list[CompanyResponse])
async def list_companies(
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
):
    return [_company_to_response(c) for c in registry_service.list_companies(db, principal)]


@router.post("", response_model=CompanyResponse, status_code=201)
async def create_company(
    req: CompanyCreate,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    company = registry_service.create_company(db, principal, req.model_dump(), client=client)
    return _company_to_response(company)


@router.get("/{company_id}", response_model=CompanyResponse)
async def get_company(
    company_id: str,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
):
    return _company_to_response(registry_service.get_company(db, principal, company_id))


@router.put("/{company_id}", response_model=CompanyResponse)
async def update_company(
    company_id: str,
    req: CompanyUpdate,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    company = registry_service.update_company(
        db, principal, company_id, req.model_dump(exclude_unset=True), client=client,
    )
    return _company_to_response(company)


@router.delete("/{company_id}", response_model=CompanyResponse)
async def delete_company(
    company_id: str,
    principal: Principal = Depends(registry_access),
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    """Soft delete: the company is marked INACTIVE and keeps its workers."""
    company = registry_service.soft_delete_company(db, principal, company_id, client=client)
    return _company_to_response(company)

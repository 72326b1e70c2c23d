from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from compliance.database import get_db
from compliance.dependencies import get_client_info, get_current_principal
from compliance.schemas.auth import AuthResponse, LoginRequest, MeResponse, SignupRequest
from compliance.services import identity_service
from compliance.services.audit_service import ClientInfo
from compliance.services.identity_service import Principal

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    req: SignupRequest,
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    return identity_service.signup(
        db, req.email, req.password, full_name=req.full_name, role=req.role, client=client,
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    req: LoginRequest,
    db: Session = Depends(get_db),
    client: ClientInfo = Depends(get_client_info),
):
    return identity_service.login(db, req.email, req.password, client=client)


@router.get("/me", response_model=MeResponse)
async def me(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return identity_service.me(db, principal)

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from compliance.config import settings
from compliance.database import get_db
from compliance.services.audit_service import ClientInfo
from compliance.services.identity_service import Principal, Role, authenticate, authorize


async def get_current_principal(
    request: Request,
    authorization: str | None = Header(None),
    db: Session = Depends(get_db),
) -> Principal:
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip() or None
    assertion = request.headers.get(settings.idp_assertion_header)
    return authenticate(db, token, assertion)


def require_roles(*roles: Role):
    """Router-level gate; engines repeat the same check through ``authorize``."""

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        authorize(principal, roles)
        return principal

    return dependency


def get_client_info(request: Request) -> ClientInfo:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return ClientInfo(ip_address=ip, user_agent=request.headers.get("user-agent"))

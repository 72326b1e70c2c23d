import logging
import re
import uuid
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterable

import jwt
from sqlalchemy.orm import Session

from compliance.config import settings
from compliance.errors import Conflict, Forbidden, Unauthorized, ValidationError
from compliance.models.user import User
from compliance.services import rate_limit_service
from compliance.services.audit_service import ClientInfo, record_audit
from compliance.utils.clock import utc_now
from compliance.utils.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger("compliance.identity")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8
IDP_ALGORITHMS = ["RS256", "ES256"]


class Role(str, Enum):
    USER = "user"
    PROFESSIONAL = "professional"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    user_id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


def authorize(principal: Principal, allowed_roles: Iterable[Role | str]) -> None:
    """Single role gate used by every engine entry point."""
    allowed = {r.value if isinstance(r, Role) else r for r in allowed_roles}
    if principal.role not in allowed:
        raise Forbidden("Your role is not allowed to perform this action")


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "created_at": user.created_at,
    }


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == _normalize_email(email)).first()


def create_user(db: Session, email: str, password: str, role: str,
                full_name: str | None = None) -> User:
    now = utc_now()
    user = User(
        id=str(uuid.uuid4()),
        email=_normalize_email(email),
        full_name=full_name,
        password_hash=hash_password(password),
        role=role,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def signup(db: Session, email: str, password: str, full_name: str | None = None,
           role: str = Role.USER.value, client: ClientInfo | None = None) -> dict:
    client = client or ClientInfo()
    rate_limit_service.check_signup(db, client.ip_address or "unknown")

    email = _normalize_email(email)
    errors = {}
    if not EMAIL_RE.match(email):
        errors["email"] = "A valid email is required"
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if role not in {r.value for r in Role}:
        errors["role"] = "Role must be one of: user, professional, admin"
    if errors:
        raise ValidationError("Invalid signup data", code="MissingFields", details=errors)

    if role == Role.ADMIN.value and not settings.allow_admin_signup:
        raise Forbidden("Admin accounts cannot be self-registered "
                        "unless COMPLIANCE_ALLOW_ADMIN_SIGNUP is set")

    if get_user_by_email(db, email):
        raise Conflict("User already exists", code="DuplicateEmail")

    user = create_user(db, email, password, role, full_name=full_name)
    record_audit(db, "USER_SIGNUP", "user", user.id, actor_id=user.id, client=client)

    return {
        "token": create_access_token(user.id, user.email, user.role),
        "user": _user_payload(user),
    }


def login(db: Session, email: str, password: str, client: ClientInfo | None = None) -> dict:
    client = client or ClientInfo()
    email = _normalize_email(email)
    if not email or not password:
        raise ValidationError("Email and password are required", code="MissingFields")

    ip = client.ip_address or "unknown"
    rate_limit_service.check_login(db, ip, email)

    user = get_user_by_email(db, email)
    if not user or not user.password_hash or not verify_password(user.password_hash, password):
        raise Unauthorized("Invalid credentials")

    rate_limit_service.reset_login(db, ip, email)
    record_audit(db, "USER_LOGIN", "user", user.id, actor_id=user.id, client=client)

    return {
        "token": create_access_token(user.id, user.email, user.role),
        "user": _user_payload(user),
    }


def me(db: Session, principal: Principal) -> dict:
    user = db.get(User, principal.user_id)
    if not user:
        raise Unauthorized("User no longer exists")
    return {"user": _user_payload(user)}


@lru_cache(maxsize=4)
def _get_jwks_client(url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(url)


def _principal_from_session_token(db: Session, token: str) -> Principal | None:
    try:
        claims = decode_access_token(token)
    except jwt.PyJWTError:
        return None
    # Claims are not revocable, so the stored user and role are authoritative.
    user = db.get(User, str(claims["sub"]))
    if not user:
        return None
    return Principal(user_id=user.id, email=user.email, role=user.role)


def _principal_from_identity_provider(db: Session, token: str) -> Principal | None:
    try:
        signing_key = _get_jwks_client(settings.idp_jwks_url).get_signing_key_from_jwt(token)
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=IDP_ALGORITHMS,
            audience=settings.idp_audience,
            issuer=settings.idp_issuer,
            options={"verify_aud": settings.idp_audience is not None},
        )
    except jwt.PyJWTError as exc:
        logger.info("Identity provider token rejected: %s", exc)
        return None

    email = claims.get("email")
    if not email:
        return None
    user = get_user_by_email(db, email)
    if not user:
        logger.info("Identity provider subject %s has no local account", claims.get("sub"))
        return None
    return Principal(user_id=user.id, email=user.email, role=user.role)


def authenticate(db: Session, token: str | None, assertion: str | None = None) -> Principal:
    """Resolve a principal from a self-issued token, then an identity-provider token."""
    if not token and not assertion:
        raise Unauthorized("Missing bearer token")

    if token:
        principal = _principal_from_session_token(db, token)
        if principal:
            return principal

    idp_token = assertion or token
    if idp_token and settings.idp_jwks_url:
        principal = _principal_from_identity_provider(db, idp_token)
        if principal:
            return principal

    raise Unauthorized("Invalid or expired token")


def ensure_admin(db: Session, email: str, password: str) -> User:
    """Create the configured admin account if it does not exist yet."""
    user = get_user_by_email(db, email)
    if user:
        if user.role != Role.ADMIN.value:
            logger.warning("Configured admin %s exists with role %s; leaving it unchanged",
                           user.email, user.role)
        return user
    user = create_user(db, email, password, Role.ADMIN.value, full_name="Administrator")
    logger.info("Seeded admin account %s", user.email)
    return user

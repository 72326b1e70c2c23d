import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from compliance.models.audit import AuditLog
from compliance.utils.clock import utc_now

logger = logging.getLogger("compliance.audit")


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


def record_audit(
    db: Session,
    action: str,
    resource_type: str,
    resource_id: str | None = None,
    actor_id: str | None = None,
    details: dict[str, Any] | None = None,
    client: ClientInfo | None = None,
) -> None:
    """Append an audit entry in its own commit.

    Called after the primary operation has committed. A failure here is
    logged and swallowed so it never undoes or fails the operation.
    """
    client = client or ClientInfo()
    entry = AuditLog(
        id=str(uuid.uuid4()),
        user_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=json.dumps(details or {}, default=str),
        ip_address=client.ip_address,
        user_agent=client.user_agent,
        created_at=utc_now(),
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Audit log write failed for %s on %s/%s: %s",
                       action, resource_type, resource_id, exc)

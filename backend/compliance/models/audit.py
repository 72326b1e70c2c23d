from sqlalchemy import Column, Text
from compliance.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Text, primary_key=True)
    user_id = Column(Text)
    action = Column(Text, nullable=False)
    resource_type = Column(Text, nullable=False)
    resource_id = Column(Text)
    details = Column(Text, nullable=False, default="{}")
    ip_address = Column(Text)
    user_agent = Column(Text)
    created_at = Column(Text, nullable=False)

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from compliance.database import Base


class WorkerDocumentType(Base):
    __tablename__ = "worker_document_types"

    id = Column(Text, primary_key=True)
    code = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    description = Column(Text)
    requires_front_back = Column(Boolean, nullable=False, default=False)
    requires_expiry_date = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(Text)


class WorkerDocument(Base):
    __tablename__ = "worker_documents"

    id = Column(Text, primary_key=True)
    worker_id = Column(Text, ForeignKey("workers.id", ondelete="CASCADE"), nullable=False)
    document_type_id = Column(Text, ForeignKey("worker_document_types.id"), nullable=False)
    status = Column(Text, nullable=False, default="UNDER_REVIEW")
    emission_date = Column(Text)
    expiry_date = Column(Text)
    file_key = Column(Text, nullable=False)
    file_key_back = Column(Text)
    file_name = Column(Text)
    file_size = Column(Integer)
    mime_type = Column(Text)
    uploaded_by = Column(Text)
    reviewed_by = Column(Text)
    reviewed_at = Column(Text)
    admin_comments = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    worker = relationship("Worker", back_populates="documents")
    document_type = relationship("WorkerDocumentType")

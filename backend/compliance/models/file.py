from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from compliance.database import Base


class File(Base):
    __tablename__ = "files"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="SET NULL"))
    uploaded_by = Column(Text, ForeignKey("users.id"), nullable=False)
    filename = Column(Text, nullable=False)
    storage_key = Column(Text, nullable=False, unique=True)
    mime = Column(Text, nullable=False)
    size = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    status = Column(Text, nullable=False, default="POR_REVISAR")
    created_at = Column(Text, nullable=False)

    job = relationship("Job", back_populates="files")

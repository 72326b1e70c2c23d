from sqlalchemy import Column, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from compliance.database import Base


class Worker(Base):
    __tablename__ = "workers"
    __table_args__ = (UniqueConstraint("company_id", "rut"),)

    id = Column(Text, primary_key=True)
    company_id = Column(Text, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    rut = Column(Text, nullable=False)
    email = Column(Text)
    phone = Column(Text)
    job_title = Column(Text)
    department = Column(Text)
    profile_image_key = Column(Text)
    additional_comments = Column(Text)
    status = Column(Text, nullable=False, default="ACTIVE")
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    company = relationship("Company", back_populates="workers")
    documents = relationship("WorkerDocument", back_populates="worker", cascade="all, delete-orphan")

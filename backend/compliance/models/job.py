from sqlalchemy import Column, Float, ForeignKey, Text
from sqlalchemy.orm import relationship
from compliance.database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    status = Column(Text, nullable=False, default="POR_REVISAR")
    professional_id = Column(Text, ForeignKey("users.id"))
    quote_amount = Column(Float)
    quote_currency = Column(Text, nullable=False, default="CLP")
    accepted_at = Column(Text)
    finished_at = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    quotes = relationship("Quote", back_populates="job", cascade="all, delete-orphan")
    files = relationship("File", back_populates="job")


class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    professional_id = Column(Text, ForeignKey("users.id"), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(Text, nullable=False, default="CLP")
    message = Column(Text)
    status = Column(Text, nullable=False, default="PENDING")
    created_at = Column(Text, nullable=False)

    job = relationship("Job", back_populates="quotes")

from sqlalchemy import Column, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from compliance.database import Base


class Company(Base):
    __tablename__ = "companies"
    __table_args__ = (UniqueConstraint("user_id", "rut"),)

    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    rut = Column(Text, nullable=False)
    industry = Column(Text)
    address = Column(Text)
    city = Column(Text, nullable=False)
    region = Column(Text, nullable=False)
    phone = Column(Text)
    email = Column(Text)
    website = Column(Text)
    employees_count = Column(Integer)
    description = Column(Text)
    logo_key = Column(Text)
    status = Column(Text, nullable=False, default="ACTIVE")
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    owner = relationship("User", back_populates="companies")
    # Soft delete only touches status, so workers are never cascaded from here.
    workers = relationship("Worker", back_populates="company")

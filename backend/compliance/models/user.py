from sqlalchemy import Column, Text
from sqlalchemy.orm import relationship
from compliance.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    email = Column(Text, nullable=False, unique=True)
    full_name = Column(Text)
    password_hash = Column(Text)
    role = Column(Text, nullable=False, default="user")
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    companies = relationship("Company", back_populates="owner")

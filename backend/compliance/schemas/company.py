from pydantic import BaseModel


class CompanyCreate(BaseModel):
    name: str
    rut: str
    city: str
    region: str
    industry: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    employees_count: int | None = None
    description: str | None = None


class CompanyUpdate(BaseModel):
    name: str | None = None
    rut: str | None = None
    city: str | None = None
    region: str | None = None
    industry: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    employees_count: int | None = None
    description: str | None = None
    status: str | None = None


class CompanyResponse(BaseModel):
    id: str
    user_id: str
    name: str
    rut: str
    industry: str | None
    address: str | None
    city: str
    region: str
    phone: str | None
    email: str | None
    website: str | None
    employees_count: int | None
    description: str | None
    logo_key: str | None
    status: str
    created_at: str
    updated_at: str

from pydantic import BaseModel, Field

from compliance.schemas.file import FileResponse


class JobCreate(BaseModel):
    title: str
    description: str | None = None
    file_ids: list[str] = []


class QuoteCreate(BaseModel):
    amount: float = Field(gt=0, allow_inf_nan=False)
    currency: str = "CLP"
    message: str | None = None


class AcceptQuoteRequest(BaseModel):
    quote_id: str


class QuoteResponse(BaseModel):
    id: str
    job_id: str
    professional_id: str
    amount: float
    currency: str
    message: str | None
    status: str
    created_at: str


class JobResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: str | None
    status: str
    professional_id: str | None
    quote_amount: float | None
    quote_currency: str
    accepted_at: str | None
    finished_at: str | None
    created_at: str
    updated_at: str


class JobDetailResponse(BaseModel):
    job: JobResponse
    files: list[FileResponse]
    quotes: list[QuoteResponse]


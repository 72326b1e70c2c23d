from pydantic import BaseModel


class FileResponse(BaseModel):
    id: str
    job_id: str | None
    uploaded_by: str
    filename: str
    storage_key: str
    mime: str
    size: int
    version: int
    status: str
    created_at: str

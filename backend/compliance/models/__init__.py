from compliance.models.user import User
from compliance.models.company import Company
from compliance.models.worker import Worker
from compliance.models.document import WorkerDocument, WorkerDocumentType
from compliance.models.job import Job, Quote
from compliance.models.file import File
from compliance.models.audit import AuditLog

__all__ = [
    "User", "Company", "Worker", "WorkerDocument", "WorkerDocumentType",
    "Job", "Quote", "File", "AuditLog",
]

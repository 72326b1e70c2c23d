import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from compliance.config import settings
from compliance.database import SessionLocal, init_db
from compliance.errors import AppError, InternalError
from compliance.routers import auth, companies, documents, files, jobs, workers
from compliance.services.identity_service import ensure_admin
from compliance.utils.filesystem import ensure_data_dirs

logger = logging.getLogger("compliance")

DEFAULT_JWT_SECRET = "development-only-signing-secret-change-me"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ensure_data_dirs()
    init_db()
    logger.info("Database ready at %s", settings.db_path)

    if settings.jwt_secret == DEFAULT_JWT_SECRET and settings.environment != "development":
        logger.warning("COMPLIANCE_JWT_SECRET is the development default; tokens are forgeable.")

    if settings.admin_email and settings.admin_password:
        db = SessionLocal()
        try:
            ensure_admin(db, settings.admin_email, settings.admin_password)
        finally:
            db.close()
    yield


app = FastAPI(
    title="Compliance API",
    description="Worker compliance documents, reviews and job quotes",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"] if part not in ("body", "query", "path", "form"))
        details[field or "request"] = err["msg"]
    body = {"error": "ValidationError", "message": "Invalid request", "details": details}
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content=InternalError().to_dict())


app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(companies.router, prefix=settings.api_prefix)
app.include_router(workers.router, prefix=settings.api_prefix)
app.include_router(documents.router, prefix=settings.api_prefix)
app.include_router(jobs.router, prefix=settings.api_prefix)
app.include_router(files.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}

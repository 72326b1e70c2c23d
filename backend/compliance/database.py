import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from compliance.config import settings


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


SCHEMA_SQL = """\
-- ============================================================
-- USERS
-- ============================================================
CREATE TABLE IF NOT EXISTS users (
    id            TEXT PRIMARY KEY,
    email         TEXT NOT NULL UNIQUE,
    full_name     TEXT,
    password_hash TEXT,
    role          TEXT NOT NULL DEFAULT 'user'
                  CHECK(role IN ('user','professional','admin')),
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);

-- ============================================================
-- COMPANIES
-- ============================================================
CREATE TABLE IF NOT EXISTS companies (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    name            TEXT NOT NULL,
    rut             TEXT NOT NULL,
    industry        TEXT,
    address         TEXT,
    city            TEXT NOT NULL,
    region          TEXT NOT NULL,
    phone           TEXT,
    email           TEXT,
    website         TEXT,
    employees_count INTEGER,
    description     TEXT,
    logo_key        TEXT,
    status          TEXT NOT NULL DEFAULT 'ACTIVE'
                    CHECK(status IN ('ACTIVE','INACTIVE','SUSPENDED')),
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_companies_owner_rut ON companies(user_id, rut);

-- ============================================================
-- WORKERS
-- ============================================================
CREATE TABLE IF NOT EXISTS workers (
    id                  TEXT PRIMARY KEY,
    company_id          TEXT NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
    first_name          TEXT NOT NULL,
    last_name           TEXT NOT NULL,
    rut                 TEXT NOT NULL,
    email               TEXT,
    phone               TEXT,
    job_title           TEXT,
    department          TEXT,
    profile_image_key   TEXT,
    additional_comments TEXT,
    status              TEXT NOT NULL DEFAULT 'ACTIVE'
                        CHECK(status IN ('ACTIVE','INACTIVE')),
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_workers_company_rut ON workers(company_id, rut);

-- ============================================================
-- WORKER DOCUMENTS
-- ============================================================
CREATE TABLE IF NOT EXISTS worker_document_types (
    id                   TEXT PRIMARY KEY,
    code                 TEXT NOT NULL UNIQUE,
    name                 TEXT NOT NULL,
    description          TEXT,
    requires_front_back  INTEGER NOT NULL DEFAULT 0,
    requires_expiry_date INTEGER NOT NULL DEFAULT 0,
    order_index          INTEGER NOT NULL DEFAULT 0,
    created_at           TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE TABLE IF NOT EXISTS worker_documents (
    id               TEXT PRIMARY KEY,
    worker_id        TEXT NOT NULL REFERENCES workers(id) ON DELETE CASCADE,
    document_type_id TEXT NOT NULL REFERENCES worker_document_types(id),
    status           TEXT NOT NULL DEFAULT 'UNDER_REVIEW'
                     CHECK(status IN ('UNDER_REVIEW','IN_REVIEW','APPROVED','REJECTED')),
    emission_date    TEXT,
    expiry_date      TEXT,
    file_key         TEXT NOT NULL,
    file_key_back    TEXT,
    file_name        TEXT,
    file_size        INTEGER,
    mime_type        TEXT,
    uploaded_by      TEXT,
    reviewed_by      TEXT,
    reviewed_at      TEXT,
    admin_comments   TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_worker_documents_worker ON worker_documents(worker_id);
CREATE INDEX IF NOT EXISTS idx_worker_documents_status ON worker_documents(status);

-- ============================================================
-- JOBS & QUOTES
-- ============================================================
CREATE TABLE IF NOT EXISTS jobs (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL REFERENCES users(id),
    title           TEXT NOT NULL,
    description     TEXT,
    status          TEXT NOT NULL DEFAULT 'POR_REVISAR'
                    CHECK(status IN ('POR_REVISAR','REVISION_EN_PROGRESO','COTIZACION',
                                     'TRABAJO_EN_PROGRESO','FINALIZADO')),
    professional_id TEXT REFERENCES users(id),
    quote_amount    REAL,
    quote_currency  TEXT NOT NULL DEFAULT 'CLP',
    accepted_at     TEXT,
    finished_at     TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_jobs_user ON jobs(user_id);
CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);

CREATE TABLE IF NOT EXISTS quotes (
    id              TEXT PRIMARY KEY,
    job_id          TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    professional_id TEXT NOT NULL REFERENCES users(id),
    amount          REAL NOT NULL CHECK(amount > 0),
    currency        TEXT NOT NULL DEFAULT 'CLP',
    message         TEXT,
    status          TEXT NOT NULL DEFAULT 'PENDING'
                    CHECK(status IN ('PENDING','ACCEPTED','REJECTED')),
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_quotes_job ON quotes(job_id);

-- ============================================================
-- FILES
-- ============================================================
CREATE TABLE IF NOT EXISTS files (
    id          TEXT PRIMARY KEY,
    job_id      TEXT REFERENCES jobs(id) ON DELETE SET NULL,
    uploaded_by TEXT NOT NULL REFERENCES users(id),
    filename    TEXT NOT NULL,
    storage_key TEXT NOT NULL UNIQUE,
    mime        TEXT NOT NULL,
    size        INTEGER NOT NULL,
    version     INTEGER NOT NULL DEFAULT 1,
    status      TEXT NOT NULL DEFAULT 'POR_REVISAR'
                CHECK(status IN ('POR_REVISAR','EN_REVISION','APROBADO','RECHAZADO','FIRMADO')),
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_files_job ON files(job_id);
CREATE INDEX IF NOT EXISTS idx_files_uploaded_by ON files(uploaded_by);

-- ============================================================
-- AUDIT LOG
-- ============================================================
CREATE TABLE IF NOT EXISTS audit_logs (
    id            TEXT PRIMARY KEY,
    user_id       TEXT,
    action        TEXT NOT NULL,
    resource_type TEXT NOT NULL,
    resource_id   TEXT,
    details       TEXT NOT NULL DEFAULT '{}',
    ip_address    TEXT,
    user_agent    TEXT,
    created_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_logs_resource ON audit_logs(resource_type, resource_id);

-- ============================================================
-- AUTH THROTTLE
-- ============================================================
CREATE TABLE IF NOT EXISTS auth_throttle (
    key          TEXT NOT NULL,
    attempted_at REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_auth_throttle_key ON auth_throttle(key, attempted_at);

CREATE TABLE IF NOT EXISTS auth_lockout (
    key          TEXT PRIMARY KEY,
    locked_until REAL NOT NULL
);
"""

SEED_SQL = """\
INSERT OR IGNORE INTO worker_document_types
    (id, code, name, description, requires_front_back, requires_expiry_date, order_index)
VALUES
    ('doctype-cedula', 'CEDULA_IDENTIDAD', 'Cédula de identidad',
     'Ambas caras de la cédula vigente', 1, 1, 1),
    ('doctype-licencia', 'LICENCIA_CONDUCIR', 'Licencia de conducir',
     'Ambas caras de la licencia vigente', 1, 1, 2),
    ('doctype-antecedentes', 'CERTIFICADO_ANTECEDENTES', 'Certificado de antecedentes',
     NULL, 0, 0, 3),
    ('doctype-contrato', 'CONTRATO_TRABAJO', 'Contrato de trabajo',
     NULL, 0, 0, 4),
    ('doctype-examen', 'EXAMEN_PREOCUPACIONAL', 'Examen preocupacional',
     'Resultado del examen de salud ocupacional', 0, 1, 5),
    ('doctype-capacitacion', 'CERTIFICADO_CAPACITACION', 'Certificado de capacitación',
     NULL, 0, 0, 6),
    ('doctype-epp', 'ENTREGA_EPP', 'Registro de entrega de EPP',
     'Elementos de protección personal', 0, 0, 7);
"""


MIGRATIONS: list[str] = []


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    # Run migrations idempotently (ALTER TABLE fails if the column exists)
    for migration in MIGRATIONS:
        try:
            conn.execute(migration)
            conn.commit()
        except sqlite3.OperationalError:
            pass  # already applied
    conn.executescript(SEED_SQL)
    conn.commit()
    conn.close()

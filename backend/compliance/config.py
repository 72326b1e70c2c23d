from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_path: Path = Path.home() / "ComplianceData"
    environment: str = "development"
    api_prefix: str = "/api"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]

    # Self-issued bearer tokens (HS256). Override outside development.
    jwt_secret: str = "development-only-signing-secret-change-me"
    jwt_expiry_days: int = 7

    # External identity provider tokens, verified against a JWKS endpoint.
    # Disabled while idp_jwks_url is unset.
    idp_jwks_url: str | None = None
    idp_audience: str | None = None
    idp_issuer: str | None = None
    idp_assertion_header: str = "Cf-Access-Jwt-Assertion"

    max_upload_bytes: int = 200 * 1024 * 1024  # 200 MiB
    max_photo_bytes: int = 5 * 1024 * 1024  # 5 MiB

    signup_rate_limit: int = 5
    signup_rate_window_seconds: int = 3600
    login_ip_rate_limit: int = 20
    login_rate_limit: int = 5
    login_rate_window_seconds: int = 900
    login_lockout_seconds: int = 1800

    # The web client validates the RUT check digit; the API only checks the shape
    # unless this is enabled.
    verify_rut_check_digit: bool = False

    allow_admin_signup: bool = False
    admin_email: str | None = None
    admin_password: str | None = None

    @property
    def db_path(self) -> Path:
        return self.data_path / "db.sqlite"

    @property
    def files_path(self) -> Path:
        return self.data_path / "files"

    model_config = {"env_prefix": "COMPLIANCE_"}


settings = Settings()

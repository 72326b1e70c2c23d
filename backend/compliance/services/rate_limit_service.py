import math
import time

from sqlalchemy import text
from sqlalchemy.orm import Session

from compliance.config import settings
from compliance.errors import RateLimited


class RateLimiter:
    """Sliding-window attempt counter persisted in the database.

    Each attempt is stored as a timestamped hit; a key is over its limit when
    it already has ``limit`` hits inside the trailing window. Optional
    lockouts block a key outright until they expire.
    """

    def check(self, db: Session, key: str, limit: int, window_seconds: int,
              message: str, lockout_seconds: int | None = None,
              now: float | None = None) -> None:
        now = now if now is not None else time.time()

        locked_until = self._locked_until(db, key)
        if locked_until and locked_until > now:
            remaining = locked_until - now
            minutes = math.ceil(remaining / 60)
            raise RateLimited(
                f"Too many attempts. Temporarily locked; try again in {minutes} minute(s).",
                retry_after=math.ceil(remaining),
            )

        cutoff = now - window_seconds
        db.execute(
            text("DELETE FROM auth_throttle WHERE key = :key AND attempted_at <= :cutoff"),
            {"key": key, "cutoff": cutoff},
        )
        row = db.execute(
            text("SELECT COUNT(*), MIN(attempted_at) FROM auth_throttle WHERE key = :key"),
            {"key": key},
        ).fetchone()
        count = int(row[0]) if row else 0
        oldest = float(row[1]) if row and row[1] is not None else now

        if count >= limit:
            if lockout_seconds:
                self._lock(db, key, now + lockout_seconds)
                db.commit()
                raise RateLimited(message, retry_after=lockout_seconds)
            db.commit()
            raise RateLimited(message, retry_after=math.ceil(oldest + window_seconds - now))

        db.execute(
            text("INSERT INTO auth_throttle (key, attempted_at) VALUES (:key, :now)"),
            {"key": key, "now": now},
        )
        db.commit()

    def reset(self, db: Session, key: str) -> None:
        db.execute(text("DELETE FROM auth_throttle WHERE key = :key"), {"key": key})
        db.execute(text("DELETE FROM auth_lockout WHERE key = :key"), {"key": key})
        db.commit()

    def _locked_until(self, db: Session, key: str) -> float | None:
        row = db.execute(
            text("SELECT locked_until FROM auth_lockout WHERE key = :key"),
            {"key": key},
        ).fetchone()
        return float(row[0]) if row else None

    def _lock(self, db: Session, key: str, until: float) -> None:
        db.execute(
            text(
                """
                INSERT INTO auth_lockout (key, locked_until)
                VALUES (:key, :until)
                ON CONFLICT(key) DO UPDATE SET locked_until = :until
                """
            ),
            {"key": key, "until": until},
        )


rate_limiter = RateLimiter()


def check_signup(db: Session, ip: str) -> None:
    rate_limiter.check(
        db,
        f"signup:{ip}",
        settings.signup_rate_limit,
        settings.signup_rate_window_seconds,
        "Too many signup attempts. Try again in an hour.",
    )


def check_login(db: Session, ip: str, email: str) -> None:
    rate_limiter.check(
        db,
        f"login-ip:{ip}",
        settings.login_ip_rate_limit,
        settings.login_rate_window_seconds,
        "Too many login attempts from this address. Try again later.",
    )
    rate_limiter.check(
        db,
        f"login:{ip}:{email}",
        settings.login_rate_limit,
        settings.login_rate_window_seconds,
        f"Too many login attempts. Account locked for "
        f"{settings.login_lockout_seconds // 60} minutes.",
        lockout_seconds=settings.login_lockout_seconds,
    )


def reset_login(db: Session, ip: str, email: str) -> None:
    rate_limiter.reset(db, f"login:{ip}:{email}")

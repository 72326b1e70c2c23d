import re
from pathlib import Path
from compliance.config import settings


def ensure_data_dirs(data_path: Path | None = None) -> Path:
    path = data_path or settings.data_path
    path.mkdir(parents=True, exist_ok=True)
    (path / "files").mkdir(exist_ok=True)
    return path


def sanitize_filename(name: str) -> str:
    # Drop any directory component, including Windows-style separators.
    base = re.split(r"[\\/]", name or "")[-1]
    keep = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._-")
    safe = "".join(c if c in keep else "_" for c in base).lstrip(".")
    return safe or "file"


def attachment_headers(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{sanitize_filename(filename)}"'}

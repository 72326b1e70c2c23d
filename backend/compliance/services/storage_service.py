import logging
import threading
import time
from pathlib import Path

from compliance.config import settings
from compliance.errors import InternalError
from compliance.utils.filesystem import sanitize_filename

logger = logging.getLogger("compliance.storage")


class KeyClock:
    """Millisecond timestamps that never repeat within the process."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            now = time.time_ns() // 1_000_000
            self._last = max(now, self._last + 1)
            return self._last


key_clock = KeyClock()


def generate_key(scope: str, filename: str) -> str:
    """Build ``{scope}/{timestamp}-{filename}`` with every segment sanitized."""
    segments = [sanitize_filename(s) for s in scope.split("/") if s]
    return "/".join(segments + [f"{key_clock.next()}-{sanitize_filename(filename)}"])


class LocalObjectStore:
    """Opaque-key object store backed by a directory under the data path."""

    def __init__(self, root: Path | None = None):
        self._root = root

    @property
    def root(self) -> Path:
        return self._root or settings.files_path

    def _path(self, key: str) -> Path:
        root = self.root.resolve()
        path = (root / key).resolve()
        if root not in path.parents:
            raise InternalError("Invalid storage key")
        return path

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.error("Storage write failed for %s: %s", key, exc)
            raise InternalError("File storage is unavailable") from exc

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            logger.error("Storage read failed for %s: %s", key, exc)
            raise InternalError("File storage is unavailable") from exc

    def exists(self, key: str) -> bool:
        try:
            return self._path(key).is_file()
        except InternalError:
            return False

    def delete(self, key: str) -> bool:
        """Best-effort removal; returns False instead of raising."""
        try:
            path = self._path(key)
            if path.exists():
                path.unlink()
                return True
        except (OSError, InternalError) as exc:
            logger.warning("Storage delete failed for %s: %s", key, exc)
        return False


object_store = LocalObjectStore()

import logging
import os
from pathlib import Path
from typing import Optional

from ..settings import settings
from .s3_compat import PutResult, key_from_url

logger = logging.getLogger("recipehub.storage")


def media_root() -> Path:
    return Path(settings.media_root) if settings.media_root else (Path(os.getcwd()) / "media")


class LocalStore:
    """Writes objects under the media root; served by the app at /media."""

    def __init__(self, root: Path | None = None):
        self.root = root or media_root()
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = f"{settings.backend_url.rstrip('/')}/media"

    def _path(self, key: str) -> Path:
        if ".." in key or key.startswith("/"):
            raise ValueError("Invalid storage key")
        return self.root / key

    def put_bytes(self, *, key: str, content_type: str, data: bytes) -> PutResult:
        file_path = self._path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(data)
        logger.info(f"Saved {len(data)} bytes ({content_type}) to {file_path}")
        return PutResult(key=key, public_url=f"{self.public_base_url}/{key}")

    def key_for_url(self, url: str) -> Optional[str]:
        return key_from_url(self.public_base_url, url)

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def delete(self, key: str) -> None:
        file_path = self._path(key)
        if file_path.exists():
            file_path.unlink()
            logger.info(f"Deleted file {file_path}")

    def healthcheck(self) -> bool:
        return self.root.is_dir()

"""
Uploaded image storage.

Files are stored under generated names (<epoch ms>-<32 hex chars><ext>) and
addressed by a reference path such as /uploads/1700000000000-ab12….png.
Validation runs before anything is written. Deleting a missing file is not
an error: it is logged and reported as False.

The backends are plain synchronous classes with no web-framework imports;
callers in async code run them in a worker thread.
"""
import logging
import mimetypes
import secrets
import time
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from inkwell.config import Settings
from inkwell.errors import UploadRejected

logger = logging.getLogger(__name__)


def generate_name(original_name: str) -> str:
    timestamp = int(time.time() * 1000)
    return f"{timestamp}-{secrets.token_hex(16)}{PurePosixPath(original_name).suffix.lower()}"


class FileStorage(ABC):
    def __init__(
        self,
        max_bytes: int,
        allowed_extensions: Iterable[str],
        url_prefix: str = "/uploads",
    ) -> None:
        self.max_bytes = max_bytes
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions}
        self.url_prefix = url_prefix.rstrip("/")

    def validate(self, size: int, original_name: str, content_type: Optional[str] = None) -> None:
        if size > self.max_bytes:
            raise UploadRejected(f"File exceeds the {self.max_bytes // (1024 * 1024)} MB limit")
        if size == 0:
            raise UploadRejected("File is empty")
        extension = PurePosixPath(original_name or "").suffix.lower()
        if extension not in self.allowed_extensions:
            raise UploadRejected("Only image files are allowed")
        guessed, _ = mimetypes.guess_type(f"file{extension}")
        content_type = content_type or guessed
        if not content_type or not content_type.startswith("image/"):
            raise UploadRejected("Only image files are allowed")

    def store(self, data: bytes, original_name: str, content_type: Optional[str] = None) -> str:
        """Validate and persist data, returning its reference path."""
        self.validate(len(data), original_name, content_type)
        name = generate_name(original_name)
        self._write(name, data, content_type or mimetypes.guess_type(name)[0])
        logger.info("File uploaded successfully: %s (%d bytes)", name, len(data))
        return f"{self.url_prefix}/{name}"

    def delete(self, reference: str) -> bool:
        """Remove the object behind reference; False if it did not exist."""
        name = self.name_from_reference(reference)
        if name is None or not self._remove(name):
            logger.warning("File to delete not found: %s", reference)
            return False
        logger.info("File deleted successfully: %s", name)
        return True

    def name_from_reference(self, reference: Optional[str]) -> Optional[str]:
        """The stored object name for one of our references, else None."""
        if not reference or not reference.startswith(self.url_prefix + "/"):
            return None
        name = reference[len(self.url_prefix) + 1:]
        if not name or "/" in name or name in (".", ".."):
            return None
        return name

    @abstractmethod
    def _write(self, name: str, data: bytes, content_type: Optional[str]) -> None: ...

    @abstractmethod
    def _remove(self, name: str) -> bool: ...


class LocalFileStorage(FileStorage):
    def __init__(self, root: str | Path, **kwargs) -> None:
        super().__init__(**kwargs)
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.root / name

    def _write(self, name: str, data: bytes, content_type: Optional[str]) -> None:
        self.path_for(name).write_bytes(data)

    def _remove(self, name: str) -> bool:
        try:
            self.path_for(name).unlink()
        except FileNotFoundError:
            return False
        return True


def init_file_storage(settings: Settings) -> FileStorage:
    options = dict(
        max_bytes=settings.upload_max_bytes,
        allowed_extensions=settings.upload_allowed_extensions,
        url_prefix=settings.upload_url_prefix,
    )
    if settings.upload_backend == "s3":
        from inkwell.clients.minio_client import S3FileStorage, init_minio

        return S3FileStorage(init_minio(settings), settings.minio_bucket, **options)
    if settings.upload_backend != "local":
        raise ValueError(f"Unknown upload backend '{settings.upload_backend}'")
    logger.info("Storing uploads under %s", Path(settings.upload_dir).resolve())
    return LocalFileStorage(settings.upload_dir, **options)

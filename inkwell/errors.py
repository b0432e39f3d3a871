"""Error types raised at the persistence and upload boundaries."""


class StorageError(Exception):
    """Unexpected failure in the persistence layer."""


class ConstraintViolation(StorageError):
    """A uniqueness, foreign-key or check constraint rejected the write."""


class UploadRejected(ValueError):
    """An uploaded file failed size or type validation."""

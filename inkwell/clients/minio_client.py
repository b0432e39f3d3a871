"""
MinIO (S3-compatible) backend for uploaded images.

Objects live under uploads/{name} in the media bucket. Readers are
redirected to pre-signed URLs so image bytes never pass through the API.
"""
import logging
from io import BytesIO
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from inkwell.config import Settings
from inkwell.uploads import FileStorage

logger = logging.getLogger(__name__)

KEY_PREFIX = "uploads"


def init_minio(settings: Settings):
    """Create the S3 client and ensure the media bucket exists."""
    scheme = "https" if settings.minio_use_ssl else "http"
    s3 = boto3.client(
        "s3",
        endpoint_url=f"{scheme}://{settings.minio_endpoint}",
        aws_access_key_id=settings.minio_access_key,
        aws_secret_access_key=settings.minio_secret_key,
        config=Config(signature_version="s3v4"),
        region_name="us-east-1",
    )

    existing = [b["Name"] for b in s3.list_buckets().get("Buckets", [])]
    if settings.minio_bucket not in existing:
        s3.create_bucket(Bucket=settings.minio_bucket)
        logger.info("Created MinIO bucket '%s'", settings.minio_bucket)
    else:
        logger.info("MinIO bucket '%s' already exists", settings.minio_bucket)
    return s3


class S3FileStorage(FileStorage):
    def __init__(self, s3, bucket: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self._s3 = s3
        self.bucket = bucket

    @staticmethod
    def key_for(name: str) -> str:
        return f"{KEY_PREFIX}/{name}"

    def _write(self, name: str, data: bytes, content_type: Optional[str]) -> None:
        extra = {"ContentType": content_type} if content_type else {}
        self._s3.put_object(Bucket=self.bucket, Key=self.key_for(name), Body=BytesIO(data), **extra)

    def _remove(self, name: str) -> bool:
        # DeleteObject succeeds for missing keys, so check first.
        try:
            self._s3.head_object(Bucket=self.bucket, Key=self.key_for(name))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
        self._s3.delete_object(Bucket=self.bucket, Key=self.key_for(name))
        return True

    def presigned_url(self, name: str, expires_in: int = 3600) -> Optional[str]:
        """Generate a temporary pre-signed URL valid for `expires_in` seconds."""
        try:
            return self._s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": self.key_for(name)},
                ExpiresIn=expires_in,
            )
        except ClientError as exc:
            logger.warning("Failed to generate presigned URL for %s: %s", name, exc)
            return None

"""
Image upload endpoints:
  POST /upload          — store an image (signed in), returns {"url": ...}
  GET  /uploads/{name}  — S3 backend only: redirect to a pre-signed URL
                          (the local backend is served by a StaticFiles mount)
"""
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from opentelemetry import trace

from inkwell.dependencies import get_file_storage, require_auth
from inkwell.errors import UploadRejected
from inkwell.schemas import UploadResponse
from inkwell.telemetry import UPLOADS_TOTAL
from inkwell.uploads import FileStorage

logger = logging.getLogger(__name__)
router = APIRouter()
media_router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile = File(...),
    user_id: int = Depends(require_auth),
    files: FileStorage = Depends(get_file_storage),
):
    with tracer.start_as_current_span("upload_image") as span:
        # One byte past the limit is enough to know the file is too large.
        data = await file.read(files.max_bytes + 1)
        span.set_attribute("upload.bytes", len(data))
        try:
            url = await run_in_threadpool(files.store, data, file.filename or "", file.content_type)
        except UploadRejected:
            UPLOADS_TOTAL.labels(result="rejected").inc()
            logger.info("Rejected upload '%s' from user %s", file.filename, user_id)
            raise
        finally:
            await file.close()

        UPLOADS_TOTAL.labels(result="stored").inc()
        return UploadResponse(url=url)


@media_router.get("/{name}")
async def serve_media(name: str, files: FileStorage = Depends(get_file_storage)):
    url = files.presigned_url(name)
    if url is None:
        raise HTTPException(status_code=404, detail="File not found")
    return RedirectResponse(url)

"""Image uploads to Cloudinary."""

import io
import logging

import cloudinary.exceptions
import cloudinary.uploader
from fastapi import HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from stayfinder.config import settings

logger = logging.getLogger(__name__)


async def read_image(file: UploadFile) -> bytes:
    """Read an upload after checking its content type and size.

    Raises:
        HTTPException 400: unsupported type, empty file, or larger than
            ``settings.max_upload_size_bytes``.
    """
    if file.content_type not in settings.allowed_image_types:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only JPEG, PNG, WebP and AVIF images are allowed.",
        )

    data = await file.read(settings.max_upload_size_bytes + 1)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    if len(data) > settings.max_upload_size_bytes:
        limit_mb = settings.max_upload_size_bytes // (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size is {limit_mb}MB.",
        )
    return data


def _upload_sync(data: bytes, filename: str | None, folder: str) -> dict:
    return cloudinary.uploader.upload(
        io.BytesIO(data),
        folder=folder,
        resource_type="image",
        filename=filename or "upload",
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        secure=True,
    )


async def upload_image(data: bytes, filename: str | None = None, subfolder: str | None = None) -> dict[str, str]:
    """Upload image bytes and return ``{"url", "public_id"}``.

    Raises:
        HTTPException 503: Cloudinary is not configured.
        HTTPException 502: Cloudinary rejected the upload.
    """
    if not settings.cloudinary_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Image uploads are not configured",
        )

    folder = settings.cloudinary_folder if not subfolder else f"{settings.cloudinary_folder}/{subfolder}"
    try:
        result = await run_in_threadpool(_upload_sync, data, filename, folder)
    except cloudinary.exceptions.Error as exc:
        logger.warning("Cloudinary upload failed for %r: %s", filename, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Image upload failed",
        ) from exc

    logger.info("Uploaded image %s (%d bytes)", result.get("public_id"), len(data))
    return {"url": result["secure_url"], "public_id": result["public_id"]}

"""Uploads API router — images for profiles and listings, stored on Cloudinary."""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from stayfinder.api.deps import get_current_user, require_host, upload_rate_limit
from stayfinder.config import settings
from stayfinder.models.user import User
from stayfinder.schemas.upload import UploadedImage, UploadedImages
from stayfinder.services.upload_service import read_image, upload_image

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/uploads",
    tags=["uploads"],
    dependencies=[Depends(upload_rate_limit)],
)


async def _upload_one(file: UploadFile, subfolder: str) -> dict[str, str]:
    data = await read_image(file)
    return await upload_image(data, file.filename, subfolder)


async def _upload_many(files: list[UploadFile], subfolder: str) -> dict:
    if len(files) > settings.max_upload_files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Maximum is {settings.max_upload_files} per request.",
        )

    # Validate everything before sending anything to the CDN.
    payloads = [(await read_image(file), file.filename) for file in files]
    return {"images": [await upload_image(data, filename, subfolder) for data, filename in payloads]}


@router.post("/single", response_model=UploadedImage)
async def upload_single(
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
) -> dict[str, str]:
    return await _upload_one(image, "general")


@router.post("/multiple", response_model=UploadedImages)
async def upload_multiple(
    images: list[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
) -> dict:
    return await _upload_many(images, "general")


@router.post("/property/single", response_model=UploadedImage)
async def upload_property_single(
    image: UploadFile = File(...),
    current_user: User = Depends(require_host),
) -> dict[str, str]:
    return await _upload_one(image, "properties")


@router.post("/property/multiple", response_model=UploadedImages)
async def upload_property_multiple(
    images: list[UploadFile] = File(...),
    current_user: User = Depends(require_host),
) -> dict:
    return await _upload_many(images, "properties")

"""Pydantic v2 response schemas for image uploads."""

from pydantic import BaseModel


class UploadedImage(BaseModel):
    url: str
    public_id: str


class UploadedImages(BaseModel):
    images: list[UploadedImage]

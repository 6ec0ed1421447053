"""Pydantic schemas for public upload and upload token endpoints.

The dashboard client speaks camelCase; fields are declared in snake_case and
aliased on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.uploads.validators import UPLOAD_KIND_IMAGE


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ArticleRef(CamelModel):
    id: int
    title: str


class ArticleSummary(CamelModel):
    id: int
    title: str
    status: str


class ImageUploadResponse(CamelModel):
    success: bool = True
    message: str
    image_url: str
    article: ArticleRef


class ArchiveResult(CamelModel):
    success: bool = True
    message: str
    source_file: str
    content_length: int


class ArchiveUploadResponse(CamelModel):
    success: bool = True
    message: str
    result: ArchiveResult
    article: ArticleRef


class TokenImageUploadResponse(ImageUploadResponse):
    uploads_remaining: Optional[int] = None


class TokenArchiveUploadResponse(ArchiveUploadResponse):
    uploads_remaining: Optional[int] = None


class GenerateTokenRequest(CamelModel):
    article_id: int = Field(gt=0)
    upload_types: Optional[list[str]] = None
    upload_type: Optional[str] = Field(default=None, max_length=40)
    expiration_days: Optional[int] = Field(default=None, ge=1, le=365)
    max_uses: int = Field(default=1, ge=0)
    name: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None, max_length=2000)

    def requested_upload_types(self) -> list[str]:
        if self.upload_types:
            return list(self.upload_types)
        if self.upload_type:
            return [self.upload_type]
        return [UPLOAD_KIND_IMAGE]


class GenerateTokenResponse(CamelModel):
    success: bool = True
    id: int
    token: str
    name: str
    upload_types: list[str]
    upload_urls: dict[str, str]
    upload_url: str
    expires_at: datetime
    max_uses: int


class UploadTokenItem(CamelModel):
    id: int
    token: str
    upload_types: list[str]
    upload_urls: dict[str, str]
    created_at: datetime
    expires_at: datetime
    max_uses: int
    uses: int
    uploads_remaining: Optional[int] = None
    active: bool
    name: str
    notes: str


class UploadTokenListResponse(CamelModel):
    article_id: int
    article_title: str
    tokens: list[UploadTokenItem]


class DeleteTokenResponse(CamelModel):
    success: bool = True


class TokenInfo(CamelModel):
    id: int
    upload_types: list[str]
    upload_urls: dict[str, str]
    expires_at: datetime
    max_uses: int
    uses: int
    uploads_remaining: Optional[int] = None
    active: bool
    name: str
    notes: str


class TokenInfoResponse(CamelModel):
    success: bool = True
    token: TokenInfo
    article: ArticleSummary

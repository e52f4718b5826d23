"""Schemas for archive export and publish requests."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.models.drive import ArchiveItemOutcome, PublishResult


class ArchiveRequest(BaseModel):
    """Either an ordered list of file ids or a single folder root."""

    file_ids: Optional[List[str]] = Field(
        default=None, description="Files to archive under their bare names."
    )
    folder_id: Optional[str] = Field(
        default=None, description="Folder whose subtree is archived with relative paths."
    )
    archive_name: Optional[str] = Field(
        default=None,
        description="Archive file name; defaults to the folder name or 'arquivos.zip'.",
    )

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "ArchiveRequest":
        if bool(self.file_ids) == bool(self.folder_id):
            raise ValueError("Provide either a non-empty file_ids list or a folder_id.")
        if self.archive_name and not self.archive_name.lower().endswith(".zip"):
            self.archive_name = f"{self.archive_name}.zip"
        return self


class ArchivePublishRequest(ArchiveRequest):
    destination_folder_id: str = Field(
        ..., description="Drive folder that receives the finished archive."
    )


class ArchiveItemSchema(BaseModel):
    file_id: str
    path: Optional[str] = None
    status: str
    reason: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: ArchiveItemOutcome) -> "ArchiveItemSchema":
        return cls(
            file_id=outcome.file_id,
            path=outcome.path,
            status=outcome.status.value,
            reason=outcome.reason,
        )


class PublishedFileSchema(BaseModel):
    id: str
    name: str
    public_view_url: str
    public_download_url: str
    permission_error: Optional[str] = None

    @classmethod
    def from_result(cls, result: PublishResult) -> "PublishedFileSchema":
        return cls(
            id=result.file_id,
            name=result.name,
            public_view_url=result.public_view_url,
            public_download_url=result.public_download_url,
            permission_error=result.permission_error,
        )


class ArchivePublishResponse(BaseModel):
    """``status`` is ``public`` or ``created_not_public``."""

    status: str
    archive_name: str
    file: PublishedFileSchema
    items: List[ArchiveItemSchema]


__all__ = [
    "ArchiveItemSchema",
    "ArchivePublishRequest",
    "ArchivePublishResponse",
    "ArchiveRequest",
    "PublishedFileSchema",
]

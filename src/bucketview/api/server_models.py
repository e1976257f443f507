"""Request models for the bucketview HTTP API."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateFolderRequest(BaseModel):
    path: str = ""


class RenameFolderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    old_path: str = Field(default="", alias="oldPath")
    new_path: str = Field(default="", alias="newPath")


class UpdateMetadataRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    http_metadata: Optional[dict[str, Any]] = Field(default=None, alias="httpMetadata")
    custom_metadata: Optional[dict[str, Any]] = Field(default=None, alias="customMetadata")

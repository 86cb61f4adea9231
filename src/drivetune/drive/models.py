"""Pydantic models for Drive credentials and file records."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class OAuthToken(BaseModel):
    """OAuth token material identifying one Drive account."""

    access_token: SecretStr
    refresh_token: SecretStr = Field(default=SecretStr(""))
    token_type: str = "Bearer"
    expiry: datetime | None = None
    account_id: str = ""


class DriveFile(BaseModel):
    """A file record as returned by the Drive v2 files API."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    file_extension: str = Field(default="", alias="fileExtension")
    file_size: int = Field(default=0, alias="fileSize")
    title: str = ""
    download_url: str = Field(default="", alias="downloadUrl")


class FilePage(BaseModel):
    """One page of a files listing."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[DriveFile] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")

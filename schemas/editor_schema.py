from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PermissionOverrides(BaseModel):
    edit: bool | None = None
    download: bool | None = None
    print: bool | None = None
    review: bool | None = None
    comment: bool | None = None
    chat: bool | None = None

    model_config = ConfigDict(extra="ignore")


class EditorConfigRequest(BaseModel):
    file_id: str | None = Field(default=None, alias="fileId")
    user_id: str | None = Field(default=None, alias="userId")
    user_name: str | None = Field(default=None, alias="userName")
    mode: str | None = None
    permissions: PermissionOverrides | None = None

    model_config = ConfigDict(populate_by_name=True)


class CallbackRequest(BaseModel):
    status: int | None = None
    key: str | None = None
    url: str | None = None
    users: list[Any] | None = None
    actions: list[Any] | None = None

    model_config = ConfigDict(extra="allow")


class PresignedUrlRequest(BaseModel):
    file: str | None = None
    expiry: int | str | None = None

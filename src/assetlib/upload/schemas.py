"""Pydantic models for control-plane GraphQL responses.

The control plane answers every request with HTTP 200 and a
``{"data": ..., "errors": [...]}`` envelope; these models validate the
parts of ``data`` the pipeline reads and convert them into the plain
dataclasses of :mod:`assetlib.models`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from assetlib.models import AssetStage, RemoteResourceHandle, UploadCredential


class GraphQLErrorItem(BaseModel):
    """One entry of a GraphQL ``errors`` array."""

    model_config = ConfigDict(extra="allow")

    message: str = "GraphQL request failed"
    path: list[Any] | None = None


class GraphQLEnvelope(BaseModel):
    """Top-level GraphQL response."""

    data: dict[str, Any] | None = None
    errors: list[GraphQLErrorItem] | None = None


class UploadErrorDetail(BaseModel):
    code: str | None = None
    message: str | None = None


class RequestPostData(BaseModel):
    """Pre-signed POST fields returned by ``createAsset``."""

    model_config = ConfigDict(populate_by_name=True)

    url: str | None = None
    date: str | None = None
    key: str | None = None
    signature: str | None = None
    algorithm: str | None = None
    policy: str | None = None
    credential: str | None = None
    security_token: str | None = Field(default=None, alias="securityToken")


class AssetUploadInfo(BaseModel):
    """The asset's ``upload`` sub-object (processing state)."""

    model_config = ConfigDict(populate_by_name=True)

    status: str | None = None
    expires_at: str | None = Field(default=None, alias="expiresAt")
    request_post_data: RequestPostData | None = Field(
        default=None, alias="requestPostData"
    )
    error: UploadErrorDetail | None = None


class AssetPayload(BaseModel):
    """An asset node as returned by ``createAsset``, ``asset`` or ``assetsConnection``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")
    url: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
    size: float | None = None
    stage: AssetStage | None = None
    upload: AssetUploadInfo | None = None

    def to_handle(self, fallback_name: str = "") -> RemoteResourceHandle:
        return RemoteResourceHandle(
            id=self.id or "",
            file_name=self.file_name or fallback_name,
            url=self.url or None,
            content_type=self.mime_type,
            size=int(self.size) if self.size is not None else None,
            stage=self.stage or AssetStage.DRAFT,
        )

    def to_credential(self) -> UploadCredential | None:
        """Return the pre-signed POST credential, or ``None`` without a target URL."""
        post = self.upload.request_post_data if self.upload else None
        if post is None or not post.url:
            return None
        return UploadCredential(
            url=post.url,
            date=post.date,
            key=post.key,
            signature=post.signature,
            algorithm=post.algorithm,
            policy=post.policy,
            credential=post.credential,
            security_token=post.security_token,
            expires_at=self.upload.expires_at if self.upload else None,
        )


class PublishPayload(BaseModel):
    id: str
    stage: AssetStage | None = None

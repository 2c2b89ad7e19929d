import hashlib
import logging
import time
from dataclasses import dataclass, asdict
from typing import Optional

import httpx

from core.errors import ConfigFault, InputFault, UpstreamFault
from core.settings import settings


@dataclass(frozen=True)
class RemoteAsset:
    """Durably hosted copy of an upload. Only `url` is used by the workflow."""
    url: str
    id: Optional[str] = None
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    size: Optional[int] = None
    original_name: Optional[str] = None

    def to_wire(self) -> dict:
        data = asdict(self)
        data["originalName"] = data.pop("original_name")
        return data


def sign_params(params: dict, api_secret: str) -> str:
    """Cloudinary signature: sha1 of sorted `key=value` pairs joined by '&', then the secret."""
    payload = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, ""))
    return hashlib.sha1(f"{payload}{api_secret}".encode("utf-8")).hexdigest()


class UploadService:
    """
    Uploads an image to the media host and returns its public URL.
    """

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        upload_preset: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cloud_name = cloud_name or settings.CLOUDINARY_CLOUD_NAME
        self.upload_preset = upload_preset or settings.CLOUDINARY_UPLOAD_PRESET
        self.api_key = api_key or settings.CLOUDINARY_API_KEY
        self.api_secret = api_secret or settings.CLOUDINARY_API_SECRET
        self._transport = transport

    @property
    def signed(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def validate_configuration(self) -> None:
        if not self.cloud_name or not (self.upload_preset or self.signed):
            raise ConfigFault(
                "Upload service not configured",
                details="Set CLOUDINARY_CLOUD_NAME and CLOUDINARY_UPLOAD_PRESET "
                        "(or CLOUDINARY_API_KEY / CLOUDINARY_API_SECRET) in your .env file.",
            )

    @property
    def endpoint(self) -> str:
        return f"{settings.CLOUDINARY_UPLOAD_URL}/{self.cloud_name}/auto/upload"

    def build_form(self, owner_hint: Optional[str] = None) -> dict:
        form = {"folder": f"user_{owner_hint}" if owner_hint else "anonymous"}
        if self.upload_preset:
            form["upload_preset"] = self.upload_preset
        if self.signed:
            form["timestamp"] = str(int(time.time()))
            form["signature"] = sign_params(form, self.api_secret)
            form["api_key"] = self.api_key
        return form

    async def upload(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str],
        owner_hint: Optional[str] = None,
    ) -> RemoteAsset:
        """
        Upload one image.

        Args:
            content: Raw file bytes
            filename: Original file name
            content_type: MIME type; must be image/*
            owner_hint: Optional user id, used as the destination folder

        Raises:
            InputFault: No file or not an image
            ConfigFault: Media host credentials missing
            UpstreamFault: Host rejected the upload or was unreachable
        """
        if not content:
            raise InputFault("No file provided")
        if not content_type or not content_type.startswith("image/"):
            raise InputFault("File must be an image", details=f"Got content type {content_type!r}")

        self.validate_configuration()

        logging.info(f"☁️  Uploading {filename} ({len(content) // 1024} KB)")
        try:
            async with httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    data=self.build_form(owner_hint),
                    files={"file": (filename, content, content_type)},
                )
        except httpx.HTTPError as e:
            logging.error(f"Upload transport error: {e}")
            raise UpstreamFault("Upload failed", details=str(e) or "Unknown error", http_status=502) from e

        if response.is_error:
            details = _error_message(response)
            logging.error(f"Media host rejected upload ({response.status_code}): {details}")
            raise UpstreamFault(
                "Upload failed",
                details=details,
                code=response.status_code,
                http_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not data.get("secure_url"):
            raise UpstreamFault("Upload failed", details="Media host returned no URL", http_status=502)

        asset = RemoteAsset(
            url=data["secure_url"],
            id=data.get("public_id"),
            format=data.get("format"),
            width=data.get("width"),
            height=data.get("height"),
            size=data.get("bytes"),
            original_name=data.get("original_filename"),
        )
        logging.info(f"✅ Uploaded to {asset.url}")
        return asset


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or "Unknown error"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or "Unknown error"
    return str(error or "Unknown error")

"""
Exchange backend: mints write and read signed URLs for the upload client.

POST /api/upload  {filename, contentType} -> {uploadURL, key}
GET  /api/upload?key=...                  -> {url}
OPTIONS /api/upload                       -> {} (preflight, no signing)
"""
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import env_int
from .signer import S3UrlSigner, UrlSigner

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-csrf-token",
}


@dataclass(frozen=True)
class BackendSettings:
    """Immutable backend configuration."""
    bucket: str = ""
    region: Optional[str] = None
    csrf_token: str = ""
    csrf_header: str = "x-csrf-token"
    url_expiry: int = 3600
    key_prefix: str = "uploads/"

    @classmethod
    def from_env(cls) -> "BackendSettings":
        return cls(
            bucket=os.getenv("AWS_S3_BUCKET", ""),
            region=os.getenv("AWS_REGION") or None,
            csrf_token=os.getenv("MEDIADROP_CSRF_TOKEN", ""),
            url_expiry=env_int("MEDIADROP_URL_EXPIRY", 3600),
        )


class UploadTargetRequest(BaseModel):
    """Body of an upload-target request."""
    filename: str = Field(..., min_length=1)
    contentType: str = Field(..., min_length=1)


def cors_response(data: Any, status: int = 200) -> JSONResponse:
    return JSONResponse(content=data, status_code=status, headers=CORS_HEADERS)


def build_object_key(filename: str, prefix: str = "uploads/", now: Optional[float] = None) -> str:
    """Unique storage key: ``<prefix><epoch millis>-<filename>``."""
    stamp = int((time.time() if now is None else now) * 1000)
    safe_name = filename.replace("/", "_").replace("\\", "_")
    return f"{prefix}{stamp}-{safe_name}"


def create_app(signer: UrlSigner, settings: Optional[BackendSettings] = None) -> FastAPI:
    """Build the exchange API around a signer."""
    settings = settings or BackendSettings()
    app = FastAPI(title="mediadrop exchange", version="0.1.0")
    router = APIRouter()

    def _reject_forgery(request: Request) -> Optional[JSONResponse]:
        if not settings.csrf_token:
            return None
        if request.headers.get(settings.csrf_header) != settings.csrf_token:
            logger.warning(f"Rejected {request.method} without a valid {settings.csrf_header}")
            return cors_response({"error": "Invalid anti-forgery token"}, 403)
        return None

    @router.options("")
    async def preflight():
        return cors_response({})

    @router.post("")
    async def create_upload_target(request: Request):
        denied = _reject_forgery(request)
        if denied is not None:
            return denied

        try:
            payload = UploadTargetRequest.model_validate(await request.json())
        except ValueError:
            return cors_response({"error": "filename and contentType are required"}, 400)

        key = build_object_key(payload.filename, settings.key_prefix)
        try:
            upload_url = signer.generate_upload_url(key, payload.contentType, settings.url_expiry)
        except Exception as e:
            logger.error(f"Error generating presigned URL: {e}", exc_info=True)
            return cors_response({"error": "Failed to generate upload URL"}, 500)

        logger.info(f"Upload target issued: {key} ({payload.contentType})")
        return cors_response({"uploadURL": upload_url, "key": key})

    @router.get("")
    async def resolve_view_url(request: Request, key: Optional[str] = None):
        denied = _reject_forgery(request)
        if denied is not None:
            return denied

        if not key:
            return cors_response({"error": "Key is required"}, 400)

        try:
            url = signer.generate_view_url(key, settings.url_expiry)
        except Exception as e:
            logger.error(f"Error generating presigned URL: {e}", exc_info=True)
            return cors_response({"error": "Failed to generate download URL"}, 500)

        return cors_response({"url": url})

    app.include_router(router, prefix="/api/upload", tags=["upload"])

    return app


def create_app_from_env() -> FastAPI:
    """App factory for ``uvicorn --factory``: S3 signer configured from the environment."""
    settings = BackendSettings.from_env()
    if not settings.bucket:
        raise RuntimeError("AWS_S3_BUCKET environment variable is not set")
    return create_app(S3UrlSigner(settings.bucket, settings.region), settings)

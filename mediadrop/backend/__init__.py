"""Signed-URL exchange backend."""
from .app import BackendSettings, create_app, create_app_from_env
from .signer import S3UrlSigner, UrlSigner

__all__ = ["BackendSettings", "create_app", "create_app_from_env", "S3UrlSigner", "UrlSigner"]

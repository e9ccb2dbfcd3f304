"""
Service account credential resolution.

Sources, tried in order:
1. GOOGLE_CLIENT_EMAIL + GOOGLE_PRIVATE_KEY (hosted deployments)
2. GOOGLE_SERVICE_ACCOUNT_JSON, the whole key file as one string
3. A key file on disk (local development)

A failure here is fatal for every store operation and is never retried.
"""

import json
from typing import Optional

import structlog
from google.oauth2.service_account import Credentials

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.services.storage.interface import CredentialError

logger = structlog.get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

TOKEN_URI = "https://oauth2.googleapis.com/token"


def normalize_private_key(key: str) -> str:
    """Turn escaped \\n sequences (as stored in env vars) back into newlines."""
    return key.replace("\\n", "\n")


class CredentialResolver:
    """Builds service account credentials from whichever source is configured."""

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._settings = settings or get_settings().google_sheets

    def resolve(self) -> Credentials:
        settings = self._settings

        if settings.has_inline_key:
            logger.info("credentials_source", source="env_key")
            return self._from_info(
                {
                    "type": "service_account",
                    "client_email": settings.google_client_email,
                    "private_key": normalize_private_key(settings.google_private_key),
                    "token_uri": TOKEN_URI,
                },
                source="GOOGLE_CLIENT_EMAIL/GOOGLE_PRIVATE_KEY",
            )

        if settings.google_client_email or settings.google_private_key:
            logger.warning(
                "credentials_incomplete_pair",
                has_email=bool(settings.google_client_email),
                has_key=bool(settings.google_private_key),
            )

        if settings.google_service_account_json:
            logger.info("credentials_source", source="env_json")
            try:
                info = json.loads(settings.google_service_account_json)
            except json.JSONDecodeError as e:
                raise CredentialError(
                    f"GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON: {e}"
                ) from e
            if "private_key" in info:
                info["private_key"] = normalize_private_key(info["private_key"])
            return self._from_info(info, source="GOOGLE_SERVICE_ACCOUNT_JSON")

        logger.info("credentials_source", source="file", path=settings.google_credentials_path)
        try:
            return Credentials.from_service_account_file(
                settings.google_credentials_path,
                scopes=SCOPES,
            )
        except FileNotFoundError as e:
            raise CredentialError(
                "No service account credentials configured and key file not found: "
                f"{settings.google_credentials_path}"
            ) from e
        except (ValueError, KeyError, json.JSONDecodeError) as e:
            raise CredentialError(
                f"Invalid service account key file {settings.google_credentials_path}: {e}"
            ) from e

    def _from_info(self, info: dict, source: str) -> Credentials:
        try:
            return Credentials.from_service_account_info(info, scopes=SCOPES)
        except (ValueError, KeyError) as e:
            raise CredentialError(f"Invalid service account credentials from {source}: {e}") from e

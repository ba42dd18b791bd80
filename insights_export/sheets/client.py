"""Google API client construction and Drive file name lookup."""

from typing import Any, Dict, Optional

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from loguru import logger

from insights_export.core.constants import GOOGLE_SCOPES
from insights_export.core.exceptions import AuthenticationError


def build_google_credentials(entry: Dict[str, Any]) -> Any:
    """Build google-auth credentials from a stored credential entry.

    Supported shapes:
        {"service_account_file": "/path/key.json"}
        {"service_account_info": {...}}
        {"authorized_user": {"refresh_token": ..., "client_id": ..., ...}}

    Raises:
        AuthenticationError: If the entry matches none of the shapes or is invalid
    """
    scopes = list(GOOGLE_SCOPES)
    try:
        if entry.get("service_account_file"):
            return service_account.Credentials.from_service_account_file(
                entry["service_account_file"], scopes=scopes
            )
        if entry.get("service_account_info"):
            return service_account.Credentials.from_service_account_info(
                entry["service_account_info"], scopes=scopes
            )
        if entry.get("authorized_user"):
            return user_credentials.Credentials.from_authorized_user_info(
                entry["authorized_user"], scopes=scopes
            )
    except (ValueError, KeyError, OSError) as e:
        raise AuthenticationError(
            f"Invalid Google credentials: {e}",
            details={"keys": sorted(entry)},
        ) from e

    raise AuthenticationError(
        "Google credentials entry has no service account or authorized user",
        details={"keys": sorted(entry)},
    )


def build_sheets_service(credentials: Any) -> Any:
    """Sheets API v4 resource."""
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def build_drive_service(credentials: Any) -> Any:
    """Drive API v3 resource, used only to read file names."""
    return build("drive", "v3", credentials=credentials, cache_discovery=False)


def lookup_file_name(drive_service: Optional[Any], spreadsheet_id: str) -> str:
    """Return the spreadsheet's file name, or its id when the lookup fails."""
    if drive_service is None:
        return spreadsheet_id
    try:
        result = drive_service.files().get(fileId=spreadsheet_id, fields="name").execute()
    except (HttpError, GoogleAuthError, OSError) as e:
        logger.warning(f"Drive lookup failed for {spreadsheet_id}: {e}")
        return spreadsheet_id
    return (result or {}).get("name") or spreadsheet_id

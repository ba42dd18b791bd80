"""File-based credential provider.

Reads per-user credentials from a YAML file:

    users:
      user-1:
        facebook:
          access_token: EAAB...
        google:
          service_account_file: /secrets/sheets-writer.json
"""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

from insights_export.core.exceptions import AuthenticationError
from insights_export.sheets.client import (
    build_drive_service,
    build_google_credentials,
    build_sheets_service,
)


class FileCredentialProvider:
    """Credential provider backed by a YAML file.

    Google API resources are built per call; they are not shared between
    threads.
    """

    def __init__(self, credentials_file: str):
        """Initialize the provider.

        Args:
            credentials_file: Path to the credentials YAML file

        Raises:
            AuthenticationError: If the file is missing or not valid YAML
        """
        self.credentials_file = Path(credentials_file)
        self._users = self._load_credentials()
        logger.info(f"FileCredentialProvider loaded {len(self._users)} user(s)")

    def _load_credentials(self) -> Dict[str, Any]:
        if not self.credentials_file.exists():
            raise AuthenticationError(
                f"Credentials file not found: {self.credentials_file}",
                details={"file": str(self.credentials_file)},
            )
        try:
            with open(self.credentials_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise AuthenticationError(
                f"Failed to parse credentials file: {e}",
                details={"file": str(self.credentials_file)},
            ) from e

        users = data.get("users") if isinstance(data, dict) else None
        if not isinstance(users, dict):
            raise AuthenticationError(
                "Credentials file must contain a 'users' mapping",
                details={"file": str(self.credentials_file)},
            )
        return {str(user_id): entry or {} for user_id, entry in users.items()}

    def _section(self, user_id: str, name: str) -> Dict[str, Any]:
        return (self._users.get(str(user_id)) or {}).get(name) or {}

    def get_source_token(self, user_id: str) -> Optional[str]:
        return self._section(user_id, "facebook").get("access_token") or None

    def _google_credentials(self, user_id: str) -> Optional[Any]:
        entry = self._section(user_id, "google")
        if not entry:
            return None
        return build_google_credentials(entry)

    def get_destination_client(self, user_id: str) -> Optional[Any]:
        credentials = self._google_credentials(user_id)
        return build_sheets_service(credentials) if credentials else None

    def get_drive_client(self, user_id: str) -> Optional[Any]:
        credentials = self._google_credentials(user_id)
        return build_drive_service(credentials) if credentials else None

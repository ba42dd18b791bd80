"""Protocol definitions (interfaces) for the insights export module.

The pipeline and scheduler only talk to their collaborators through these
protocols, so the file-backed implementations in ``infrastructure`` can be
swapped for a database or a secrets manager, and tests can pass mocks.
"""

from datetime import datetime
from typing import Any, List, Optional, Protocol

from insights_export.core.constants import ExportType, RunStatus
from insights_export.domain.models import (
    AuditLogPage,
    ExportAuditRecord,
    ExportConfiguration,
)


class CredentialProvider(Protocol):
    """Interface for per-user source and destination credentials."""

    def get_source_token(self, user_id: str) -> Optional[str]:
        """Return the Graph API access token for a user.

        Returns:
            Token string, or None when the user has not connected Facebook
        """
        ...

    def get_destination_client(self, user_id: str) -> Optional[Any]:
        """Return an authorized Google Sheets API resource for a user.

        Returns:
            ``googleapiclient`` Sheets resource, or None when the user has
            not connected Google
        """
        ...

    def get_drive_client(self, user_id: str) -> Optional[Any]:
        """Return an authorized Drive API resource, used for file names only."""
        ...


class ConfigurationStore(Protocol):
    """Interface for reading saved export configurations."""

    def list_auto_configurations(self) -> List[ExportConfiguration]:
        """Return every configuration with ``is_auto`` set."""
        ...

    def get_configuration(self, config_id: str) -> ExportConfiguration:
        """Return one configuration.

        Raises:
            ConfigurationError: If the id is unknown
        """
        ...


class AuditSink(Protocol):
    """Interface for the append-only export audit log."""

    def record_run(self, record: ExportAuditRecord) -> None:
        """Persist one audit record."""
        ...

    def has_successful_run(
        self,
        config_id: str,
        export_type: ExportType,
        start: datetime,
        end: datetime,
    ) -> bool:
        """Check for a successful run of a configuration in ``[start, end)``.

        Args:
            config_id: Export configuration id
            export_type: Run origin to match
            start: Inclusive lower bound (timezone aware)
            end: Exclusive upper bound (timezone aware)
        """
        ...

    def list_runs(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 15,
        search: Optional[str] = None,
        export_type: Optional[ExportType] = None,
        status: Optional[RunStatus] = None,
    ) -> AuditLogPage:
        """Return a page of a user's audit records, newest first."""
        ...

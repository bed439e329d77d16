"""Remote gateway contract.

The gateway owns request/response plumbing, authentication, pagination and
its own retry policy. The cleanup core only talks to this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .records import RawDataExtension, RawDependency, RawField, RawFolder


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of a single delete call."""

    success: bool
    error: Optional[str] = None


class RemoteGateway(ABC):
    """Abstract base class for remote platform access.

    Every call may raise ``TransientGatewayError`` or ``PermissionGatewayError``.
    Implementations are bound to one tenant (business unit).
    """

    tenant_id: str = ""

    @abstractmethod
    def test_connection(self) -> None:
        """Verify credentials and connectivity.

        Raises:
            GatewayError: If the platform cannot be reached or rejects the credentials
        """

    @abstractmethod
    def list_folders(self, content_type: str = "dataextension") -> list[RawFolder]:
        """Return every folder of the given content type (all pages)."""

    @abstractmethod
    def list_data_extensions(self, folder_id: int) -> list[RawDataExtension]:
        """Return the data extensions directly inside a folder."""

    @abstractmethod
    def get_data_extension(self, customer_key: str) -> Optional[RawDataExtension]:
        """Return one data extension by customer key, or None."""

    @abstractmethod
    def get_fields(self, customer_key: str) -> list[RawField]:
        """Return the field schema of a data extension."""

    @abstractmethod
    def get_row_count(self, customer_key: str) -> Optional[int]:
        """Return the row count of a data extension, or None if unavailable."""

    @abstractmethod
    def delete_folder(self, folder_id: int) -> DeleteResult:
        """Delete an empty folder."""

    @abstractmethod
    def delete_data_extension(self, customer_key: str) -> DeleteResult:
        """Delete a data extension and all of its rows."""

    @abstractmethod
    def list_dependents(self, customer_key: str) -> list[RawDependency]:
        """Return platform objects that reference the data extension."""

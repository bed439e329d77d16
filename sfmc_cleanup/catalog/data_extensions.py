"""Data extension lookups."""

from __future__ import annotations

import logging
from typing import Optional

from ..gateway.base import RemoteGateway
from ..models.data_extension import DataExtension, Field
from ..safety.checker import SafetyChecker

logger = logging.getLogger(__name__)


class DataExtensionService:
    """Lists data extensions and fills in their details.

    Attributes:
        gateway: Remote gateway bound to the tenant
        safety_checker: Computes the protection flag of each data extension
    """

    def __init__(self, gateway: RemoteGateway, safety_checker: Optional[SafetyChecker] = None) -> None:
        self.gateway = gateway
        self.safety_checker = safety_checker

    def list_in_folder(self, folder_id: int) -> list[DataExtension]:
        """Data extensions directly inside a folder, with protection flags set."""
        raw_items = self.gateway.list_data_extensions(folder_id)
        logger.debug(f"Found {len(raw_items)} data extension(s) in folder {folder_id}")
        return [DataExtension.from_raw(raw, is_protected=self._is_protected(raw.customer_key, raw.name)) for raw in raw_items]

    def get_details(self, customer_key: str) -> Optional[DataExtension]:
        raw = self.gateway.get_data_extension(customer_key)
        if raw is None:
            return None
        return DataExtension.from_raw(raw, is_protected=self._is_protected(raw.customer_key, raw.name))

    def get_schema(self, customer_key: str) -> list[Field]:
        """Field schema sorted by ordinal, with PII flags."""
        fields = [Field.from_raw(raw) for raw in self.gateway.get_fields(customer_key)]
        return sorted(fields, key=lambda f: f.ordinal)

    def get_full_details(
        self,
        customer_key: str,
        include_row_count: bool = True,
        data_extension: Optional[DataExtension] = None,
    ) -> Optional[DataExtension]:
        """Data extension with fields, PII field names and row count.

        Args:
            customer_key: Data extension to load
            include_row_count: Also fetch the row count
            data_extension: Already-listed instance to fill in instead of refetching

        Returns:
            The detailed data extension, or None if it no longer exists
        """
        de = data_extension or self.get_details(customer_key)
        if de is None:
            return None

        de.fields = self.get_schema(customer_key)
        de.pii_fields = [f.name for f in de.fields if f.is_pii]

        if include_row_count:
            de.row_count = self.gateway.get_row_count(customer_key)

        return de

    def _is_protected(self, customer_key: str, name: str) -> bool:
        if self.safety_checker is None:
            return False
        return self.safety_checker.is_data_extension_protected(customer_key, name)

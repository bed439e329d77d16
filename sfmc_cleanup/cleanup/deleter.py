"""Single-resource deletion.

Deletions are attempted exactly once. A failed delete against a remote object
that may already be partially modified is reported, not retried.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import GatewayError
from ..gateway.base import RemoteGateway
from ..models.data_extension import DataExtension
from ..models.folder import Folder
from ..safety.checker import SafetyChecker

logger = logging.getLogger(__name__)


class ResourceDeleter:
    """Issues delete calls through the gateway.

    Protection rules are checked again immediately before every call, so a
    protected resource can never be deleted even if it slipped into a batch.

    Attributes:
        gateway: Remote gateway bound to the tenant
        safety_checker: Protection rules to re-check
    """

    def __init__(self, gateway: RemoteGateway, safety_checker: Optional[SafetyChecker] = None) -> None:
        self.gateway = gateway
        self.safety_checker = safety_checker

    def delete_data_extension(self, data_extension: DataExtension) -> tuple[bool, Optional[str]]:
        """Delete a data extension.

        Returns:
            Tuple of (success, error_message)
        """
        key = data_extension.customer_key
        if self.safety_checker is not None:
            protected, reason = self.safety_checker.is_protected(
                {"resource_type": "data_extension", "customer_key": key, "name": data_extension.name}
            )
            if protected:
                logger.error(f"Refusing to delete protected data extension {key}: {reason}")
                return (False, f"Protected: {reason}")

        try:
            result = self.gateway.delete_data_extension(key)
        except GatewayError as e:
            logger.error(f"Failed to delete data extension {key}: {e}")
            return (False, str(e))

        if not result.success:
            error = result.error or "Delete call reported failure"
            logger.error(f"Failed to delete data extension {key}: {error}")
            return (False, error)

        logger.info(f"Deleted data extension: {data_extension.name} ({key})")
        return (True, None)

    def delete_folder(self, folder: Folder) -> tuple[bool, Optional[str]]:
        """Delete an empty folder.

        Returns:
            Tuple of (success, error_message)
        """
        if self.safety_checker is not None and self.safety_checker.is_folder_protected(folder.name):
            logger.error(f"Refusing to delete protected folder {folder.name} ({folder.id})")
            return (False, "Protected folder")

        try:
            result = self.gateway.delete_folder(folder.id)
        except GatewayError as e:
            logger.error(f"Failed to delete folder {folder.id}: {e}")
            return (False, str(e))

        if not result.success:
            error = result.error or "Delete call reported failure"
            logger.error(f"Failed to delete folder {folder.id}: {error}")
            return (False, error)

        logger.info(f"Deleted folder: {folder.name} ({folder.id})")
        return (True, None)

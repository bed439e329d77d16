"""Remote gateway boundary.

Classes:
    RemoteGateway: Abstract contract implemented by transport packages
    DeleteResult: Outcome of a delete call
    RawFolder, RawDataExtension, RawField, RawDependency: Raw payload records
"""

from __future__ import annotations

from .base import DeleteResult, RemoteGateway
from .records import RawDataExtension, RawDependency, RawField, RawFolder

__all__ = [
    "RemoteGateway",
    "DeleteResult",
    "RawFolder",
    "RawDataExtension",
    "RawField",
    "RawDependency",
]

"""Deletion orchestration.

This module drives data extension and folder deletion runs with protection
checks, dependency checks, checkpointed batch execution and audit logging.

Classes:
    DataExtensionCleaner: Orchestrator for data extension deletion
    FolderCleaner: Orchestrator for folder deletion
    BatchExecutor: Sequential, checkpointed execution
    AuditStorage: Audit log storage and retrieval
    StateStorage: Resumable operation state
"""

from __future__ import annotations

__all__ = [
    "audit",
    "backup",
    "cancellation",
    "cleaner",
    "deleter",
    "executor",
    "folder_cleaner",
    "state",
]

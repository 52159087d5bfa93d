"""
Synchronization Module

State synchronization engine, referential audit, backups and the
operator-facing confirmation and notification channels.
"""

from .auditor import compute_orphans, count_orphans
from .backup import (
    BackupError,
    BackupFormatError,
    BackupVersionError,
    backup_filename,
    build_backup,
    parse_backup,
    read_backup,
)
from .confirmation import ConfirmationRequest, ConfirmationWorkflow
from .engine import SyncEngine, SyncError
from .notifications import Notification, NotificationCenter

__all__ = [
    "BackupError",
    "BackupFormatError",
    "BackupVersionError",
    "ConfirmationRequest",
    "ConfirmationWorkflow",
    "Notification",
    "NotificationCenter",
    "SyncEngine",
    "SyncError",
    "backup_filename",
    "build_backup",
    "compute_orphans",
    "count_orphans",
    "parse_backup",
    "read_backup",
]

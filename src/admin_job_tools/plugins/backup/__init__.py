"""Database backup plugin."""

from .schema import BackupOutput, BackupParams
from .task import BackupTask

__all__ = ["BackupTask", "BackupParams", "BackupOutput"]

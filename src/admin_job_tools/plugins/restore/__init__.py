"""Database restore plugin."""

from .algo.sql_restore import RestoreError
from .schema import RestoreOptions, RestoreOutput, RestoreParams
from .task import RestoreTask

__all__ = ["RestoreTask", "RestoreParams", "RestoreOptions", "RestoreOutput", "RestoreError"]

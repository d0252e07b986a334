"""
JobStorage Protocol - job-scoped file storage.

Extract dumps, uploaded restore files and other job artifacts live under a
directory owned by the job. Callers only ever see job ids and relative paths;
the storage implementation decides where those land on disk.
"""

from __future__ import annotations

from os import PathLike
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class JobStorageError(Exception):
    """Base class for storage-related errors."""


class JobDirectoryCreationError(JobStorageError):
    def __init__(self, job_id: str):
        self.job_id: str = job_id
        super().__init__(f"Failed to create storage directory for job '{job_id}'")


class InvalidJobPathError(JobStorageError):
    def __init__(self, job_id: str, relative_path: str):
        self.job_id: str = job_id
        self.relative_path: str = relative_path
        super().__init__(
            f"Path '{relative_path}' escapes the storage directory of job '{job_id}'"
        )


class SavedJobFile(BaseModel):
    """Metadata of a file written into job storage."""

    relative_path: str = Field(..., description="Path relative to the job directory")
    size: int = Field(..., ge=0, description="File size in bytes")
    hash: str | None = Field(None, description="SHA-256 of the content")

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")


class AsyncFileLike(Protocol):
    """Anything with an async ``read(size)``, e.g. ``UploadFile``."""

    async def read(self, size: int, /) -> bytes: ...


FileLike = AsyncFileLike | bytes | str | PathLike[str]


@runtime_checkable
class JobStorage(Protocol):
    """Protocol for job-scoped file storage."""

    def create_directory(self, job_id: str) -> None:
        """Create the job directory if needed.

        Raises:
            JobDirectoryCreationError: The directory could not be created.
        """
        ...

    def remove(self, job_id: str) -> bool:
        """Remove every file of a job. Returns False if nothing was removed."""
        ...

    async def save(
        self,
        job_id: str,
        relative_path: str,
        file: FileLike,
        *,
        mkdirs: bool = True,
    ) -> SavedJobFile:
        """Write ``file`` (bytes, a source path to copy, or an async reader)."""
        ...

    def allocate_path(
        self,
        job_id: str,
        relative_path: str,
        *,
        mkdirs: bool = True,
    ) -> Path:
        """Reserve a path the caller writes itself (table dumps, gzip streams)."""
        ...

    def resolve_path(
        self,
        job_id: str,
        relative_path: str | None = None,
    ) -> Path:
        """Absolute path of a job file, or of the job directory."""
        ...

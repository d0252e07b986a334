import hashlib
import shutil
from os import PathLike
from pathlib import Path
from typing import Final, override

import aiofiles
from loguru import logger

from .job_storage import (
    FileLike,
    InvalidJobPathError,
    JobDirectoryCreationError,
    JobStorage,
    SavedJobFile,
)


class LocalFileStorage(JobStorage):
    """
    Local filesystem JobStorage.

    Layout:
        base_dir/
            <job_id>/
                backups/db-backup-<job_id>-<timestamp>.json
                input/<uploaded file>
    """

    _CHUNK_SIZE: Final[int] = 1024 * 1024

    def __init__(self, base_dir: str | PathLike[str]):
        self.base_dir: Path = Path(base_dir).expanduser().resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _job_dir(self, job_id: str) -> Path:
        return self.base_dir / job_id

    def _safe_path(self, job_id: str, relative_path: str | None = None) -> Path:
        job_dir = self._job_dir(job_id).resolve()
        if self.base_dir not in job_dir.parents:
            raise InvalidJobPathError(job_id, job_id)

        if relative_path is None:
            return job_dir

        resolved = (job_dir / relative_path).resolve()
        if job_dir not in resolved.parents:
            raise InvalidJobPathError(job_id, relative_path)
        return resolved

    @override
    def create_directory(self, job_id: str) -> None:
        try:
            self._safe_path(job_id).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise JobDirectoryCreationError(job_id) from exc

    @override
    def remove(self, job_id: str) -> bool:
        job_dir = self._safe_path(job_id)
        if not job_dir.exists():
            return False
        try:
            shutil.rmtree(job_dir)
            return True
        except OSError as exc:
            logger.warning(f"Failed to remove storage of job {job_id}: {exc}")
            return False

    @override
    async def save(
        self,
        job_id: str,
        relative_path: str,
        file: FileLike,
        *,
        mkdirs: bool = True,
    ) -> SavedJobFile:
        dst = self.allocate_path(job_id, relative_path, mkdirs=mkdirs)
        hasher = hashlib.sha256()
        size = 0

        if isinstance(file, (bytes, bytearray)):
            async with aiofiles.open(dst, "wb") as f:
                _ = await f.write(file)
            size = len(file)
            hasher.update(file)

        elif isinstance(file, (str, PathLike)):
            src = Path(file).expanduser().resolve()
            if not src.is_file():
                raise FileNotFoundError(src)
            async with aiofiles.open(src, "rb") as fin, aiofiles.open(dst, "wb") as fout:
                while chunk := await fin.read(self._CHUNK_SIZE):
                    _ = await fout.write(chunk)
                    size += len(chunk)
                    hasher.update(chunk)

        else:
            async with aiofiles.open(dst, "wb") as f:
                while chunk := await file.read(self._CHUNK_SIZE):
                    _ = await f.write(chunk)
                    size += len(chunk)
                    hasher.update(chunk)

        return SavedJobFile(relative_path=relative_path, size=size, hash=hasher.hexdigest())

    @override
    def allocate_path(
        self,
        job_id: str,
        relative_path: str,
        *,
        mkdirs: bool = True,
    ) -> Path:
        self.create_directory(job_id)
        path = self._safe_path(job_id, relative_path)
        if mkdirs:
            path.parent.mkdir(parents=True, exist_ok=True)
        return path

    @override
    def resolve_path(
        self,
        job_id: str,
        relative_path: str | None = None,
    ) -> Path:
        return self._safe_path(job_id, relative_path)

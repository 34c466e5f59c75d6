"""
Artifact store for generated reports.

Artifacts live under `<REPORT_DIR>/<bucket>/`. Uploads never overwrite an
existing object, so every version of a report stays addressable.
"""

import asyncio
import functools
from pathlib import Path
from typing import List, Optional

from src.errors import ArtifactStoreError
from utils.logger import setup_logger
from utils.config import config, REPORT_DIR

logger = setup_logger(
    __name__, level=config.log_level, log_file=config.log_file, component="EXPORT"
)


class ArtifactStore:
    """Interface consumed by the exporter."""

    bucket = "reports"

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store bytes under `path` and return the public URL."""
        raise NotImplementedError

    async def list(self, prefix: str = "") -> List[str]:
        """Names of stored objects starting with `prefix`."""
        raise NotImplementedError

    def public_url(self, path: str) -> str:
        raise NotImplementedError


class LocalArtifactStore(ArtifactStore):
    """Filesystem-backed store."""

    def __init__(
        self,
        root: Optional[Path] = None,
        bucket: Optional[str] = None,
        base_url: Optional[str] = None,
        executor=None
    ):
        self.bucket = bucket or config.storage_bucket
        self.root = Path(root or REPORT_DIR) / self.bucket
        self.base_url = base_url if base_url is not None else config.public_base_url
        self._executor = executor
        self.logger = logger

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    def _object_path(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise ArtifactStoreError(f"Invalid object path: {path}")
        return target

    def public_url(self, path: str) -> str:
        if self.base_url:
            return f"{self.base_url.rstrip('/')}/{self.bucket}/{path}"
        return (self.root / path).resolve().as_uri()

    def _write(self, path: str, data: bytes) -> str:
        target = self._object_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError:
            raise ArtifactStoreError(f"Object already exists: {self.bucket}/{path}")
        except OSError as e:
            raise ArtifactStoreError(f"Failed to write {self.bucket}/{path}: {e}") from e

        self.logger.info(f"Stored {self.bucket}/{path} ({len(data)} bytes)")
        return self.public_url(path)

    def _list(self, prefix: str) -> List[str]:
        if not self.root.exists():
            return []
        try:
            return sorted(
                entry.name for entry in self.root.iterdir()
                if entry.is_file() and entry.name.startswith(prefix)
            )
        except OSError as e:
            raise ArtifactStoreError(f"Failed to list {self.bucket}: {e}") from e

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        self.logger.debug(f"Uploading {path} ({content_type})")
        return await self._run(self._write, path, data)

    async def list(self, prefix: str = "") -> List[str]:
        return await self._run(self._list, prefix)

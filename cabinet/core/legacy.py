"""Read/unlink access to files stored on local disk before object storage existed."""
import logging
from pathlib import Path

from fastapi.concurrency import run_in_threadpool

from cabinet.core.config import settings
from cabinet.utils.exceptions import StorageFailureError

logger = logging.getLogger(__name__)


class LegacyFileStore:
    def __init__(self, base_dir: str = None):
        self.base_dir = Path(base_dir or settings.LEGACY_UPLOAD_DIR)

    def resolve(self, legacy_path: str) -> Path:
        path = Path(legacy_path)
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    async def read(self, legacy_path: str) -> bytes:
        path = self.resolve(legacy_path)
        try:
            return await run_in_threadpool(path.read_bytes)
        except OSError as e:
            logger.error(f"Error reading legacy file {path}: {e}")
            raise StorageFailureError(f"Failed to read legacy file: {e}") from e

    async def exists(self, legacy_path: str) -> bool:
        return await run_in_threadpool(self.resolve(legacy_path).is_file)

    async def delete(self, legacy_path: str) -> None:
        path = self.resolve(legacy_path)
        try:
            await run_in_threadpool(path.unlink, True)
        except OSError as e:
            raise StorageFailureError(f"Failed to delete legacy file: {e}") from e

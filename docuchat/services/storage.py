import asyncio
import logging
from pathlib import Path
from uuid import UUID, uuid4

from ..config import settings
from ..errors import StorageError

logger = logging.getLogger(__name__)


class LocalStorage:
    """File storage rooted at a directory; objects are addressed by relative path."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or settings.STORAGE_DIR).resolve()

    def _resolve(self, file_path: str) -> Path:
        path = (self.root / file_path).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Invalid storage path: {file_path}")
        return path

    @staticmethod
    def make_path(user_id: UUID, filename: str) -> str:
        return f"{user_id}/{uuid4().hex}_{Path(filename).name}"

    async def upload(self, file_path: str, content: bytes) -> None:
        path = self._resolve(file_path)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await asyncio.to_thread(_write)

    async def download(self, file_path: str) -> bytes:
        path = self._resolve(file_path)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageError(f"Failed to download document: {file_path} not found") from e
        except OSError as e:
            raise StorageError(f"Failed to download document: {e}") from e
        if not data:
            raise StorageError("File data is empty")
        return data

    async def delete(self, file_path: str) -> None:
        path = self._resolve(file_path)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            logger.warning("Stored file %s was already gone", file_path)


def get_storage() -> LocalStorage:
    return LocalStorage()

import asyncio
import logging
import os
import shutil
import aiofiles
from app.platform.ports.object_storage import ContentStorePort
from app.core.config import settings
from app.core.errors import NotFound, StorageError

log = logging.getLogger("storage.local")

class LocalContentStore(ContentStorePort):
    """Drop assets on the local filesystem: <root>/<drop_id>/<name>."""

    def __init__(self, root: str | None = None):
        self.root = os.path.abspath(root or os.path.join(settings.CONTENT_ROOT, "drops"))
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        safe = key.strip("/").replace("..", "")
        return os.path.normpath(os.path.join(self.root, safe))

    async def store(self, drop_id: str, name: str, data: bytes) -> str:
        key = f"{drop_id}/{name}"
        path = self._path(key)
        try:
            await asyncio.to_thread(os.makedirs, os.path.dirname(path), exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            log.error("Failed to write %s: %s", key, e)
            raise StorageError(f"Failed to write {name}: {e}") from e
        return key

    async def read(self, object_key: str) -> bytes:
        path = self._path(object_key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise NotFound(f"Object not found: {object_key}") from e
        except OSError as e:
            log.error("Failed to read %s: %s", object_key, e)
            raise StorageError(f"File read error: {e}") from e

    async def delete_all(self, drop_id: str) -> None:
        path = self._path(drop_id)
        if path == self.root:
            raise StorageError("Refusing to delete the content root")
        try:
            await asyncio.to_thread(shutil.rmtree, path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Failed to delete {drop_id}: {e}") from e

from typing import Protocol, runtime_checkable

@runtime_checkable
class ContentStorePort(Protocol):
    async def store(self, drop_id: str, name: str, data: bytes) -> str: ...
    async def read(self, object_key: str) -> bytes: ...
    async def delete_all(self, drop_id: str) -> None: ...

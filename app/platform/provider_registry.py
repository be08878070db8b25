from app.core.config import settings
from app.platform.ports.object_storage import ContentStorePort
from app.platform.adapters.storage_local import LocalContentStore

class ProviderRegistry:
    _content_store: ContentStorePort | None = None

    @classmethod
    def content_store(cls) -> ContentStorePort:
        if cls._content_store is None:
            cls._content_store = LocalContentStore()
        return cls._content_store

    @classmethod
    def reset(cls) -> None:
        cls._content_store = None

registry = ProviderRegistry()

def get_content_store() -> ContentStorePort:
    return registry.content_store()

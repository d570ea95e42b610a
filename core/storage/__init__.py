from core.storage.gateway import ObjectStoreGateway, StoreAvailable, StoreDisabled, StoreHandle
from core.storage.local_provider import LocalDocumentStore
from core.storage.types import StorageBackend, StoredObject, StoreReadiness

__all__ = [
    "LocalDocumentStore",
    "ObjectStoreGateway",
    "StorageBackend",
    "StoreAvailable",
    "StoreDisabled",
    "StoreHandle",
    "StoredObject",
    "StoreReadiness",
]

"""
Storage module.

Handles persistence of ideas and users in memory or in MongoDB.
"""

from src.storage.base import (
    DuplicateEmailError,
    LikeResult,
    RecordNotFoundError,
    RepairResult,
    SaveResult,
    Storage,
    StorageError,
)
from src.storage.memory import MemoryStorage
from src.storage.mongo import MongoStorage

__all__ = [
    "DuplicateEmailError",
    "LikeResult",
    "RecordNotFoundError",
    "RepairResult",
    "SaveResult",
    "Storage",
    "StorageError",
    "MemoryStorage",
    "MongoStorage",
    "create_storage",
]


def create_storage(backend: str = None) -> Storage:
    """
    Build the configured storage backend.

    Args:
        backend: "memory" or "mongo". Defaults to config.STORAGE_BACKEND.
    """
    from src.config import STORAGE_BACKEND

    backend = (backend or STORAGE_BACKEND).lower()
    if backend == "mongo":
        return MongoStorage()
    if backend == "memory":
        return MemoryStorage()
    raise ValueError(f"Unknown storage backend: {backend!r}")

"""Model catalog caching."""

from .catalog import TieredModelCatalog
from .models_cache import CACHE_PREFIX, ModelsCache
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "TieredModelCatalog",
    "ModelsCache",
    "CACHE_PREFIX",
    "KeyValueStorage",
    "MemoryStorage",
    "JsonFileStorage",
]

from code_reader.storage.file_store import FileKVStore
from code_reader.storage.kv import InMemoryKVStore, KVStore, supports_delete, supports_listing

__all__ = [
    "FileKVStore",
    "InMemoryKVStore",
    "KVStore",
    "supports_delete",
    "supports_listing",
]

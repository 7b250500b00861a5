"""Storage module - persisted JSON records."""

from xfetch.storage.json_store import JsonFileStore, RecordStore

__all__ = ["JsonFileStore", "RecordStore"]

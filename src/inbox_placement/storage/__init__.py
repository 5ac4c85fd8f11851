from inbox_placement.storage.base import TestStore
from inbox_placement.storage.json_store import JsonFileTestStore
from inbox_placement.storage.memory import InMemoryTestStore

__all__ = ["InMemoryTestStore", "JsonFileTestStore", "TestStore"]

"""Conversation persistence."""

from .backend import DataStore, JsonFileDataStore, MemoryDataStore
from .store import ConversationStore

__all__ = ["DataStore", "JsonFileDataStore", "MemoryDataStore", "ConversationStore"]

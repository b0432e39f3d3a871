from inkwell.storage.base import Storage
from inkwell.storage.memory import InMemoryStorage
from inkwell.storage.sql import SqlStorage

__all__ = ["Storage", "InMemoryStorage", "SqlStorage"]

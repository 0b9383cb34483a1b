"""
Storage package
"""
from .base import TaskStore
from .sql_store import SqlTaskStore, get_async_database_url

__all__ = ["TaskStore", "SqlTaskStore", "get_async_database_url"]

"""
ストレージ層 - 引用コレクションの所有と永続化
"""

from .key_value_store import KeyValueStore, StorageScope
from .persistence import PersistenceAdapter, Snapshot
from .quote_store import QuoteStore, DEFAULT_QUOTES

__all__ = [
    'KeyValueStore', 'StorageScope',
    'PersistenceAdapter', 'Snapshot',
    'QuoteStore', 'DEFAULT_QUOTES'
]

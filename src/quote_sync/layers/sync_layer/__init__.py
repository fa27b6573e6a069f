"""
同期層 - ローカル引用コレクション ↔ リモート引用ソースの同期を管理
"""

from .remote_source import RemoteQuoteSource
from .conflict_resolver import ConflictResolver, ConflictStrategy, ConflictType, MergePlan
from .sync_service import RemoteSyncService

__all__ = [
    'RemoteQuoteSource',
    'ConflictResolver', 'ConflictStrategy', 'ConflictType', 'MergePlan',
    'RemoteSyncService'
]

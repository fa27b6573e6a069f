"""
通知層 - ユーザー向け通知とエラーハンドリング
"""

from .dispatcher import NotificationDispatcher, Notification, NotificationLevel
from .error_handler import ErrorHandler, RecoveryAction

__all__ = [
    'NotificationDispatcher', 'Notification', 'NotificationLevel',
    'ErrorHandler', 'RecoveryAction'
]

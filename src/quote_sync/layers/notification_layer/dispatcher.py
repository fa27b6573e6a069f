"""
通知ディスパッチャ - プレゼンテーション層への非ブロッキング通知配信
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, List, Optional
import logging

logger = logging.getLogger(__name__)


class NotificationLevel(Enum):
    """通知レベル（表示色）"""
    SUCCESS = "green"
    INFO = "blue"
    WARNING = "orange"
    ERROR = "red"


@dataclass
class Notification:
    """通知メッセージ"""
    message: str
    level: NotificationLevel = NotificationLevel.SUCCESS
    created_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.level.name}] {self.message}"


NotificationHandler = Callable[[Notification], None]


class NotificationDispatcher:
    """購読者への通知配信"""

    def __init__(self, history_size: int = 50):
        self._handlers: List[NotificationHandler] = []
        self.history: Deque[Notification] = deque(maxlen=history_size)

    def subscribe(self, handler: NotificationHandler) -> Callable[[], None]:
        """購読登録（解除用の関数を返す）"""
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def notify(self, message: str, level: NotificationLevel = NotificationLevel.SUCCESS) -> Notification:
        """通知の配信"""
        notification = Notification(message=message, level=level)
        self.history.append(notification)
        logger.debug(f"Notification: {notification}")

        for handler in list(self._handlers):
            try:
                handler(notification)
            except Exception as e:
                # 表示側の不具合で呼び出し元を止めない
                logger.error(f"Notification handler failed: {e}")

        return notification

    def success(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.SUCCESS)

    def info(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.INFO)

    def warning(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.WARNING)

    def error(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.ERROR)

    @property
    def last(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

"""
エラーハンドリング - エラー分類・集計・通知
いずれのエラーも致命的ではなく、定期同期以外のリトライは行わない
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import aiohttp

from ...core.errors import QuoteSyncError
from ...core.models import RejectedReason
from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class RecoveryAction(Enum):
    """復旧方針"""
    WAIT_FOR_NEXT_CYCLE = "wait_for_next_cycle"
    SKIP = "skip"


@dataclass
class ErrorStrategy:
    """エラー種別ごとの対応"""
    message: str
    alert_threshold: int = 3


class ErrorHandler:
    """エラー分類と通知"""

    STRATEGIES: Dict[RejectedReason, ErrorStrategy] = {
        RejectedReason.NETWORK_FAILURE: ErrorStrategy(
            message="Failed to reach the server.",
            alert_threshold=3
        ),
        RejectedReason.MALFORMED_PAYLOAD: ErrorStrategy(
            message="Invalid format. Expected an array of quotes.",
            alert_threshold=5
        ),
        RejectedReason.EMPTY_FIELD: ErrorStrategy(
            message="Please fill out both fields.",
            alert_threshold=0
        ),
    }

    def __init__(self, dispatcher: Optional[NotificationDispatcher] = None):
        self.dispatcher = dispatcher
        self.error_counts: Dict[RejectedReason, int] = {}

    def classify_error(self, error: Exception) -> RejectedReason:
        """例外をエラー種別に分類"""
        if isinstance(error, QuoteSyncError):
            return error.reason

        if isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)):
            return RejectedReason.NETWORK_FAILURE

        if isinstance(error, (ValueError, TypeError, KeyError)):
            return RejectedReason.MALFORMED_PAYLOAD

        error_message = str(error).lower()
        if any(keyword in error_message for keyword in ['connection', 'timeout', 'network']):
            return RejectedReason.NETWORK_FAILURE

        return RejectedReason.MALFORMED_PAYLOAD

    @staticmethod
    def recovery_action(context: Optional[dict] = None) -> RecoveryAction:
        """復旧方針（同期サイクル内なら次回サイクル待ち、それ以外は破棄）"""
        if (context or {}).get("operation") == "sync":
            return RecoveryAction.WAIT_FOR_NEXT_CYCLE
        return RecoveryAction.SKIP

    def handle_error(self, error: Exception, context: Optional[dict] = None,
                     user_message: Optional[str] = None) -> RecoveryAction:
        """エラーを記録・通知し、復旧方針を返す"""
        reason = self.classify_error(error)
        return self.handle_reason(reason, context=context, detail=str(error), user_message=user_message)

    def handle_reason(self, reason: RejectedReason, context: Optional[dict] = None,
                      detail: str = "", user_message: Optional[str] = None) -> RecoveryAction:
        """分類済みエラーの処理"""
        strategy = self.STRATEGIES[reason]
        self.error_counts[reason] = self.error_counts.get(reason, 0) + 1
        count = self.error_counts[reason]

        logger.warning(f"{reason.value} ({count}): {detail or strategy.message} context={context or {}}")

        if strategy.alert_threshold and count >= strategy.alert_threshold:
            logger.error(f"Repeated {reason.value} errors: {count} occurrences")

        if self.dispatcher:
            self.dispatcher.error(user_message or strategy.message)

        return self.recovery_action(context)

    def get_statistics(self) -> Dict[str, int]:
        return {reason.value: count for reason, count in self.error_counts.items()}

"""例外定義"""

from typing import Optional

from .models import RejectedReason


class QuoteSyncError(Exception):
    """quote_sync共通の基底例外"""
    reason: RejectedReason = RejectedReason.MALFORMED_PAYLOAD


class MalformedPayloadError(QuoteSyncError):
    """JSONの構文・形式が不正"""
    reason = RejectedReason.MALFORMED_PAYLOAD


class NetworkFailureError(QuoteSyncError):
    """リモートへの通信失敗"""
    reason = RejectedReason.NETWORK_FAILURE

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

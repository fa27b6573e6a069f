"""データモデル定義"""

from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any
from pathlib import Path


ALL_CATEGORIES = "all"


class RejectedReason(Enum):
    """操作拒否・失敗の理由"""
    EMPTY_FIELD = "empty_field"
    MALFORMED_PAYLOAD = "malformed_payload"
    NETWORK_FAILURE = "network_failure"


@dataclass(frozen=True)
class Quote:
    """引用モデル（textが重複判定キー）"""
    text: str
    category: str

    def to_dict(self) -> Dict[str, str]:
        return {"text": self.text, "category": self.category}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quote":
        """辞書から生成（検証は呼び出し側で行う）"""
        return cls(text=data["text"], category=data["category"])

    def format_display(self) -> str:
        """表示用文字列"""
        return f'"{self.text}"\n  - Category: {self.category}'


@dataclass
class OperationResult:
    """ストア操作結果"""
    success: bool
    reason: Optional[RejectedReason] = None
    count: int = 0
    message: str = ""
    added: List[Quote] = field(default_factory=list)  # 実際に格納された引用

    @classmethod
    def ok(cls, added: List[Quote], message: str = "") -> "OperationResult":
        return cls(success=True, count=len(added), message=message, added=list(added))

    @classmethod
    def rejected(cls, reason: RejectedReason, message: str = "") -> "OperationResult":
        return cls(success=False, reason=reason, count=0, message=message)


class SyncStatus(Enum):
    """同期ステータス"""
    SUCCESS = "success"
    NO_CHANGES = "no_changes"
    FAILED = "failed"


@dataclass
class SyncResult:
    """同期結果"""
    status: SyncStatus
    fetched: int = 0
    added: List[Quote] = field(default_factory=list)
    duplicates: int = 0
    errors: List[str] = field(default_factory=list)
    reason: Optional[RejectedReason] = None
    sync_time: datetime = field(default_factory=datetime.now)

    @property
    def changed(self) -> bool:
        return bool(self.added)

    def is_successful(self) -> bool:
        return self.status != SyncStatus.FAILED

    def summary(self) -> str:
        return (f"Sync {self.status.value}: "
                f"{self.fetched} fetched, "
                f"{len(self.added)} added, "
                f"{self.duplicates} duplicates, "
                f"{len(self.errors)} errors")


@dataclass
class ExportResult:
    """JSONエクスポート結果"""
    success: bool
    output_file: Optional[Path] = None
    count: int = 0
    error_message: Optional[str] = None

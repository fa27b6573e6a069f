"""
競合解決 - ローカル優先・追記のみのマージポリシー
リモート引用はテキストがローカルに存在しない場合のみ採用する
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import logging

from ...core.models import Quote

logger = logging.getLogger(__name__)


class ConflictStrategy(Enum):
    """競合解決戦略"""
    LOCAL_WINS = "local_wins"      # テキスト衝突時はローカルを保持し、新規テキストのみ追記


class ConflictType(Enum):
    """競合タイプ"""
    DUPLICATE_TEXT = "duplicate_text"          # ローカルに同一テキストが存在
    DUPLICATE_IN_BATCH = "duplicate_in_batch"  # 同一バッチ内で重複


@dataclass
class QuoteConflict:
    """テキスト衝突"""
    text: str
    remote_category: str
    local_category: Optional[str]
    conflict_type: ConflictType
    detected_at: datetime = field(default_factory=datetime.now)

    def summary(self) -> str:
        return (f"{self.conflict_type.value}: '{self.text[:40]}' "
                f"(local={self.local_category}, remote={self.remote_category})")


@dataclass
class MergePlan:
    """マージ計画"""
    admitted: List[Quote]
    conflicts: List[QuoteConflict]

    @property
    def has_changes(self) -> bool:
        return bool(self.admitted)


class ConflictResolver:
    """競合解決エンジン"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.strategy = ConflictStrategy(config.get('strategy', 'local_wins'))

        # 統計情報
        self.conflicts_detected = 0
        self.quotes_admitted = 0
        self.merges_run = 0

    def plan_merge(self, local_quotes: Iterable[Quote], remote_quotes: Iterable[Quote]) -> MergePlan:
        """リモート引用のうち追記すべきものを決定（入力は変更しない）"""
        local_categories = self._index_local(local_quotes)
        existing: Set[str] = set(local_categories)

        admitted: List[Quote] = []
        conflicts: List[QuoteConflict] = []

        for remote in remote_quotes:
            if remote.text not in existing:
                admitted.append(remote)
                existing.add(remote.text)
                continue

            if remote.text in local_categories:
                conflict_type = ConflictType.DUPLICATE_TEXT
                local_category = local_categories[remote.text]
            else:
                conflict_type = ConflictType.DUPLICATE_IN_BATCH
                local_category = None

            conflicts.append(QuoteConflict(
                text=remote.text,
                remote_category=remote.category,
                local_category=local_category,
                conflict_type=conflict_type
            ))

        self.merges_run += 1
        self.conflicts_detected += len(conflicts)
        self.quotes_admitted += len(admitted)

        if conflicts:
            logger.debug(f"{len(conflicts)} remote quotes already present locally; local kept")
        logger.info(f"Merge plan ({self.strategy.value}): {len(admitted)} admitted, {len(conflicts)} conflicts")

        return MergePlan(admitted=admitted, conflicts=conflicts)

    def _index_local(self, local_quotes: Iterable[Quote]) -> Dict[str, str]:
        """テキスト -> 最初に出現したカテゴリ"""
        index: Dict[str, str] = {}
        for quote in local_quotes:
            index.setdefault(quote.text, quote.category)
        return index

    def get_statistics(self) -> Dict[str, Any]:
        """競合解決統計情報"""
        return {
            "merges_run": self.merges_run,
            "conflicts_detected": self.conflicts_detected,
            "quotes_admitted": self.quotes_admitted,
            "strategy_used": self.strategy.value
        }


def merge_quotes(local_quotes: List[Quote], remote_quotes: Iterable[Quote]) -> Tuple[List[Quote], List[Quote]]:
    """マージ結果のコレクションと追記分を返す純関数"""
    plan = ConflictResolver().plan_merge(local_quotes, remote_quotes)
    return list(local_quotes) + plan.admitted, plan.admitted

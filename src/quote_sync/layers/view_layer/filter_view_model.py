"""
フィルタ・選択ビューモデル - カテゴリ絞り込みとランダム表示対象の決定
"""

import random
from typing import Iterable, List, Optional, Sequence
import logging

from ...core.models import ALL_CATEGORIES, Quote

logger = logging.getLogger(__name__)


def filtered(quotes: Sequence[Quote], selected_category: str) -> List[Quote]:
    """選択カテゴリで絞り込み（"all" なら全件、順序保持）"""
    if selected_category == ALL_CATEGORIES:
        return list(quotes)
    return [quote for quote in quotes if quote.category == selected_category]


def pick_random(quotes: Sequence[Quote], rng: Optional[random.Random] = None) -> Optional[Quote]:
    """一様ランダムに1件選択（空ならNone）"""
    if not quotes:
        return None
    rng = rng or random
    return quotes[rng.randrange(len(quotes))]


class FilterViewModel:
    """選択カテゴリの保持と表示対象の算出"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.selected_category = ALL_CATEGORIES
        self.rng = rng or random.Random()

    def set_selected_category(self, value: str, categories: Iterable[str]) -> bool:
        """all か既存カテゴリの場合のみ反映"""
        if value != ALL_CATEGORIES and value not in set(categories):
            logger.debug(f"Ignoring unknown category: {value!r}")
            return False
        self.selected_category = value
        return True

    def restore_selected_category(self, value: Optional[str], categories: Iterable[str]) -> str:
        """保存済みカテゴリの復元（存在しなければ "all"）"""
        if value is None or not self.set_selected_category(value, categories):
            self.selected_category = ALL_CATEGORIES
        return self.selected_category

    def revalidate(self, categories: Iterable[str]) -> str:
        """コレクション変更後に選択カテゴリを検証"""
        return self.restore_selected_category(self.selected_category, categories)

    def filtered(self, quotes: Sequence[Quote]) -> List[Quote]:
        return filtered(quotes, self.selected_category)

    def pick_random(self, quotes: Sequence[Quote]) -> Optional[Quote]:
        """現在の絞り込み結果からランダムに1件"""
        return pick_random(self.filtered(quotes), self.rng)

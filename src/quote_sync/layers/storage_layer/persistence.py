"""
永続化アダプタ - 引用コレクションと選択カテゴリのスナップショット保存
"""

import json
from dataclasses import dataclass
from typing import List, Optional, Sequence, Any
import logging

import aiosqlite

from ...core.models import Quote
from .key_value_store import KeyValueStore, StorageScope

logger = logging.getLogger(__name__)

QUOTES_KEY = "quotes"
SELECTED_CATEGORY_KEY = "selectedCategory"
LAST_QUOTE_KEY = "lastQuote"


@dataclass
class Snapshot:
    """永続化スナップショット"""
    quotes: List[Quote]
    selected_category: Optional[str] = None


def parse_quote(data: Any) -> Optional[Quote]:
    """{text, category} 形式の値をQuoteに変換（不正ならNone）"""
    if not isinstance(data, dict):
        return None
    text = data.get("text")
    category = data.get("category")
    if not isinstance(text, str) or not isinstance(category, str):
        return None
    if not text.strip() or not category.strip():
        return None
    return Quote(text=text, category=category)


class PersistenceAdapter:
    """スナップショットの保存・読み込み"""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def initialize(self) -> bool:
        return await self.store.initialize()

    async def save(self, quotes: Sequence[Quote], selected_category: str) -> bool:
        """コレクションと選択カテゴリを上書き保存"""
        payload = json.dumps([quote.to_dict() for quote in quotes], ensure_ascii=False)
        try:
            await self.store.set_many({
                QUOTES_KEY: payload,
                SELECTED_CATEGORY_KEY: selected_category,
            })
            logger.debug(f"Snapshot saved: {len(quotes)} quotes, category={selected_category}")
            return True
        except aiosqlite.Error as e:
            logger.error(f"Failed to save snapshot: {e}")
            return False

    async def load_snapshot(self) -> Optional[Snapshot]:
        """スナップショット読み込み（存在しない・壊れている場合はNone）"""
        try:
            raw_quotes = await self.store.get(QUOTES_KEY)
            selected_category = await self.store.get(SELECTED_CATEGORY_KEY)
        except aiosqlite.Error as e:
            logger.error(f"Failed to read snapshot: {e}")
            return None

        if raw_quotes is None:
            logger.info("No persisted snapshot found")
            return None

        try:
            data = json.loads(raw_quotes)
        except ValueError as e:
            logger.warning(f"Discarding unparsable snapshot: {e}")
            return None

        if not isinstance(data, list):
            logger.warning("Discarding snapshot: quotes entry is not a list")
            return None

        quotes = []
        for item in data:
            quote = parse_quote(item)
            if quote is None:
                logger.warning("Discarding snapshot: malformed quote entry")
                return None
            quotes.append(quote)

        return Snapshot(quotes=quotes, selected_category=selected_category)

    async def save_last_shown(self, quote: Quote):
        """直近に表示した引用をセッションスコープに保存"""
        try:
            await self.store.set(LAST_QUOTE_KEY, json.dumps(quote.to_dict(), ensure_ascii=False),
                                 StorageScope.SESSION)
        except aiosqlite.Error as e:
            logger.warning(f"Failed to store last shown quote: {e}")

    async def load_last_shown(self) -> Optional[Quote]:
        """直近に表示した引用を取得"""
        try:
            raw = await self.store.get(LAST_QUOTE_KEY, StorageScope.SESSION)
        except aiosqlite.Error as e:
            logger.warning(f"Failed to read last shown quote: {e}")
            return None
        if raw is None:
            return None
        try:
            return parse_quote(json.loads(raw))
        except ValueError:
            return None

    async def end_session(self):
        """セッションスコープの消去"""
        try:
            await self.store.clear(StorageScope.SESSION)
        except aiosqlite.Error as e:
            logger.warning(f"Failed to clear session scope: {e}")
            return
        logger.debug("Session scope cleared")

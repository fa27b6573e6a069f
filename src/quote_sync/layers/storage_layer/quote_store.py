"""
引用ストア - セッション中の引用コレクションを一元管理
"""

from typing import Any, Iterator, List, Optional, Sequence
import logging

from ...core.models import Quote, OperationResult, RejectedReason
from .persistence import Snapshot, parse_quote

logger = logging.getLogger(__name__)


DEFAULT_QUOTES = (
    Quote("The only limit to our realization of tomorrow is our doubts of today.", "Motivation"),
    Quote("Life is really simple, but we insist on making it complicated.", "Life"),
    Quote("Simplicity is the ultimate sophistication.", "Design"),
    Quote("Code is like humor. When you have to explain it, it’s bad.", "Programming"),
)


class QuoteStore:
    """引用コレクションの所有者"""

    def __init__(self, quotes: Optional[Sequence[Quote]] = None):
        self._quotes: List[Quote] = list(quotes) if quotes is not None else []

    @property
    def quotes(self) -> List[Quote]:
        """コレクションのコピー（挿入順）"""
        return list(self._quotes)

    def __len__(self) -> int:
        return len(self._quotes)

    def __iter__(self) -> Iterator[Quote]:
        return iter(list(self._quotes))

    def load(self, snapshot: Optional[Snapshot]) -> List[Quote]:
        """永続化済みコレクション、なければ初期引用で置き換える"""
        if snapshot is not None and isinstance(snapshot.quotes, list):
            self._quotes = list(snapshot.quotes)
            logger.info(f"Loaded {len(self._quotes)} persisted quotes")
        else:
            self._quotes = list(DEFAULT_QUOTES)
            logger.info("Using built-in default quotes")
        return self.quotes

    def add(self, quote: Quote) -> OperationResult:
        """引用を末尾に追加（重複チェックなし）"""
        text = (quote.text or "").strip()
        category = (quote.category or "").strip()

        if not text or not category:
            logger.debug("Rejected quote with empty field")
            return OperationResult.rejected(RejectedReason.EMPTY_FIELD,
                                            "Please fill out both fields.")

        stored = Quote(text=text, category=category)
        self._quotes.append(stored)
        return OperationResult.ok([stored], "Quote added successfully!")

    def import_many(self, candidates: Any) -> OperationResult:
        """{text, category} の配列を一括追加（形式不正なら全件拒否）"""
        if not isinstance(candidates, list):
            logger.warning(f"Import rejected: expected a list, got {type(candidates).__name__}")
            return OperationResult.rejected(RejectedReason.MALFORMED_PAYLOAD,
                                            "Invalid format. Expected an array of quotes.")

        parsed = []
        for index, item in enumerate(candidates):
            quote = parse_quote(item)
            if quote is None:
                logger.warning(f"Import rejected: malformed entry at index {index}")
                return OperationResult.rejected(RejectedReason.MALFORMED_PAYLOAD,
                                                "Invalid format. Expected an array of quotes.")
            parsed.append(quote)

        self._quotes.extend(parsed)
        logger.info(f"Imported {len(parsed)} quotes")
        return OperationResult.ok(parsed, "Quotes imported successfully!")

    def merge_remote(self, admitted: Sequence[Quote]) -> List[Quote]:
        """競合解決で採用されたリモート引用を末尾に追加"""
        self._quotes.extend(admitted)
        return list(admitted)

    def categories(self) -> List[str]:
        """カテゴリ一覧（初出順）"""
        return list(dict.fromkeys(quote.category for quote in self._quotes))

"""
統合テスト共通フィクスチャ
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from quote_sync.core.errors import NetworkFailureError
from quote_sync.core.models import Quote
from quote_sync.layers.storage_layer.key_value_store import KeyValueStore
from quote_sync.layers.storage_layer.persistence import PersistenceAdapter


class FakeRemoteSource:
    """テスト用リモート引用ソース"""

    def __init__(self, titles: Optional[List[str]] = None, category: str = "Server"):
        self.titles = list(titles or [])
        self.category = category
        self.fetch_error: Optional[Exception] = None
        self.push_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.fetch_calls = 0
        self.pushed: List[Quote] = []

    async def fetch_quotes(self) -> List[Quote]:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return [Quote(text=title, category=self.category) for title in self.titles]

    async def push_quote(self, quote: Quote) -> dict:
        if self.push_error is not None:
            raise self.push_error
        self.pushed.append(quote)
        return {"id": 101, **quote.to_dict()}


@pytest.fixture
def fake_source():
    return FakeRemoteSource(["A", "B"])


@pytest.fixture
def offline_source():
    source = FakeRemoteSource()
    source.fetch_error = NetworkFailureError("GET /posts failed: connection refused")
    source.push_error = NetworkFailureError("POST /posts failed: connection refused")
    return source


@pytest.fixture
def database_path(tmp_path) -> Path:
    return tmp_path / "data" / "quotes.db"


@pytest.fixture
async def persistence(database_path):
    adapter = PersistenceAdapter(KeyValueStore(database_path))
    await adapter.initialize()
    return adapter

"""
リモート引用ソース - JSONPlaceholder互換のRESTエンドポイントとの通信
"""

import asyncio
from typing import Any, Dict, List, Optional
import logging

import aiohttp

from ...core.errors import MalformedPayloadError, NetworkFailureError
from ...core.models import Quote

logger = logging.getLogger(__name__)


class RemoteQuoteSource:
    """リモート引用コレクションの読み書き"""

    def __init__(self,
                 base_url: str = "https://jsonplaceholder.typicode.com",
                 resource: str = "posts",
                 fetch_limit: int = 5,
                 synthetic_category: str = "Server",
                 timeout_seconds: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.resource = resource.strip('/')
        self.fetch_limit = fetch_limit
        self.synthetic_category = synthetic_category
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @classmethod
    def from_config(cls, config) -> "RemoteQuoteSource":
        return cls(
            base_url=config.base_url,
            resource=config.resource,
            fetch_limit=config.fetch_limit,
            synthetic_category=config.synthetic_category,
            timeout_seconds=config.timeout_seconds
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.resource}"

    async def fetch_quotes(self) -> List[Quote]:
        """リモートの引用一覧を取得（タイトルを本文、カテゴリは固定値）"""
        params = {"_limit": str(self.fetch_limit)}
        records = await self._request("GET", params=params)

        if not isinstance(records, list):
            raise MalformedPayloadError("Remote response is not a list")

        quotes = []
        for record in records:
            quote = self._record_to_quote(record)
            if quote is not None:
                quotes.append(quote)
            else:
                logger.debug(f"Skipping remote record without title: {record!r}")

        logger.info(f"Fetched {len(quotes)} quotes from {self.endpoint}")
        return quotes

    async def push_quote(self, quote: Quote) -> Dict[str, Any]:
        """引用を1件送信"""
        result = await self._request("POST", payload=quote.to_dict())
        logger.info(f"Quote posted to server: {result}")
        return result if isinstance(result, dict) else {"response": result}

    def _record_to_quote(self, record: Any) -> Optional[Quote]:
        if not isinstance(record, dict):
            return None
        title = record.get("title")
        if not isinstance(title, str) or not title.strip():
            return None
        return Quote(text=title, category=self.synthetic_category)

    async def _request(self, method: str, params: Optional[Dict[str, str]] = None,
                       payload: Optional[Dict[str, Any]] = None) -> Any:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, self.endpoint, params=params, json=payload) as response:
                    if response.status >= 400:
                        text = await response.text()
                        raise NetworkFailureError(
                            f"{method} {self.endpoint} returned {response.status}: {text[:200]}",
                            status=response.status
                        )
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise MalformedPayloadError(f"Invalid JSON from {self.endpoint}: {e}") from e

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkFailureError(f"{method} {self.endpoint} failed: {e!r}") from e

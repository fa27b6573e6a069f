"""
リモート同期サービス - 起動時・定期・手動での取り込みと、追加引用の送信
"""

import asyncio
from contextlib import suppress
from typing import Callable, List, Optional, Set, Tuple
import logging

from ...core.errors import QuoteSyncError
from ...core.models import ALL_CATEGORIES, Quote, SyncResult, SyncStatus
from ..notification_layer.dispatcher import NotificationDispatcher
from ..notification_layer.error_handler import ErrorHandler
from ..storage_layer.persistence import PersistenceAdapter
from ..storage_layer.quote_store import QuoteStore
from .conflict_resolver import ConflictResolver
from .remote_source import RemoteQuoteSource

logger = logging.getLogger(__name__)

SyncListener = Callable[[SyncResult], None]


class RemoteSyncService:
    """ローカル引用コレクションとリモートの突き合わせ"""

    def __init__(self,
                 store: QuoteStore,
                 persistence: PersistenceAdapter,
                 source: RemoteQuoteSource,
                 dispatcher: Optional[NotificationDispatcher] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 resolver: Optional[ConflictResolver] = None,
                 selected_category: Optional[Callable[[], str]] = None,
                 interval_seconds: float = 30.0,
                 sync_on_start: bool = True,
                 skip_overlapping: bool = True):
        self.store = store
        self.persistence = persistence
        self.source = source
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.error_handler = error_handler or ErrorHandler(self.dispatcher)
        self.resolver = resolver or ConflictResolver()
        self.selected_category = selected_category or (lambda: ALL_CATEGORIES)
        self.interval_seconds = interval_seconds
        self.sync_on_start = sync_on_start
        self.skip_overlapping = skip_overlapping

        self._listeners: List[Tuple[SyncListener, bool]] = []
        self._loop_task: Optional[asyncio.Task] = None
        self._current_cycle: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()
        self._push_tasks: Set[asyncio.Task] = set()

        # 統計情報
        self.cycles_run = 0
        self.cycles_failed = 0
        self.cycles_skipped = 0
        self.last_result: Optional[SyncResult] = None

    def add_listener(self, listener: SyncListener, changes_only: bool = True):
        """同期結果の購読（changes_only=False なら失敗を含む全サイクル）"""
        self._listeners.append((listener, changes_only))

    async def sync_once(self) -> SyncResult:
        """同期サイクルを1回実行"""
        self.cycles_run += 1

        try:
            remote_quotes = await self.source.fetch_quotes()
        except QuoteSyncError as e:
            self.cycles_failed += 1
            self.error_handler.handle_error(
                e, context={"operation": "sync", "cycle": self.cycles_run},
                user_message="Failed to fetch from server."
            )
            result = SyncResult(status=SyncStatus.FAILED, errors=[str(e)], reason=e.reason)
            self.last_result = result
            self._notify_listeners(result)
            return result

        # 既存集合の計算から追記までの間に await を挟まない
        plan = self.resolver.plan_merge(self.store.quotes, remote_quotes)
        added = self.store.merge_remote(plan.admitted)

        result = SyncResult(
            status=SyncStatus.SUCCESS if added else SyncStatus.NO_CHANGES,
            fetched=len(remote_quotes),
            added=added,
            duplicates=len(plan.conflicts)
        )

        if added:
            if await self.persistence.save(self.store.quotes, self.selected_category()):
                self.dispatcher.success("Quotes synced with server.")
            else:
                result.errors.append("Failed to persist synced quotes")
                self.dispatcher.error("Failed to save quotes locally.")

        logger.info(result.summary())
        self.last_result = result
        self._notify_listeners(result)
        return result

    def _notify_listeners(self, result: SyncResult):
        for listener, changes_only in list(self._listeners):
            if changes_only and not result.changed:
                continue
            try:
                listener(result)
            except Exception as e:
                logger.error(f"Sync listener failed: {e}")

    # 定期実行

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> asyncio.Task:
        """定期同期の開始（キャンセル用ハンドルを返す）"""
        if self.running:
            return self._loop_task

        self._loop_task = asyncio.create_task(self._run_periodic())
        logger.info(f"Periodic sync started (interval={self.interval_seconds}s)")
        return self._loop_task

    async def stop(self):
        """定期同期の停止と実行中サイクルの取り消し"""
        if self._loop_task is not None:
            self._loop_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None

        pending = list(self._cycle_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info("Periodic sync stopped")

    async def _run_periodic(self):
        if self.sync_on_start:
            self.trigger_cycle()

        while True:
            await asyncio.sleep(self.interval_seconds)
            self.trigger_cycle()

    def trigger_cycle(self) -> Optional[asyncio.Task]:
        """バックグラウンドで1サイクル起動（前回が未完了ならスキップ可）"""
        if self.skip_overlapping and self._current_cycle is not None and not self._current_cycle.done():
            self.cycles_skipped += 1
            logger.warning("Previous sync cycle still running; skipping this tick")
            return None

        task = asyncio.create_task(self.sync_once())
        self._current_cycle = task
        self._cycle_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def wait_for_cycles(self):
        """実行中の同期サイクルを待つ"""
        pending = list(self._cycle_tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _on_task_done(self, task: asyncio.Task):
        self._cycle_tasks.discard(task)
        self._push_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background sync task failed: {error!r}")

    # 送信

    def push_in_background(self, quote: Quote) -> asyncio.Task:
        """追加された引用を送信（結果を待たない・リトライしない）"""
        task = asyncio.create_task(self.push(quote))
        self._push_tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def push(self, quote: Quote) -> bool:
        try:
            await self.source.push_quote(quote)
        except QuoteSyncError as e:
            self.error_handler.handle_error(
                e, context={"operation": "push"},
                user_message="Error posting quote to server."
            )
            return False

        self.dispatcher.info("Quote posted to server.")
        return True

    async def wait_for_pushes(self):
        """未完了の送信を待つ"""
        pending = list(self._push_tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def get_statistics(self) -> dict:
        return {
            "cycles_run": self.cycles_run,
            "cycles_failed": self.cycles_failed,
            "cycles_skipped": self.cycles_skipped,
            "pending_pushes": len(self._push_tasks),
            "conflicts": self.resolver.get_statistics(),
            "errors": self.error_handler.get_statistics(),
        }

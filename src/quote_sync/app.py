"""
アプリケーション - 各層を組み合わせた引用コレクションの操作窓口
表示側はこのクラスを呼び出し、通知ディスパッチャを購読する
"""

import random
from pathlib import Path
from typing import Any, List, Optional, Union

from .config.settings import AppConfig
from .core.errors import MalformedPayloadError
from .core.models import ExportResult, OperationResult, Quote, SyncResult
from .layers.data_exchange.json_exchange import read_import_file, write_export_file
from .layers.notification_layer.dispatcher import NotificationDispatcher
from .layers.notification_layer.error_handler import ErrorHandler
from .layers.storage_layer.key_value_store import KeyValueStore
from .layers.storage_layer.persistence import PersistenceAdapter
from .layers.storage_layer.quote_store import QuoteStore
from .layers.sync_layer.remote_source import RemoteQuoteSource
from .layers.sync_layer.sync_service import RemoteSyncService
from .layers.view_layer.filter_view_model import FilterViewModel
from .utils.enhanced_logger import get_logger


class QuoteSyncApp:
    """引用コレクションアプリケーション"""

    def __init__(self,
                 config: Optional[AppConfig] = None,
                 source: Optional[RemoteQuoteSource] = None,
                 dispatcher: Optional[NotificationDispatcher] = None,
                 rng: Optional[random.Random] = None):
        self.config = config or AppConfig()
        self.logger = get_logger()

        self.dispatcher = dispatcher or NotificationDispatcher()
        self.error_handler = ErrorHandler(self.dispatcher)

        self.store = QuoteStore()
        self.persistence = PersistenceAdapter(KeyValueStore(self.config.storage.database_path,
                                                         session_id=self.config.storage.session_id))
        self.view = FilterViewModel(rng)
        self.source = source or RemoteQuoteSource.from_config(self.config.remote)

        self.sync_service = RemoteSyncService(
            store=self.store,
            persistence=self.persistence,
            source=self.source,
            dispatcher=self.dispatcher,
            error_handler=self.error_handler,
            selected_category=lambda: self.view.selected_category,
            interval_seconds=self.config.sync.interval_seconds,
            sync_on_start=self.config.sync.sync_on_start,
            skip_overlapping=self.config.sync.skip_overlapping
        )
        self.sync_service.add_listener(self._on_sync_applied)
        self.sync_service.add_listener(self.logger.log_sync_result, changes_only=False)

        self.current_quote: Optional[Quote] = None
        self._initialized = False

    async def initialize(self) -> bool:
        """ストレージ初期化とスナップショットの復元"""
        op = self.logger.log_operation_start("initialize", database=str(self.config.storage.database_path))

        if not await self.persistence.initialize():
            self.logger.log_operation_end(op, success=False)
            self.dispatcher.error("Failed to open local storage.")
            return False

        snapshot = await self.persistence.load_snapshot()
        self.store.load(snapshot)
        self.view.restore_selected_category(
            snapshot.selected_category if snapshot else None,
            self.store.categories()
        )
        self.current_quote = await self.persistence.load_last_shown()

        self._initialized = True
        self.logger.log_operation_end(op, success=True, quotes=len(self.store),
                                      selected_category=self.view.selected_category)
        return True

    async def start(self):
        """定期同期の開始（設定で無効なら何もしない）"""
        if not self._initialized:
            await self.initialize()
        if self.config.sync.enabled:
            self.sync_service.start()

    async def shutdown(self):
        """同期停止・送信待ち（使い捨てセッションはここで終了）"""
        await self.sync_service.stop()
        await self.sync_service.wait_for_pushes()
        if self._initialized and not self.persistence.store.persistent_session:
            await self.persistence.end_session()
        self.logger.info("Application shut down", health=self.logger.get_health_status())

    async def __aenter__(self) -> "QuoteSyncApp":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()

    # 表示

    @property
    def selected_category(self) -> str:
        return self.view.selected_category

    def categories(self) -> List[str]:
        return self.store.categories()

    def visible_quotes(self) -> List[Quote]:
        """選択カテゴリで絞り込んだ引用一覧"""
        return self.view.filtered(self.store.quotes)

    async def show_random_quote(self) -> Optional[Quote]:
        """絞り込み結果からランダムに1件選び、セッションに記録"""
        quote = self.view.pick_random(self.store.quotes)
        if quote is None:
            self.dispatcher.warning("No quotes found in this category.")
            return None

        self.current_quote = quote
        await self.persistence.save_last_shown(quote)
        return quote

    async def last_viewed_quote(self) -> Optional[Quote]:
        """このセッションで最後に表示した引用"""
        return await self.persistence.load_last_shown()

    async def end_session(self):
        """セッションの明示的な終了（直近表示の引用を破棄）"""
        await self.persistence.end_session()
        self.current_quote = None

    async def select_category(self, category: str) -> bool:
        """カテゴリ選択の反映と保存"""
        if not self.view.set_selected_category(category, self.store.categories()):
            return False
        await self._persist()
        return True

    # 変更操作

    async def add_quote(self, text: str, category: str) -> OperationResult:
        """引用の追加・保存・リモート送信"""
        result = self.store.add(Quote(text=text, category=category))
        if not result.success:
            self.error_handler.handle_reason(result.reason, context={"operation": "add"},
                                             user_message=result.message)
            return result

        # 保存待ちの間に同期が追記しうるため、格納した引用そのものを送信する
        added = result.added[0]
        await self._persist()
        self.dispatcher.success(result.message)

        if self.config.sync.push_on_add:
            self.sync_service.push_in_background(added)
        return result

    async def import_quotes(self, candidates: Any) -> OperationResult:
        """解析済みデータの一括インポート"""
        result = self.store.import_many(candidates)
        if not result.success:
            self.error_handler.handle_reason(result.reason, context={"operation": "import"},
                                             user_message=result.message)
            return result

        await self._persist()
        self.dispatcher.success(result.message)
        return result

    async def import_file(self, path: Union[str, Path]) -> OperationResult:
        """JSONファイルからのインポート"""
        op = self.logger.log_operation_start("import", path=str(path))
        try:
            candidates = read_import_file(path)
        except MalformedPayloadError as e:
            self.logger.log_operation_end(op, success=False, error_type=e.reason.value)
            self.error_handler.handle_error(e, context={"operation": "import", "path": str(path)},
                                            user_message="Failed to import quotes.")
            return OperationResult.rejected(e.reason, "Failed to import quotes.")

        result = await self.import_quotes(candidates)
        self.logger.log_operation_end(op, success=result.success, count=result.count)
        return result

    def export_file(self, directory: Optional[Union[str, Path]] = None) -> ExportResult:
        """quotes.json へのエクスポート"""
        target = directory if directory is not None else self.config.storage.export_directory
        result = write_export_file(self.store.quotes, target)
        if result.success:
            self.dispatcher.info("Quotes exported.")
        else:
            self.dispatcher.error("Failed to export quotes.")
        return result

    async def sync_now(self) -> SyncResult:
        """手動同期"""
        op = self.logger.log_operation_start("sync")
        result = await self.sync_service.sync_once()
        if result.is_successful():
            self.logger.log_operation_end(op, success=True, added=len(result.added),
                                          fetched=result.fetched)
        else:
            self.logger.log_operation_end(op, success=False,
                                          error_type=result.reason.value if result.reason else "unknown")
        return result

    async def _persist(self) -> bool:
        saved = await self.persistence.save(self.store.quotes, self.view.selected_category)
        if not saved:
            self.dispatcher.error("Failed to save quotes locally.")
        return saved

    def _on_sync_applied(self, result: SyncResult):
        self.view.revalidate(self.store.categories())

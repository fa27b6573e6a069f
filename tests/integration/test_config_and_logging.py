"""
設定管理・ログシステム テスト
"""

import yaml

from quote_sync.config.settings import AppConfig, ConfigManager, get_config
from quote_sync.layers.notification_layer.dispatcher import NotificationDispatcher, NotificationLevel
from quote_sync.layers.notification_layer.error_handler import ErrorHandler, RecoveryAction
from quote_sync.core.errors import MalformedPayloadError, NetworkFailureError
from quote_sync.core.models import Quote, RejectedReason, SyncResult, SyncStatus
from quote_sync.utils.enhanced_logger import EnhancedLogger, LogLevel, setup_logging


class TestConfigManager:
    """設定管理のテスト"""

    def test_defaults_without_files(self, tmp_path):
        """設定ファイルがなければデフォルト"""
        config = ConfigManager(tmp_path / "missing").load_config()

        assert config.storage.database_path == "data/quotes.db"
        assert config.remote.base_url == "https://jsonplaceholder.typicode.com"
        assert config.remote.fetch_limit == 5
        assert config.remote.synthetic_category == "Server"
        assert config.sync.interval_seconds == 30.0
        assert config.sync.skip_overlapping

    def test_layered_yaml_files(self, tmp_path):
        """main.yaml と層別ファイルの統合"""
        (tmp_path / "main.yaml").write_text(yaml.safe_dump({
            "environment": "staging",
            "logging": {"level": "DEBUG"},
            "storage": {"export_directory": "exports"},
        }), encoding="utf-8")
        (tmp_path / "storage.yaml").write_text(yaml.safe_dump({
            "database_path": "/tmp/q.db",
        }), encoding="utf-8")
        (tmp_path / "sync_layer.yaml").write_text(yaml.safe_dump({
            "remote": {"fetch_limit": 10},
            "sync": {"interval_seconds": 5},
        }), encoding="utf-8")

        config = ConfigManager(tmp_path).load_config()

        assert config.environment == "staging"
        assert config.logging.level == "DEBUG"
        assert config.storage.database_path == "/tmp/q.db"
        assert config.storage.export_directory == "exports", "層別ファイルは深いマージ"
        assert config.remote.fetch_limit == 10
        assert config.remote.synthetic_category == "Server"
        assert config.sync.interval_seconds == 5

    def test_env_overrides(self, tmp_path, monkeypatch):
        """環境変数によるオーバーライド"""
        monkeypatch.setenv("QUOTE_SYNC_DB_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("QUOTE_SYNC_REMOTE_URL", "https://example.test")
        monkeypatch.setenv("QUOTE_SYNC_INTERVAL", "2.5")
        monkeypatch.setenv("QUOTE_SYNC_DEBUG", "yes")

        config = ConfigManager(tmp_path).load_config()

        assert config.storage.database_path == str(tmp_path / "env.db")
        assert config.remote.base_url == "https://example.test"
        assert config.sync.interval_seconds == 2.5
        assert config.debug is True

    def test_session_id_env_override(self, tmp_path, monkeypatch):
        assert ConfigManager(tmp_path).load_config().storage.session_id is None
        monkeypatch.setenv("QUOTE_SYNC_SESSION_ID", "tab-1")
        assert ConfigManager(tmp_path).load_config().storage.session_id == "tab-1"

    def test_get_config_uses_directory(self, tmp_path):
        """get_config は指定ディレクトリの設定を読み込む"""
        (tmp_path / "sync_layer.yaml").write_text(yaml.safe_dump({
            "sync": {"interval_seconds": 7},
        }), encoding="utf-8")

        config = get_config(tmp_path)

        assert config.sync.interval_seconds == 7
        assert get_config(tmp_path) is config
        assert get_config(tmp_path, reload=True) is not config

    def test_invalid_env_value_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("QUOTE_SYNC_INTERVAL", "soon")
        assert ConfigManager(tmp_path).load_config().sync.interval_seconds == 30.0

    def test_unknown_keys_and_bad_yaml_ignored(self, tmp_path):
        """未知のキー・壊れたYAMLは無視"""
        (tmp_path / "main.yaml").write_text("storage: {database_path: x.db, colour: red}\n", encoding="utf-8")
        (tmp_path / "sync_layer.yaml").write_text("sync: [unclosed\n", encoding="utf-8")

        config = ConfigManager(tmp_path).load_config()

        assert config.storage.database_path == "x.db"
        assert config.sync.enabled

    def test_config_is_cached(self, tmp_path):
        manager = ConfigManager(tmp_path)
        assert manager.load_config() is manager.load_config()
        assert manager.load_config(reload=True) is not None

    def test_template_round_trip(self, tmp_path):
        """テンプレート作成後の読み込みはデフォルトと同一"""
        manager = ConfigManager(tmp_path / "config")
        manager.save_config_template()

        for name in ("main.yaml", "storage.yaml", "sync_layer.yaml"):
            assert (tmp_path / "config" / name).exists()

        assert manager.load_config().to_dict() == AppConfig().to_dict()


class TestErrorHandler:
    """エラーハンドリングのテスト"""

    def test_classification(self):
        handler = ErrorHandler()
        assert handler.classify_error(NetworkFailureError("down")) == RejectedReason.NETWORK_FAILURE
        assert handler.classify_error(MalformedPayloadError("bad")) == RejectedReason.MALFORMED_PAYLOAD
        assert handler.classify_error(ConnectionResetError()) == RejectedReason.NETWORK_FAILURE
        assert handler.classify_error(KeyError("text")) == RejectedReason.MALFORMED_PAYLOAD

    def test_handle_error_notifies_and_counts(self):
        """通知とエラー集計"""
        dispatcher = NotificationDispatcher()
        handler = ErrorHandler(dispatcher)

        action = handler.handle_error(NetworkFailureError("down"), context={"operation": "sync"},
                                      user_message="Failed to fetch from server.")

        assert action == RecoveryAction.WAIT_FOR_NEXT_CYCLE
        assert dispatcher.last.message == "Failed to fetch from server."
        assert dispatcher.last.level == NotificationLevel.ERROR
        assert handler.get_statistics() == {"network_failure": 1}

    def test_malformed_payload_action_depends_on_operation(self):
        """同期中の不正データは次回サイクル待ち、入力由来は破棄"""
        handler = ErrorHandler()

        assert handler.handle_error(MalformedPayloadError("bad json"),
                                    context={"operation": "sync"}) == RecoveryAction.WAIT_FOR_NEXT_CYCLE
        assert handler.handle_error(MalformedPayloadError("bad json"),
                                    context={"operation": "import"}) == RecoveryAction.SKIP
        assert handler.handle_reason(RejectedReason.MALFORMED_PAYLOAD) == RecoveryAction.SKIP
        assert handler.get_statistics() == {"malformed_payload": 3}

    def test_push_failure_is_not_retried(self):
        handler = ErrorHandler()
        action = handler.handle_error(NetworkFailureError("down"), context={"operation": "push"})
        assert action == RecoveryAction.SKIP

    def test_default_message_per_reason(self):
        dispatcher = NotificationDispatcher()
        ErrorHandler(dispatcher).handle_reason(RejectedReason.EMPTY_FIELD)
        assert dispatcher.last.message == "Please fill out both fields."


class TestNotificationDispatcher:
    """通知ディスパッチャのテスト"""

    def test_subscribe_and_unsubscribe(self):
        dispatcher = NotificationDispatcher()
        received = []
        unsubscribe = dispatcher.subscribe(received.append)

        dispatcher.success("one")
        unsubscribe()
        dispatcher.info("two")

        assert [n.message for n in received] == ["one"]
        assert [n.message for n in dispatcher.history] == ["one", "two"]

    def test_failing_handler_does_not_propagate(self):
        """表示側の例外は呼び出し元に伝播しない"""
        dispatcher = NotificationDispatcher()

        def broken(notification):
            raise RuntimeError("render failed")

        dispatcher.subscribe(broken)
        notification = dispatcher.warning("still delivered")

        assert str(notification) == "[WARNING] still delivered"


class TestEnhancedLogger:
    """ログシステムのテスト"""

    def test_setup_logging_from_config(self, tmp_path):
        log_file = tmp_path / "logs" / "quote_sync.log"
        logger = setup_logging({'level': 'debug', 'file_path': str(log_file), 'structured': False})

        assert isinstance(logger, EnhancedLogger)
        assert logger.log_level == LogLevel.DEBUG

        logger.info("hello", operation="test")
        for handler in logger.logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text(encoding="utf-8")

    def test_operation_metrics(self):
        """操作の成功・失敗メトリクス"""
        logger = EnhancedLogger(name="quote_sync.test_metrics", structured=False)

        op = logger.log_operation_start("sync")
        logger.log_operation_end(op, success=True, added=1)
        op = logger.log_operation_start("sync")
        logger.log_operation_end(op, success=False, error_type="network_failure")

        counters = logger.get_health_status()["counters"]
        assert counters["sync_success"] == 1
        assert counters["sync_error_network_failure"] == 1

    def test_sync_results_drive_health(self):
        """連続した同期失敗でオフライン、成功で回復"""
        logger = EnhancedLogger(name="quote_sync.test_sync_health", structured=False)
        failed = SyncResult(status=SyncStatus.FAILED, errors=["down"], reason=RejectedReason.NETWORK_FAILURE)

        for _ in range(3):
            logger.log_sync_result(failed)
        health = logger.get_health_status()
        assert health["overall_status"] == "offline"
        assert health["consecutive_sync_failures"] == 3
        assert health["last_successful_sync"] is None

        logger.log_sync_result(SyncResult(status=SyncStatus.SUCCESS, fetched=2,
                                          added=[Quote("B", "Server")], duplicates=1))
        health = logger.get_health_status()
        assert health["overall_status"] == "healthy"
        assert health["counters"]["remote_quotes_added"] == 1
        assert health["counters"]["sync_cycles"] == 4
        assert len(health["recent_syncs"]) == 4

    def test_metrics_disabled(self):
        logger = EnhancedLogger(name="quote_sync.test_nometrics", metrics_enabled=False, structured=False)
        assert logger.get_health_status() == {"overall_status": "metrics_disabled"}

"""
ログシステム - 標準logging + structlog JSONイベント
操作ごとの所要時間と同期サイクルの結果を集計し、健全性として公開する
"""

import json
import logging
import sys
from collections import defaultdict, deque
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

import structlog

DEFAULT_LOGGER_NAME = "quote_sync"
STANDARD_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# この回数連続で同期に失敗したらオフライン扱い
OFFLINE_AFTER_FAILURES = 3


class LogLevel(Enum):
    """ログレベル定義"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def numeric(self) -> int:
        return getattr(logging, self.value)


class MetricsCollector:
    """操作・同期メトリクス"""

    def __init__(self, recent_size: int = 20):
        self.started_at = datetime.now()
        self.counters: Dict[str, int] = defaultdict(int)
        self.durations: Dict[str, List[float]] = defaultdict(list)
        self.recent_syncs: Deque[Dict[str, Any]] = deque(maxlen=recent_size)
        self.consecutive_sync_failures = 0
        self.last_successful_sync: Optional[datetime] = None

    def record_success(self, operation: str, duration: float):
        self.counters[f"{operation}_success"] += 1
        self.durations[operation].append(duration)

    def record_error(self, operation: str, error_type: str):
        self.counters[f"{operation}_error_{error_type}"] += 1

    def record_sync(self, succeeded: bool, fetched: int = 0, added: int = 0, duplicates: int = 0):
        """同期サイクル1回分の結果"""
        now = datetime.now()
        self.recent_syncs.append({
            "at": now.isoformat(),
            "succeeded": succeeded,
            "fetched": fetched,
            "added": added,
            "duplicates": duplicates,
        })
        self.counters["sync_cycles"] += 1
        self.counters["remote_quotes_fetched"] += fetched
        self.counters["remote_quotes_added"] += added
        self.counters["remote_duplicates_skipped"] += duplicates

        if succeeded:
            self.consecutive_sync_failures = 0
            self.last_successful_sync = now
        else:
            self.consecutive_sync_failures += 1

    def success_rate(self) -> float:
        successes = sum(count for key, count in self.counters.items() if key.endswith('_success'))
        errors = sum(count for key, count in self.counters.items() if '_error_' in key)
        total = successes + errors
        return (successes / total * 100) if total else 100.0

    def get_health_summary(self) -> dict:
        total_operations = sum(
            count for key, count in self.counters.items()
            if key.endswith('_success') or '_error_' in key
        )
        return {
            'uptime_seconds': (datetime.now() - self.started_at).total_seconds(),
            'success_rate_percent': self.success_rate(),
            'total_operations': total_operations,
            'avg_duration_seconds': {
                operation: sum(values) / len(values)
                for operation, values in self.durations.items() if values
            },
            'consecutive_sync_failures': self.consecutive_sync_failures,
            'last_successful_sync': (
                self.last_successful_sync.isoformat() if self.last_successful_sync else None
            ),
            'recent_syncs': list(self.recent_syncs),
            'counters': dict(self.counters),
        }


class EnhancedLogger:
    """stdlibロガーとstructlogへの二重出力"""

    def __init__(self,
                 name: str = DEFAULT_LOGGER_NAME,
                 log_level: LogLevel = LogLevel.INFO,
                 log_file: Optional[Path] = None,
                 metrics_enabled: bool = True,
                 structured: bool = True):

        self.name = name
        self.log_level = log_level
        self.log_file = log_file
        self.structured = structured
        self.metrics = MetricsCollector() if metrics_enabled else None

        self.structured_logger = self._configure_structlog() if structured else None
        self.logger = self._configure_stdlib()

    def _configure_structlog(self):
        logger_name = self.name

        def add_context(logger, method_name, event_dict):
            event_dict['timestamp'] = datetime.now().isoformat()
            event_dict['logger'] = logger_name
            return event_dict

        def render_json(logger, method_name, event_dict):
            return json.dumps(event_dict, ensure_ascii=False, default=str)

        # 標準出力は通常ログ、JSONイベントは標準エラーへ
        structlog.configure(
            processors=[add_context, structlog.processors.add_log_level, render_json],
            wrapper_class=structlog.make_filtering_bound_logger(self.log_level.numeric),
            logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
            cache_logger_on_first_use=False,
        )
        return structlog.get_logger(self.name)

    def _configure_stdlib(self) -> logging.Logger:
        # 配下モジュールの logging.getLogger(__name__) もここに伝播する
        logger = logging.getLogger(self.name)
        logger.setLevel(self.log_level.numeric)

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(STANDARD_FORMAT)
        handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.log_file, encoding='utf-8'))

        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        return logger

    def debug(self, message: str, **kwargs):
        self._log(LogLevel.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(LogLevel.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(LogLevel.WARNING, message, kwargs)

    def error(self, message: str, error: Optional[Exception] = None, **kwargs):
        """エラーログ（例外があれば種別とメッセージを付与）"""
        if error is not None:
            kwargs.setdefault('error_type', error.__class__.__name__)
            kwargs['error_message'] = str(error)
        self._log(LogLevel.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(LogLevel.CRITICAL, message, kwargs)

    def _log(self, level: LogLevel, message: str, context: Dict[str, Any]):
        if self.metrics and level in (LogLevel.ERROR, LogLevel.CRITICAL):
            self.metrics.record_error(context.get('operation', 'unknown'),
                                      context.get('error_type', 'unknown'))

        if self.structured_logger is not None:
            getattr(self.structured_logger, level.value.lower())(message, **context)

        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level.numeric, message)

    def log_operation_start(self, operation: str, **context) -> dict:
        """操作開始（戻り値を log_operation_end に渡す）"""
        self.debug(f"Operation started: {operation}", operation=operation, **context)
        return {'start_time': datetime.now(), 'operation': operation, **context}

    def log_operation_end(self, operation_context: dict, success: bool = True, **additional_context):
        """操作終了と所要時間の記録"""
        start_time = operation_context.get('start_time')
        operation = operation_context.get('operation', 'unknown')
        duration = (datetime.now() - start_time).total_seconds() if start_time else 0.0

        context = {
            key: value for key, value in operation_context.items()
            if key not in ('start_time', 'operation')
        }
        context.update(additional_context)

        if success:
            if self.metrics:
                self.metrics.record_success(operation, duration)
            self.info(f"Operation completed: {operation} ({duration:.2f}s)",
                      operation=operation, duration_seconds=duration, **context)
        else:
            context.setdefault('error_type', 'failed')
            self.error(f"Operation failed: {operation} ({duration:.2f}s)",
                       operation=operation, duration_seconds=duration, **context)

    def log_sync_result(self, result):
        """同期サイクル結果の記録（SyncResult）"""
        succeeded = result.is_successful()
        if self.metrics:
            self.metrics.record_sync(succeeded, result.fetched, len(result.added), result.duplicates)

        context = {
            'operation': 'sync_cycle',
            'status': result.status.value,
            'fetched': result.fetched,
            'added': len(result.added),
            'duplicates': result.duplicates,
        }
        if succeeded:
            self.info(result.summary(), **context)
        else:
            # 失敗は次の周期で回復するため警告扱い
            self.warning(result.summary(), reason=result.reason.value if result.reason else None,
                         errors=result.errors, **context)

    def get_health_status(self) -> dict:
        """健全性ステータス"""
        if not self.metrics:
            return {"overall_status": "metrics_disabled"}

        summary = self.metrics.get_health_summary()
        success_rate = summary['success_rate_percent']

        if self.metrics.consecutive_sync_failures >= OFFLINE_AFTER_FAILURES:
            status = "offline"
        elif success_rate >= 98.0:
            status = "healthy"
        elif success_rate >= 90.0:
            status = "warning"
        elif success_rate >= 70.0:
            status = "degraded"
        else:
            status = "critical"

        return {"overall_status": status, "timestamp": datetime.now().isoformat(), **summary}


# グローバルインスタンス
_global_logger: Optional[EnhancedLogger] = None


def get_logger(name: str = DEFAULT_LOGGER_NAME,
               log_level: LogLevel = LogLevel.INFO,
               log_file: Optional[Path] = None) -> EnhancedLogger:
    """グローバルロガー取得"""
    global _global_logger

    if _global_logger is None:
        _global_logger = EnhancedLogger(name, log_level, log_file)

    return _global_logger


def setup_logging(config: Optional[Dict[str, Any]] = None) -> EnhancedLogger:
    """設定辞書（level, file_path, name, metrics_enabled, structured）からロガーを再構築"""
    config = config or {}
    log_file_path = config.get('file_path')

    global _global_logger
    _global_logger = EnhancedLogger(
        name=config.get('name', DEFAULT_LOGGER_NAME),
        log_level=LogLevel(str(config.get('level', 'INFO')).upper()),
        log_file=Path(log_file_path) if log_file_path else None,
        metrics_enabled=config.get('metrics_enabled', True),
        structured=config.get('structured', True)
    )
    return _global_logger

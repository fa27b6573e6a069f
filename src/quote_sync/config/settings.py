"""
設定管理システム
階層化YAML設定ファイル + 環境変数オーバーライド
"""

import os
import yaml
from dataclasses import dataclass, field, fields, is_dataclass, asdict
from pathlib import Path
from typing import Dict, Any, Optional, Union
from ..utils.enhanced_logger import get_logger

logger = get_logger()


@dataclass
class StorageConfig:
    """ローカルストレージ設定"""
    database_path: str = "data/quotes.db"
    export_directory: str = "."
    session_id: Optional[str] = None  # 指定時は再起動後も直近表示の引用を復元


@dataclass
class RemoteSourceConfig:
    """リモート引用ソース設定"""
    base_url: str = "https://jsonplaceholder.typicode.com"
    resource: str = "posts"
    fetch_limit: int = 5
    synthetic_category: str = "Server"
    timeout_seconds: float = 10.0


@dataclass
class SyncConfig:
    """同期層設定"""
    enabled: bool = True
    interval_seconds: float = 30.0
    sync_on_start: bool = True
    skip_overlapping: bool = True
    push_on_add: bool = True


@dataclass
class LoggingConfig:
    """ログ設定"""
    level: str = "INFO"
    file_path: Optional[str] = None
    structured: bool = True
    metrics_enabled: bool = True


@dataclass
class AppConfig:
    """設定メインクラス"""
    storage: StorageConfig = field(default_factory=StorageConfig)
    remote: RemoteSourceConfig = field(default_factory=RemoteSourceConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    debug: bool = False
    version: str = "1.0.0"
    environment: str = "development"  # development, staging, production

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigManager:
    """設定管理メインクラス"""

    # 設定ファイル名 -> AppConfig上のセクション（Noneはトップレベル）
    LAYER_FILES = {
        "storage.yaml": "storage",
        "sync_layer.yaml": None,
    }

    ENV_OVERRIDES = {
        'QUOTE_SYNC_DEBUG': ('debug', lambda x: x.lower() in ['true', '1', 'yes']),
        'QUOTE_SYNC_ENVIRONMENT': ('environment', str),
        'QUOTE_SYNC_LOG_LEVEL': ('logging.level', str),
        'QUOTE_SYNC_DB_PATH': ('storage.database_path', str),
        'QUOTE_SYNC_SESSION_ID': ('storage.session_id', str),
        'QUOTE_SYNC_REMOTE_URL': ('remote.base_url', str),
        'QUOTE_SYNC_INTERVAL': ('sync.interval_seconds', float),
    }

    def __init__(self, config_dir: Union[str, Path] = "config"):
        self.config_dir = Path(config_dir)
        self._config_cache: Optional[AppConfig] = None

    def load_config(self, reload: bool = False) -> AppConfig:
        """設定の読み込み"""
        if self._config_cache and not reload:
            return self._config_cache

        try:
            main_config = self._load_yaml_file(self.config_dir / "main.yaml")

            layer_configs = {
                filename: self._load_yaml_file(self.config_dir / filename)
                for filename in self.LAYER_FILES
            }

            merged_config = self._merge_configs(main_config, layer_configs)
            merged_config = self._apply_env_overrides(merged_config)

            self._config_cache = self._create_config_object(merged_config)

            logger.info(
                "Configuration loaded successfully",
                config_dir=str(self.config_dir),
                environment=self._config_cache.environment,
                version=self._config_cache.version,
                operation="config_load"
            )

            return self._config_cache

        except Exception as e:
            logger.error("Failed to load configuration", error=e, operation="config_load")
            self._config_cache = AppConfig()
            return self._config_cache

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """YAMLファイルの読み込み"""
        if not file_path.exists():
            logger.debug(f"Config file not found: {file_path}")
            return {}

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load YAML file: {file_path}", error=e, operation="config_load")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-mapping config file: {file_path}")
            return {}
        return data

    def _merge_configs(self, main_config: Dict, layer_configs: Dict) -> Dict:
        """設定の統合"""
        merged = dict(main_config)

        for filename, layer_config in layer_configs.items():
            if not layer_config:
                continue
            section = self.LAYER_FILES[filename]
            if section is None:
                for key, value in layer_config.items():
                    merged[key] = self._deep_merge(merged.get(key), value)
            else:
                merged[section] = self._deep_merge(merged.get(section), layer_config)

        return merged

    def _deep_merge(self, base: Any, override: Any) -> Any:
        if isinstance(base, dict) and isinstance(override, dict):
            result = dict(base)
            for key, value in override.items():
                result[key] = self._deep_merge(result.get(key), value)
            return result
        return override

    def _apply_env_overrides(self, config: Dict) -> Dict:
        """環境変数によるオーバーライド"""
        for env_key, (config_path, converter) in self.ENV_OVERRIDES.items():
            env_value = os.getenv(env_key)
            if env_value:
                try:
                    converted_value = converter(env_value)
                    self._set_nested_value(config, config_path, converted_value)
                except ValueError as e:
                    logger.warning(f"Failed to apply env override {env_key}", error=str(e))

        return config

    def _set_nested_value(self, config: Dict, path: str, value: Any):
        """ネストされた設定値の設定"""
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _create_config_object(self, config_dict: Dict) -> AppConfig:
        """設定辞書から設定オブジェクトを作成"""
        return _build_dataclass(AppConfig, config_dict)

    def save_config_template(self):
        """設定ファイルテンプレートの作成"""
        defaults = AppConfig().to_dict()
        templates = {
            "main.yaml": {
                "version": defaults["version"],
                "environment": defaults["environment"],
                "debug": defaults["debug"],
                "logging": defaults["logging"],
            },
            "storage.yaml": defaults["storage"],
            "sync_layer.yaml": {
                "remote": defaults["remote"],
                "sync": defaults["sync"],
            },
        }

        self.config_dir.mkdir(parents=True, exist_ok=True)
        for filename, template in templates.items():
            file_path = self.config_dir / filename
            if not file_path.exists():
                try:
                    with open(file_path, 'w', encoding='utf-8') as f:
                        yaml.safe_dump(template, f, default_flow_style=False, allow_unicode=True)
                    logger.info(f"Created config template: {filename}")
                except OSError as e:
                    logger.error(f"Failed to create template: {filename}", error=e)


def _build_dataclass(cls, data: Dict[str, Any]):
    """未知のキーを無視しつつネストしたdataclassを構築"""
    if not isinstance(data, dict):
        return cls()

    kwargs = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        default = f.default_factory() if callable(f.default_factory) else None
        if is_dataclass(default):
            kwargs[f.name] = _build_dataclass(type(default), value)
        else:
            kwargs[f.name] = value

    unknown = set(data) - {f.name for f in fields(cls)}
    if unknown:
        logger.warning(f"Ignoring unknown config keys for {cls.__name__}", keys=sorted(unknown))

    return cls(**kwargs)


# グローバルインスタンス
_global_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_dir: Union[str, Path] = "config") -> ConfigManager:
    """グローバル設定マネージャーの取得"""
    global _global_config_manager

    if _global_config_manager is None or _global_config_manager.config_dir != Path(config_dir):
        _global_config_manager = ConfigManager(config_dir)

    return _global_config_manager


def get_config(config_dir: Union[str, Path] = "config", reload: bool = False) -> AppConfig:
    """設定の取得"""
    return get_config_manager(config_dir).load_config(reload)

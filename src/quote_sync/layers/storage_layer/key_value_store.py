"""
キーバリューストア - SQLite(aiosqlite)による永続スコープ/セッションスコープの保存
セッションスコープの行はセッションIDごとに分離し、明示的な終了時のみ消去する
"""

import aiosqlite
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union
import logging

logger = logging.getLogger(__name__)

# 永続スコープの行に付けるセッションID
DURABLE_OWNER = ""


class StorageScope(Enum):
    """保存スコープ"""
    DURABLE = "durable_store"   # プロセスをまたいで保持
    SESSION = "session_store"   # 同じセッションIDでの再起動まで保持、終了時に消去


class KeyValueStore:
    """スコープ別キーバリューストア"""

    def __init__(self, database_path: Union[str, Path] = "data/quotes.db",
                 session_id: Optional[str] = None):
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        # 指定がなければプロセス限りの使い捨てセッション
        self.persistent_session = bool(session_id)
        self.session_id = session_id or f"ephemeral-{uuid.uuid4().hex}"

    def _owner(self, scope: StorageScope) -> str:
        return self.session_id if scope is StorageScope.SESSION else DURABLE_OWNER

    async def initialize(self) -> bool:
        """テーブル作成"""
        try:
            async with aiosqlite.connect(self.database_path) as db:
                for scope in StorageScope:
                    await db.execute(f"""
                    CREATE TABLE IF NOT EXISTS {scope.value} (
                        session_id TEXT NOT NULL,
                        key TEXT NOT NULL,
                        value TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (session_id, key)
                    )
                    """)
                await db.commit()

            logger.info(f"Key-value store initialized: {self.database_path} (session={self.session_id})")
            return True

        except aiosqlite.Error as e:
            logger.error(f"Failed to initialize key-value store: {e}")
            return False

    async def get(self, key: str, scope: StorageScope = StorageScope.DURABLE) -> Optional[str]:
        """値の取得"""
        sql = f"SELECT value FROM {scope.value} WHERE session_id = ? AND key = ?"
        async with aiosqlite.connect(self.database_path) as db:
            cursor = await db.execute(sql, (self._owner(scope), key))
            row = await cursor.fetchone()
        return row[0] if row else None

    async def set(self, key: str, value: str, scope: StorageScope = StorageScope.DURABLE):
        """値の保存（上書き）"""
        await self.set_many({key: value}, scope)

    async def set_many(self, values: Dict[str, str], scope: StorageScope = StorageScope.DURABLE):
        """複数の値を1トランザクションで保存"""
        sql = f"""
        INSERT INTO {scope.value} (session_id, key, value, updated_at) VALUES (?, ?, ?, ?)
        ON CONFLICT(session_id, key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """
        owner = self._owner(scope)
        now = datetime.now().isoformat()
        async with aiosqlite.connect(self.database_path) as db:
            await db.executemany(sql, [(owner, key, value, now) for key, value in values.items()])
            await db.commit()
        logger.debug(f"Stored {len(values)} value(s) in {scope.value}")

    async def clear(self, scope: StorageScope):
        """スコープ内の全値を削除（セッションスコープは自セッション分のみ）"""
        async with aiosqlite.connect(self.database_path) as db:
            await db.execute(f"DELETE FROM {scope.value} WHERE session_id = ?", (self._owner(scope),))
            await db.commit()
        logger.debug(f"Cleared {scope.value}")

    async def get_storage_statistics(self) -> Dict[str, int]:
        """ストレージ統計情報（自セッションから見える件数）"""
        stats = {}
        async with aiosqlite.connect(self.database_path) as db:
            for scope in StorageScope:
                cursor = await db.execute(f"SELECT COUNT(*) FROM {scope.value} WHERE session_id = ?",
                                          (self._owner(scope),))
                stats[scope.value] = (await cursor.fetchone())[0]
        return stats

"""
本地持久化
整个状态作为一段 JSON 存在固定键下，主题开关单独一个键。
"""
import json
import logging
from threading import RLock

from flask import current_app

from stockdesk.models.storage import StorageEntry
from .state import AppState

logger = logging.getLogger(__name__)


class LocalStore:
    """基于 sys_storage 表的键值存储"""

    def __init__(self):
        # load -> reduce -> save 必须串行 (请求线程与同步轮询线程共用)
        self.lock = RLock()

    @staticmethod
    def _entry(key):
        return StorageEntry.query.filter_by(key=key).first()

    def _write(self, key, value):
        entry = self._entry(key) or StorageEntry(key=key)
        entry.value = value
        entry.save()

    @property
    def state_key(self):
        return current_app.config.get('STORE_KEY', 'stokapp_v2')

    @property
    def theme_key(self):
        return current_app.config.get('THEME_KEY', 'darkmode')

    def load(self) -> AppState:
        """读取状态；没有快照或快照损坏时返回默认数据"""
        entry = self._entry(self.state_key)
        if entry is None or not entry.value:
            return AppState.default()
        try:
            data = json.loads(entry.value)
        except ValueError:
            logger.warning('本地快照无法解析，回退到默认数据')
            return AppState.default()
        if not isinstance(data, dict):
            return AppState.default()
        return AppState.from_dict(data)

    def read_json(self, key, default=None):
        """读取任意键下的 JSON 值，缺失或损坏时返回 default"""
        entry = self._entry(key)
        if entry is None or not entry.value:
            return default
        try:
            return json.loads(entry.value)
        except ValueError:
            logger.warning(f"键 {key} 的内容无法解析")
            return default

    def write_json(self, key, value):
        self._write(key, json.dumps(value, ensure_ascii=False))

    def save(self, state: AppState):
        self._write(self.state_key, json.dumps(state.to_dict(), ensure_ascii=False))

    def clear(self):
        entry = self._entry(self.state_key)
        if entry is not None:
            entry.delete()

    def revision(self) -> str:
        """快照版本号，用作缓存键"""
        entry = self._entry(self.state_key)
        if entry is None or entry.updated_at is None:
            return 'default'
        return entry.updated_at.isoformat()

    def is_dark(self) -> bool:
        entry = self._entry(self.theme_key)
        return bool(entry and entry.value == 'true')

    def set_dark(self, dark: bool):
        self._write(self.theme_key, 'true' if dark else 'false')


# 全局单例
local_store = LocalStore()

"""
同步层
- 启动时拉取远程三张表，按 id 增量合并到本地
- 订阅变更通知，收到通知后重新拉取并合并 (最后一次拉取为准)
- 本地变更先落本地，再把新旧状态的差异转成远程命令批量推送；
  批次中途失败时补偿已执行的命令，并把整批放入待重试命令日志
"""
import logging
from functools import partial
from typing import Dict, List, Optional

from flask import current_app, flash, has_request_context

from stockdesk.exceptions import RemoteSyncError
from stockdesk.store.persistence import local_store
from stockdesk.store.state import AppState
from .remote_backend import RemoteBackend, TABLES

logger = logging.getLogger(__name__)

OP_INSERT = 'insert'
OP_UPSERT = 'upsert'
OP_DELETE = 'delete'


class Command:
    """一条远程写命令；previous 为本地变更前的记录，用于补偿"""

    def __init__(self, op, table, record, previous=None):
        self.op = op
        self.table = table
        self.record = record
        self.previous = previous

    @property
    def record_id(self):
        return (self.record or self.previous)['id']

    def apply(self, backend: RemoteBackend):
        if self.op == OP_INSERT:
            backend.insert(self.table, self.record)
        elif self.op == OP_UPSERT:
            backend.upsert(self.table, self.record)
        else:
            backend.delete(self.table, self.record_id)

    def compensation(self) -> 'Command':
        """逆向命令"""
        if self.op == OP_DELETE:
            return Command(OP_UPSERT, self.table, self.previous)
        if self.previous is None:
            return Command(OP_DELETE, self.table, None, previous=self.record)
        return Command(OP_UPSERT, self.table, self.previous, previous=self.record)

    def to_dict(self):
        return {'op': self.op, 'table': self.table, 'record': self.record, 'previous': self.previous}

    @classmethod
    def from_dict(cls, data):
        return cls(data['op'], data['table'], data.get('record'), data.get('previous'))

    def for_retry(self, current: AppState) -> 'Command':
        """
        重放时以当前本地记录为准：本地仍存在则 upsert 最新记录，已删除则 delete
        排队之后成功推送过的更新不会被旧快照覆盖
        """
        record = current.find(self.table, self.record_id)
        if record is None:
            return Command(OP_DELETE, self.table, None, previous=self.record or self.previous)
        return Command(OP_UPSERT, self.table, record, self.previous)

    def __eq__(self, other):
        return isinstance(other, Command) and \
            (self.op, self.table, self.record, self.previous) == \
            (other.op, other.table, other.record, other.previous)

    def __repr__(self):
        return f'<Command {self.op} {self.table}:{self.record_id}>'


def diff_commands(old: AppState, new: AppState) -> List[Command]:
    """
    把两份状态的差异转成远程命令 (users 不同步)
    写入按 warehouses -> products -> movements，删除按相反顺序
    """
    writes, deletes = [], []
    for table in TABLES:
        before = {r['id']: r for r in getattr(old, table)}
        after_ids = set()
        for record in getattr(new, table):
            after_ids.add(record['id'])
            previous = before.get(record['id'])
            if previous is None:
                op = OP_INSERT if table == 'movements' else OP_UPSERT
                writes.append(Command(op, table, record))
            elif previous != record:
                writes.append(Command(OP_UPSERT, table, record, previous))
        for record_id, previous in before.items():
            if record_id not in after_ids:
                deletes.append(Command(OP_DELETE, table, None, previous))
    deletes.reverse()
    return writes + deletes


def reconcile(local: AppState, remote: Dict[str, List[Dict]]):
    """
    按 id 增量合并远程数据
    :return: (新状态, {table: {'added', 'updated', 'removed'}})
    结果集合与远程一致 (顺序取远程)，未变化的记录沿用本地对象
    """
    changes = {}
    stats = {}
    for table in TABLES:
        current = {r['id']: r for r in getattr(local, table)}
        merged = []
        added = updated = 0
        for row in remote.get(table, []):
            existing = current.get(row['id'])
            if existing is None:
                added += 1
                merged.append(row)
            elif existing != row:
                updated += 1
                merged.append(row)
            else:
                merged.append(existing)
        remote_ids = {r['id'] for r in merged}
        removed = sum(1 for record_id in current if record_id not in remote_ids)
        changes[table] = merged
        stats[table] = {'added': added, 'updated': updated, 'removed': removed}
    return local.replace(**changes), stats


class SyncService:
    """同步层；未配置 REMOTE_URL 时所有方法都是空操作"""

    def __init__(self):
        self.backend: Optional[RemoteBackend] = None
        self._unsubscribe = None

    def init_app(self, app, backend: Optional[RemoteBackend] = None):
        if backend is None and app.config.get('REMOTE_URL'):
            backend = RemoteBackend(
                app.config['REMOTE_URL'],
                app.config.get('REMOTE_API_KEY', ''),
                timeout=app.config.get('REMOTE_TIMEOUT', 10.0),
            )
        # 重复初始化 (例如测试中多次创建 app) 时先停掉旧的轮询线程
        self.stop_listening()
        self.backend = backend
        app.extensions['stock_sync'] = self
        if self.enabled:
            app.logger.info(f'✅ 远程同步已启用: {backend.base_url}')
        else:
            app.logger.info('ℹ️ 未配置远程后端，仅使用本地存储')

    @property
    def pending_key(self):
        return current_app.config.get('PENDING_KEY', 'stokapp_pending')

    @property
    def pending(self) -> List[Dict]:
        """待重试批次；持久化在本地存储里，Web 进程与 CLI 共享"""
        return [{'label': b['label'], 'commands': [Command.from_dict(c) for c in b['commands']]}
                for b in local_store.read_json(self.pending_key, [])]

    def _save_pending(self, batches: List[Dict]):
        local_store.write_json(self.pending_key, [
            {'label': b['label'], 'commands': [c.to_dict() for c in b['commands']]} for b in batches
        ])

    def _queue(self, label: str, commands: List[Command]):
        with local_store.lock:
            self._save_pending(self.pending + [{'label': label, 'commands': commands}])

    @property
    def enabled(self) -> bool:
        return self.backend is not None

    def pull(self):
        """拉取远程并合并到本地；返回合并统计"""
        if not self.enabled:
            return {}
        remote = self.backend.pull_all()
        with local_store.lock:
            local = local_store.load()
            merged, stats = reconcile(local, remote)
            if merged != local:
                local_store.save(merged)
        logger.info(f'远程拉取完成: {stats}')
        return stats

    def push(self, old: AppState, new: AppState, label: str) -> bool:
        """
        推送一次本地变更 (尽力而为)
        失败时不回滚本地状态
        """
        if not self.enabled:
            return True
        commands = diff_commands(old, new)
        if not commands:
            return True
        try:
            self._run_batch(commands)
        except RemoteSyncError as e:
            self._queue(label, commands)
            logger.error(f'远程写入失败 [{label}]: {e.message}')
            if has_request_context():
                flash(f'Uzak sunucuya yazılamadı, yeniden denenecek: {e.message}', 'warning')
            return False
        return True

    def _run_batch(self, commands: List[Command]):
        done = []
        try:
            for command in commands:
                command.apply(self.backend)
                done.append(command)
        except RemoteSyncError:
            self._compensate(done)
            raise

    def _compensate(self, done: List[Command]):
        for command in reversed(done):
            try:
                command.compensation().apply(self.backend)
            except RemoteSyncError as e:
                logger.error(f'补偿失败 {command!r}: {e.message}')

    def retry_pending(self):
        """重放待重试批次；返回 (成功数, 剩余数)"""
        if not self.enabled:
            return 0, 0
        succeeded = 0
        with local_store.lock:
            current = local_store.load()
            remaining = []
            for batch in self.pending:
                try:
                    self._run_batch([c.for_retry(current) for c in batch['commands']])
                    succeeded += 1
                except RemoteSyncError as e:
                    logger.warning(f'重试失败 [{batch["label"]}]: {e.message}')
                    remaining.append(batch)
            self._save_pending(remaining)
        return succeeded, len(remaining)

    def start_listening(self, app):
        """订阅远程变更，在后台线程中拉取合并"""
        if not self.enabled or self._unsubscribe is not None:
            return
        interval = app.config.get('SYNC_POLL_INTERVAL', 5.0)
        self._unsubscribe = self.backend.subscribe(partial(self.on_remote_change, app), interval)

    def on_remote_change(self, app, tables: List[str]):
        """变更通知回调：一轮通知只拉取一次"""
        logger.info(f'收到远程变更通知: {", ".join(tables)}')
        with app.app_context():
            return self.pull()

    def stop_listening(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


# 全局单例
sync_service = SyncService()

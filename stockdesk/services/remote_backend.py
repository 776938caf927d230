"""
远程后端客户端
PostgREST 风格的 REST 接口 (/rest/v1/<table>)，使用 httpx 直接调用。
提供 select / upsert / insert / delete 以及按表的变更订阅 (轮询指纹)。
"""
import hashlib
import logging
import threading
from typing import Callable, Dict, List, Optional

import httpx

from stockdesk.exceptions import RemoteSyncError

logger = logging.getLogger(__name__)

# 本地字段 -> 远程列
FIELD_MAP = {
    'warehouses': {'id': 'id', 'name': 'name'},
    'products': {
        'id': 'id', 'sku': 'sku', 'name': 'name', 'unit': 'unit',
        'minStock': 'min_stock', 'warehouseId': 'warehouse_id',
    },
    'movements': {
        'id': 'id', 'type': 'type', 'productId': 'product_id', 'warehouseId': 'warehouse_id',
        'qty': 'qty', 'note': 'note', 'at': 'at', 'transferId': 'transfer_id',
    },
}

# 拉取时的排序
ORDERING = {
    'warehouses': 'created_at.asc',
    'products': 'created_at.asc',
    'movements': 'at.desc',
}

TABLES = tuple(FIELD_MAP)


def to_row(table: str, record: Dict) -> Dict:
    return {column: record.get(field) for field, column in FIELD_MAP[table].items() if field in record}


def from_row(table: str, row: Dict) -> Dict:
    record = {}
    for field, column in FIELD_MAP[table].items():
        if column in row and not (field == 'transferId' and row[column] is None):
            record[field] = row[column]
    if table == 'movements' and record.get('note') is None:
        record['note'] = ''
    return record


class RemoteBackend:
    """远程三张表的读写客户端"""

    def __init__(self, base_url: str, api_key: str = '', timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        headers = {'Content-Type': 'application/json'}
        if api_key:
            headers['apikey'] = api_key
            headers['Authorization'] = f'Bearer {api_key}'
        self.base_url = base_url.rstrip('/')
        self._client = httpx.Client(
            base_url=f'{self.base_url}/rest/v1',
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, f'/{table}', **kwargs)
        except httpx.TimeoutException:
            raise RemoteSyncError(f'Uzak sunucu zaman aşımı ({table})')
        except httpx.HTTPError as e:
            raise RemoteSyncError(f'Uzak sunucuya bağlanılamadı ({table}): {e}')

        if response.status_code >= 400:
            detail = response.text
            try:
                detail = response.json().get('message', detail)
            except ValueError:
                pass
            raise RemoteSyncError(f'Uzak sunucu hatası {response.status_code} ({table}): {detail}')
        return response

    def select_all(self, table: str) -> List[Dict]:
        response = self._request('GET', table, params={'select': '*', 'order': ORDERING[table]})
        return [from_row(table, row) for row in response.json()]

    def upsert(self, table: str, record: Dict) -> Dict:
        response = self._request(
            'POST', table, json=to_row(table, record),
            headers={'Prefer': 'resolution=merge-duplicates,return=representation'},
        )
        return self._single(table, response)

    def insert(self, table: str, record: Dict) -> Dict:
        response = self._request('POST', table, json=to_row(table, record),
                                 headers={'Prefer': 'return=representation'})
        return self._single(table, response)

    def delete(self, table: str, record_id: str):
        self._request('DELETE', table, params={'id': f'eq.{record_id}'})

    @staticmethod
    def _single(table, response):
        data = response.json() if response.content else []
        if isinstance(data, list):
            data = data[0] if data else {}
        return from_row(table, data)

    def pull_all(self) -> Dict[str, List[Dict]]:
        """一次性拉取三张表"""
        return {table: self.select_all(table) for table in TABLES}

    def fingerprint(self, table: str) -> str:
        """整表内容摘要，任何增删改都会改变"""
        response = self._request('GET', table, params={'select': '*', 'order': 'id.asc'})
        return hashlib.sha1(response.content).hexdigest()

    def subscribe(self, on_change: Callable[[List[str]], None], interval: float = 5.0) -> Callable[[], None]:
        """
        订阅三张表的变更
        :return: 取消订阅函数
        """
        poller = ChangePoller(self, on_change, interval)
        poller.start()
        return poller.stop


class ChangePoller(threading.Thread):
    """后台轮询各表指纹，变化时回调 on_change(tables)"""

    def __init__(self, backend: RemoteBackend, on_change: Callable[[List[str]], None], interval: float):
        super().__init__(name='stock-sync', daemon=True)
        self.backend = backend
        self.on_change = on_change
        self.interval = interval
        self._stopped = threading.Event()
        self._seen: Dict[str, str] = {}

    def poll_once(self) -> List[str]:
        """检查一轮，返回发生变化的表"""
        changed = []
        for table in TABLES:
            digest = self.backend.fingerprint(table)
            previous = self._seen.get(table)
            self._seen[table] = digest
            if previous is not None and previous != digest:
                changed.append(table)
        return changed

    def check(self) -> List[str]:
        """轮询一轮，有变化时把变化的表名一次性交给回调"""
        changed = self.poll_once()
        if changed:
            self.on_change(changed)
        return changed

    def run(self):
        while not self._stopped.is_set():
            try:
                self.check()
            except RemoteSyncError as e:
                logger.warning(f'变更轮询失败: {e.message}')
            except Exception:
                logger.exception('变更回调异常')
            self._stopped.wait(self.interval)

    def stop(self):
        self._stopped.set()

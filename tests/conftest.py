import json
from urllib.parse import parse_qs

import httpx
import pytest

from stockdesk import create_app
from stockdesk.models.account import Account
from stockdesk.services.remote_backend import RemoteBackend
from stockdesk.store import AppState, reduce


class FakeRestServer:
    """
    内存版 PostgREST，供 httpx.MockTransport 使用
    fail(method, table, after) 之后该类请求在成功 after 次后返回 500
    """

    def __init__(self):
        self.tables = {'warehouses': [], 'products': [], 'movements': []}
        self.failures = {}
        self.requests = []
        self._clock = 0

    def _tick(self):
        self._clock += 1
        return f'2024-01-01T00:00:{self._clock:02d}'

    def fail(self, method, table, after=0):
        self.failures[(method, table)] = after

    def heal(self):
        self.failures.clear()

    def seed(self, table, row):
        self.tables[table].append(dict(row, created_at=self._tick()))

    def rows(self, table):
        return [{k: v for k, v in r.items() if k != 'created_at'} for r in self.tables[table]]

    def ids(self, table):
        return [r['id'] for r in self.tables[table]]

    def handler(self, request: httpx.Request):
        table = request.url.path.rsplit('/', 1)[-1]
        self.requests.append((request.method, table))
        key = (request.method, table)
        if key in self.failures:
            if self.failures[key] <= 0:
                return httpx.Response(500, json={'message': 'boom'})
            self.failures[key] -= 1

        params = {k: v[0] for k, v in parse_qs(request.url.query.decode()).items()}
        rows = self.tables[table]

        if request.method == 'GET':
            column, _, direction = params.get('order', 'created_at.asc').partition('.')
            ordered = sorted(rows, key=lambda r: r.get(column) or '', reverse=direction == 'desc')
            return httpx.Response(200, json=ordered)

        if request.method == 'POST':
            row = json.loads(request.content)
            existing = next((r for r in rows if r['id'] == row['id']), None)
            if existing is not None:
                if 'merge-duplicates' not in request.headers.get('Prefer', ''):
                    return httpx.Response(409, json={'message': 'duplicate key'})
                existing.update(row)
                return httpx.Response(201, json=[existing])
            created = dict(row, created_at=self._tick())
            rows.append(created)
            return httpx.Response(201, json=[created])

        if request.method == 'DELETE':
            record_id = params['id'].split('.', 1)[1]
            self.tables[table] = [r for r in rows if r['id'] != record_id]
            return httpx.Response(204)

        return httpx.Response(405)

    def backend(self):
        return RemoteBackend('http://remote.test', 'test-key', transport=httpx.MockTransport(self.handler))


@pytest.fixture
def app():
    app = create_app('testing')
    yield app


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def remote():
    return FakeRestServer()


@pytest.fixture
def synced_app(remote):
    app = create_app('testing', remote_backend=remote.backend())
    yield app


@pytest.fixture
def admin():
    return Account('admin', 'admin')


@pytest.fixture
def user():
    return Account('user', 'user')


@pytest.fixture
def login(client):
    def _login(username='admin', password=None):
        return client.post('/auth/login', data={'username': username, 'password': password or username})
    return _login


@pytest.fixture
def stocked(admin):
    """两个仓库 + 一个商品 + 一条入库流水"""
    state = AppState.default()
    state = reduce(state, {'type': 'warehouse/add', 'actor': admin, 'name': 'Ana Depo'})
    state = reduce(state, {'type': 'warehouse/add', 'actor': admin, 'name': 'Şube'})
    a, b = state.warehouses
    state = reduce(state, {'type': 'product/save', 'actor': admin,
                           'data': {'sku': 'VD-001', 'name': 'Vida M4', 'minStock': 5, 'warehouseId': a['id']}})
    product = state.products[0]
    state = reduce(state, {'type': 'movement/add', 'actor': admin, 'move_type': 'IN',
                           'product_id': product['id'], 'warehouse_id': a['id'], 'qty': 20})
    return state

"""
应用状态对象
四个集合 (users / warehouses / products / movements) 组成唯一数据源。
状态视为不可变：reducer 总是返回新的 AppState，不修改旧对象。
"""
import uuid
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, List

from werkzeug.security import generate_password_hash

COLLECTIONS = ('users', 'warehouses', 'products', 'movements')

ROLE_ADMIN = 'admin'
ROLE_USER = 'user'
ROLES = (ROLE_ADMIN, ROLE_USER)

TYPE_IN = 'IN'
TYPE_OUT = 'OUT'
MOVEMENT_TYPES = (TYPE_IN, TYPE_OUT)


def now_iso() -> str:
    """当前 UTC 时间，毫秒精度，'Z' 结尾"""
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


def new_id() -> str:
    return str(uuid.uuid4())


def default_users() -> List[Dict[str, Any]]:
    """初始账号：admin/admin 与 user/user"""
    return [
        {'username': 'admin', 'passwordHash': generate_password_hash('admin'), 'role': ROLE_ADMIN},
        {'username': 'user', 'passwordHash': generate_password_hash('user'), 'role': ROLE_USER},
    ]


def upgrade_user(record: Dict[str, Any]) -> Dict[str, Any]:
    """旧快照中的明文 password 字段升级为哈希"""
    if 'password' not in record:
        return record
    upgraded = {k: v for k, v in record.items() if k != 'password'}
    if not upgraded.get('passwordHash'):
        upgraded['passwordHash'] = generate_password_hash(str(record['password']))
    upgraded.setdefault('role', ROLE_USER)
    return upgraded


class AppState:
    """显式的应用状态，作为参数在各个处理函数之间传递"""

    __slots__ = COLLECTIONS

    def __init__(self, users=None, warehouses=None, products=None, movements=None):
        self.users = list(users or [])
        self.warehouses = list(warehouses or [])
        self.products = list(products or [])
        self.movements = list(movements or [])

    @classmethod
    def default(cls) -> 'AppState':
        return cls(users=default_users())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppState':
        """
        从 JSON 结构恢复状态
        缺失的集合回退到默认值 (与默认数据合并)
        """
        base = cls.default()
        users = data.get('users')
        return cls(
            users=[upgrade_user(u) for u in users] if users is not None else base.users,
            warehouses=deepcopy(data.get('warehouses') or []),
            products=deepcopy(data.get('products') or []),
            movements=deepcopy(data.get('movements') or []),
        )

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: deepcopy(getattr(self, name)) for name in COLLECTIONS}

    def replace(self, **changes) -> 'AppState':
        """返回替换了部分集合的新状态 (其余集合共享引用，记录本身不会被就地修改)"""
        values = {name: getattr(self, name) for name in COLLECTIONS}
        values.update(changes)
        return AppState(**values)

    def find(self, collection: str, record_id: str):
        for record in getattr(self, collection):
            if record.get('id') == record_id:
                return record
        return None

    def find_user(self, username: str):
        for record in self.users:
            if record['username'] == username:
                return record
        return None

    def __eq__(self, other):
        if not isinstance(other, AppState):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        counts = ', '.join(f'{name}={len(getattr(self, name))}' for name in COLLECTIONS)
        return f'<AppState {counts}>'

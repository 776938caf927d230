"""
状态变更 reducer
每个函数都是纯函数：接收旧状态 (+ 参数)，返回新状态；校验失败时抛出领域异常，
旧状态保持不变。服务层通过 reduce(state, action) 统一分发。
"""
from typing import Any, Dict, Iterable

from werkzeug.security import check_password_hash, generate_password_hash

from stockdesk.exceptions import DuplicateError, NotFoundError, PermissionDenied, ValidationError
from .balance import to_number
from .state import (AppState, MOVEMENT_TYPES, ROLE_ADMIN, ROLES, TYPE_IN, TYPE_OUT,
                    new_id, now_iso)

DEFAULT_UNIT = 'Adet'
DEFAULT_WAREHOUSE_NAME = 'Genel'
TRANSFER_NOTE_OUT = 'Transfer OUT'
TRANSFER_NOTE_IN = 'Transfer IN'


def _clean(value) -> str:
    return str(value if value is not None else '').strip()


def _require_admin(actor, message='Yetkiniz yok'):
    if actor is None or getattr(actor, 'role', None) != ROLE_ADMIN:
        raise PermissionDenied(message)


def _positive_qty(value):
    qty = to_number(value, default=None)
    if not qty or qty <= 0:
        return None
    return qty


def _find_warehouse_by_name(warehouses, name):
    lowered = name.lower()
    for w in warehouses:
        if w['name'].lower() == lowered:
            return w
    return None


# --- Warehouses ---

def add_warehouse(state: AppState, actor, name) -> AppState:
    name = _clean(name)
    if not name:
        raise ValidationError('Depo adı gerekli')
    if _find_warehouse_by_name(state.warehouses, name):
        raise DuplicateError('Aynı isimde depo mevcut')
    return state.replace(warehouses=state.warehouses + [{'id': new_id(), 'name': name}])


def delete_warehouse(state: AppState, actor, warehouse_id) -> AppState:
    """仓库被商品或流水引用时拒绝删除"""
    _require_admin(actor, 'Yetkiniz yok (sadece admin silebilir)')
    if not state.find('warehouses', warehouse_id):
        raise NotFoundError('Depo bulunamadı')
    if any(p.get('warehouseId') == warehouse_id for p in state.products) or \
            any(m.get('warehouseId') == warehouse_id for m in state.movements):
        raise ValidationError('Depo ürün veya hareketlerde kullanılıyor, silinemez')
    return state.replace(warehouses=[w for w in state.warehouses if w['id'] != warehouse_id])


# --- Products ---

def save_product(state: AppState, actor, data: Dict[str, Any], default_unit=DEFAULT_UNIT) -> AppState:
    """
    新建或更新商品
    data 含 id 时为更新 (id 不变)，否则新建并要求选择初始库存仓库
    """
    product_id = data.get('id') or None
    sku = _clean(data.get('sku'))
    name = _clean(data.get('name'))
    if not sku or not name:
        raise ValidationError('Zorunlu alanlar boş')
    if any(p['sku'].lower() == sku.lower() and p['id'] != product_id for p in state.products):
        raise DuplicateError('Aynı SKU mevcut')

    record = {
        'sku': sku,
        'name': name,
        'unit': _clean(data.get('unit')) or default_unit,
        'minStock': to_number(data.get('minStock')),
        'warehouseId': data.get('warehouseId') or '',
    }
    if product_id:
        if not state.find('products', product_id):
            raise NotFoundError('Ürün bulunamadı')
        record['id'] = product_id
        return state.replace(products=[record if p['id'] == product_id else p for p in state.products])

    if not record['warehouseId']:
        raise ValidationError('Depo seçiniz (ilk stoğun tutulacağı depo)')
    record['id'] = new_id()
    return state.replace(products=state.products + [record])


def delete_product(state: AppState, actor, product_id) -> AppState:
    _require_admin(actor, 'Yetkiniz yok (sadece admin silebilir)')
    if not state.find('products', product_id):
        raise NotFoundError('Ürün bulunamadı')
    if any(m.get('productId') == product_id for m in state.movements):
        raise ValidationError('Ürünün stok hareketleri var, silinemez')
    return state.replace(products=[p for p in state.products if p['id'] != product_id])


# --- Movements ---

def add_movement(state: AppState, actor, move_type, product_id, warehouse_id, qty,
                 note='') -> AppState:
    """新增一条流水，时间戳始终取当前时间"""
    qty = _positive_qty(qty)
    if move_type not in MOVEMENT_TYPES or not product_id or not warehouse_id or qty is None:
        raise ValidationError('Eksik veya hatalı alan')
    if not state.find('products', product_id):
        raise NotFoundError('Ürün bulunamadı')
    if not state.find('warehouses', warehouse_id):
        raise NotFoundError('Depo bulunamadı')
    movement = {
        'id': new_id(),
        'type': move_type,
        'productId': product_id,
        'warehouseId': warehouse_id,
        'qty': qty,
        'note': _clean(note),
        'at': now_iso(),
    }
    return state.replace(movements=[movement] + state.movements)


def edit_movement(state: AppState, actor, movement_id, qty, note='') -> AppState:
    _require_admin(actor, 'Yetkiniz yok (sadece admin düzenleyebilir)')
    movement = state.find('movements', movement_id)
    if not movement:
        raise NotFoundError('Hareket bulunamadı')
    qty = _positive_qty(qty)
    if qty is None:
        raise ValidationError('Miktar sıfırdan büyük olmalı')
    updated = dict(movement, qty=qty, note=_clean(note))
    return state.replace(movements=[updated if m['id'] == movement_id else m for m in state.movements])


def delete_movement(state: AppState, actor, movement_id) -> AppState:
    _require_admin(actor, 'Yetkiniz yok (sadece admin silebilir)')
    if not state.find('movements', movement_id):
        raise NotFoundError('Hareket bulunamadı')
    return state.replace(movements=[m for m in state.movements if m['id'] != movement_id])


def transfer(state: AppState, actor, source_id, target_id, product_id, qty) -> AppState:
    """
    仓库间调拨：源仓库一条 OUT + 目标仓库一条 IN
    两条流水数量、时间戳、transferId 相同
    """
    _require_admin(actor, 'Sadece admin transfer yapabilir')
    qty = _positive_qty(qty)
    if not source_id or not target_id or not product_id or qty is None:
        raise ValidationError('Eksik veya hatalı alan')
    if source_id == target_id:
        raise ValidationError('Kaynak ve hedef depo farklı olmalı')
    if not state.find('products', product_id):
        raise NotFoundError('Ürün bulunamadı')
    if not state.find('warehouses', source_id) or not state.find('warehouses', target_id):
        raise NotFoundError('Depo bulunamadı')

    at = now_iso()
    transfer_id = new_id()
    leg_out = {'id': new_id(), 'type': TYPE_OUT, 'productId': product_id, 'warehouseId': source_id,
               'qty': qty, 'note': TRANSFER_NOTE_OUT, 'at': at, 'transferId': transfer_id}
    leg_in = {'id': new_id(), 'type': TYPE_IN, 'productId': product_id, 'warehouseId': target_id,
              'qty': qty, 'note': TRANSFER_NOTE_IN, 'at': at, 'transferId': transfer_id}
    return state.replace(movements=[leg_out, leg_in] + state.movements)


def filter_movements(movements: Iterable[Dict[str, Any]], date_from='', date_to=''):
    """按日期筛选 (仅用于查看)，结果按时间倒序"""
    result = list(movements)
    if date_from:
        result = [m for m in result if m.get('at', '') >= date_from]
    if date_to:
        upper = date_to + 'T23:59:59' if len(date_to) == 10 else date_to
        result = [m for m in result if m.get('at', '') <= upper]
    result.sort(key=lambda m: m.get('at', ''), reverse=True)
    return result


# --- Users ---

def authenticate(state: AppState, username, password):
    record = state.find_user(_clean(username))
    if record and check_password_hash(record.get('passwordHash', ''), password or ''):
        return record
    return None


def add_user(state: AppState, actor, username, password, role='user') -> AppState:
    _require_admin(actor)
    username = _clean(username)
    if not username or not password:
        raise ValidationError('Kullanıcı adı/şifre gerekli')
    if role not in ROLES:
        raise ValidationError('Geçersiz rol')
    if any(u['username'].lower() == username.lower() for u in state.users):
        raise DuplicateError('Aynı kullanıcı adı var')
    record = {'username': username, 'passwordHash': generate_password_hash(password), 'role': role}
    return state.replace(users=state.users + [record])


def change_own_password(state: AppState, actor, old_password, new_password, confirm) -> AppState:
    if actor is None or not authenticate(state, actor.username, old_password):
        raise ValidationError('Eski şifre yanlış')
    if not new_password or new_password != confirm:
        raise ValidationError('Yeni şifreler uyuşmuyor')
    return _set_password(state, actor.username, new_password)


def reset_password(state: AppState, actor, username, password) -> AppState:
    _require_admin(actor)
    if not password:
        raise ValidationError('Yeni şifre gerekli')
    if not state.find_user(username):
        raise NotFoundError('Kullanıcı bulunamadı')
    return _set_password(state, username, password)


def _set_password(state, username, password):
    password_hash = generate_password_hash(password)
    return state.replace(users=[dict(u, passwordHash=password_hash) if u['username'] == username else u
                                for u in state.users])


def change_role(state: AppState, actor, username, role) -> AppState:
    _require_admin(actor)
    if role not in ROLES:
        raise ValidationError('Geçersiz rol')
    if not state.find_user(username):
        raise NotFoundError('Kullanıcı bulunamadı')
    return state.replace(users=[dict(u, role=role) if u['username'] == username else u
                                for u in state.users])


def remove_user(state: AppState, actor, username) -> AppState:
    _require_admin(actor)
    if username == actor.username:
        raise ValidationError('Kendinizi silemezsiniz')
    if not state.find_user(username):
        raise NotFoundError('Kullanıcı bulunamadı')
    return state.replace(users=[u for u in state.users if u['username'] != username])


# --- Import / reset ---

def import_product_rows(state: AppState, actor, rows: Iterable[Dict[str, Any]],
                        default_unit=DEFAULT_UNIT) -> AppState:
    """
    CSV 行导入 (行已映射为 sku/name/unit/minStock/warehouseName)
    - 缺少 sku 或 name 的行跳过
    - 已存在的 SKU 跳过，不做更新
    - 按名称找不到的仓库自动创建
    """
    _require_admin(actor, 'Sadece admin CSV içe aktarabilir')
    warehouses = list(state.warehouses)
    products = list(state.products)
    for r in rows:
        sku = _clean(r.get('sku'))
        name = _clean(r.get('name'))
        if not sku or not name:
            continue
        if any(p['sku'].lower() == sku.lower() for p in products):
            continue
        wh_name = _clean(r.get('warehouseName')) or DEFAULT_WAREHOUSE_NAME
        wh = _find_warehouse_by_name(warehouses, wh_name)
        if not wh:
            wh = {'id': new_id(), 'name': wh_name}
            warehouses.append(wh)
        products.append({
            'id': new_id(),
            'sku': sku,
            'name': name,
            'unit': _clean(r.get('unit')) or default_unit,
            'minStock': to_number(r.get('minStock')),
            'warehouseId': wh['id'],
        })
    return state.replace(warehouses=warehouses, products=products)


def replace_state(state: AppState, actor, data: Dict[str, Any]) -> AppState:
    """JSON 导入：整体替换，不做合并"""
    return AppState.from_dict(data)


def reset(state: AppState, actor) -> AppState:
    _require_admin(actor)
    return AppState.default()


ACTIONS = {
    'warehouse/add': add_warehouse,
    'warehouse/delete': delete_warehouse,
    'product/save': save_product,
    'product/delete': delete_product,
    'movement/add': add_movement,
    'movement/edit': edit_movement,
    'movement/delete': delete_movement,
    'movement/transfer': transfer,
    'user/add': add_user,
    'user/change_password': change_own_password,
    'user/reset_password': reset_password,
    'user/change_role': change_role,
    'user/remove': remove_user,
    'data/import_products': import_product_rows,
    'data/replace': replace_state,
    'data/reset': reset,
}


def reduce(state: AppState, action: Dict[str, Any]) -> AppState:
    """
    统一分发入口
    action = {'type': 'movement/transfer', 'actor': ..., 其余为 reducer 参数}
    """
    payload = dict(action)
    action_type = payload.pop('type', None)
    handler = ACTIONS.get(action_type)
    if handler is None:
        raise ValidationError(f'Bilinmeyen işlem: {action_type}')
    return handler(state, **payload)

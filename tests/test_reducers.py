import pytest

from stockdesk.exceptions import DuplicateError, NotFoundError, PermissionDenied, ValidationError
from stockdesk.store import AppState, reduce, filter_movements, authenticate
from stockdesk.store.balance import calc_balances_by_warehouse, product_total
from stockdesk.store.state import now_iso


def act(state, actor, action_type, **kwargs):
    return reduce(state, dict(kwargs, type=action_type, actor=actor))


def test_default_state_has_seed_accounts():
    state = AppState.default()
    assert [u['username'] for u in state.users] == ['admin', 'user']
    assert authenticate(state, 'admin', 'admin')['role'] == 'admin'
    assert authenticate(state, 'user', 'user')['role'] == 'user'
    assert authenticate(state, 'admin', 'wrong') is None
    assert 'password' not in state.users[0]


def test_legacy_plaintext_password_is_upgraded_on_load():
    state = AppState.from_dict({'users': [{'username': 'eski', 'password': '1234', 'role': 'admin'}]})
    record = state.users[0]
    assert 'password' not in record
    assert authenticate(state, 'eski', '1234') is not None


def test_unknown_action_is_rejected(admin):
    with pytest.raises(ValidationError):
        act(AppState.default(), admin, 'nope/nope')


# --- 仓库 ---

def test_duplicate_warehouse_name_rejected_case_insensitive(admin, user):
    state = act(AppState.default(), user, 'warehouse/add', name='Ana Depo')
    with pytest.raises(DuplicateError) as exc:
        act(state, user, 'warehouse/add', name='  ana depo ')
    assert exc.value.message == 'Aynı isimde depo mevcut'
    assert len(state.warehouses) == 1


def test_empty_warehouse_name_rejected(user):
    with pytest.raises(ValidationError) as exc:
        act(AppState.default(), user, 'warehouse/add', name='   ')
    assert exc.value.message == 'Depo adı gerekli'


def test_warehouse_delete_requires_admin_and_no_references(stocked, admin, user):
    used = stocked.warehouses[0]
    free = stocked.warehouses[1]
    with pytest.raises(PermissionDenied):
        act(stocked, user, 'warehouse/delete', warehouse_id=free['id'])
    with pytest.raises(ValidationError):
        act(stocked, admin, 'warehouse/delete', warehouse_id=used['id'])
    state = act(stocked, admin, 'warehouse/delete', warehouse_id=free['id'])
    assert [w['id'] for w in state.warehouses] == [used['id']]


# --- 商品 ---

def test_product_defaults_and_required_warehouse(stocked, user):
    wh = stocked.warehouses[0]['id']
    state = act(stocked, user, 'product/save',
                data={'sku': 'PL-1', 'name': 'Pul', 'minStock': 'abc', 'warehouseId': wh})
    product = state.products[-1]
    assert product['unit'] == 'Adet'
    assert product['minStock'] == 0
    assert product['warehouseId'] == wh

    with pytest.raises(ValidationError) as exc:
        act(stocked, user, 'product/save', data={'sku': 'PL-2', 'name': 'Pul'})
    assert exc.value.message == 'Depo seçiniz (ilk stoğun tutulacağı depo)'

    with pytest.raises(ValidationError) as exc:
        act(stocked, user, 'product/save', data={'sku': '', 'name': 'Pul', 'warehouseId': wh})
    assert exc.value.message == 'Zorunlu alanlar boş'


def test_duplicate_sku_rejected_and_state_unchanged(stocked, user):
    before = stocked.to_dict()
    with pytest.raises(DuplicateError) as exc:
        act(stocked, user, 'product/save',
            data={'sku': 'vd-001', 'name': 'Başka', 'warehouseId': stocked.warehouses[0]['id']})
    assert exc.value.message == 'Aynı SKU mevcut'
    assert stocked.to_dict() == before


def test_product_update_keeps_id(stocked, user):
    product = stocked.products[0]
    state = act(stocked, user, 'product/save',
                data={'id': product['id'], 'sku': product['sku'], 'name': 'Vida M5', 'unit': 'Kutu'})
    updated = state.find('products', product['id'])
    assert updated['name'] == 'Vida M5'
    assert updated['unit'] == 'Kutu'
    assert len(state.products) == 1
    # 原状态不被修改
    assert stocked.products[0]['name'] == 'Vida M4'


def test_product_with_movements_cannot_be_deleted(stocked, admin, user):
    product_id = stocked.products[0]['id']
    with pytest.raises(PermissionDenied):
        act(stocked, user, 'product/delete', product_id=product_id)
    with pytest.raises(ValidationError):
        act(stocked, admin, 'product/delete', product_id=product_id)


# --- 流水 ---

def test_movement_add_validates_references(stocked, user):
    product = stocked.products[0]['id']
    wh = stocked.warehouses[0]['id']
    with pytest.raises(ValidationError):
        act(stocked, user, 'movement/add', move_type='IN', product_id=product, warehouse_id=wh, qty=0)
    with pytest.raises(ValidationError):
        act(stocked, user, 'movement/add', move_type='SIDEWAYS', product_id=product, warehouse_id=wh, qty=1)
    with pytest.raises(NotFoundError):
        act(stocked, user, 'movement/add', move_type='IN', product_id='missing', warehouse_id=wh, qty=1)

    state = act(stocked, user, 'movement/add', move_type='OUT', product_id=product, warehouse_id=wh,
                qty='3', note=' satış ')
    newest = state.movements[0]
    assert newest['type'] == 'OUT'
    assert newest['qty'] == 3
    assert newest['note'] == 'satış'
    assert newest['at'].endswith('Z')
    assert len(state.movements) == len(stocked.movements) + 1


def test_non_admin_cannot_edit_or_delete_movements(stocked, user):
    movement_id = stocked.movements[0]['id']
    with pytest.raises(PermissionDenied) as exc:
        act(stocked, user, 'movement/edit', movement_id=movement_id, qty=1, note='')
    assert exc.value.message == 'Yetkiniz yok (sadece admin düzenleyebilir)'
    with pytest.raises(PermissionDenied) as exc:
        act(stocked, user, 'movement/delete', movement_id=movement_id)
    assert exc.value.message == 'Yetkiniz yok (sadece admin silebilir)'


def test_admin_edits_movement_qty_and_note(stocked, admin):
    movement = stocked.movements[0]
    state = act(stocked, admin, 'movement/edit', movement_id=movement['id'], qty=8, note='düzeltme')
    edited = state.find('movements', movement['id'])
    assert (edited['qty'], edited['note'], edited['at']) == (8, 'düzeltme', movement['at'])
    with pytest.raises(ValidationError):
        act(stocked, admin, 'movement/edit', movement_id=movement['id'], qty=-1, note='')

    state = act(state, admin, 'movement/delete', movement_id=movement['id'])
    assert state.movements == []


def test_filter_movements_by_date():
    movements = [
        {'id': '1', 'at': '2024-05-01T08:00:00.000Z'},
        {'id': '2', 'at': '2024-05-03T23:00:00.000Z'},
        {'id': '3', 'at': '2024-05-04T00:00:00.000Z'},
    ]
    assert [m['id'] for m in filter_movements(movements)] == ['3', '2', '1']
    assert [m['id'] for m in filter_movements(movements, '2024-05-02', '2024-05-03')] == ['2']
    assert [m['id'] for m in filter_movements(movements, date_to='2024-05-01')] == ['1']


# --- 调拨 ---

def test_transfer_moves_quantity_between_warehouses(stocked, admin):
    a, b = (w['id'] for w in stocked.warehouses)
    product = stocked.products[0]['id']
    before = calc_balances_by_warehouse(stocked.products, stocked.movements)[product]

    state = act(stocked, admin, 'movement/transfer', source_id=a, target_id=b, product_id=product, qty=5)

    after = calc_balances_by_warehouse(state.products, state.movements)[product]
    assert after.get(a, 0) == before.get(a, 0) - 5
    assert after.get(b, 0) == before.get(b, 0) + 5
    assert product_total(after) == product_total(before)

    leg_out, leg_in = state.movements[:2]
    assert (leg_out['type'], leg_in['type']) == ('OUT', 'IN')
    assert leg_out['transferId'] == leg_in['transferId']
    assert leg_out['at'] == leg_in['at']
    assert (leg_out['note'], leg_in['note']) == ('Transfer OUT', 'Transfer IN')


def test_transfer_rejections(stocked, admin, user):
    a, b = (w['id'] for w in stocked.warehouses)
    product = stocked.products[0]['id']

    with pytest.raises(PermissionDenied) as exc:
        act(stocked, user, 'movement/transfer', source_id=a, target_id=b, product_id=product, qty=5)
    assert exc.value.message == 'Sadece admin transfer yapabilir'

    with pytest.raises(ValidationError) as exc:
        act(stocked, admin, 'movement/transfer', source_id=a, target_id=a, product_id=product, qty=5)
    assert exc.value.message == 'Kaynak ve hedef depo farklı olmalı'

    for qty in (0, -2, 'abc', ''):
        with pytest.raises(ValidationError) as exc:
            act(stocked, admin, 'movement/transfer', source_id=a, target_id=b, product_id=product, qty=qty)
        assert exc.value.message == 'Eksik veya hatalı alan'


# --- 用户 ---

def test_user_management(admin, user):
    state = AppState.default()
    with pytest.raises(PermissionDenied):
        act(state, user, 'user/add', username='ali', password='x', role='user')

    state = act(state, admin, 'user/add', username='ali', password='gizli', role='user')
    assert authenticate(state, 'ali', 'gizli') is not None
    with pytest.raises(DuplicateError) as exc:
        act(state, admin, 'user/add', username='ALI', password='y', role='user')
    assert exc.value.message == 'Aynı kullanıcı adı var'
    with pytest.raises(ValidationError) as exc:
        act(state, admin, 'user/add', username='veli', password='', role='user')
    assert exc.value.message == 'Kullanıcı adı/şifre gerekli'

    state = act(state, admin, 'user/change_role', username='ali', role='admin')
    assert state.find_user('ali')['role'] == 'admin'

    state = act(state, admin, 'user/reset_password', username='ali', password='yeni')
    assert authenticate(state, 'ali', 'yeni') is not None

    with pytest.raises(ValidationError) as exc:
        act(state, admin, 'user/remove', username='admin')
    assert exc.value.message == 'Kendinizi silemezsiniz'
    state = act(state, admin, 'user/remove', username='ali')
    assert state.find_user('ali') is None


def test_change_own_password(user):
    state = AppState.default()
    with pytest.raises(ValidationError) as exc:
        act(state, user, 'user/change_password', old_password='yanlış', new_password='a', confirm='a')
    assert exc.value.message == 'Eski şifre yanlış'
    with pytest.raises(ValidationError) as exc:
        act(state, user, 'user/change_password', old_password='user', new_password='a', confirm='b')
    assert exc.value.message == 'Yeni şifreler uyuşmuyor'

    state = act(state, user, 'user/change_password', old_password='user', new_password='yeni', confirm='yeni')
    assert authenticate(state, 'user', 'yeni') is not None
    assert authenticate(state, 'user', 'user') is None


# --- 导入 / 重置 ---

def test_import_rows_skip_duplicates_and_create_warehouses(stocked, admin, user):
    rows = [
        {'sku': 'VD-001', 'name': 'Mevcut'},
        {'sku': 'KB-1', 'name': 'Kablo', 'warehouseName': 'şube'},
        {'sku': 'KB-1', 'name': 'Kablo tekrar'},
        {'sku': '', 'name': 'SKU yok'},
        {'sku': 'AM-1', 'name': 'Ampul', 'unit': 'Kutu', 'minStock': '4', 'warehouseName': 'Yeni Depo'},
        {'sku': 'BD-1', 'name': 'Bant', 'warehouseName': ''},
    ]
    with pytest.raises(PermissionDenied):
        act(stocked, user, 'data/import_products', rows=rows)

    state = act(stocked, admin, 'data/import_products', rows=rows)
    skus = [p['sku'] for p in state.products]
    assert skus == ['VD-001', 'KB-1', 'AM-1', 'BD-1']
    names = {w['id']: w['name'] for w in state.warehouses}
    by_sku = {p['sku']: p for p in state.products}
    assert names[by_sku['KB-1']['warehouseId']] == 'Şube'
    assert names[by_sku['AM-1']['warehouseId']] == 'Yeni Depo'
    assert names[by_sku['BD-1']['warehouseId']] == 'Genel'
    assert by_sku['AM-1']['minStock'] == 4
    assert by_sku['KB-1']['unit'] == 'Adet'


def test_reset_is_admin_only(stocked, admin, user):
    with pytest.raises(PermissionDenied):
        act(stocked, user, 'data/reset')
    state = act(stocked, admin, 'data/reset')
    assert (state.warehouses, state.products, state.movements) == ([], [], [])
    assert [u['username'] for u in state.users] == ['admin', 'user']


@pytest.mark.parametrize('qty', ['inf', '-inf', '1e309', 'nan', float('inf')])
def test_non_finite_quantities_rejected(stocked, admin, qty):
    product = stocked.products[0]['id']
    a, b = (w['id'] for w in stocked.warehouses)
    with pytest.raises(ValidationError):
        act(stocked, admin, 'movement/add', move_type='IN', product_id=product, warehouse_id=a, qty=qty)
    with pytest.raises(ValidationError):
        act(stocked, admin, 'movement/transfer', source_id=a, target_id=b, product_id=product, qty=qty)
    with pytest.raises(ValidationError):
        act(stocked, admin, 'movement/edit', movement_id=stocked.movements[0]['id'], qty=qty)


def test_movements_always_take_the_current_time(stocked, admin):
    product = stocked.products[0]['id']
    a, b = (w['id'] for w in stocked.warehouses)
    before = now_iso()

    state = act(stocked, admin, 'movement/add', move_type='IN', product_id=product, warehouse_id=a, qty=1)
    assert state.movements[0]['at'] >= before
    state = act(state, admin, 'movement/transfer', source_id=a, target_id=b, product_id=product, qty=1)
    assert all(m['at'] >= before for m in state.movements[:2])

    # 不接受外部传入的时间戳
    with pytest.raises(TypeError):
        act(stocked, admin, 'movement/add', move_type='IN', product_id=product, warehouse_id=a, qty=1,
            at='2000-01-01T00:00:00.000Z')
    with pytest.raises(TypeError):
        act(stocked, admin, 'movement/transfer', source_id=a, target_id=b, product_id=product, qty=1,
            at='2000-01-01T00:00:00.000Z')

import io
import json

import pytest

from stockdesk.services.sync_service import sync_service
from stockdesk.store.persistence import local_store


@pytest.fixture
def seeded(app, stocked):
    with app.app_context():
        local_store.save(stocked)
    return stocked


def load(app):
    with app.app_context():
        return local_store.load()


def text(response):
    return response.get_data(as_text=True)


def test_pages_require_login(client):
    response = client.get('/')
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']


def test_login_and_logout(client, login):
    response = login('admin', 'yanlış')
    assert response.status_code == 302
    assert 'Kullanıcı adı veya şifre hatalı' in text(client.get('/auth/login'))

    response = login('admin')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')
    assert client.get('/').status_code == 200

    client.get('/auth/logout')
    assert client.get('/').status_code == 302


def test_dashboard_shows_balances(client, login, seeded):
    login('user')
    body = text(client.get('/'))
    assert 'VD-001' in body
    assert 'Ana Depo' in body
    # 普通用户看不到调拨与重置
    assert 'Depolar arası transfer' not in body
    assert 'Tüm verileri sıfırla' not in body


def test_add_warehouse_and_duplicate_alert(app, client, login):
    login('user')
    response = client.post('/inventory/warehouses', data={'name': 'Merkez'}, follow_redirects=True)
    assert 'Depo eklendi' in text(response)

    response = client.post('/inventory/warehouses', data={'name': 'merkez'}, follow_redirects=True)
    assert 'Aynı isimde depo mevcut' in text(response)
    assert [w['name'] for w in load(app).warehouses] == ['Merkez']


def test_product_create_edit_and_validation(app, client, login, seeded):
    login('user')
    wh = seeded.warehouses[1]['id']
    response = client.post('/inventory/products', data={
        'sku': 'KB-1', 'name': 'Kablo', 'unit': '', 'min_stock': '10', 'warehouse_id': wh,
    }, follow_redirects=True)
    assert 'Ürün eklendi' in text(response)
    product = load(app).products[-1]
    assert (product['unit'], product['minStock'], product['warehouseId']) == ('Adet', 10, wh)

    response = client.post('/inventory/products', data={'sku': 'KB-2', 'name': 'Kablo 2'},
                           follow_redirects=True)
    assert 'Depo seçiniz (ilk stoğun tutulacağı depo)' in text(response)

    assert client.get(f"/inventory/products/{product['id']}/edit").status_code == 200
    response = client.post('/inventory/products', data={
        'record_id': product['id'], 'sku': 'VD-001', 'name': 'Kopya', 'warehouse_id': wh,
    }, follow_redirects=True)
    assert 'Aynı SKU mevcut' in text(response)
    assert load(app).find('products', product['id'])['name'] == 'Kablo'

    assert client.get('/inventory/products/missing/edit').status_code == 404


def test_movement_add_and_filter(app, client, login, seeded):
    login('user')
    product = seeded.products[0]['id']
    wh = seeded.warehouses[0]['id']
    response = client.post('/inventory/movements', data={
        'move_type': 'OUT', 'product_id': product, 'warehouse_id': wh, 'qty': '4', 'note': 'satış',
    }, follow_redirects=True)
    assert 'Hareket kaydedildi' in text(response)
    assert load(app).movements[0]['qty'] == 4

    response = client.post('/inventory/movements', data={
        'move_type': 'OUT', 'product_id': product, 'warehouse_id': wh, 'qty': '0',
    }, follow_redirects=True)
    assert 'Eksik veya hatalı alan' in text(response)

    body = text(client.get('/inventory/movements?date_from=2000-01-01&date_to=2000-01-02'))
    assert 'Kayıt yok' in body


def test_non_admin_cannot_transfer_edit_or_delete(app, client, login, seeded):
    login('user')
    a, b = (w['id'] for w in seeded.warehouses)
    movement_id = seeded.movements[0]['id']

    response = client.post('/inventory/transfer', data={
        'source_id': a, 'target_id': b, 'product_id': seeded.products[0]['id'], 'qty': '5',
    }, follow_redirects=True)
    assert 'Sadece admin transfer yapabilir' in text(response)

    response = client.post(f'/inventory/movements/{movement_id}/edit', data={'qty': '1', 'note': ''},
                           follow_redirects=True)
    assert 'Yetkiniz yok (sadece admin düzenleyebilir)' in text(response)

    response = client.post(f'/inventory/movements/{movement_id}/delete', follow_redirects=True)
    assert 'Yetkiniz yok (sadece admin silebilir)' in text(response)

    assert load(app).movements == seeded.movements


def test_admin_transfer_updates_balances(app, client, login, seeded):
    login('admin')
    a, b = (w['id'] for w in seeded.warehouses)
    product = seeded.products[0]['id']
    response = client.post('/inventory/transfer', data={
        'source_id': a, 'target_id': b, 'product_id': product, 'qty': '5',
    }, follow_redirects=True)
    assert 'Transfer tamamlandı' in text(response)

    [row] = client.get('/api/balances').get_json()
    assert row['warehouses'] == {a: 15, b: 5}
    assert row['total'] == 20
    assert row['low'] is False


def test_exports(client, login, seeded):
    login('user')
    response = client.get('/data/export/products.csv')
    assert response.mimetype == 'text/csv'
    assert 'filename=urunler_' in response.headers['Content-Disposition']
    assert text(response).startswith('id,sku,name,unit,minStock,warehouse\n')

    response = client.get('/inventory/movements/export')
    assert 'filename=hareketler_' in response.headers['Content-Disposition']
    assert '"Vida M4","Ana Depo","20"' in text(response)

    response = client.get('/data/export/store.json')
    assert 'filename=stokveri_' in response.headers['Content-Disposition']
    assert json.loads(text(response))['products'][0]['sku'] == 'VD-001'

    response = client.get('/data/export/products.xlsx')
    assert response.status_code == 200
    assert 'urunler_' in response.headers['Content-Disposition']


def test_csv_upload_import(app, client, login):
    payload = 'sku,name,warehouseName\nA-1,Vida,Merkez\nA-2,Somun,\n'

    login('user')
    response = client.post('/data/import/csv', data={'file': (io.BytesIO(payload.encode()), 'urunler.csv')},
                           content_type='multipart/form-data', follow_redirects=True)
    assert 'Sadece admin CSV içe aktarabilir' in text(response)
    client.get('/auth/logout')

    login('admin')
    response = client.post('/data/import/csv', data={'file': (io.BytesIO(payload.encode()), 'urunler.csv')},
                           content_type='multipart/form-data', follow_redirects=True)
    assert '2 ürün eklendi' in text(response)
    assert sorted(w['name'] for w in load(app).warehouses) == ['Genel', 'Merkez']


def test_json_import_requires_confirmation(app, client, login, seeded):
    login('user')
    payload = json.dumps({'users': seeded.users, 'warehouses': [], 'products': [], 'movements': []})

    response = client.post('/data/import/json', data={'payload': payload}, follow_redirects=True)
    assert 'onay kutusunu' in text(response)
    assert load(app).products

    response = client.post('/data/import/json', data={'payload': '{"users": []}', 'confirm': 'y'},
                           follow_redirects=True)
    assert 'Geçersiz JSON' in text(response)

    response = client.post('/data/import/json', data={'payload': payload, 'confirm': 'y'},
                           follow_redirects=True)
    assert 'JSON içe aktarıldı' in text(response)
    assert load(app).products == []


def test_theme_toggle_persists(app, client, login):
    login('user')
    client.post('/theme')
    with app.app_context():
        assert local_store.is_dark() is True
    assert 'class="dark"' in text(client.get('/'))
    client.post('/theme')
    with app.app_context():
        assert local_store.is_dark() is False


def test_reset_is_admin_only_and_logs_out(app, client, login, seeded):
    login('user')
    response = client.post('/reset', follow_redirects=True)
    assert 'Yetkiniz yok' in text(response)
    assert load(app).products

    client.get('/auth/logout')
    login('admin')
    response = client.post('/reset')
    assert '/auth/login' in response.headers['Location']
    assert load(app).products == []
    assert client.get('/').status_code == 302


def test_user_management_routes(app, client, login):
    login('admin')
    response = client.post('/users/add', data={'username': 'ali', 'password': 'gizli', 'role': 'user'},
                           follow_redirects=True)
    assert 'Kullanıcı eklendi' in text(response)
    assert 'ali' in text(client.get('/users/'))

    response = client.post('/users/admin/delete', follow_redirects=True)
    assert 'Kendinizi silemezsiniz' in text(response)

    client.post('/users/ali/role', data={'role': 'admin'})
    client.post('/users/ali/reset', data={'password': 'yeni'})
    client.get('/auth/logout')

    assert login('ali', 'yeni').headers['Location'].endswith('/')
    response = client.post('/users/password', data={
        'old_password': 'yeni', 'new_password': 'a', 'confirm': 'b'}, follow_redirects=True)
    assert 'Yeni şifreler uyuşmuyor' in text(response)
    response = client.post('/users/password', data={
        'old_password': 'yeni', 'new_password': 'son', 'confirm': 'son'}, follow_redirects=True)
    assert 'Şifreniz değiştirildi' in text(response)
    with app.app_context():
        assert local_store.load().find_user('ali')['role'] == 'admin'


def test_sync_routes_are_admin_only(client, login):
    login('user')
    assert client.post('/data/sync/retry').status_code == 403


def test_remote_failure_surfaces_warning(synced_app, remote):
    client = synced_app.test_client()
    client.post('/auth/login', data={'username': 'admin', 'password': 'admin'})
    remote.fail('POST', 'warehouses')

    response = client.post('/inventory/warehouses', data={'name': 'Merkez'}, follow_redirects=True)
    body = text(response)
    assert 'Depo eklendi' in body
    assert 'Uzak sunucuya yazılamadı' in body

    with synced_app.app_context():
        assert [w['name'] for w in local_store.load().warehouses] == ['Merkez']
        assert len(sync_service.pending) == 1

    remote.heal()
    response = client.post('/data/sync/retry', follow_redirects=True)
    assert '1 işlem gönderildi' in text(response)
    assert [r['name'] for r in remote.rows('warehouses')] == ['Merkez']


def test_malformed_json_import_keeps_dashboard_working(app, client, login, seeded):
    login('user')
    payload = json.dumps({'users': seeded.users, 'warehouses': [],
                          'products': [{'name': 'no id no sku'}], 'movements': []})
    response = client.post('/data/import/json', data={'payload': payload, 'confirm': 'y'},
                           follow_redirects=True)
    assert response.status_code == 200
    assert 'Geçersiz JSON' in text(response)
    assert load(app).products == seeded.products
    assert client.get('/').status_code == 200

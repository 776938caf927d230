from flask import render_template, jsonify, redirect, url_for, flash
from flask_login import login_required, current_user, logout_user

from . import main_bp
from stockdesk.blueprints.inventory.forms import WarehouseForm, ProductForm, MovementForm, TransferForm, fill_choices
from stockdesk.blueprints.data.forms import CsvImportForm, JsonImportForm
from stockdesk.services.inventory_service import InventoryService
from stockdesk.services.sync_service import sync_service
from stockdesk.store.persistence import local_store

RECENT_MOVEMENTS = 20


@main_bp.route('/')
@login_required
def index():
    """仪表盘：仓库、商品余额表、最近流水以及各类操作表单"""
    state = InventoryService.load()
    balances = InventoryService.balances()

    return render_template(
        'main/index.html',
        state=state,
        balances=balances,
        recent_movements=state.movements[:RECENT_MOVEMENTS],
        products={p['id']: p for p in state.products},
        warehouses={w['id']: w for w in state.warehouses},
        low_count=sum(1 for row in balances if row['low']),
        warehouse_form=WarehouseForm(),
        product_form=fill_choices(ProductForm(), state),
        movement_form=fill_choices(MovementForm(), state),
        transfer_form=fill_choices(TransferForm(), state),
        csv_form=CsvImportForm(),
        json_form=JsonImportForm(),
        sync_enabled=sync_service.enabled,
        pending_count=len(sync_service.pending)
    )


@main_bp.route('/theme', methods=['POST'])
@login_required
def toggle_theme():
    """切换深色模式 (单独持久化在 darkmode 键)"""
    local_store.set_dark(not local_store.is_dark())
    return redirect(url_for('main.index'))


@main_bp.route('/reset', methods=['POST'])
@login_required
def reset():
    """清空所有数据并恢复默认账号，随后退出登录"""
    success, msg = InventoryService.reset(current_user)
    if not success:
        flash(msg, 'danger')
        return redirect(url_for('main.index'))
    logout_user()
    flash(msg, 'success')
    return redirect(url_for('auth.login'))


@main_bp.route('/api/balances')
@login_required
def api_balances():
    """余额 JSON 接口"""
    return jsonify([{
        'id': row['product']['id'],
        'sku': row['product']['sku'],
        'name': row['product']['name'],
        'unit': row['product'].get('unit'),
        'warehouses': {str(k): v for k, v in row['by_warehouse'].items()},
        'total': row['total'],
        'low': row['low'],
    } for row in InventoryService.balances()])

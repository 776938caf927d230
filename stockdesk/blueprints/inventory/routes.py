from flask import render_template, request, flash, redirect, url_for, Response, abort
from flask_login import login_required, current_user

from stockdesk.blueprints.inventory import inventory_bp
from stockdesk.blueprints.inventory.forms import (
    WarehouseForm, ProductForm, MovementForm, MovementEditForm, TransferForm,
    MovementFilterForm, fill_choices
)
from stockdesk.services.inventory_service import InventoryService
from stockdesk.services.export_service import export_service, dated_filename
from stockdesk.store import filter_movements
from stockdesk.utils.audit import audit_log


def _flash_result(success, msg):
    flash(msg, 'success' if success else 'danger')


def _back(default='main.index'):
    """表单提交后回到来源页面"""
    target = request.form.get('next') or ''
    if target.startswith('/') and not target.startswith('//'):
        return redirect(target)
    return redirect(url_for(default))


# --- 仓库 ---

@inventory_bp.route('/warehouses', methods=['POST'])
@login_required
def add_warehouse():
    form = WarehouseForm()
    if form.validate_on_submit():
        _flash_result(*InventoryService.add_warehouse(form.name.data, current_user))
    else:
        flash('Depo adı gerekli', 'danger')
    return _back()


@inventory_bp.route('/warehouses/<warehouse_id>/delete', methods=['POST'])
@login_required
def delete_warehouse(warehouse_id):
    _flash_result(*InventoryService.delete_warehouse(warehouse_id, current_user))
    return _back()


# --- 商品 ---

@inventory_bp.route('/products', methods=['POST'])
@login_required
def save_product():
    """商品新增或更新 (record_id 非空时为更新)"""
    form = fill_choices(ProductForm(), InventoryService.load())
    if not form.validate_on_submit():
        flash('Zorunlu alanlar boş', 'danger')
        return _back()

    data = {
        'id': form.record_id.data or None,
        'sku': form.sku.data,
        'name': form.name.data,
        'unit': form.unit.data,
        'minStock': form.min_stock.data,
        'warehouseId': form.warehouse_id.data,
    }
    success, msg = InventoryService.save_product(data, current_user)
    _flash_result(success, msg)
    if not success and data['id']:
        return redirect(url_for('inventory.edit_product', product_id=data['id']))
    return redirect(url_for('main.index'))


@inventory_bp.route('/products/<product_id>/edit')
@login_required
def edit_product(product_id):
    state = InventoryService.load()
    product = state.find('products', product_id)
    if product is None:
        abort(404)

    form = fill_choices(ProductForm(), state)
    form.record_id.data = product['id']
    form.sku.data = product['sku']
    form.name.data = product['name']
    form.unit.data = product.get('unit')
    form.min_stock.data = product.get('minStock')
    form.warehouse_id.data = product.get('warehouseId')
    return render_template('inventory/product_edit.html', form=form, product=product)


@inventory_bp.route('/products/<product_id>/delete', methods=['POST'])
@login_required
def delete_product(product_id):
    _flash_result(*InventoryService.delete_product(product_id, current_user))
    return _back()


# --- 流水 ---

@inventory_bp.route('/movements', methods=['GET', 'POST'])
@login_required
def movements():
    """
    流水列表页
    包含：日期筛选、新增流水表单
    """
    state = InventoryService.load()
    form = fill_choices(MovementForm(), state)

    # 处理新增流水提交
    if form.validate_on_submit():
        _flash_result(*InventoryService.add_movement(
            move_type=form.move_type.data,
            product_id=form.product_id.data,
            warehouse_id=form.warehouse_id.data,
            qty=form.qty.data,
            note=form.note.data,
            user=current_user
        ))
        return _back('inventory.movements')

    # 日期筛选 - 从 URL 参数获取
    filter_form = MovementFilterForm(request.args)
    date_from = (filter_form.date_from.data or '').strip()
    date_to = (filter_form.date_to.data or '').strip()
    rows = filter_movements(state.movements, date_from, date_to)

    return render_template(
        'inventory/movements.html',
        form=form,
        filter_form=filter_form,
        movements=rows,
        products={p['id']: p for p in state.products},
        warehouses={w['id']: w for w in state.warehouses},
        date_from=date_from,
        date_to=date_to
    )


@inventory_bp.route('/movements/<movement_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_movement(movement_id):
    state = InventoryService.load()
    movement = state.find('movements', movement_id)
    if movement is None:
        abort(404)

    form = MovementEditForm()
    if form.validate_on_submit():
        success, msg = InventoryService.edit_movement(movement_id, form.qty.data, form.note.data, current_user)
        _flash_result(success, msg)
        if success:
            return redirect(url_for('inventory.movements'))
        return redirect(url_for('inventory.edit_movement', movement_id=movement_id))

    if request.method == 'GET':
        form.qty.data = movement.get('qty')
        form.note.data = movement.get('note')
    return render_template(
        'inventory/movement_edit.html',
        form=form,
        movement=movement,
        product=state.find('products', movement.get('productId')),
        warehouse=state.find('warehouses', movement.get('warehouseId'))
    )


@inventory_bp.route('/movements/<movement_id>/delete', methods=['POST'])
@login_required
def delete_movement(movement_id):
    _flash_result(*InventoryService.delete_movement(movement_id, current_user))
    return _back('inventory.movements')


@inventory_bp.route('/movements/export')
@login_required
@audit_log(module='inventory', action='export_movements')
def export_movements():
    """导出流水 CSV (沿用当前的日期筛选)"""
    state = InventoryService.load()
    rows = filter_movements(state.movements, request.args.get('date_from', '').strip(),
                            request.args.get('date_to', '').strip())
    content = export_service.to_csv(export_service.movement_rows(state, rows))
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={dated_filename("hareketler", "csv")}'}
    )


# --- 调拨 ---

@inventory_bp.route('/transfer', methods=['POST'])
@login_required
def transfer():
    form = fill_choices(TransferForm(), InventoryService.load())
    if form.validate_on_submit():
        _flash_result(*InventoryService.transfer(
            source_id=form.source_id.data,
            target_id=form.target_id.data,
            product_id=form.product_id.data,
            qty=form.qty.data,
            user=current_user
        ))
    else:
        flash('Eksik veya hatalı alan', 'danger')
    return _back()

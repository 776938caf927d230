from flask import flash, redirect, url_for, Response, send_file, current_app
from flask_login import login_required, current_user

from stockdesk.blueprints.data import data_bp
from stockdesk.blueprints.data.forms import CsvImportForm, JsonImportForm
from stockdesk.exceptions import StockException, RemoteSyncError
from stockdesk.services.export_service import export_service, dated_filename
from stockdesk.services.import_service import ImportService
from stockdesk.services.inventory_service import InventoryService
from stockdesk.services.sync_service import sync_service
from stockdesk.utils.audit import audit_log
from stockdesk.utils.permissions import admin_required


def _form_errors(form):
    return '; '.join(e for errors in form.errors.values() for e in errors)


# --- 导出 ---

@data_bp.route('/export/products.csv')
@login_required
@audit_log(module='data', action='export_products_csv')
def export_products_csv():
    content = export_service.to_csv(export_service.product_rows(InventoryService.load()))
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={dated_filename("urunler", "csv")}'}
    )


@data_bp.route('/export/products.xlsx')
@login_required
@audit_log(module='data', action='export_products_xlsx')
def export_products_xlsx():
    try:
        output = export_service.export_to_excel(InventoryService.load())
    except Exception as e:
        current_app.logger.error(f'Excel 导出失败: {e}')
        flash(f'Dışa aktarma başarısız: {e}', 'danger')
        return redirect(url_for('main.index'))
    return send_file(output, mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
                     as_attachment=True, download_name=dated_filename('urunler', 'xlsx'))


@data_bp.route('/export/store.json')
@login_required
@audit_log(module='data', action='export_json')
def export_json():
    return Response(
        export_service.to_json(InventoryService.load()),
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename={dated_filename("stokveri", "json")}'}
    )


# --- 导入 ---

@data_bp.route('/import/csv', methods=['POST'])
@login_required
def import_csv():
    """CSV 商品导入 (仅管理员)"""
    form = CsvImportForm()
    if not form.validate_on_submit():
        flash(_form_errors(form) or 'Dosya seçiniz', 'danger')
        return redirect(url_for('main.index'))

    try:
        report = ImportService.import_products_csv(form.file.data.read(), current_user)
    except StockException as e:
        flash(e.message, 'danger')
        return redirect(url_for('main.index'))

    flash(report.message(), 'success')
    return redirect(url_for('main.index'))


@data_bp.route('/import/json', methods=['POST'])
@login_required
def import_json():
    """JSON 整库导入，覆盖现有全部数据"""
    form = JsonImportForm()
    if not form.validate_on_submit():
        flash(_form_errors(form) or 'Geçersiz JSON', 'danger')
        return redirect(url_for('main.index'))

    # 1. 必须确认覆盖
    if not form.confirm.data:
        flash('İçe aktarma için onay kutusunu işaretleyin', 'warning')
        return redirect(url_for('main.index'))

    # 2. 文件优先，其次是文本框
    content = form.file.data.read() if form.file.data else (form.payload.data or '')
    try:
        ImportService.import_json(content, current_user)
    except StockException as e:
        flash(e.message, 'danger')
        return redirect(url_for('main.index'))

    flash('JSON içe aktarıldı', 'success')
    return redirect(url_for('main.index'))


# --- 远程同步 ---

@data_bp.route('/sync/pull', methods=['POST'])
@admin_required
def sync_pull():
    """手动从远程拉取并合并"""
    if not sync_service.enabled:
        flash('Uzak sunucu yapılandırılmamış', 'warning')
        return redirect(url_for('main.index'))
    try:
        stats = sync_service.pull()
    except RemoteSyncError as e:
        flash(f'Uzak sunucudan okunamadı: {e.message}', 'danger')
        return redirect(url_for('main.index'))

    changed = sum(sum(s.values()) for s in stats.values())
    flash(f'Senkronizasyon tamamlandı ({changed} değişiklik)', 'success')
    return redirect(url_for('main.index'))


@data_bp.route('/sync/retry', methods=['POST'])
@admin_required
def sync_retry():
    """重放待重试的远程写入"""
    succeeded, remaining = sync_service.retry_pending()
    if remaining:
        flash(f'{succeeded} işlem gönderildi, {remaining} işlem bekliyor', 'warning')
    else:
        flash(f'{succeeded} işlem gönderildi', 'success')
    return redirect(url_for('main.index'))

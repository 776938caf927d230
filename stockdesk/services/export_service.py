"""
数据导出服务
支持 CSV、JSON、Excel 导出
"""
import csv
import io
import json
from datetime import date, datetime
from io import BytesIO
from typing import Any, Dict, List

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from stockdesk.store.balance import calc_balances_by_warehouse, is_low_stock, product_total
from stockdesk.store.state import AppState


def dated_filename(prefix: str, ext: str) -> str:
    """例如 urunler_2024-05-01.csv"""
    return f'{prefix}_{date.today().isoformat()}.{ext}'


class ExportService:
    """数据导出服务"""

    @staticmethod
    def to_csv(rows: List[Dict[str, Any]]) -> str:
        """
        行集合转 CSV 文本
        表头取第一行的键；数据字段全部加双引号，内嵌双引号翻倍；None 输出为空
        """
        if not rows:
            return ''
        headers = list(rows[0].keys())

        output = io.StringIO()
        output.write(','.join(headers) + '\n')
        writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
        for row in rows:
            writer.writerow(['' if row.get(h) is None else row.get(h) for h in headers])
        return output.getvalue().rstrip('\n')

    @staticmethod
    def product_rows(state: AppState) -> List[Dict[str, Any]]:
        names = {w['id']: w['name'] for w in state.warehouses}
        return [{
            'id': p['id'],
            'sku': p['sku'],
            'name': p['name'],
            'unit': p.get('unit'),
            'minStock': p.get('minStock'),
            'warehouse': names.get(p.get('warehouseId')) or p.get('warehouseId'),
        } for p in state.products]

    @staticmethod
    def movement_rows(state: AppState, movements=None) -> List[Dict[str, Any]]:
        """流水导出行 (可传入已筛选的流水)"""
        products = {p['id']: p['name'] for p in state.products}
        warehouses = {w['id']: w['name'] for w in state.warehouses}
        movements = state.movements if movements is None else movements
        return [{
            'type': m['type'],
            'product': products.get(m.get('productId')) or m.get('productId'),
            'warehouse': warehouses.get(m.get('warehouseId')) or m.get('warehouseId'),
            'qty': m.get('qty'),
            'at': m.get('at'),
            'note': m.get('note') or '',
        } for m in movements]

    @staticmethod
    def to_json(state: AppState) -> str:
        """整库导出"""
        return json.dumps(state.to_dict(), ensure_ascii=False, indent=2)

    @staticmethod
    def export_to_excel(
        state: AppState,
        sheet_name: str = "Stok",
        title: str = "StockDesk - Depo Bazlı Bakiye"
    ) -> BytesIO:
        """
        导出商品余额到 Excel
        每个仓库一列，外加总量；低库存行标红

        Returns:
            BytesIO: Excel 文件流
        """
        balances = calc_balances_by_warehouse(state.products, state.movements)
        columns = [{'header': 'SKU', 'width': 15}, {'header': 'Ürün', 'width': 28},
                   {'header': 'Birim', 'width': 10}, {'header': 'Min Stok', 'width': 10}]
        columns += [{'header': w['name'], 'width': 14} for w in state.warehouses]
        columns.append({'header': 'Toplam', 'width': 12})

        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = sheet_name

        # 样式定义
        title_font = Font(size=16, bold=True, color='FFFFFF')
        title_fill = PatternFill(start_color='2563EB', end_color='2563EB', fill_type='solid')
        header_font = Font(size=11, bold=True, color='FFFFFF')
        header_fill = PatternFill(start_color='4B5563', end_color='4B5563', fill_type='solid')
        low_font = Font(size=10, bold=True, color='E11D48')
        cell_font = Font(size=10)
        border = Border(
            left=Side(style='thin', color='E5E7EB'),
            right=Side(style='thin', color='E5E7EB'),
            top=Side(style='thin', color='E5E7EB'),
            bottom=Side(style='thin', color='E5E7EB')
        )

        # 标题（合并单元格）
        ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(columns))
        title_cell = ws.cell(row=1, column=1, value=title)
        title_cell.font = title_font
        title_cell.fill = title_fill
        title_cell.alignment = Alignment(horizontal='center', vertical='center')
        ws.row_dimensions[1].height = 30

        # 导出时间
        ws.merge_cells(start_row=2, start_column=1, end_row=2, end_column=len(columns))
        time_cell = ws.cell(row=2, column=1, value=f"Tarih: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        time_cell.font = Font(size=9, color='6B7280')
        time_cell.alignment = Alignment(horizontal='center')

        # 表头
        for col_idx, col_def in enumerate(columns, start=1):
            cell = ws.cell(row=3, column=col_idx, value=col_def['header'])
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal='center', vertical='center')
            cell.border = border
            ws.column_dimensions[get_column_letter(col_idx)].width = col_def['width']

        # 数据
        for row_idx, p in enumerate(state.products, start=4):
            row = balances.get(p['id'], {})
            total = product_total(row)
            font = low_font if is_low_stock(p, total) else cell_font
            values = [p['sku'], p['name'], p.get('unit') or '', p.get('minStock') or 0]
            values += [row.get(w['id'], 0) for w in state.warehouses]
            values.append(total)
            for col_idx, value in enumerate(values, start=1):
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.font = font
                cell.border = border
                # 数字右对齐，其他左对齐
                if isinstance(value, (int, float)):
                    cell.alignment = Alignment(horizontal='right', vertical='center')
                else:
                    cell.alignment = Alignment(horizontal='left', vertical='center')

        # 冻结前三行（标题 + 时间 + 表头）
        ws.freeze_panes = 'A4'

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output


# 全局单例
export_service = ExportService()

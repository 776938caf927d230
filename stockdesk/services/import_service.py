"""数据导入服务 - CSV 商品导入 / JSON 整库导入"""
import csv
import json
from io import StringIO

from stockdesk.exceptions import ImportFormatError, PermissionDenied
from stockdesk.store.balance import to_number
from stockdesk.store.state import COLLECTIONS, MOVEMENT_TYPES, ROLE_ADMIN, ROLES
from .inventory_service import InventoryService

# JSON 导入时每个集合的必填字符串字段
REQUIRED_FIELDS = {
    'users': ('username', 'role'),
    'warehouses': ('id', 'name'),
    'products': ('id', 'sku', 'name'),
    'movements': ('id', 'type', 'productId', 'warehouseId'),
}


class ImportReport:
    """一次 CSV 导入的结果"""

    def __init__(self, total_rows=0, created=0, created_warehouses=0):
        self.total_rows = total_rows
        self.created = created
        self.created_warehouses = created_warehouses

    @property
    def skipped(self):
        return self.total_rows - self.created

    def message(self):
        return (f'CSV içe aktarma tamamlandı: {self.created} ürün eklendi, '
                f'{self.skipped} satır atlandı, {self.created_warehouses} depo oluşturuldu')


class ImportService:
    """数据导入服务"""

    # 表头别名 (比较时忽略大小写与首尾空白)
    HEADER_ALIASES = {
        'sku': ['sku', 'stok kodu', 'stokkodu', 'ürün kodu', 'urun kodu', 'kod', 'code'],
        'name': ['name', 'ad', 'adı', 'ürün', 'ürün adı', 'urun adi', 'product', 'product name'],
        'unit': ['unit', 'birim'],
        'minStock': ['minstock', 'min_stock', 'min stock', 'min stok', 'minimum stok', 'kritik stok'],
        'warehouseName': ['warehousename', 'warehouse_name', 'warehouse', 'depo', 'depo adı', 'depo adi'],
    }
    REQUIRED_COLUMNS = ('sku', 'name')

    @staticmethod
    def decode(file_content):
        """字节内容解码，UTF-8 (含 BOM) 失败时尝试土耳其语代码页"""
        if isinstance(file_content, str):
            return file_content.lstrip('\ufeff')
        try:
            return file_content.decode('utf-8-sig')
        except UnicodeDecodeError:
            return file_content.decode('cp1254')

    @staticmethod
    def map_header(header):
        key = (header or '').strip().casefold()
        for field, aliases in ImportService.HEADER_ALIASES.items():
            if key in aliases:
                return field
        return None

    @staticmethod
    def parse_csv(file_content):
        """
        解析 CSV，表头按别名映射到字段，无法识别的列忽略
        :return: 行字典列表 (只含识别出的字段)
        """
        text = ImportService.decode(file_content)
        records = [cols for cols in csv.reader(StringIO(text)) if any(c.strip() for c in cols)]
        if not records:
            raise ImportFormatError('CSV dosyası boş')

        headers = records[0]
        mapping = {}
        for idx, header in enumerate(headers):
            field = ImportService.map_header(header)
            if field and field not in mapping.values():
                mapping[idx] = field

        if any(field not in mapping.values() for field in ImportService.REQUIRED_COLUMNS):
            raise ImportFormatError('CSV başlıkları: sku,name,unit,minStock,warehouseName olmalı')

        rows = []
        for cols in records[1:]:
            rows.append({field: (cols[idx].strip() if idx < len(cols) else '')
                         for idx, field in mapping.items()})
        return rows

    @staticmethod
    def import_products_csv(file_content, user) -> ImportReport:
        """CSV 商品导入 (仅管理员)；已存在 SKU 跳过，不更新"""
        if getattr(user, 'role', None) != ROLE_ADMIN:
            raise PermissionDenied('Sadece admin CSV içe aktarabilir')
        rows = ImportService.parse_csv(file_content)
        old, new = InventoryService.commit({'type': 'data/import_products', 'rows': rows}, user, module='data')
        return ImportReport(
            total_rows=len(rows),
            created=len(new.products) - len(old.products),
            created_warehouses=len(new.warehouses) - len(old.warehouses),
        )

    @staticmethod
    def parse_json(text):
        """
        校验整库 JSON：必须是对象，四个集合都存在，且每条记录带齐必填字段
        任何一条不合格都整体拒绝
        """
        try:
            data = json.loads(ImportService.decode(text))
        except ValueError:
            raise ImportFormatError('Geçersiz JSON')
        if not isinstance(data, dict):
            raise ImportFormatError('Geçersiz JSON')
        if any(not isinstance(data.get(name), list) for name in COLLECTIONS):
            raise ImportFormatError('Geçersiz JSON')

        for name in COLLECTIONS:
            for index, record in enumerate(data[name], start=1):
                problem = ImportService._record_problem(name, record)
                if problem:
                    raise ImportFormatError(f'Geçersiz JSON: {name} #{index} {problem}')

        # 至少保留一个管理员，否则导入后无人能登录管理
        if not any(u.get('role') == ROLE_ADMIN for u in data['users']):
            raise ImportFormatError('Geçersiz JSON: en az bir admin kullanıcı gerekli')
        return data

    @staticmethod
    def _record_problem(collection, record):
        """返回记录的问题描述，合格时返回 None"""
        if not isinstance(record, dict):
            return 'nesne değil'
        for field in REQUIRED_FIELDS[collection]:
            value = record.get(field)
            if not isinstance(value, str) or not value.strip():
                return f'{field} eksik'
        if collection == 'users':
            if record['role'] not in ROLES:
                return 'geçersiz rol'
            if not record.get('passwordHash') and not record.get('password'):
                return 'şifre eksik'
        if collection == 'movements':
            if record['type'] not in MOVEMENT_TYPES:
                return 'geçersiz tür'
            qty = record.get('qty')
            if isinstance(qty, bool) or to_number(qty, default=None) is None:
                return 'qty eksik'
        return None

    @staticmethod
    def import_json(text, user):
        """整库替换，不做合并"""
        data = ImportService.parse_json(text)
        InventoryService.commit({'type': 'data/replace', 'data': data}, user, module='data')
        return data

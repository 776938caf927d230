"""
余额引擎
余额从不落库，每次都由移动流水折叠得到：
    balance(product, warehouse) = Σ IN.qty - Σ OUT.qty
"""
import math
from typing import Any, Dict, Iterable, List

from .state import TYPE_IN


def to_number(value, default=0):
    """宽松数字转换，非法值返回 default"""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else default
    try:
        number = float(str(value).strip())
    except ValueError:
        return default
    # NaN / inf / 1e309 之类都视为非法
    if not math.isfinite(number):
        return default
    return int(number) if number.is_integer() else number


def calc_balances_by_warehouse(products: Iterable[Dict[str, Any]],
                               movements: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    计算每个商品在每个仓库的余额
    :return: {product_id: {warehouse_id: qty}}
    未在商品列表中的 product_id 也会累计 (例如导入的孤立流水)
    """
    balances = {p['id']: {} for p in products}
    for m in movements:
        row = balances.setdefault(m.get('productId'), {})
        qty = to_number(m.get('qty'))
        delta = qty if m.get('type') == TYPE_IN else -qty
        row[m.get('warehouseId')] = row.get(m.get('warehouseId'), 0) + delta
    return balances


def product_total(row: Dict[str, Any]):
    return sum(row.values())


def is_low_stock(product: Dict[str, Any], total) -> bool:
    """minStock 非零且总量低于阈值时预警；负库存只预警，不阻止"""
    min_stock = to_number(product.get('minStock'))
    return bool(min_stock) and total < min_stock


def balance_rows(state) -> List[Dict[str, Any]]:
    """商品余额表：每个商品一行，按仓库列出余额、总量和低库存标记"""
    balances = calc_balances_by_warehouse(state.products, state.movements)
    rows = []
    for p in state.products:
        row = balances.get(p['id'], {})
        total = product_total(row)
        rows.append({
            'product': p,
            'cells': [row.get(w['id'], 0) for w in state.warehouses],
            'by_warehouse': dict(row),
            'total': total,
            'low': is_low_stock(p, total),
        })
    return rows

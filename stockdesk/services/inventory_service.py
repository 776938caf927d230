from flask import current_app

from stockdesk.exceptions import StockException
from stockdesk.extensions import cache
from stockdesk.store.balance import balance_rows
from stockdesk.store.persistence import local_store
from stockdesk.store.reducers import reduce
from stockdesk.store.state import AppState
from stockdesk.utils.audit import log_action
from .sync_service import sync_service


class InventoryService:
    @staticmethod
    def commit(action: dict, user, module: str = 'inventory'):
        """
        原子化状态变更：读取 -> reducer -> 保存 -> 推送远程
        :param action: {'type': ..., 其余为 reducer 参数}
        :return: (old_state, new_state)；校验失败时抛出 StockException，本地状态不变
        """
        # 1. 本地串行执行 reducer 并保存
        with local_store.lock:
            old = local_store.load()
            new = reduce(old, dict(action, actor=user))
            local_store.save(new)

        # 2. 审计日志 (不记录密码等参数)
        log_action(module, action['type'], {k: v for k, v in action.items()
                                            if k not in ('type', 'password', 'old_password',
                                                         'new_password', 'confirm', 'rows', 'data')},
                   user=user)

        # 3. 远程推送 (尽力而为，失败不回滚本地)
        sync_service.push(old, new, action['type'])
        return old, new

    @staticmethod
    def execute(action: dict, user, success_message: str, module: str = 'inventory'):
        """
        路由层使用的包装
        :return: (bool, message)
        """
        try:
            InventoryService.commit(action, user, module)
        except StockException as e:
            current_app.logger.info(f'操作被拒绝 [{action["type"]}]: {e.message}')
            return False, e.message
        return True, success_message

    @staticmethod
    def load() -> AppState:
        return local_store.load()

    @staticmethod
    def balances():
        """余额表 (按快照版本缓存)"""
        key = f'balances:{local_store.revision()}'
        rows = cache.get(key)
        if rows is None:
            rows = balance_rows(local_store.load())
            cache.set(key, rows)
        return rows

    # --- 便捷方法 ---

    @staticmethod
    def add_warehouse(name, user):
        return InventoryService.execute({'type': 'warehouse/add', 'name': name}, user, 'Depo eklendi')

    @staticmethod
    def delete_warehouse(warehouse_id, user):
        return InventoryService.execute({'type': 'warehouse/delete', 'warehouse_id': warehouse_id},
                                        user, 'Depo silindi')

    @staticmethod
    def save_product(data, user):
        default_unit = current_app.config.get('DEFAULT_UNIT', 'Adet')
        message = 'Ürün güncellendi' if data.get('id') else 'Ürün eklendi'
        return InventoryService.execute({'type': 'product/save', 'data': data, 'default_unit': default_unit},
                                        user, message)

    @staticmethod
    def delete_product(product_id, user):
        return InventoryService.execute({'type': 'product/delete', 'product_id': product_id},
                                        user, 'Ürün silindi')

    @staticmethod
    def add_movement(move_type, product_id, warehouse_id, qty, note, user):
        return InventoryService.execute({
            'type': 'movement/add', 'move_type': move_type, 'product_id': product_id,
            'warehouse_id': warehouse_id, 'qty': qty, 'note': note,
        }, user, 'Hareket kaydedildi')

    @staticmethod
    def edit_movement(movement_id, qty, note, user):
        return InventoryService.execute({'type': 'movement/edit', 'movement_id': movement_id,
                                         'qty': qty, 'note': note}, user, 'Hareket güncellendi')

    @staticmethod
    def delete_movement(movement_id, user):
        return InventoryService.execute({'type': 'movement/delete', 'movement_id': movement_id},
                                        user, 'Hareket silindi')

    @staticmethod
    def transfer(source_id, target_id, product_id, qty, user):
        return InventoryService.execute({
            'type': 'movement/transfer', 'source_id': source_id, 'target_id': target_id,
            'product_id': product_id, 'qty': qty,
        }, user, 'Transfer tamamlandı')

    @staticmethod
    def reset(user):
        return InventoryService.execute({'type': 'data/reset'}, user, 'Tüm veriler sıfırlandı', module='data')

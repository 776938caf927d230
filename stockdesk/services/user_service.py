"""用户管理服务"""
from stockdesk.models.account import Account
from stockdesk.store.persistence import local_store
from stockdesk.store.reducers import authenticate
from .inventory_service import InventoryService


class UserService:

    @staticmethod
    def login(username, password):
        """校验凭证，成功返回 Account，否则 None"""
        record = authenticate(local_store.load(), username, password)
        return Account.from_record(record) if record else None

    @staticmethod
    def list_users():
        return local_store.load().users

    @staticmethod
    def add_user(username, password, role, user):
        return InventoryService.execute({'type': 'user/add', 'username': username, 'password': password,
                                         'role': role}, user, 'Kullanıcı eklendi', module='users')

    @staticmethod
    def change_own_password(old_password, new_password, confirm, user):
        return InventoryService.execute({'type': 'user/change_password', 'old_password': old_password,
                                         'new_password': new_password, 'confirm': confirm},
                                        user, 'Şifreniz değiştirildi', module='users')

    @staticmethod
    def reset_password(username, password, user):
        return InventoryService.execute({'type': 'user/reset_password', 'username': username,
                                         'password': password}, user, 'Şifre sıfırlandı', module='users')

    @staticmethod
    def change_role(username, role, user):
        return InventoryService.execute({'type': 'user/change_role', 'username': username, 'role': role},
                                        user, 'Rol güncellendi', module='users')

    @staticmethod
    def remove_user(username, user):
        return InventoryService.execute({'type': 'user/remove', 'username': username},
                                        user, 'Kullanıcı silindi', module='users')

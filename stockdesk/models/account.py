from flask_login import UserMixin


class Account(UserMixin):
    """
    登录会话中的用户
    用户记录存放在状态快照里，这里只是 Flask-Login 需要的包装对象
    """

    def __init__(self, username, role):
        self.username = username
        self.role = role

    def get_id(self):
        return self.username

    @property
    def is_admin(self):
        return self.role == 'admin'

    @classmethod
    def from_record(cls, record):
        return cls(record['username'], record.get('role', 'user'))

    @classmethod
    def from_state(cls, state, username):
        for record in state.users:
            if record['username'] == username:
                return cls.from_record(record)
        return None

    def __repr__(self):
        return f'<Account {self.username} ({self.role})>'

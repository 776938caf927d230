from stockdesk.extensions import db
from .base import BaseModel


class StorageEntry(BaseModel):
    """
    本地键值存储
    一个键对应一段 JSON 文本 (状态快照 / 主题开关)
    """
    __tablename__ = 'sys_storage'

    key = db.Column(db.String(64), unique=True, index=True, nullable=False)
    value = db.Column(db.Text)

    def __repr__(self):
        return f'<StorageEntry {self.key}>'

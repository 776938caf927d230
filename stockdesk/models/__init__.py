from .base import BaseModel
from .storage import StorageEntry
from .account import Account

class StockException(Exception):
    """StockDesk 基础异常类"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['success'] = False
        return rv

class ValidationError(StockException):
    """必填字段缺失或数值非法"""
    def __init__(self, message="Invalid data", payload=None):
        super().__init__(message, code=400, payload=payload)

class DuplicateError(StockException):
    """唯一约束冲突 (SKU / 仓库名 / 用户名)"""
    def __init__(self, message="Duplicate entry", payload=None):
        super().__init__(message, code=409, payload=payload)

class PermissionDenied(StockException):
    """权限不足"""
    def __init__(self, message="Access denied", payload=None):
        super().__init__(message, code=403, payload=payload)

class NotFoundError(StockException):
    def __init__(self, message="Not found", payload=None):
        super().__init__(message, code=404, payload=payload)

class ImportFormatError(StockException):
    """导入文件整体格式错误，整份拒绝"""
    def __init__(self, message="Invalid import file", payload=None):
        super().__init__(message, code=400, payload=payload)

class RemoteSyncError(StockException):
    """远程后端读写失败"""
    def __init__(self, message="Remote backend error", payload=None):
        super().__init__(message, code=502, payload=payload)

"""
审计日志工具模块
所有状态变更都经过这里写入应用日志
"""
import json
import logging
from functools import wraps

from flask import has_request_context, request
from flask_login import current_user

logger = logging.getLogger('stockdesk.audit')


def log_action(module, action, details=None, user=None):
    """
    记录审计日志
    :param module: 模块名称 (如 'auth', 'inventory', 'data')
    :param action: 操作名称 (如 'login', 'movement/transfer')
    :param details: 详细信息 (dict)
    """
    username = getattr(user, 'username', None)
    ip_address = None
    if has_request_context():
        ip_address = request.remote_addr
        if username is None and current_user.is_authenticated:
            username = current_user.username
    logger.info('%s.%s user=%s ip=%s %s', module, action, username or '-', ip_address or '-',
                json.dumps(details, ensure_ascii=False, default=str) if details else '')


def audit_log(module, action):
    """
    审计日志装饰器
    使用方法:
    @audit_log('data', 'export_json')
    def export_json():
        pass
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            result = f(*args, **kwargs)
            log_action(module, action, kwargs or None)
            return result
        return decorated_function
    return decorator

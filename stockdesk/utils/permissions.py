"""
权限控制工具
提供装饰器和辅助函数用于检查用户权限
"""
from functools import wraps
from flask import abort, flash, redirect, url_for, request
from flask_login import current_user


def admin_required(f):
    """
    管理员权限装饰器
    只有 role == 'admin' 的账号才能访问
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            flash('Lütfen giriş yapın', 'warning')
            return redirect(url_for('auth.login', next=request.url))

        if not is_admin():
            flash('Yetkiniz yok', 'danger')
            abort(403)

        return f(*args, **kwargs)
    return decorated_function


def is_admin():
    """检查当前用户是否是管理员"""
    if not current_user.is_authenticated:
        return False
    return current_user.is_admin

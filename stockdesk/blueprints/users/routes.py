from flask import render_template, flash, redirect, url_for
from flask_login import login_required, current_user

from stockdesk.blueprints.users import users_bp
from stockdesk.blueprints.users.forms import ChangePasswordForm, UserForm, ResetPasswordForm, RoleForm
from stockdesk.services.user_service import UserService


def _flash_result(success, msg):
    flash(msg, 'success' if success else 'danger')
    return redirect(url_for('users.index'))


@users_bp.route('/')
@login_required
def index():
    """用户列表；管理员可见管理表单"""
    return render_template(
        'users/index.html',
        users=UserService.list_users(),
        password_form=ChangePasswordForm(),
        user_form=UserForm(),
        reset_form=ResetPasswordForm(),
        role_form=RoleForm()
    )


@users_bp.route('/password', methods=['POST'])
@login_required
def change_password():
    form = ChangePasswordForm()
    if not form.validate_on_submit():
        return _flash_result(False, 'Geçersiz istek')
    return _flash_result(*UserService.change_own_password(
        form.old_password.data, form.new_password.data, form.confirm.data, current_user))


@users_bp.route('/add', methods=['POST'])
@login_required
def add_user():
    form = UserForm()
    if not form.validate_on_submit():
        return _flash_result(False, 'Kullanıcı adı/şifre gerekli')
    return _flash_result(*UserService.add_user(
        (form.username.data or '').strip(), form.password.data, form.role.data, current_user))


@users_bp.route('/<username>/reset', methods=['POST'])
@login_required
def reset_password(username):
    form = ResetPasswordForm()
    if not form.validate_on_submit():
        return _flash_result(False, 'Yeni şifre gerekli')
    return _flash_result(*UserService.reset_password(username, form.password.data, current_user))


@users_bp.route('/<username>/role', methods=['POST'])
@login_required
def change_role(username):
    form = RoleForm()
    if not form.validate_on_submit():
        return _flash_result(False, 'Geçersiz rol')
    return _flash_result(*UserService.change_role(username, form.role.data, current_user))


@users_bp.route('/<username>/delete', methods=['POST'])
@login_required
def remove_user(username):
    return _flash_result(*UserService.remove_user(username, current_user))

from urllib.parse import urlsplit

from flask import render_template, redirect, request, url_for, flash
from flask_login import login_user, logout_user, login_required, current_user

from stockdesk.blueprints.auth import auth_bp
from stockdesk.blueprints.auth.forms import LoginForm
from stockdesk.services.user_service import UserService
from stockdesk.utils.audit import log_action


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    # 如果已登录，直接跳到首页
    if current_user.is_authenticated:
        return redirect(url_for('main.index'))

    form = LoginForm()
    if form.validate_on_submit():
        # 1. 校验凭证
        account = UserService.login(form.username.data.strip(), form.password.data)
        if account is None:
            log_action('auth', 'login_failed', {'username': form.username.data})
            flash('Kullanıcı adı veya şifre hatalı', 'danger')
            return redirect(url_for('auth.login'))

        # 2. 执行登录
        login_user(account)
        log_action('auth', 'login_success', {'username': account.username}, user=account)

        # 3. 处理 Next 跳转 (防止开放重定向攻击)
        next_page = request.args.get('next')
        if not next_page or urlsplit(next_page).netloc != '':
            next_page = url_for('main.index')
        return redirect(next_page)

    return render_template('auth/login.html', form=form)


@auth_bp.route('/logout')
@login_required
def logout():
    log_action('auth', 'logout', {'username': current_user.username})
    logout_user()
    flash('Çıkış yapıldı', 'success')
    return redirect(url_for('auth.login'))

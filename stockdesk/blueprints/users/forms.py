from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SelectField, SubmitField
from wtforms.validators import Length

ROLE_CHOICES = [('user', 'Kullanıcı'), ('admin', 'Yönetici')]


class ChangePasswordForm(FlaskForm):
    """修改自己的密码"""
    old_password = PasswordField('Eski şifre')
    new_password = PasswordField('Yeni şifre')
    confirm = PasswordField('Yeni şifre (tekrar)')
    submit = SubmitField('Şifreyi değiştir')


class UserForm(FlaskForm):
    """管理员新增用户"""
    username = StringField('Kullanıcı adı', validators=[Length(max=50)])
    password = PasswordField('Şifre')
    role = SelectField('Rol', choices=ROLE_CHOICES, validate_choice=False)
    submit = SubmitField('Kullanıcı ekle')


class ResetPasswordForm(FlaskForm):
    """管理员重置他人密码"""
    password = PasswordField('Yeni şifre')
    submit = SubmitField('Sıfırla')


class RoleForm(FlaskForm):
    role = SelectField('Rol', choices=ROLE_CHOICES, validate_choice=False)
    submit = SubmitField('Kaydet')

from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SubmitField
from wtforms.validators import DataRequired


class LoginForm(FlaskForm):
    """用户登录表单"""
    username = StringField('Kullanıcı adı', validators=[
        DataRequired(message="Kullanıcı adı gerekli")
    ])
    password = PasswordField('Şifre', validators=[
        DataRequired(message="Şifre gerekli")
    ])
    submit = SubmitField('Giriş')

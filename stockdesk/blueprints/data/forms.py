from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed, FileRequired
from wtforms import TextAreaField, BooleanField, SubmitField


class CsvImportForm(FlaskForm):
    """CSV 商品导入"""
    file = FileField('CSV dosyası', validators=[
        FileRequired(message='Dosya seçiniz'),
        FileAllowed(['csv'], message='Sadece CSV dosyası')
    ])
    submit = SubmitField('CSV içe aktar')


class JsonImportForm(FlaskForm):
    """JSON 整库导入：文件或文本二选一，必须勾选确认"""
    file = FileField('JSON dosyası', validators=[
        FileAllowed(['json'], message='Sadece JSON dosyası')
    ])
    payload = TextAreaField('JSON')
    confirm = BooleanField('Mevcut tüm veriler silinecek, onaylıyorum')
    submit = SubmitField('JSON içe aktar')

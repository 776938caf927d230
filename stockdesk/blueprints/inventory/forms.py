from flask_wtf import FlaskForm
from wtforms import HiddenField, SelectField, StringField, SubmitField
from wtforms.validators import Length, Optional

# 下拉框的选项在路由中动态填充；必填/存在性校验由 reducer 完成，
# 这样页面上提示的是统一的业务错误信息


class WarehouseForm(FlaskForm):
    """新增仓库"""
    name = StringField('Depo adı', validators=[Length(max=100)])
    submit = SubmitField('Depo ekle')


class ProductForm(FlaskForm):
    """商品新增 / 编辑 (id 为空表示新增)"""
    record_id = HiddenField()
    sku = StringField('SKU', validators=[Length(max=64)])
    name = StringField('Ürün adı', validators=[Length(max=200)])
    unit = StringField('Birim', validators=[Length(max=20)])
    min_stock = StringField('Min stok', validators=[Optional()])
    warehouse_id = SelectField('Depo', choices=[], validate_choice=False)
    submit = SubmitField('Kaydet')


class MovementForm(FlaskForm):
    """新增库存流水"""
    move_type = SelectField('Tür', choices=[('IN', 'Giriş (IN)'), ('OUT', 'Çıkış (OUT)')],
                            validate_choice=False)
    product_id = SelectField('Ürün', choices=[], validate_choice=False)
    warehouse_id = SelectField('Depo', choices=[], validate_choice=False)
    qty = StringField('Miktar')
    note = StringField('Not', validators=[Length(max=200)])
    submit = SubmitField('Hareket ekle')


class MovementEditForm(FlaskForm):
    """流水修改 (仅数量和备注)"""
    qty = StringField('Miktar')
    note = StringField('Not', validators=[Length(max=200)])
    submit = SubmitField('Güncelle')


class TransferForm(FlaskForm):
    """仓库间调拨"""
    source_id = SelectField('Kaynak depo', choices=[], validate_choice=False)
    target_id = SelectField('Hedef depo', choices=[], validate_choice=False)
    product_id = SelectField('Ürün', choices=[], validate_choice=False)
    qty = StringField('Miktar')
    submit = SubmitField('Transfer et')


class MovementFilterForm(FlaskForm):
    """流水日期筛选 (GET 参数，不需要 CSRF)"""
    class Meta:
        csrf = False

    date_from = StringField('Başlangıç', validators=[Optional()])
    date_to = StringField('Bitiş', validators=[Optional()])


def fill_choices(form, state):
    """根据当前状态填充下拉选项"""
    warehouses = [('', '-- Depo --')] + [(w['id'], w['name']) for w in state.warehouses]
    products = [('', '-- Ürün --')] + [(p['id'], f"{p['sku']} - {p['name']}") for p in state.products]
    for name in ('warehouse_id', 'source_id', 'target_id'):
        if hasattr(form, name):
            getattr(form, name).choices = warehouses
    if hasattr(form, 'product_id'):
        form.product_id.choices = products
    return form

from faker import Faker
from faker.providers import BaseProvider


class StockProvider(BaseProvider):
    """
    StockDesk 演示数据生成器
    生成仓库名、商品名、SKU 与流水备注
    """

    # 仓库所在城市
    warehouse_cities = [
        'İstanbul', 'Ankara', 'İzmir', 'Bursa', 'Antalya', 'Konya',
        'Kocaeli', 'Adana', 'Kayseri', 'Eskişehir', 'Gaziantep', 'Samsun'
    ]

    # 仓库类型
    warehouse_kinds = ['Merkez Depo', 'Ana Depo', 'Şube Deposu', 'Soğuk Depo', 'Transit Depo']

    # 商品名称
    product_kinds = [
        'Vida', 'Somun', 'Pul', 'Kablo', 'Sigorta', 'Priz', 'Anahtar', 'Ampul',
        'Boya', 'Fırça', 'Silikon', 'Bant', 'Eldiven', 'Maske', 'Matkap Ucu', 'Dübel'
    ]

    product_variants = ['M4', 'M6', 'M8', '2.5mm', '4mm', 'Beyaz', 'Siyah', 'XL', 'Pro', 'Eco']

    units = ['Adet', 'Adet', 'Adet', 'Kutu', 'Paket', 'Metre', 'Kg', 'Litre']

    notes = ['Tedarikçi girişi', 'Satış çıkışı', 'Sayım farkı', 'İade', 'Üretime sevk', '']

    def warehouse_name(self):
        """生成仓库名，例如 'İzmir Soğuk Depo'"""
        return f"{self.random_element(self.warehouse_cities)} {self.random_element(self.warehouse_kinds)}"

    def product_name(self):
        return f"{self.random_element(self.product_kinds)} {self.random_element(self.product_variants)}"

    def sku(self):
        return self.bothify('??-####').upper()

    def stock_unit(self):
        return self.random_element(self.units)

    def movement_note(self):
        return self.random_element(self.notes)


# 初始化 Faker 并添加自定义 Provider
fake = Faker('tr_TR')
fake.add_provider(StockProvider)

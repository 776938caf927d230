import os
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    """基础配置类"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'

    # 数据库配置 (本地键值存储所在的数据库)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 本地存储键：状态快照 + 主题开关
    STORE_KEY = os.environ.get('STORE_KEY', 'stokapp_v2')
    THEME_KEY = os.environ.get('THEME_KEY', 'darkmode')
    PENDING_KEY = os.environ.get('PENDING_KEY', 'stokapp_pending')

    # 新建商品的默认单位
    DEFAULT_UNIT = os.environ.get('DEFAULT_UNIT', 'Adet')

    # 远程同步 (PostgREST 风格的 REST 后端；未配置 URL 时完全关闭)
    REMOTE_URL = os.environ.get('REMOTE_URL')
    REMOTE_API_KEY = os.environ.get('REMOTE_API_KEY', '')
    REMOTE_TIMEOUT = float(os.environ.get('REMOTE_TIMEOUT', '10'))
    SYNC_ON_STARTUP = os.environ.get('SYNC_ON_STARTUP', 'true').lower() in ('1', 'true', 'yes')
    SYNC_POLL_INTERVAL = float(os.environ.get('SYNC_POLL_INTERVAL', '5'))

    # 缓存配置 (余额表按状态版本缓存)
    CACHE_TYPE = "SimpleCache"
    CACHE_DEFAULT_TIMEOUT = 300

    @staticmethod
    def init_app(app):
        # 确保 SQLite 实例目录存在
        instance_dir = os.path.join(basedir, 'instance')
        if not os.path.exists(instance_dir):
            os.makedirs(instance_dir)

class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'stockdesk.db')

class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False

    DATABASE_URL = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'stockdesk_prod.db')
    # PostgreSQL URL 修正（部分平台使用 postgres://）
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = DATABASE_URL

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    REMOTE_URL = None
    SYNC_ON_STARTUP = False
    CACHE_TYPE = "NullCache"

    @staticmethod
    def init_app(app):
        pass

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}

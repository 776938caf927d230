import logging
import colorlog
from flask import Flask, jsonify, render_template, request
from config import config
from stockdesk.extensions import db, migrate, login_manager, cache, csrf
from stockdesk.exceptions import StockException

# 导入 commands 模块，用于注册 CLI 命令
from stockdesk import commands


def create_app(config_name='default', remote_backend=None):
    """StockDesk 应用工厂函数"""
    app = Flask(__name__)

    # 1. 加载配置
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # 2. 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    cache.init_app(app)
    csrf.init_app(app)

    # 3. 配置日志
    configure_logging(app)

    # 4. 注册蓝图 (Blueprints)
    register_blueprints(app)

    # 5. 注册全局错误处理
    register_error_handlers(app)

    # 6. 注册 CLI 命令
    register_commands(app)

    # 7. 模板上下文 (主题开关)
    register_context(app)

    # 8. 建表 + 远程同步
    init_storage(app, remote_backend)

    return app


def init_storage(app, remote_backend=None):
    """创建本地存储表，配置了远程后端时启动拉取与变更订阅"""
    from stockdesk.models import StorageEntry  # noqa: F401 注册模型
    from stockdesk.services.sync_service import sync_service
    from stockdesk.exceptions import RemoteSyncError

    with app.app_context():
        db.create_all()
        sync_service.init_app(app, remote_backend)
        if not sync_service.enabled or not app.config.get('SYNC_ON_STARTUP'):
            return
        try:
            sync_service.pull()
        except RemoteSyncError as e:
            app.logger.error(f'❌ 启动时远程拉取失败: {e.message}')
        sync_service.start_listening(app)


def register_blueprints(app):
    """注册所有业务模块蓝图"""
    # 主页蓝图
    from stockdesk.blueprints.main import main_bp
    app.register_blueprint(main_bp)

    # 认证蓝图
    from stockdesk.blueprints.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    # 仓库 / 商品 / 流水 / 调拨
    from stockdesk.blueprints.inventory import inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/inventory')

    # 用户管理蓝图
    from stockdesk.blueprints.users import users_bp
    app.register_blueprint(users_bp, url_prefix='/users')

    # 导入导出与同步蓝图
    from stockdesk.blueprints.data import data_bp
    app.register_blueprint(data_bp, url_prefix='/data')


def register_error_handlers(app):
    @app.errorhandler(StockException)
    def stock_exception(e):
        if request.path.startswith('/api/'):
            return jsonify(e.to_dict()), e.code
        return render_template('errors/error.html', message=e.message, code=e.code), e.code

    @app.errorhandler(403)
    def forbidden(e):
        return render_template('errors/403.html'), 403

    @app.errorhandler(404)
    def page_not_found(e):
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def internal_server_error(e):
        return render_template('errors/500.html'), 500


def register_commands(app):
    """注册 Flask CLI 命令"""
    app.cli.add_command(commands.forge)
    app.cli.add_command(commands.status)
    app.cli.add_command(commands.sync_pull)
    app.cli.add_command(commands.sync_retry)


def register_context(app):
    from stockdesk.store.persistence import local_store

    @app.context_processor
    def inject_theme():
        return {'dark_mode': local_store.is_dark()}


def configure_logging(app):
    """配置彩色控制台日志，提升开发体验"""
    if app.debug:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)

        formatter = colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            },
            secondary_log_colors={},
            style='%'
        )
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)

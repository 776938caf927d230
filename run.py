import os
from stockdesk import create_app, db
from stockdesk.models import StorageEntry
from stockdesk.services.sync_service import sync_service
from stockdesk.store.persistence import local_store

# 从环境变量获取配置模式
# 支持 FLASK_ENV 或 FLASK_CONFIG
config_name = os.getenv('FLASK_ENV') or os.getenv('FLASK_CONFIG') or 'default'
if config_name in ('development', 'dev'):
    config_name = 'development'
elif config_name in ('production', 'prod'):
    config_name = 'production'

app = create_app(config_name)


@app.shell_context_processor
def make_shell_context():
    """
    配置 Flask Shell 上下文。
    允许在命令行中使用 'flask shell' 时自动导入存储与同步对象。
    """
    return dict(
        db=db,
        app=app,
        StorageEntry=StorageEntry,
        local_store=local_store,
        sync_service=sync_service,
    )


if __name__ == '__main__':
    print("-------------------------------------------------------")
    print("   StockDesk başlatılıyor - http://localhost:5000       ")
    print("-------------------------------------------------------")
    app.run(host='0.0.0.0', port=5000)

import click
import random
from datetime import datetime, timedelta, timezone
from flask.cli import with_appcontext

from stockdesk.exceptions import StockException, RemoteSyncError
from stockdesk.models.account import Account
from stockdesk.services.sync_service import sync_service
from stockdesk.store import reduce, balance_rows, AppState, ROLE_ADMIN, TYPE_IN, TYPE_OUT
from stockdesk.store.persistence import local_store
from stockdesk.utils.fake_gen import fake


@click.command('status')
@with_appcontext
def status():
    """
    [验证指令] 查看当前本地存储中的数据统计。
    """
    click.echo(click.style('📊 StockDesk 数据状态:', fg='cyan', bold=True))

    try:
        state = local_store.load()
    except Exception as e:
        click.echo(click.style(f'✘ 本地存储读取失败: {str(e)}', fg='red'))
        click.echo("请检查 DATABASE_URL 配置")
        return

    low = sum(1 for row in balance_rows(state) if row['low'])
    click.echo(f" - 用户 (Users): \t{len(state.users)}")
    click.echo(f" - 仓库 (Warehouses): \t{len(state.warehouses)}")
    click.echo(f" - 商品 (Products): \t{len(state.products)}")
    click.echo(f" - 流水 (Movements): \t{len(state.movements)}")
    click.echo(f" - 低库存 (Low stock): \t{low}")

    if sync_service.enabled:
        click.echo(f" - 远程: {sync_service.backend.base_url} (待重试 {len(sync_service.pending)})")
    else:
        click.echo(" - 远程: 未配置")

    if state.products:
        click.echo(click.style('✔ 数据已存在。', fg='green'))
    else:
        click.echo(click.style('⚠ 暂无商品，请运行 flask forge 生成演示数据。', fg='yellow'))


@click.command('forge')
@click.option('--scale', default=1, help='数据规模倍数 (默认1倍)')
@click.option('--seed', default=None, type=int, help='随机种子，便于复现')
@with_appcontext
def forge(scale, seed):
    """
    [造物主指令] 生成演示数据：仓库、商品、出入库流水和调拨。
    警告：这将清除现有数据 (账号恢复为默认的 admin/user)！
    """
    if seed is not None:
        random.seed(seed)
        fake.seed_instance(seed)

    click.echo(click.style(f'⚡ 生成演示数据 (规模: {scale}x)...', fg='cyan', bold=True))
    admin = Account('admin', ROLE_ADMIN)

    with local_store.lock:
        old = local_store.load()
        # 1. 从默认状态开始
        state = AppState.default()

        # 2. 仓库
        state = init_warehouses(state, admin, 3 + scale)

        # 3. 商品
        state = init_products(state, admin, 20 * scale)

        # 4. 流水与调拨
        state = init_movements(state, admin, 100 * scale)

        local_store.save(state)

    # 5. 推送到远程 (如果已配置)
    sync_service.push(old, state, 'forge')

    click.echo(click.style('✔ 演示数据构建完成！', fg='green', bold=True))
    click.echo("管理员账号: admin / 密码: admin")
    click.echo(f"数据统计: {len(state.warehouses)} 仓库, {len(state.products)} 商品, {len(state.movements)} 流水")


def init_warehouses(state, admin, count):
    click.echo(f'  → 创建 {count} 个仓库...')
    while len(state.warehouses) < count:
        try:
            state = reduce(state, {'type': 'warehouse/add', 'actor': admin, 'name': fake.warehouse_name()})
        except StockException:
            # 随机名称重复，重新生成
            continue
    return state


def init_products(state, admin, count):
    click.echo(f'  → 创建 {count} 个商品...')
    while len(state.products) < count:
        data = {
            'sku': fake.sku(),
            'name': fake.product_name(),
            'unit': fake.stock_unit(),
            'minStock': random.choice([0, 5, 10, 20, 50]),
            'warehouseId': random.choice(state.warehouses)['id'],
        }
        try:
            state = reduce(state, {'type': 'product/save', 'actor': admin, 'data': data})
        except StockException:
            continue
    return state


def init_movements(state, admin, count):
    """流水按时间先后生成，新流水插在最前面，最终列表为倒序"""
    click.echo(f'  → 创建 {count} 条流水...')
    start = datetime.now(timezone.utc) - timedelta(days=60)
    step = timedelta(days=60) / max(count, 1)
    for i in range(count):
        at = (start + step * i).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        product = random.choice(state.products)
        if i % 10 == 9 and len(state.warehouses) > 1:
            source, target = random.sample(state.warehouses, 2)
            state = reduce(state, {'type': 'movement/transfer', 'actor': admin, 'source_id': source['id'],
                                   'target_id': target['id'], 'product_id': product['id'],
                                   'qty': random.randint(1, 20)})
            state = backdate(state, 2, at)
            continue
        # 入库多于出库，避免大面积负库存
        move_type = TYPE_IN if random.random() < 0.6 else TYPE_OUT
        state = reduce(state, {
            'type': 'movement/add', 'actor': admin, 'move_type': move_type,
            'product_id': product['id'], 'warehouse_id': random.choice(state.warehouses)['id'],
            'qty': random.randint(1, 50), 'note': fake.movement_note(),
        })
        state = backdate(state, 1, at)
    return state


def backdate(state, count, at):
    """演示数据专用：reducer 总是取当前时间，这里把最新的 count 条流水改到过去的时间点"""
    stamped = [dict(m, at=at) for m in state.movements[:count]]
    return state.replace(movements=stamped + state.movements[count:])


@click.command('sync-pull')
@with_appcontext
def sync_pull():
    """从远程拉取并合并到本地存储"""
    if not sync_service.enabled:
        click.echo(click.style('⚠ 未配置 REMOTE_URL，跳过。', fg='yellow'))
        return
    try:
        stats = sync_service.pull()
    except RemoteSyncError as e:
        click.echo(click.style(f'✘ 远程拉取失败: {e.message}', fg='red'))
        raise SystemExit(1)
    for table, s in stats.items():
        click.echo(f" - {table}: +{s['added']} ~{s['updated']} -{s['removed']}")
    click.echo(click.style('✔ 拉取完成', fg='green'))


@click.command('sync-retry')
@with_appcontext
def sync_retry():
    """重放待重试的远程写入批次"""
    succeeded, remaining = sync_service.retry_pending()
    color = 'yellow' if remaining else 'green'
    click.echo(click.style(f'重试成功 {succeeded} 批，剩余 {remaining} 批', fg=color))

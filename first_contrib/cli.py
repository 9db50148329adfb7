#!filepath: first_contrib/cli.py
from datetime import timedelta
from typing import Optional

import typer
from rich import print
from rich.table import Table
from rich.console import Console

from first_contrib.config.app_config import AppConfig
from first_contrib.dataset.training_frame import read_training_frame
from first_contrib.utils.datetime_utils import DateTimeUtils
from first_contrib.utils.errors import CacheNotFoundError, DatasetLockedError, SyncError, UserInputError
from first_contrib.utils.logger import logs
from first_contrib.utils.retry import Retry
from first_contrib.workflows.contributions_dataset import build_contributions_dataset, build_storage

app = typer.Typer(help="First-contribution dataset CLI")


def _load() -> AppConfig:
    cfg = AppConfig.load()
    logs.reconfigure(
        log_dir=str(cfg.log.dir),
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
        level=cfg.log.level,
    )
    return cfg


def _fail(e: Exception) -> None:
    print(f"[red]{e}[/red]")
    raise typer.Exit(code=1)


@app.command()
def version():
    print("v0.1.0")


@app.command()
def build(
        since: Optional[str] = typer.Option(None, help="YYYY-MM-DD，默认 today - 5y"),
        until: Optional[str] = typer.Option(None, help="YYYY-MM-DD（不含），默认 today"),
        rebuild: Optional[bool] = typer.Option(
            None, "--rebuild/--read-only",
            help="--rebuild 全量重建；--read-only 只读；缺省按 cache 新鲜度增量更新",
        ),
):
    """
    构建 / 增量更新 contributions dataset
    """
    cfg = _load()
    dataset = build_contributions_dataset(cfg)

    try:
        result = dataset.get_dataset(since=since, until=until, rebuild_dataset=rebuild)
    except (UserInputError, CacheNotFoundError, DatasetLockedError) as e:
        _fail(e)

    print(f"[green]{cfg.dataset.dataset_name}[/green] rows={result.count_rows()}")


@app.command()
def read(
        predict_since: Optional[str] = typer.Option(None, help="默认 today - predict_days"),
        since: Optional[str] = typer.Option(None),
        until: Optional[str] = typer.Option(None),
        downsample: Optional[float] = typer.Option(None, help="早于 predict_since 的非 event 行抽样比例"),
        seed: Optional[int] = typer.Option(None),
):
    """
    读取训练 frame（只读 cache，不触发重建）
    """
    cfg = _load()
    dataset = build_contributions_dataset(cfg)

    try:
        since_d, until_d = DateTimeUtils.resolve_window(since, until, lookback_days=cfg.dataset.lookback_days)
        if predict_since is None:
            predict_since_d = until_d - timedelta(days=cfg.read.predict_days)
        else:
            predict_since_d = DateTimeUtils.to_date(predict_since)

        sliced = dataset.get_dataset(since=since_d, until=until_d, rebuild_dataset=False)
    except (UserInputError, CacheNotFoundError) as e:
        _fail(e)

    tf = read_training_frame(
        sliced,
        predict_since=predict_since_d,
        downsample_read=downsample if downsample is not None else cfg.read.downsample_read,
        seed=seed if seed is not None else cfg.read.seed,
        feature_pattern=cfg.read.feature_pattern,
    )

    counts = tf.frame["event"].value_counts()
    print(
        f"rows={len(tf.frame)} valid={len(tf.valid_index)} "
        f"events={int(counts.get('TRUE', 0))} features={len(tf.feature_columns)}"
    )


@app.command()
def sync(
        overwrite: bool = typer.Option(True, "--overwrite/--no-overwrite"),
        attempts: int = typer.Option(3, help="最大重试次数"),
):
    """
    把 primary cache 重新推送到所有 mirror（失败自动重试）
    """
    cfg = _load()
    accessor = build_storage(cfg.storage)

    result = Retry.run(
        accessor.sync,
        cfg.dataset.dataset_name,
        overwrite=overwrite,
        exceptions=(SyncError,),
        max_attempts=attempts,
    )
    print(f"[green]synced[/green] {result}")


@app.command()
def invalidate(
        yes: bool = typer.Option(False, "--yes", help="跳过确认"),
):
    """
    删除本地 cache（下次 build 全量重建；mirror 不受影响）
    """
    cfg = _load()
    dataset = build_contributions_dataset(cfg)

    if not yes:
        typer.confirm(f"delete cached {dataset.name}?", abort=True)

    try:
        dataset.invalidate()
    except DatasetLockedError as e:
        _fail(e)

    print(f"[yellow]{dataset.name} invalidated[/yellow]")


@app.command()
def status():
    """
    显示 cache 状态（exists / max_date / partitions）
    """
    cfg = _load()
    accessor = build_storage(cfg.storage)
    name = cfg.dataset.dataset_name

    payload = accessor.manifest(name).load() if accessor.exists(name) else None
    if payload is None:
        print(f"[yellow]{name}: no cache[/yellow]")
        return

    table = Table(title=f"{name} (max_date={payload.max_date}, mode={payload.mode})")
    table.add_column("partition")
    table.add_column("rows", justify="right")
    table.add_column("min_date")
    table.add_column("max_date")
    for key, p in sorted(payload.partitions.items()):
        table.add_row(str(key), str(p.rows), str(p.min_date), str(p.max_date))

    Console().print(table)
    for backend in accessor.backends:
        print(f"  mirror {backend.name}: {'ok' if backend.exists(name) else 'missing'}")


if __name__ == "__main__":
    app()

# python -m first_contrib.cli build --since 2024-01-01

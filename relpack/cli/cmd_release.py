"""CLI: 来源追溯与发布命令"""

from __future__ import annotations

from dataclasses import replace

import click

from relpack.cli import _friendly_errors
from relpack.core.config import Config, init_config
from relpack.core.provenance import extract_subdir_history


def register(group: click.Group) -> None:
    group.add_command(provenance)
    group.add_command(release)


@click.command()
@click.option("--source-root", required=True, type=click.Path(file_okay=False),
              help="各源码子目录的公共根目录")
@click.option("--subdir", "subdirs", multiple=True, required=True,
              help="源码子目录（可多次指定）")
@click.option("--prebuilts-dir", default=None, type=click.Path(file_okay=False),
              help="已有 prebuilts 目录，用于读取上次发布的 commit")
def provenance(source_root: str, subdirs: tuple[str, ...], prebuilts_dir: str | None) -> None:
    """输出源码子目录的当前 commit 与上次发布 commit"""
    with _friendly_errors():
        for subdir in subdirs:
            prov = extract_subdir_history(subdir, source_root, prebuilts_dir)
            prev = f"  (上次: {prov.previous_commit})" if prov.previous_commit else ""
            click.echo(f"{prov.subdir:20s} {prov.description}{prev}")


@click.command()
@click.option("--config", "-c", "config_path", default="configs/release.yml",
              help="配置文件路径")
@click.option("--package-dir", default=None, help="包输出目录")
@click.option("--package-prefix", default=None, help="包名前缀")
@click.option("--revision", default=None, help="版本名（默认当天日期）")
@click.option("--sources", is_flag=True, default=False, help="同时生成源码包")
@click.option("--copy-prebuilts", default=None,
              help="AOSP 工作区路径，二进制复制到 <path>/prebuilts/android-emulator")
@click.option("--host", "hosts", multiple=True, help="目标主机系统（可多次指定）")
@click.option("--product-dir", default=None, help="产品源码目录")
def release(
    config_path: str,
    package_dir: str | None,
    package_prefix: str | None,
    revision: str | None,
    sources: bool,
    copy_prebuilts: str | None,
    hosts: tuple[str, ...],
    product_dir: str | None,
) -> None:
    """从源码重新构建并打包发布"""
    from relpack.core.release import ReleaseBuilder

    with _friendly_errors():
        cfg = _apply_overrides(
            init_config(config_path),
            pkg_dir=package_dir,
            pkg_prefix=package_prefix,
            revision=revision,
            sources=sources or None,
            copy_prebuilts=copy_prebuilts,
            hosts=list(hosts) or None,
            product_dir=product_dir,
        )
        packages = ReleaseBuilder(cfg).run()
    for pkg in packages:
        click.echo(str(pkg))


def _apply_overrides(cfg: Config, **overrides: object) -> Config:
    """命令行参数覆盖配置文件（None 表示未指定）"""
    return replace(cfg, **{k: v for k, v in overrides.items() if v is not None})

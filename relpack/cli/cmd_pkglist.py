"""CLI: 源码包清单命令"""

from __future__ import annotations

import click

from relpack.cli import _friendly_errors
from relpack.core.pkglist import PackageUnpacker, parse_package_list

_FIELDS = (
    "version", "full_name", "file", "src_dir", "url",
    "git_url", "git_branch", "sha1", "patches",
)


def register(group: click.Group) -> None:
    group.add_command(list_packages)
    group.add_command(info)
    group.add_command(unpack)
    group.add_command(verify)


@click.command(name="packages")
@click.argument("package_list", type=click.Path(dir_okay=False))
def list_packages(package_list: str) -> None:
    """按清单顺序列出全部源码包"""
    with _friendly_errors():
        store = parse_package_list(package_list)
    packages = store.list_packages()
    if not packages:
        click.echo("清单中没有源码包。")
        return
    for p in packages:
        src = f" srcdir={p['src_dir']}" if "src_dir" in p else ""
        click.echo(
            f"  {p['name']:20s} {p['version']:12s} [{p['source']:3s}] "
            f"{p['file']}{src}"
        )


@click.command()
@click.argument("package_list", type=click.Path(dir_okay=False))
@click.argument("name")
@click.option("--field", "field_name", type=click.Choice(_FIELDS), default=None,
              help="只输出指定字段")
def info(package_list: str, name: str, field_name: str | None) -> None:
    """查询单个源码包的字段"""
    with _friendly_errors():
        store = parse_package_list(package_list)
        record = store.require(name)
    data = record.to_dict()
    if field_name:
        click.echo(str(data[field_name]))
        return
    for key in _FIELDS:
        value = data[key]
        if value:
            click.echo(f"{key:12s} {value}")


@click.command()
@click.argument("package_list", type=click.Path(dir_okay=False))
@click.argument("name", required=False)
@click.option("--archive-dir", required=True, type=click.Path(file_okay=False),
              help="源码归档所在目录")
@click.option("--dest", required=True, type=click.Path(file_okay=False),
              help="解压目标目录")
@click.option("--verify", is_flag=True, help="解压前校验 SHA1")
def unpack(
    package_list: str, name: str | None, archive_dir: str, dest: str, verify: bool,
) -> None:
    """解压源码包并应用补丁（不指定包名则解压全部）"""
    with _friendly_errors():
        store = parse_package_list(package_list)
        unpacker = PackageUnpacker(store)
        if name:
            result = unpacker.unpack_and_patch(name, archive_dir, dest, verify=verify)
            click.echo(f"就绪: {name} -> {result.src_path}")
            for patch in result.applied_patches:
                click.echo(f"  已应用: {patch}")
            return
    results = unpacker.unpack_all(archive_dir, dest, verify=verify)
    failed = [n for n, r in results.items() if isinstance(r, str)]
    for n, r in results.items():
        click.echo(f"  {n:20s} {r if isinstance(r, str) else r.src_path}")
    if failed:
        raise click.ClickException(f"{len(failed)} 个包解压失败: {', '.join(failed)}")


@click.command()
@click.argument("package_list", type=click.Path(dir_okay=False))
@click.argument("name")
@click.option("--archive-dir", required=True, type=click.Path(file_okay=False),
              help="源码归档所在目录")
def verify(package_list: str, name: str, archive_dir: str) -> None:
    """校验源码归档的 SHA1"""
    with _friendly_errors():
        store = parse_package_list(package_list)
        checked = PackageUnpacker(store).verify_checksum(name, archive_dir)
    click.echo("校验通过" if checked else f"清单未记录 {name} 的 SHA1，跳过校验")

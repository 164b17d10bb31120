"""relpack 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from collections.abc import Iterator
from contextlib import contextmanager

import click

from relpack import __version__
from relpack.core.exceptions import RelpackError
from relpack.utils.logger import setup_logging


@contextmanager
def _friendly_errors() -> Iterator[None]:
    """将业务异常转换为 click 友好提示（非零退出码）"""
    try:
        yield
    except RelpackError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """relpack - 发布打包工具链"""
    setup_logging(
        level=os.getenv("RELPACK_LOG_LEVEL", "INFO"),
        json_output=os.getenv("RELPACK_LOG_JSON", "") == "1",
    )


# 注册各领域子命令
from relpack.cli.cmd_pkglist import register as _reg_pkglist  # noqa: E402
from relpack.cli.cmd_release import register as _reg_release  # noqa: E402

_reg_pkglist(main)
_reg_release(main)

"""补丁应用: 调用 patch(1) 应用 unified diff"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from relpack.utils.shell import run_cmd

if TYPE_CHECKING:
    from relpack.utils.shell import CommandExecutor, CommandResult

logger = logging.getLogger(__name__)


def apply_patch(
    patch_file: str | Path, work_dir: str | Path,
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """在 work_dir 中以 -p1 应用补丁，失败抛 ExecutionError"""
    patch_path = Path(patch_file).resolve()
    return run_cmd(
        ["patch", "-p1", "--batch", "-i", str(patch_path)],
        cwd=str(work_dir),
        label=f"patch {patch_path.name}",
        executor=executor,
    )

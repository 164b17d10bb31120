"""集中配置管理

提供发布流程的统一配置入口，支持从 YAML 文件加载 + 命令行覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from datetime import date

import yaml

from relpack.core.exceptions import ConfigError
from relpack.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """发布打包配置"""

    # 输出
    pkg_dir: str = "/tmp"
    pkg_prefix: str = "android-emulator"
    revision: str = ""                  # 为空时取当天日期 YYYYMMDD

    # 源码
    product_dir: str = "."              # 构建脚本所在的产品目录 (external/qemu)
    source_root: str = "../.."          # 各源码子目录的公共根目录（相对 product_dir）
    source_subdirs: list[str] = field(
        default_factory=lambda: ["external/qemu", "external/gtest"],
    )
    unchecked_excludes: list[str] = field(
        default_factory=lambda: [
            "objs/", "images/emulator_icon32.o", "images/emulator_icon64.o",
        ],
    )

    # 构建
    rebuild_script: str = "./android-rebuild.sh"
    hosts: list[str] = field(default_factory=lambda: ["linux-x86_64", "windows-x86"])
    aosp_prebuilts_dir: str = ""
    verbosity: int = 1
    debug: bool = False

    # 打包
    sources: bool = False
    copy_prebuilts: str = ""            # AOSP 工作区根目录
    archive_owner: str = "android"
    archive_mtime: str = "2015-01-01 00:00:00"
    emugl_libraries: list[str] = field(
        default_factory=lambda: [
            "OpenglRender", "EGL_translator",
            "GLES_CM_translator", "GLES_V2_translator",
        ],
    )

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/release.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(str(e)) from e
        if not data:
            return cls()
        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path} ({e})") from e
        cfg.extra = extra
        if extra:
            logger.debug("未识别的配置项: %s", sorted(extra))
        return cfg

    def effective_revision(self) -> str:
        return self.revision or date.today().strftime("%Y%m%d")

    def package_basename(self) -> str:
        """<prefix>-<revision>，所有发布包和暂存目录共用此名字"""
        return f"{self.pkg_prefix}-{self.effective_revision()}"

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/release.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current

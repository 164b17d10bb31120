"""源码包清单模块

- models.py: 数据模型
- parser.py: 清单文本解析
- store.py: 只读索引与字段查询
- unpacker.py: 解压与打补丁
"""

from relpack.core.pkglist.models import PackageRecord, UnpackResult
from relpack.core.pkglist.parser import (
    parse_package_list,
    parse_package_list_text,
    split_basename_version,
    strip_archive_extension,
)
from relpack.core.pkglist.store import PackageListStore
from relpack.core.pkglist.unpacker import PackageUnpacker

__all__ = [
    "PackageRecord",
    "UnpackResult",
    "PackageListStore",
    "PackageUnpacker",
    "parse_package_list",
    "parse_package_list_text",
    "split_basename_version",
    "strip_archive_extension",
]

"""relpack 日志配置

支持普通文本和结构化 JSON 两种输出格式。
JSON 格式供 CI 流水线消费；通过 ``extra={"package": ...}`` 传入的包名
会作为独立字段输出，便于按包过滤。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

# 这些 LogRecord 扩展属性会原样带入 JSON 输出
_EXTRA_FIELDS = ("package", "line_no", "system")


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "WARNING",
            "logger": "relpack.core.pkglist.parser",
            "message": "...",
            "line": 42,
            "package": "zlib"        (仅在 extra 中提供时)
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            # 使用 record.created，记录事件发生时间而非格式化时间
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR）
        json_output: 为 True 时使用 JSON 格式（适用于 CI）

    说明:
        - 输出到 stderr
        - 自动清理已有 handlers，避免重复输出
    """
    root = logging.getLogger()

    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        fmt = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
        handler.setFormatter(logging.Formatter(fmt))

    root.addHandler(handler)

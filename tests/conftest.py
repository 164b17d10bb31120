"""测试共享 fixture"""

from __future__ import annotations

import logging

import pytest
from helpers import FakeExecutor


@pytest.fixture()
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def reset_root_logging():
    """CLI 会重新配置根日志器，测试结束后移除其 handler"""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.WARNING)

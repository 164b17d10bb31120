"""relpack - 发布打包工具链"""

__version__ = "0.3.0"

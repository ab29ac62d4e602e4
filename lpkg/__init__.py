"""lpkg - Linux 原生包管理器"""

__version__ = "0.1.0"

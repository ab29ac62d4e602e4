"""lpkg 日志配置

文本格式写给终端，JSON 格式写给日志采集；均输出到 stderr。
CLI 入口通过 LPKG_LOG_LEVEL / LPKG_LOG_JSON 环境变量控制。

生命周期代码通过 extra 附带包上下文:
    logger.info("已登记", extra={"package": "foo", "version": "1.0.0", "state": "registered"})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

# extra 中会被提升为 JSON 顶层字段的包上下文
CONTEXT_FIELDS = ("package", "version", "state", "package_id")


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "lpkg.services.lifecycle.steps",
            "message": "[Step 5] 已登记: foo-1.0.0 (id=3)",
            "package": "foo", "version": "1.0.0", "state": "registered", "package_id": 3,
            "exception": "traceback..." (仅在有异常时)
        }
    包上下文字段只在调用方通过 extra 提供时出现。
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器，重复调用会替换已有 handler"""
    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"))
    root.addHandler(handler)


def reset_logging() -> None:
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


def package_context(name: str | None, version: str | None, state: str | None = None,
                    package_id: int | None = None) -> dict[str, object]:
    """构造 extra 字典，值为 None 的字段省略"""
    ctx = {"package": name, "version": version, "state": state, "package_id": package_id}
    return {k: v for k, v in ctx.items() if v is not None}

"""子进程执行工具 — 构建工具调用 + 生命周期脚本

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
生命周期钩子走 ScriptRunner：只允许"按路径执行脚本并收集退出码"，
不经过 `sh -c <字符串>`，信任边界保持显式。
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from lpkg.core.exceptions import ExternalProcessError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议：抽象子进程调用

    测试时可注入 mock 实现，无需 patch subprocess。
    """

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


class LocalExecutor:
    """本地命令执行器（默认实现），参数列表直接传给 exec，不经过 shell"""

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        r = subprocess.run(
            cmd, capture_output=True, text=True,
            cwd=cwd, env=env, check=False,
        )
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )


def run_cmd(
    cmd: list[str], *, cwd: str = ".",
    env: dict[str, str] | None = None,
    label: str = "cmd",
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """执行命令，失败抛 ExternalProcessError

    Args:
        cmd: 参数列表
        cwd: 工作目录
        env: 环境变量（不传则继承当前进程）
        label: 日志与错误信息标签
        executor: 命令执行器（默认本地执行）
    """
    logger.info("  %s: %s (cwd=%s)", label, " ".join(cmd), cwd)
    try:
        r = (executor or LocalExecutor()).execute(cmd, cwd=cwd, env=env)
    except OSError as e:
        raise ExternalProcessError(label, -1, str(e)) from e
    if not r.success:
        raise ExternalProcessError(label, r.returncode, r.stderr)
    return r


# =========================================================================
# 生命周期脚本执行
# =========================================================================

class ScriptRunner:
    """按路径执行生命周期脚本，只返回退出状态

    可执行文件直接 exec；没有执行权限的脚本以 `sh <path>` 运行。
    """

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor or LocalExecutor()

    def run(
        self, script: Path, *, cwd: Path,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        if os.access(script, os.X_OK):
            argv = [str(script)]
        else:
            argv = ["sh", str(script)]
        merged = {**os.environ, **(env or {})}
        logger.info("执行脚本: %s (cwd=%s)", script, cwd)
        try:
            return self.executor.execute(argv, cwd=str(cwd), env=merged)
        except OSError as e:
            raise ExternalProcessError(f"脚本 {script.name} ", -1, str(e)) from e

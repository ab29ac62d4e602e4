"""shell.py run_cmd / ScriptRunner 单元测试"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from lpkg.core.exceptions import ExternalProcessError
from lpkg.utils.shell import CommandResult, ScriptRunner, run_cmd


class TestRunCmd:
    def test_success(self, tmp_path) -> None:
        r = run_cmd(["echo", "hello"], cwd=str(tmp_path), label="test")
        assert r.returncode == 0
        assert "hello" in r.stdout

    def test_failure_raises(self, tmp_path) -> None:
        with pytest.raises(ExternalProcessError, match="mybuild失败"):
            run_cmd(["false"], cwd=str(tmp_path), label="mybuild")

    def test_missing_program(self, tmp_path) -> None:
        with pytest.raises(ExternalProcessError) as exc_info:
            run_cmd(["lpkg-no-such-program"], cwd=str(tmp_path))
        assert exc_info.value.returncode == -1

    def test_injected_executor(self, fake_executor) -> None:
        run_cmd(["cargo", "build"], cwd="/src", executor=fake_executor)
        assert fake_executor.calls[0]["cmd"] == ["cargo", "build"]
        assert fake_executor.calls[0]["cwd"] == "/src"

    def test_executor_failure(self, fake_executor) -> None:
        fake_executor.results["cargo"] = CommandResult(101, "", "error[E0425]")
        with pytest.raises(ExternalProcessError) as exc_info:
            run_cmd(["cargo", "build"], label="cargo build", executor=fake_executor)
        assert exc_info.value.returncode == 101
        assert "error[E0425]" in exc_info.value.stderr


class TestScriptRunner:
    def test_non_executable_runs_with_sh(self, tmp_path: Path) -> None:
        script = tmp_path / "hook.sh"
        script.write_text('echo "name=$LPKG_PACKAGE_NAME"\n', encoding="utf-8")
        os.chmod(script, 0o644)
        r = ScriptRunner().run(script, cwd=tmp_path, env={"LPKG_PACKAGE_NAME": "foo"})
        assert r.success
        assert "name=foo" in r.stdout

    def test_executable_runs_directly(self, tmp_path: Path, fake_executor) -> None:
        script = tmp_path / "hook.sh"
        script.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
        os.chmod(script, 0o755)
        ScriptRunner(fake_executor).run(script, cwd=tmp_path)
        assert fake_executor.calls[0]["cmd"] == [str(script)]

    def test_exit_status_reported(self, tmp_path: Path) -> None:
        script = tmp_path / "hook.sh"
        script.write_text("exit 3\n", encoding="utf-8")
        r = ScriptRunner().run(script, cwd=tmp_path)
        assert r.returncode == 3
        assert not r.success

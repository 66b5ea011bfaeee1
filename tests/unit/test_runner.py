"""
Tests for command resolution and action execution.

Tests cover:
- Shebang parsing (env, env -S, direct interpreters)
- Runtime chains driven by an injected PATH lookup
- Hardcoded fallbacks
- Exit codes and env overlay when running
"""

import shutil

import pytest

from kadai.core.runner import (
    build_action_env,
    parse_shebang_command,
    resolve_command,
    run_action,
)
from kadai.lib.which import WhichCache
from kadai.models.action import Action, ActionMeta, Runtime


def make_action(runtime: Runtime, shebang=None, file_path="/p/actions/task") -> Action:
    return Action(
        id="task",
        meta=ActionMeta(name="Task"),
        file_path=file_path,
        runtime=runtime,
        shebang=shebang,
    )


def which_with(*available: str) -> WhichCache:
    return WhichCache(lambda name: f"/usr/bin/{name}" if name in available else None)


class TestParseShebang:
    def test_env_interpreter(self):
        assert parse_shebang_command("#!/usr/bin/env python3", "/a.py") == ["python3", "/a.py"]

    def test_env_with_args(self):
        assert parse_shebang_command("#!/usr/bin/env node --inspect", "/a.js") == [
            "node", "--inspect", "/a.js",
        ]

    def test_env_split_flag(self):
        assert parse_shebang_command("#!/usr/bin/env -S deno run --allow-net", "/a.ts") == [
            "deno", "run", "--allow-net", "/a.ts",
        ]

    def test_direct_interpreter(self):
        assert parse_shebang_command("#!/bin/bash -e", "/a.sh") == ["/bin/bash", "-e", "/a.sh"]

    @pytest.mark.parametrize("shebang", [None, "", "#!", "#!   ", "#!/usr/bin/env", "#!/usr/bin/env -S"])
    def test_unusable(self, shebang):
        assert parse_shebang_command(shebang, "/a.sh") is None


class TestResolveCommand:
    def test_shebang_wins(self):
        action = make_action(Runtime.PYTHON, "#!/usr/bin/env python3.12")
        assert resolve_command(action, which_with("uv")) == ["python3.12", "/p/actions/task"]

    def test_python_prefers_uv(self):
        action = make_action(Runtime.PYTHON)
        assert resolve_command(action, which_with("uv", "python3")) == [
            "uv", "run", "/p/actions/task",
        ]

    def test_python_chain_order(self):
        action = make_action(Runtime.PYTHON)
        assert resolve_command(action, which_with("python")) == ["python", "/p/actions/task"]

    def test_node_falls_back_to_node(self):
        action = make_action(Runtime.NODE)
        assert resolve_command(action, which_with("node")) == ["node", "/p/actions/task"]

    def test_bun(self):
        action = make_action(Runtime.BUN)
        assert resolve_command(action, which_with("bun")) == ["bun", "run", "/p/actions/task"]

    @pytest.mark.parametrize(
        "runtime,expected",
        [
            (Runtime.BUN, ["bun", "run"]),
            (Runtime.BASH, ["bash"]),
            (Runtime.PYTHON, ["python3"]),
            (Runtime.NODE, ["node"]),
            (Runtime.EXECUTABLE, []),
        ],
    )
    def test_fallback_when_nothing_on_path(self, runtime, expected):
        action = make_action(runtime)
        assert resolve_command(action, which_with()) == [*expected, "/p/actions/task"]

    def test_bare_env_shebang_falls_through(self):
        action = make_action(Runtime.BASH, "#!/usr/bin/env")
        assert resolve_command(action, which_with("bash")) == ["bash", "/p/actions/task"]


class TestBuildEnv:
    def test_overlays_process_env(self, monkeypatch):
        monkeypatch.setenv("KADAI_TEST_BASE", "base")
        monkeypatch.setenv("KADAI_TEST_OVERRIDE", "old")

        env = build_action_env({"KADAI_TEST_OVERRIDE": "new", "EXTRA": "1"})

        assert env["KADAI_TEST_BASE"] == "base"
        assert env["KADAI_TEST_OVERRIDE"] == "new"
        assert env["EXTRA"] == "1"


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash not installed")
class TestRunAction:
    def test_returns_exit_code(self, tmp_path):
        script = tmp_path / "fail.sh"
        script.write_text("exit 3\n")
        action = make_action(Runtime.BASH, file_path=str(script))

        assert run_action(action, cwd=tmp_path) == 3

    def test_env_and_cwd(self, tmp_path):
        script = tmp_path / "env.sh"
        script.write_text('echo "$GREETING" > out.txt\n')
        action = make_action(Runtime.BASH, file_path=str(script))

        code = run_action(action, cwd=tmp_path, env={"GREETING": "hello"})

        assert code == 0
        assert (tmp_path / "out.txt").read_text().strip() == "hello"

    def test_missing_interpreter(self, tmp_path):
        script = tmp_path / "task"
        script.write_text("#!/nonexistent/interpreter\n")
        action = make_action(
            Runtime.EXECUTABLE,
            shebang="#!/nonexistent/interpreter",
            file_path=str(script),
        )

        assert run_action(action, cwd=tmp_path) == 127

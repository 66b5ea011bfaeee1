"""
Tests for action discovery.

Tests cover:
- Ids and categories from nested directories
- Skipped entries (leading _ or ., unknown extensions)
- Depth cap
- Sorting by display name
- Optional git history enrichment
"""

import os

import pytest

from kadai.core.loader import (
    MAX_DEPTH,
    get_added_dates,
    load_actions,
    parse_shebang_line,
    runtime_from_extension,
)
from kadai.models.action import ActionOrigin, Runtime


class TestHelpers:
    @pytest.mark.parametrize(
        "ext,runtime",
        [
            (".ts", Runtime.BUN),
            (".js", Runtime.BUN),
            (".mjs", Runtime.BUN),
            (".sh", Runtime.BASH),
            (".bash", Runtime.BASH),
            (".py", Runtime.PYTHON),
            (".rb", Runtime.EXECUTABLE),
        ],
    )
    def test_runtime_from_extension(self, ext, runtime):
        assert runtime_from_extension(ext) == runtime

    def test_shebang_line(self):
        assert parse_shebang_line("#!/usr/bin/env bash\necho\n") == "#!/usr/bin/env bash"

    def test_no_shebang(self):
        assert parse_shebang_line("echo hi\n") is None

    def test_shebang_is_capped(self):
        line = "#!/usr/bin/" + "x" * 500
        assert len(parse_shebang_line(line)) == 256


class TestLoadActions:
    @pytest.mark.asyncio
    async def test_discovers_nested_actions(self, kadai_dir, write_script):
        actions_dir = kadai_dir / "actions"
        write_script(actions_dir, "hello.sh")
        write_script(actions_dir, "database/reset.py", "#!/usr/bin/env python3\n")
        write_script(actions_dir, "web/build/bundle.ts", "// kadai:name Bundle\n")

        actions = await load_actions(actions_dir)
        by_id = {a.id: a for a in actions}

        assert set(by_id) == {"hello", "database/reset", "web/build/bundle"}
        assert by_id["hello"].category == []
        assert by_id["database/reset"].category == ["database"]
        assert by_id["web/build/bundle"].category == ["web", "build"]
        assert by_id["database/reset"].runtime == Runtime.PYTHON
        assert by_id["database/reset"].shebang == "#!/usr/bin/env python3"
        assert by_id["web/build/bundle"].shebang is None

    @pytest.mark.asyncio
    async def test_file_paths_are_absolute(self, kadai_dir, write_script):
        actions_dir = kadai_dir / "actions"
        write_script(actions_dir, "hello.sh")

        actions = await load_actions(actions_dir)

        assert os.path.isabs(actions[0].file_path)
        assert actions[0].file_path.endswith("hello.sh")

    @pytest.mark.asyncio
    async def test_skips_hidden_and_private_entries(self, kadai_dir, write_script):
        actions_dir = kadai_dir / "actions"
        write_script(actions_dir, "visible.sh")
        write_script(actions_dir, "_helper.sh")
        write_script(actions_dir, ".secret.sh")
        write_script(actions_dir, "_lib/inner.sh")
        write_script(actions_dir, ".git/hooks/pre-commit.sh")
        write_script(actions_dir, "README.md", "# docs\n")

        actions = await load_actions(actions_dir)

        assert [a.id for a in actions] == ["visible"]

    @pytest.mark.asyncio
    async def test_depth_cap(self, kadai_dir, write_script):
        actions_dir = kadai_dir / "actions"
        write_script(actions_dir, "a/b/c/deepest.sh")
        write_script(actions_dir, "a/b/c/d/too-deep.sh")

        actions = await load_actions(actions_dir)

        assert MAX_DEPTH == 3
        assert [a.id for a in actions] == ["a/b/c/deepest"]

    @pytest.mark.asyncio
    async def test_sorted_by_display_name(self, kadai_dir, write_script):
        actions_dir = kadai_dir / "actions"
        write_script(actions_dir, "one.sh", "# kadai:name zebra\n")
        write_script(actions_dir, "two.sh", "# kadai:name Apple\n")
        write_script(actions_dir, "three.sh", "# kadai:name mango\n")

        actions = await load_actions(actions_dir)

        assert [a.meta.name for a in actions] == ["Apple", "mango", "zebra"]

    @pytest.mark.asyncio
    async def test_default_origin_is_local(self, kadai_dir, write_script):
        actions_dir = kadai_dir / "actions"
        write_script(actions_dir, "hello.sh")

        actions = await load_actions(actions_dir)

        assert actions[0].origin.type == "local"

    @pytest.mark.asyncio
    async def test_custom_origin(self, kadai_dir, write_script):
        actions_dir = kadai_dir / "actions"
        write_script(actions_dir, "hello.sh")

        actions = await load_actions(actions_dir, ActionOrigin.plugin("@org/tools"))

        assert actions[0].origin.type == "plugin"
        assert actions[0].origin.plugin_name == "@org/tools"

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path):
        assert await load_actions(tmp_path / "nope") == []

    @pytest.mark.asyncio
    async def test_no_dates_by_default(self, kadai_dir, write_script):
        actions_dir = kadai_dir / "actions"
        write_script(actions_dir, "hello.sh")

        actions = await load_actions(actions_dir)

        assert actions[0].added_at is None


class TestAddedDates:
    @pytest.mark.asyncio
    async def test_outside_git_repo(self, tmp_path, write_script, git):
        actions_dir = tmp_path / "actions"
        write_script(actions_dir, "hello.sh")

        assert await get_added_dates(actions_dir) == {}
        actions = await load_actions(actions_dir, with_dates=True)
        assert actions[0].added_at is None

    @pytest.mark.asyncio
    async def test_assigns_first_commit_time(self, project, write_script, git):
        actions_dir = project / ".kadai" / "actions"
        write_script(actions_dir, "hello.sh")
        write_script(actions_dir, "database/reset.sh")
        git("init", cwd=project)
        git("add", ".", cwd=project)
        git("commit", "-m", "add actions", cwd=project)
        write_script(actions_dir, "uncommitted.sh")

        actions = await load_actions(actions_dir, with_dates=True)
        by_id = {a.id: a for a in actions}

        assert by_id["hello"].added_at is not None
        assert by_id["database/reset"].added_at is not None
        assert by_id["uncommitted"].added_at is None

    @pytest.mark.asyncio
    async def test_relative_paths(self, project, write_script, git):
        actions_dir = project / ".kadai" / "actions"
        write_script(actions_dir, "database/reset.sh")
        git("init", cwd=project)
        git("add", ".", cwd=project)
        git("commit", "-m", "add", cwd=project)

        added = await get_added_dates(actions_dir)

        assert set(added) == {"database/reset.sh"}

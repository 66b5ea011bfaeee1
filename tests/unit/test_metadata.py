"""
Tests for action metadata extraction.

Tests cover:
- `# kadai:key value` and `// kadai:key value` frontmatter
- Boolean keys (only the literal "true" is true)
- The 20-line scan window
- Filename-derived names
"""

import pytest

from kadai.core.metadata import (
    MAX_SCAN_LINES,
    extract_metadata,
    infer_name_from_filename,
    metadata_from_content,
    parse_metadata,
)


class TestParseMetadata:
    def test_hash_comments(self):
        content = (
            "#!/bin/bash\n"
            "# kadai:name Deploy Staging\n"
            "# kadai:emoji 🚀\n"
            "# kadai:description Push the current branch to staging\n"
        )
        assert parse_metadata(content) == {
            "name": "Deploy Staging",
            "emoji": "🚀",
            "description": "Push the current branch to staging",
        }

    def test_slash_comments(self):
        content = "// kadai:name Build\n//kadai:hidden true\n"
        assert parse_metadata(content) == {"name": "Build", "hidden": True}

    def test_boolean_keys(self):
        content = (
            "# kadai:confirm true\n"
            "# kadai:hidden yes\n"
            "# kadai:interactive TRUE\n"
        )
        assert parse_metadata(content) == {
            "confirm": True,
            "hidden": False,
            "interactive": False,
        }

    def test_unknown_keys_ignored(self):
        content = "# kadai:name Build\n# kadai:shortcut b\n"
        assert parse_metadata(content) == {"name": "Build"}

    def test_windows_line_endings(self):
        assert parse_metadata("# kadai:name Build\r\n") == {"name": "Build"}

    def test_only_first_lines_scanned(self):
        padding = "echo filler\n" * MAX_SCAN_LINES
        assert parse_metadata(padding + "# kadai:name Too Late\n") == {}

    def test_last_line_of_window_is_scanned(self):
        padding = "echo filler\n" * (MAX_SCAN_LINES - 1)
        assert parse_metadata(padding + "# kadai:name Just In Time\n") == {
            "name": "Just In Time"
        }

    def test_requires_value(self):
        assert parse_metadata("# kadai:name\n") == {}

    def test_not_a_comment(self):
        assert parse_metadata('echo "kadai:name Nope"\n') == {}


class TestInferName:
    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("hello.sh", "Hello"),
            ("reset-db.sh", "Reset Db"),
            ("run_all_tests.py", "Run All Tests"),
            ("build-web_app.ts", "Build Web App"),
        ],
    )
    def test_infers(self, filename, expected):
        assert infer_name_from_filename(filename) == expected


class TestMetadataFromContent:
    def test_uses_frontmatter_name(self):
        meta = metadata_from_content("# kadai:name Custom\n", "script.sh")
        assert meta.name == "Custom"

    def test_falls_back_to_filename(self):
        meta = metadata_from_content("echo hi\n", "clean-cache.sh")
        assert meta.name == "Clean Cache"
        assert meta.confirm is False
        assert meta.hidden is False

    def test_keeps_other_keys_without_name(self):
        content = "# kadai:emoji 🧹\n# kadai:confirm true\n"
        meta = metadata_from_content(content, "clean-cache.sh")
        assert meta.name == "Clean Cache"
        assert meta.emoji == "🧹"
        assert meta.confirm is True


class TestExtractMetadata:
    @pytest.mark.asyncio
    async def test_reads_file(self, tmp_path):
        script = tmp_path / "seed-db.py"
        script.write_text("#!/usr/bin/env python3\n# kadai:description Seed it\n")

        meta = await extract_metadata(script)

        assert meta.name == "Seed Db"
        assert meta.description == "Seed it"

    @pytest.mark.asyncio
    async def test_invalid_utf8_does_not_fail(self, tmp_path):
        script = tmp_path / "binary.sh"
        script.write_bytes(b"# kadai:name Bin\n\xff\xfe\n")

        meta = await extract_metadata(script)

        assert meta.name == "Bin"

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            await extract_metadata(tmp_path / "missing.sh")

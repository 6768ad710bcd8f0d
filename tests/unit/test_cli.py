"""Unit tests for the command-line interface."""

from __future__ import annotations

import json

import pytest

from mail_emulator.cli import main
from mail_emulator.config import get_settings
from mail_emulator.serialization import MESSAGES_FILE, STATS_FILE


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _transform_args(root, out, *extra: str) -> list[str]:
    return [
        "transform",
        "--root",
        str(root),
        "--user",
        "allen-p",
        "--out",
        str(out),
        "--window-end",
        "2024-06-01T12:00:00Z",
        *extra,
    ]


class TestTransformCommand:
    """Test suite for the transform subcommand."""

    def test_transform_writes_output(self, maildir, tmp_path, capsys) -> None:
        out = tmp_path / "out"

        exit_code = main(_transform_args(maildir, out))

        assert exit_code == 0
        messages = json.loads((out / MESSAGES_FILE).read_text(encoding="utf-8"))
        assert len(messages) == 3
        assert messages[0]["internalDate"] == "1717243200000"
        assert "Transformed 3 messages in 1 threads" in capsys.readouterr().out

    def test_limit_and_test_email(self, maildir, tmp_path) -> None:
        out = tmp_path / "out"

        exit_code = main(_transform_args(maildir, out, "--limit", "1", "--test-email", "QA@Example.com"))

        assert exit_code == 0
        stats = json.loads((out / STATS_FILE).read_text(encoding="utf-8"))
        assert stats["totalTransformed"] == 1
        assert stats["truncatedCount"] == 2

    def test_missing_root_exits_with_error(self, tmp_path, capsys) -> None:
        exit_code = main(_transform_args(tmp_path / "missing", tmp_path / "out"))

        assert exit_code == 1
        assert "error:" in capsys.readouterr().err

    def test_missing_user_exits_with_error(self, maildir, tmp_path) -> None:
        assert main(["transform", "--root", str(maildir), "--out", str(tmp_path / "out")]) == 1

    def test_invalid_window_end_is_usage_error(self, maildir, tmp_path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["transform", "--root", str(maildir), "--user", "allen-p", "--window-end", "yesterday"])

        assert exc_info.value.code == 2


def test_unknown_command_is_usage_error() -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["frobnicate"])

    assert exc_info.value.code == 2


def test_owners_command(maildir, capsys) -> None:
    assert main(["owners", "--root", str(maildir)]) == 0
    assert "allen-p" in capsys.readouterr().out.splitlines()


def test_stats_command(maildir, tmp_path, capsys) -> None:
    out = tmp_path / "out"
    assert main(_transform_args(maildir, out)) == 0
    capsys.readouterr()

    assert main(["stats", "--data-dir", str(out)]) == 0

    printed = capsys.readouterr().out
    assert "Total messages: 3" in printed
    assert "Emma Larsen (sister): 3 messages" in printed


def test_stats_without_output(tmp_path) -> None:
    assert main(["stats", "--data-dir", str(tmp_path)]) == 1

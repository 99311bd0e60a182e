"""Tests for the quill command line."""

from __future__ import annotations

import pytest
from conftest import make_message

from quill.cli import main, parse_args
from quill.core.sessions import SessionStore
from quill.types import Session

_ENV_VARS = [
    "QUILL_MODEL",
    "GLM_MODEL",
    "COMPRESSION_ENABLED",
    "COMPRESSION_THRESHOLD",
    "COMPRESSION_STRATEGY",
    "PRESERVE_TOOL_HISTORY",
    "PRESERVE_RECENT_MESSAGES",
    "NOTIFY_BEFORE_COMPRESSION",
]


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    data_dir = tmp_path / "sessions"
    store = SessionStore(str(data_dir))
    messages = [make_message("user" if i % 2 == 0 else "assistant", "x" * 400) for i in range(100)]
    store.save(Session(id="long", title="Refactor parser", messages=messages, updated_at=2))
    store.save(Session(id="short", title="Quick question", messages=messages[:2], updated_at=1))
    return store, ["--data-dir", str(data_dir), "--cwd", str(tmp_path), "-m", "small-test-model"]


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_parse_compress_options():
    args = parse_args(["compress", "abc", "--strategy", "importance", "--threshold", "40", "--keep", "5", "--dry-run"])
    assert args.command == "compress"
    assert args.session_id == "abc"
    assert args.strategy == "importance"
    assert args.threshold == 40
    assert args.preserve_recent == 5
    assert args.dry_run


def test_parse_rejects_unknown_strategy():
    with pytest.raises(SystemExit):
        parse_args(["compress", "abc", "--strategy", "truncate"])


def test_sessions_lists_most_recent_first(workspace, capsys):
    _, common = workspace
    assert _run([*common, "sessions"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("long")
    assert "Refactor parser" in lines[0]
    assert lines[1].startswith("short")


def test_usage_shows_status_and_warning(workspace, capsys):
    _, common = workspace
    assert _run([*common, "usage", "long"]) == 0
    out = capsys.readouterr().out
    assert "🔴 Context: 122% (10,000/8,192)" in out
    assert "[OVERFLOW]" in out
    assert "Context overflow!" in out


def test_stats(workspace, capsys):
    _, common = workspace
    assert _run([*common, "stats", "long"]) == 0
    out = capsys.readouterr().out
    assert "Messages: 100" in out
    assert "User: 50  Assistant: 50  Tool: 0" in out
    assert "Estimated tokens: 10,000" in out


def test_compress_applies_and_saves(workspace, capsys):
    store, common = workspace
    code = _run([*common, "compress", "long", "--strategy", "sliding-window", "--threshold", "50", "--keep", "20"])

    assert code == 0
    out = capsys.readouterr().out
    assert "Context compressed using sliding-window strategy." in out
    assert "Messages: 100 -> 40" in out

    saved = store.load("long")
    assert saved is not None
    assert len(saved.messages) == 40
    assert saved.last_compression is not None
    assert saved.last_compression.strategy == "sliding-window"


def test_compress_dry_run_leaves_session(workspace, capsys):
    store, common = workspace
    assert _run([*common, "compress", "long", "--strategy", "summary", "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert "Context compressed using summary strategy." in out
    assert "Summary: The conversation covered" in out

    saved = store.load("long")
    assert saved is not None
    assert len(saved.messages) == 100
    assert saved.last_compression is None


@pytest.mark.parametrize("strategy", ["summary", "sliding-window", "importance"])
def test_compress_dry_run_below_threshold(workspace, capsys, strategy):
    _, common = workspace
    assert _run([*common, "compress", "short", "--strategy", strategy, "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert "is below threshold of 75%. No compression needed." in out
    assert "Nothing further to compress" not in out


def test_compress_below_threshold(workspace, capsys):
    _, common = workspace
    assert _run([*common, "compress", "short"]) == 0
    assert "No compression needed." in capsys.readouterr().out


def test_compress_uses_environment_config(workspace, capsys, monkeypatch):
    _, common = workspace
    monkeypatch.setenv("COMPRESSION_ENABLED", "false")
    assert _run([*common, "compress", "long"]) == 0
    assert "Compression is disabled." in capsys.readouterr().out


def test_missing_session(workspace, capsys):
    _, common = workspace
    assert _run([*common, "usage", "nope"]) == 1
    assert "Error: session not found: nope" in capsys.readouterr().err

"""Tests for mediadrop CLI helpers."""
import logging
import os
from unittest.mock import AsyncMock, Mock

import pytest

import mediadrop.cli as cli
from mediadrop.cli import CLIError, _collect_candidates, _load_env_file, _setup_logging, run_cli
from mediadrop.models import TransferOutcome, UploadTarget
from mediadrop.orchestrator import BatchOrchestrator


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("MEDIADROP_API_URL", "MEDIADROP_CSRF_TOKEN", "MEDIADROP_MAX_FILES", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield
    logging.disable(logging.NOTSET)


@pytest.fixture
def fake_clients(monkeypatch):
    exchange = Mock()
    exchange.request_upload_target = AsyncMock(
        side_effect=lambda filename, content_type: UploadTarget(
            f"https://s3.test/uploads/{filename}?sig=1", f"uploads/{filename}"
        )
    )
    exchange.request_view_url = AsyncMock(side_effect=lambda key: f"https://s3.test/{key}?read=1")
    engine = Mock()
    engine.transfer = AsyncMock(return_value=TransferOutcome.ok())

    monkeypatch.setattr(
        cli,
        "BatchOrchestrator",
        lambda config: BatchOrchestrator(config, exchange=exchange, engine=engine),
    )
    return exchange, engine


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / "custom.env"
    env_path.write_text(
        "\n".join(
            [
                "# exchange backend",
                "MEDIADROP_API_URL=http://localhost:3000/api/upload",
                "MEDIADROP_CSRF_TOKEN='abc123'",
                "export MEDIADROP_MAX_FILES=4",
            ]
        ),
        encoding="utf-8",
    )

    _load_env_file(env_path)

    assert os.environ["MEDIADROP_API_URL"] == "http://localhost:3000/api/upload"
    assert os.environ["MEDIADROP_CSRF_TOKEN"] == "abc123"
    assert os.environ["MEDIADROP_MAX_FILES"] == "4"


def test_load_env_file_keeps_existing(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDIADROP_API_URL", "http://already.set")
    env_path = tmp_path / ".env"
    env_path.write_text("MEDIADROP_API_URL=http://from.file\n", encoding="utf-8")

    _load_env_file(env_path)

    assert os.environ["MEDIADROP_API_URL"] == "http://already.set"


def test_load_env_file_missing(tmp_path):
    with pytest.raises(CLIError, match="env file not found"):
        _load_env_file(tmp_path / "nope.env")


def test_setup_logging_defaults_to_silent():
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "silent"
    assert logging.getLogger().isEnabledFor(logging.ERROR) is False


def test_setup_logging_debug_mode():
    mode = _setup_logging(debug=True, silent=False, log_level=None)
    assert mode == "DEBUG"
    assert logging.getLogger().isEnabledFor(logging.DEBUG) is True


def test_setup_logging_env_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    mode = _setup_logging(debug=False, silent=False, log_level=None)
    assert mode == "WARNING"


def test_collect_candidates_limits(tmp_path):
    paths = []
    for i in range(3):
        path = tmp_path / f"clip{i}.mp4"
        path.write_bytes(b"x")
        paths.append(path)

    assert len(_collect_candidates(paths, max_files=3)) == 3
    with pytest.raises(CLIError, match="too many files: limit is 2"):
        _collect_candidates(paths, max_files=2)
    with pytest.raises(CLIError, match="not a file"):
        _collect_candidates([tmp_path / "missing.mp4"], max_files=3)


def test_run_cli_without_command_prints_help(capsys):
    assert run_cli([]) == 0
    assert "upload" in capsys.readouterr().out


def test_run_cli_upload_success(tmp_path, fake_clients, jpeg_bytes):
    exchange, engine = fake_clients
    photo = tmp_path / "photo.jpg"
    photo.write_bytes(jpeg_bytes)
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"\x00" * 2048)

    code = run_cli(["--silent", "upload", str(photo), str(clip)])

    assert code == 0
    assert engine.transfer.await_count == 2
    exchange.request_view_url.assert_any_await("uploads/photo.jpg")
    exchange.request_view_url.assert_any_await("uploads/clip.mp4")


def test_run_cli_upload_with_rejection(tmp_path, fake_clients):
    exchange, engine = fake_clients
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"\x00" * 16)
    notes = tmp_path / "notes.txt"
    notes.write_text("hello", encoding="utf-8")

    code = run_cli(["--silent", "upload", str(clip), str(notes)])

    assert code == 1
    assert engine.transfer.await_count == 1


def test_run_cli_upload_failure(tmp_path, fake_clients):
    _, engine = fake_clients
    engine.transfer.return_value = TransferOutcome.fail("upload rejected by storage (HTTP 403)")
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"\x00" * 16)

    assert run_cli(["--silent", "upload", str(clip)]) == 1


def test_run_cli_too_many_files(tmp_path, monkeypatch, fake_clients, capsys):
    _, engine = fake_clients
    monkeypatch.setenv("MEDIADROP_MAX_FILES", "1")
    paths = []
    for name in ("a.mp4", "b.mp4"):
        path = tmp_path / name
        path.write_bytes(b"x")
        paths.append(str(path))

    assert run_cli(["--silent", "upload", *paths]) == 1
    assert "too many files: limit is 1" in capsys.readouterr().err
    engine.transfer.assert_not_awaited()


def test_run_cli_missing_env_file(tmp_path, capsys):
    assert run_cli(["--env-file", str(tmp_path / "absent.env"), "upload", "x.mp4"]) == 1
    assert "env file not found" in capsys.readouterr().err

"""
Tests for the command line entry point and logging setup.
"""

import logging
import logging.handlers
import os
import shutil

import pytest
from rich.logging import RichHandler

from streamsync.config import Settings
from streamsync.logging_config import setup_logging
from streamsync.main import EXIT_INVALID_CONFIG, build_parser, main, settings_overrides


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def isolated_cwd(tmp_path, monkeypatch):
    """No settings files or STREAMSYNC_* variables leak into the test."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("STREAMSYNC_"):
            monkeypatch.delenv(name)
    return tmp_path


class TestArguments:
    def test_last_path_is_destination(self):
        args = build_parser().parse_args(["/src/a", "/src/b", "/dst"])

        overrides = settings_overrides(args)

        assert overrides == {"sources": ["/src/a", "/src/b"], "destination": "/dst"}

    def test_given_options_become_overrides(self):
        args = build_parser().parse_args(
            [
                "-s", "4",
                "-b", "50",
                "-q", "200",
                "-t", "0.5",
                "--rsync", "/usr/local/bin/rsync",
                "--exit-scope", "source",
                "--transfer-options", "--archive --compress --rsh='ssh -p 2222'",
                "-v",
                "/src",
                "host:/dst",
            ]
        )

        overrides = settings_overrides(args)

        assert overrides["syncers_per_finder"] == 4
        assert overrides["batch_size"] == 50
        assert overrides["queue_size"] == 200
        assert overrides["batch_timeout_seconds"] == 0.5
        assert overrides["rsync_binary"] == "/usr/local/bin/rsync"
        assert overrides["worker_exit_scope"] == "source"
        assert overrides["transfer_options"] == ["--archive", "--compress", "--rsh=ssh -p 2222"]
        assert overrides["verbose"] is True
        assert "discovery_options" not in overrides

    def test_missing_destination_is_a_usage_error(self, isolated_cwd):
        with pytest.raises(SystemExit) as exc_info:
            main(["/src/only"])

        assert exc_info.value.code == 2

    def test_invalid_settings_exit_with_config_error(self, isolated_cwd, capsys):
        code = main(["-b", "0", "/src", "/dst"])

        assert code == EXIT_INVALID_CONFIG
        assert "invalid configuration" in capsys.readouterr().err


class TestSetupLogging:
    def test_console_only_by_default(self, restore_root_logger):
        settings = Settings(_env_file=None, sources=["/src"], destination="/dst", log_level="debug")

        setup_logging(settings)

        assert [type(h) for h in restore_root_logger.handlers] == [RichHandler]
        assert restore_root_logger.level == logging.DEBUG
        assert logging.getLogger("asyncio").level == logging.WARNING

    def test_rotating_file_handler_when_log_file_is_set(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "streamsync.log"
        settings = Settings(
            _env_file=None,
            sources=["/src"],
            destination="/dst",
            log_file_path=str(log_file),
            log_retention_days=7,
        )

        setup_logging(settings)
        logging.info("hello from the test")

        file_handlers = [
            h
            for h in restore_root_logger.handlers
            if isinstance(h, logging.handlers.TimedRotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].backupCount == 7
        file_handlers[0].flush()
        assert "hello from the test" in log_file.read_text(encoding="utf-8")


@pytest.mark.skipif(shutil.which("rsync") is None, reason="rsync is not installed")
class TestEndToEnd:
    def test_copies_tree_through_batches(self, isolated_cwd, restore_root_logger):
        source = isolated_cwd / "photos"
        (source / "2024" / "june").mkdir(parents=True)
        expected = {
            "a.jpg": b"a",
            "2024/b.jpg": b"bb",
            "2024/june/c.jpg": b"ccc",
            "2024/june/with space.jpg": b"dddd",
        }
        for name, content in expected.items():
            (source / name).write_bytes(content)

        backup = isolated_cwd / "backup"
        # Both syncers would otherwise race to create the top-level directory
        (backup / "photos").mkdir(parents=True)

        code = main(["-b", "2", "-t", "0.2", "-s", "2", str(source), str(backup)])

        assert code == 0
        copied = backup / "photos"
        for name, content in expected.items():
            assert (copied / name).read_bytes() == content

    def test_second_run_finds_nothing_to_do(self, isolated_cwd, restore_root_logger):
        source = isolated_cwd / "docs"
        source.mkdir()
        (source / "readme.txt").write_text("hi")
        backup = isolated_cwd / "backup"
        backup.mkdir()

        assert main(["-t", "0.2", f"{source}/", str(backup)]) == 0
        assert (backup / "readme.txt").read_text() == "hi"

        assert main(["-t", "0.2", f"{source}/", str(backup)]) == 0

    def test_single_file_source(self, isolated_cwd, restore_root_logger):
        data = isolated_cwd / "data"
        data.mkdir()
        (data / "report.txt").write_text("q3 numbers")
        (data / "other.txt").write_text("not copied")
        backup = isolated_cwd / "backup"
        backup.mkdir()

        assert main(["-t", "0.2", str(data / "report.txt"), str(backup)]) == 0
        assert (backup / "report.txt").read_text() == "q3 numbers"
        assert not (backup / "other.txt").exists()

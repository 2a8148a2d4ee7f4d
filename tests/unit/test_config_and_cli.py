"""Unit tests for configuration, logging helpers and command-line tools.

Author: Odiseo
Version: 1.0.0
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from rent_notifier.config.settings import NotifierConfig
from rent_notifier.core.exceptions import LedgerError, TransportConnectionError
from rent_notifier.core.logger import _mask_database_url, log_context, mask_secret, setup_logging
from rent_notifier.database.factory import Storage
from rent_notifier.models.notification import TransportErrorCategory
from rent_notifier.models.results import DailyTickResult, MonthlyTickResult


class TestNotifierConfig:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("STORAGE_BACKEND", raising=False)

        config = NotifierConfig(_env_file=None)

        assert config.STORAGE_BACKEND == "postgres"
        assert config.TIMEZONE == "UTC"
        assert config.TEMPLATE_DIR.endswith("html")

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError):
            NotifierConfig(_env_file=None, TIMEZONE="Mars/Olympus")

    def test_tzinfo(self):
        config = NotifierConfig(_env_file=None, TIMEZONE="Asia/Shanghai")

        assert config.tzinfo.key == "Asia/Shanghai"

    def test_base_url_normalized(self):
        config = NotifierConfig(_env_file=None, APP_BASE_URL=" https://rent.example.com/ ")

        assert config.APP_BASE_URL == "https://rent.example.com"

    def test_invalid_backend(self):
        with pytest.raises(ValidationError):
            NotifierConfig(_env_file=None, STORAGE_BACKEND="sqlite")


class TestLoggingHelpers:
    """Tests for log formatting helpers."""

    @pytest.mark.parametrize(
        "secret,expected",
        [(None, "(not set)"), ("", "(not set)"), ("ab", "***"), ("abcdef", "a****f")],
    )
    def test_mask_secret(self, secret, expected):
        assert mask_secret(secret) == expected

    def test_mask_database_url(self):
        masked = _mask_database_url("postgresql://rent:hunter2@db:5432/rentdb")

        assert masked == "postgresql://rent:***@db:5432/rentdb"

    def test_log_context(self):
        ctx = log_context("send", record_id="3f2a", recipient="me@example.com", kind="payment_reminder")

        assert ctx == "#3f2a | send | →me@example.com (kind=payment_reminder)"

    def test_log_context_operation_only(self):
        assert log_context("daily_tick") == "daily_tick"


class TestSetupLogging:
    """Tests for handler installation."""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in handlers:
            root.addHandler(handler)
        root.setLevel(level)

    def test_file_handlers(self, tmp_path):
        setup_logging(log_dir=tmp_path, log_level="DEBUG", max_size_mb=1, backup_count=2)

        root = logging.getLogger()
        files = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(root.handlers) == 3
        assert {Path(h.baseFilename).name for h in files} == {"rent_notifier.log", "rent_notifier.error.log"}
        assert root.level == logging.DEBUG

    def test_repeat_call_does_not_duplicate(self, tmp_path):
        setup_logging(log_dir=tmp_path)
        setup_logging(log_dir=tmp_path, enable_file=False)

        assert len(logging.getLogger().handlers) == 1


class TestSchedulerCli:
    """Tests for python -m rent_notifier.scheduler."""

    def _run(self, argv, result):
        from rent_notifier.scheduler import __main__ as cli

        scheduler = MagicMock()
        scheduler.run_daily.return_value = result
        scheduler.run_monthly.return_value = result
        storage = MagicMock()

        with patch.object(cli, "create_scheduler", return_value=(scheduler, storage)), patch.object(
            cli, "setup_logging"
        ):
            code = cli.main(argv)

        return code, scheduler, storage

    def test_daily_success(self, capsys):
        code, scheduler, storage = self._run(["daily"], DailyTickResult(success=True, message="ok"))

        assert code == 0
        scheduler.run_daily.assert_called_once()
        scheduler.close.assert_called_once()
        storage.close.assert_called_once()
        output = json.loads(capsys.readouterr().out)
        assert output["results"]["paymentReminders"] == 0

    def test_monthly_failure_exit_code(self, capsys):
        result = MonthlyTickResult(success=False, message="Monthly tick failed", error="boom")

        code, scheduler, _ = self._run(["monthly"], result)

        assert code == 1
        scheduler.run_monthly.assert_called_once()
        assert json.loads(capsys.readouterr().out)["error"] == "boom"

    def test_storage_failure(self):
        from rent_notifier.scheduler import __main__ as cli

        with patch.object(cli, "create_scheduler", side_effect=LedgerError("no db")), patch.object(
            cli, "setup_logging"
        ):
            assert cli.main(["daily"]) == 1

    def test_unknown_tick(self):
        from rent_notifier.scheduler import __main__ as cli

        with pytest.raises(SystemExit):
            cli.main(["weekly"])


class TestCheckTransportScript:
    """Tests for the transport check script."""

    @pytest.fixture
    def wired(self, configured_store, ledger):
        scheduler = MagicMock()
        storage = Storage(settings_store=configured_store, ledger=ledger)
        with patch("rent_notifier.scripts.check_transport.create_scheduler", return_value=(scheduler, storage)), patch(
            "rent_notifier.scripts.check_transport.setup_logging"
        ):
            yield scheduler

    def test_connection_ok(self, wired, patched_smtp, capsys):
        from rent_notifier.scripts.check_transport import main

        assert main([]) == 0
        out = capsys.readouterr().out
        assert "PASSED" in out
        assert "abcdefghijklmnop" not in out
        wired.send_test_message_now.assert_not_called()

    def test_connection_failure_prints_hint(self, wired, capsys):
        from rent_notifier.scripts.check_transport import main

        error = TransportConnectionError("bad login", category=TransportErrorCategory.AUTHENTICATION)
        with patch("rent_notifier.scripts.check_transport.SMTPClient") as mock_client:
            mock_client.return_value.__enter__.return_value.verify.side_effect = error
            code = main([])

        assert code == 1
        out = capsys.readouterr().out
        assert TransportErrorCategory.AUTHENTICATION.description in out
        assert "QQ Mail" in out

    def test_send_test(self, wired, patched_smtp):
        from rent_notifier.models.results import ActionResult
        from rent_notifier.scripts.check_transport import main

        wired.send_test_message_now.return_value = ActionResult(success=True, message="Test message sent")

        assert main(["--send-test"]) == 0
        wired.send_test_message_now.assert_called_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

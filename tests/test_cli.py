"""Tests for the neflo command line."""

import json

from typer.testing import CliRunner

from helpers import T0, focus
from neflo.cli import app
from neflo.locking import InstanceLock
from neflo.paths import get_lock_path
from neflo.storage import IntervalStore

runner = CliRunner()


class TestReport:
    def test_report_empty(self, tmp_path):
        result = runner.invoke(app, ["report", "--db", str(tmp_path / "intervals.json")])

        assert result.exit_code == 0
        assert "No data recorded yet." in result.output

    def test_report_corrupt_log(self, tmp_path):
        db_path = tmp_path / "intervals.json"
        db_path.write_text("{oops")

        result = runner.invoke(app, ["report", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "Storage error" in result.output


class TestReset:
    def test_reset_with_yes_clears_log(self, tmp_path):
        db_path = tmp_path / "intervals.json"
        IntervalStore(db_path).save([focus(T0, 5)])

        result = runner.invoke(app, ["reset", "--db", str(db_path), "--yes"])

        assert result.exit_code == 0
        assert IntervalStore(db_path).load() == []

    def test_reset_declined_keeps_log(self, tmp_path):
        db_path = tmp_path / "intervals.json"
        IntervalStore(db_path).save([focus(T0, 5)])

        result = runner.invoke(app, ["reset", "--db", str(db_path)], input="n\n")

        assert result.exit_code == 1
        assert len(IntervalStore(db_path).load()) == 1

    def test_reset_refuses_while_tracking(self, tmp_path):
        db_path = tmp_path / "intervals.json"
        IntervalStore(db_path).save([focus(T0, 5)])

        with InstanceLock(get_lock_path(db_path)):
            result = runner.invoke(app, ["reset", "--db", str(db_path), "--yes"])

        assert result.exit_code == 1
        assert len(IntervalStore(db_path).load()) == 1

    def test_reset_reports_storage_errors(self, tmp_path):
        db_path = tmp_path / "intervals.json"
        db_path.mkdir()

        result = runner.invoke(app, ["reset", "--db", str(db_path), "--yes"])

        assert result.exit_code == 1
        assert "Storage error" in result.output


class TestStartValidation:
    def test_invalid_start_time_fails_fast(self, tmp_path):
        result = runner.invoke(
            app,
            [
                "start",
                "--db",
                str(tmp_path / "intervals.json"),
                "--config",
                str(tmp_path / "config.json"),
                "--start-time",
                "25:99",
            ],
        )

        assert result.exit_code == 2
        assert not (tmp_path / "intervals.json").exists()

    def test_invalid_config_file_fails_fast(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"default_threshold_mins": 0}))

        result = runner.invoke(
            app,
            ["start", "--db", str(tmp_path / "intervals.json"), "--config", str(config_path)],
        )

        assert result.exit_code == 2

    def test_non_finite_threshold_rejected_with_usage_error(self, tmp_path):
        result = runner.invoke(
            app,
            [
                "start",
                "--db",
                str(tmp_path / "intervals.json"),
                "--config",
                str(tmp_path / "config.json"),
                "--idle-threshold",
                "nan",
            ],
        )

        assert result.exit_code == 2
        assert not (tmp_path / "intervals.json").exists()

    def test_second_instance_is_rejected(self, tmp_path):
        db_path = tmp_path / "intervals.json"

        with InstanceLock(get_lock_path(db_path)):
            result = runner.invoke(
                app,
                ["start", "--db", str(db_path), "--config", str(tmp_path / "config.json")],
            )

        assert result.exit_code == 1
        assert "already tracking" in result.output

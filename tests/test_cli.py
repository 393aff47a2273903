"""Tests for CLI commands."""
import json
import pytest

from click.testing import CliRunner
from main import cli
from models.database import Database


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cli.db")


@pytest.fixture
def env(db_path):
    return {"METRICWATCH_DB_PATH": db_path, "METRICWATCH_USER": "alice",
            "METRICWATCH_LOG_LEVEL": "WARNING"}


def _invoke(runner, env, *args):
    return runner.invoke(cli, list(args), env=env)


def test_cli_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Metric Watch" in result.output


def test_cli_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output


def test_alerts_help(runner):
    result = runner.invoke(cli, ["alerts", "--help"])
    assert result.exit_code == 0
    for command in ("list", "create", "update", "delete", "events"):
        assert command in result.output


def test_metrics_help(runner):
    result = runner.invoke(cli, ["metrics", "--help"])
    assert result.exit_code == 0
    assert "names" in result.output
    assert "recent" in result.output


def test_init(runner, env, db_path):
    result = _invoke(runner, env, "init")
    assert result.exit_code == 0
    assert "Database initialized" in result.output


def test_create_ingest_and_events(runner, env, db_path):
    result = _invoke(runner, env, "alerts", "create", "--metric", "cpu", "--comparator", "GT",
                     "--threshold", "90", "--message", "CPU high", "--cooldown", "60")
    assert result.exit_code == 0, result.output
    assert "Created rule" in result.output

    result = _invoke(runner, env, "ingest", "--metric", "cpu", "--value", "95", "--json")
    assert result.exit_code == 0, result.output
    summary = json.loads(result.output)
    assert summary["evaluated"] == 1
    assert summary["triggered"] == 1

    result = _invoke(runner, env, "ingest", "--metric", "cpu", "--value", "95", "--json")
    assert json.loads(result.output)["cooldown_skipped"] == 1

    result = _invoke(runner, env, "alerts", "events", "--json")
    assert result.exit_code == 0, result.output
    page = json.loads(result.output)
    assert len(page["events"]) == 1
    assert page["events"][0]["metric_value"] == 95
    assert page["hasMore"] is False


def test_update_and_delete(runner, env, db_path):
    _invoke(runner, env, "alerts", "create", "--metric", "cpu", "--comparator", "GT",
            "--threshold", "90", "--message", "CPU high")
    with Database(db_path) as db:
        rule_id = db.list_rules("alice")[0].id

    result = _invoke(runner, env, "alerts", "update", "--id", rule_id, "--threshold", "70")
    assert result.exit_code == 0, result.output
    with Database(db_path) as db:
        assert db.get_rule(rule_id, "alice").threshold == 70

    result = _invoke(runner, env, "alerts", "delete", "--id", rule_id)
    assert result.exit_code == 0
    result = _invoke(runner, env, "alerts", "delete", "--id", rule_id)
    assert result.exit_code == 1
    assert "Alert not found" in result.output


def test_invalid_value_exits_1(runner, env):
    result = _invoke(runner, env, "ingest", "--metric", "cpu", "--value", "lots")
    assert result.exit_code == 1
    assert "value must be a number" in result.output


def test_negative_cooldown_exits_1(runner, env):
    result = _invoke(runner, env, "alerts", "create", "--metric", "cpu", "--comparator", "GT",
                     "--threshold", "90", "--message", "m", "--cooldown=-1")
    assert result.exit_code == 1
    assert "cooldown_seconds" in result.output


def test_metric_names(runner, env):
    _invoke(runner, env, "ingest", "--metric", "memory", "--value", "1")
    _invoke(runner, env, "ingest", "--metric", "cpu", "--value", "1")
    result = _invoke(runner, env, "metrics", "names")
    assert result.exit_code == 0
    assert result.output.split() == ["cpu", "memory"]

    result = _invoke(runner, env, "metrics", "names", "--search", "MEM")
    assert result.output.split() == ["memory"]


def test_empty_listings(runner, env):
    assert "No alert rules" in _invoke(runner, env, "alerts", "list").output
    assert "No alert events" in _invoke(runner, env, "alerts", "events").output
    assert "No samples recorded" in _invoke(runner, env, "metrics", "recent").output


def test_user_is_required(runner, db_path):
    result = runner.invoke(cli, ["alerts", "list"],
                           env={"METRICWATCH_DB_PATH": db_path, "METRICWATCH_LOG_LEVEL": "WARNING"})
    assert result.exit_code != 0
    assert "--user" in result.output

"""Tests for the command line entrypoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

import agent_runtime.cli as cli
from agent_runtime.runtime.runtime import build_runtime


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("AGENT_RUNTIME_LOG_LEVEL", "CRITICAL")
    monkeypatch.setenv("AGENT_RUNTIME_AUDIT_STORAGE_PATH", str(tmp_path / "agent_state"))
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def script_llm(monkeypatch, fake_llm):
    def _script(*replies) -> None:
        monkeypatch.setattr(
            cli, "build_runtime", lambda config: build_runtime(config, llm=fake_llm(*replies))
        )

    return _script


def test_handle_runs_structured_task(script_llm, capsys) -> None:
    """Test the handle command prints the task result."""
    script_llm()
    payload = json.dumps({"analysis": {}, "metrics": {"gmv": 10, "gmvChangeRate": 0}})

    code = cli.main(["handle", "--task-type", "report", "--domain", "live", "--payload", payload])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["status"] == "ok"
    assert out["handler_name"] == "LiveReportAgent"


def test_handle_unknown_signature_exits_with_task_error(script_llm, capsys) -> None:
    """Test an unserved signature exits with the task error code."""
    script_llm()

    code = cli.main(["handle", "--task-type", "forecast", "--domain", "shop"])

    assert code == 4
    assert "forecast/shop" in json.loads(capsys.readouterr().out)["summary"]


def test_handle_rejects_non_object_payload(script_llm, capsys) -> None:
    """Test a non-object payload exits with the config error code."""
    script_llm()

    code = cli.main(["handle", "--task-type", "report", "--domain", "live", "--payload", "[1]"])

    assert code == 2
    assert "JSON object" in capsys.readouterr().err


def test_route_needing_more_input_prints_prompt(script_llm, capsys) -> None:
    """Test missing parameters print the prompt and exit for more input."""
    script_llm('{"taskType": "report", "domain": "live"}', "{}")

    code = cli.main(["route", "live report please"])

    assert code == 5
    out = capsys.readouterr().out
    assert "`analysis`" in out
    assert "`metrics`" in out


def test_route_preview_only_classifies(script_llm, capsys) -> None:
    """Test --preview prints the selection without dispatching."""
    script_llm(RuntimeError("down"))

    code = cli.main(["route", "--preview", "summarize: hello"])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["selectedAgent"] == "GenericAnalysisAgent"
    assert out["confidence"] == 0.5


def test_records_lists_recent_and_single_record(script_llm, capsys) -> None:
    """Test the records command lists recent and single records."""
    script_llm()
    cli.main(["handle", "--task-type", "forecast", "--domain", "shop"])
    task_id = json.loads(capsys.readouterr().out)["taskId"]

    assert cli.main(["records"]) == 0
    recent = json.loads(capsys.readouterr().out)
    assert [r["task_id"] for r in recent] == [task_id]

    assert cli.main(["records", "--task-id", task_id]) == 0
    assert json.loads(capsys.readouterr().out)["status"] == "error"

    assert cli.main(["records", "--task-id", "missing"]) == 1


def test_records_disabled(monkeypatch, capsys) -> None:
    """Test the records command fails when auditing is off."""
    monkeypatch.setenv("AGENT_RUNTIME_AUDIT_ENABLED", "false")

    assert cli.main(["records"]) == 2
    assert "disabled" in capsys.readouterr().err


def test_parser_requires_a_command() -> None:
    """Test the parser rejects a missing subcommand."""
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])

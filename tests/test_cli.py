"""Tests for the pm command line."""

import json

import pytest

from planstore.cli import main


@pytest.fixture
def pm(tmp_path, capsys):
    """Run pm against a fresh project; returns (exit code, stdout)."""
    def run(*argv):
        code = main(["--root", str(tmp_path), *argv])
        return code, capsys.readouterr().out

    code, _ = run("init")
    assert code == 0
    return run


class TestInit:
    def test_creates_layout(self, tmp_path, capsys):
        assert main(["--root", str(tmp_path), "init"]) == 0
        assert "Initialized:" in capsys.readouterr().out
        assert (tmp_path / ".claude" / "memory_bank.md").exists()


class TestPrdCommands:
    def test_new_list_show(self, pm):
        code, out = pm("prd", "new", "Checkout Flow", "--author", "jo")
        assert code == 0
        assert "Created PRD: checkout-flow" in out

        _, out = pm("prd", "list")
        assert "checkout-flow" in out and "draft" in out

        _, out = pm("prd", "show", "checkout-flow")
        assert "Author:  jo" in out

    def test_status(self, pm):
        pm("prd", "new", "Checkout Flow")
        code, out = pm("prd", "status", "checkout-flow", "approved")
        assert code == 0
        assert "is now approved" in out

    def test_missing_prd(self, pm):
        code, out = pm("prd", "show", "nope")
        assert code == 1
        assert out.startswith("ERROR: [prd nope] not found")


class TestEpicAndTaskCommands:
    """Epic and task commands over a small dependency chain."""

    def test_workflow(self, pm):
        pm("epic", "new", "checkout-flow")
        pm("task", "new", "checkout-flow", "Cart page")
        code, out = pm("task", "new", "checkout-flow", "Payment form", "--depends-on", "001", "--effort", "m")
        assert code == 0
        assert "Created task: checkout-flow/002" in out

        _, out = pm("task", "next", "checkout-flow")
        assert "001  Cart page" in out
        assert "002" not in out

        code, out = pm("task", "start", "checkout-flow", "002")
        assert code == 1
        assert "dependencies are not completed" in out

        code, out = pm("task", "done", "checkout-flow", "001")
        assert code == 0
        assert "checkout-flow/001 is now completed" in out

        _, out = pm("epic", "status", "checkout-flow", "--json")
        summary = json.loads(out)
        assert summary["ready"] == ["002"]
        assert summary["progress"] == 50

        _, out = pm("epic", "status", "checkout-flow")
        assert "Ready to start: 002" in out

        code, out = pm("epic", "close", "checkout-flow")
        assert code == 1
        assert "not eligible for closure" in out

    def test_epic_list_and_show(self, pm):
        pm("epic", "new", "checkout-flow", "--body", "Scope text")
        pm("task", "new", "checkout-flow", "Cart page")

        _, out = pm("epic", "list")
        assert "checkout-flow" in out
        assert "(0/1)" in out

        _, out = pm("epic", "show", "checkout-flow")
        assert "001  open" in out
        assert "Actions:  start, close, block" in out
        assert "Scope text" in out

    def test_delete_needs_confirm(self, pm):
        pm("epic", "new", "checkout-flow")
        with pytest.raises(SystemExit):
            pm("epic", "delete", "checkout-flow")
        code, out = pm("epic", "delete", "checkout-flow", "--confirm")
        assert code == 0
        _, out = pm("epic", "list")
        assert "No epics found." in out

    def test_task_delete_with_dependents(self, pm):
        pm("epic", "new", "checkout-flow")
        pm("task", "new", "checkout-flow", "Cart page")
        pm("task", "new", "checkout-flow", "Payment form", "-d", "001")
        code, out = pm("task", "delete", "checkout-flow", "001")
        assert code == 1
        assert "required by 002" in out


class TestLogCommands:
    def test_log_and_stats(self, pm):
        pm("epic", "new", "checkout-flow")
        pm("epic", "start", "checkout-flow")

        _, out = pm("log", "--limit", "1")
        assert "epic_start" in out
        assert "epic_create" not in out

        _, out = pm("stats")
        assert "Total operations: 3" in out


class TestToolsCommands:
    def test_list_and_docs(self, pm):
        _, out = pm("tools", "list")
        assert "epic_status" in out

        _, out = pm("tools", "docs")
        assert out.startswith("# Available Tools")

    def test_call(self, pm):
        pm("epic", "new", "checkout-flow")
        code, out = pm("tools", "call", "epic_status", "--params", '{"epic_name": "checkout-flow"}')
        assert code == 0
        assert json.loads(out)["epic_id"] == "checkout-flow"

    def test_call_rejects_bad_params(self, pm):
        code, out = pm("tools", "call", "epic_status", "--params", '{"epic": "checkout-flow"}')
        assert code == 1
        assert out.startswith("ERROR: [tool epic_status]")

    def test_call_bad_json(self, pm):
        code, out = pm("tools", "call", "epic_status", "--params", "{nope")
        assert code == 2
        assert "not valid JSON" in out

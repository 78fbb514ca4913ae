"""Tests for the datamodel command line entry point."""
import json

import pytest
from typer.testing import CliRunner

import main as cli
from tests.factories import ScriptedPrompter, sample_schema
from Schema.datamodel import save_schema

runner = CliRunner()


class FakeShell:
    """Records the session instead of starting the prompt loop."""
    sessions = []

    def __init__(self, schema, path, prompter=None):
        self.schema = schema
        self.path = path

    def run(self):
        FakeShell.sessions.append(self)


@pytest.fixture
def fake_shell(monkeypatch):
    FakeShell.sessions = []
    monkeypatch.setattr(cli, "DatamodelShell", FakeShell)
    return FakeShell


def _script(monkeypatch, answers):
    prompter = ScriptedPrompter(answers)
    monkeypatch.setattr(cli, "ConsolePrompter", lambda: prompter)
    return prompter


def test_existing_document_opens_shell(tmp_path, fake_shell, monkeypatch):
    _script(monkeypatch, [])
    save_schema(tmp_path / "datamodel.json", sample_schema())

    result = runner.invoke(cli.app, [str(tmp_path)])

    assert result.exit_code == 0
    assert len(fake_shell.sessions) == 1
    assert fake_shell.sessions[0].schema.entity_names() == ["Author", "Book"]


def test_unreadable_document_exits_with_error(tmp_path, fake_shell, monkeypatch):
    _script(monkeypatch, [])
    (tmp_path / "datamodel.json").write_text("{broken", encoding="utf-8")

    result = runner.invoke(cli.app, [str(tmp_path)])

    assert result.exit_code == 1
    assert "[ERROR]" in result.output
    assert fake_shell.sessions == []


def test_declined_setup_exits_cleanly(tmp_path, fake_shell, monkeypatch):
    _script(monkeypatch, [False])

    result = runner.invoke(cli.app, [str(tmp_path)])

    assert result.exit_code == 0
    assert not (tmp_path / "datamodel.json").exists()
    assert fake_shell.sessions == []


def test_setup_creates_document(tmp_path, fake_shell, monkeypatch):
    _script(monkeypatch, [True, "db/migrations", "db/sql"])

    result = runner.invoke(cli.app, [str(tmp_path), "--verbose"])

    assert result.exit_code == 0
    data = json.loads((tmp_path / "datamodel.json").read_text(encoding="utf-8"))
    assert data == {"entities": [], "actions": {}, "paths": {"migrations": "db/migrations", "sql": "db/sql"}}
    assert len(fake_shell.sessions) == 1


def test_setup_defaults(tmp_path, fake_shell, monkeypatch):
    # None picks the default answer
    _script(monkeypatch, [None, None, ""])

    runner.invoke(cli.app, [str(tmp_path)])

    data = json.loads((tmp_path / "datamodel.json").read_text(encoding="utf-8"))
    assert data["paths"] == {"migrations": "migrations"}

"""Tests for the downstream artifact emitters."""
from datetime import datetime

from emitters import MigrationEmitter, SqlSchemaEmitter, default_emitters
from migrations import ActionLog
from Schema.datamodel import Field
from tests.factories import mutate


def _log_with_entity(schema):
    log = ActionLog()
    mutate(schema, log, "create-entity", name="Shelf", fields=[Field("id", "number", primary=True)])
    return log


class TestMigrationEmitter:

    def test_file_names_use_first_entry(self, schema):
        log = ActionLog()
        log.record("drop-entity", {}, None, schema, schema, timestamp=datetime(2024, 5, 6, 7, 8, 9))
        assert MigrationEmitter().file_names(log) == [
            "20240506070809_datamodel.up.sql", "20240506070809_datamodel.down.sql",
        ]

    def test_writes_pair(self, schema, tmp_path):
        log = _log_with_entity(schema)
        written = MigrationEmitter().emit(schema, log, tmp_path)

        assert [p.parent for p in written] == [tmp_path / "migrations"] * 2
        up, down = (p.read_text(encoding="utf-8") for p in written)
        assert up.startswith("CREATE TABLE shelf (")
        assert down == "DROP TABLE shelf;\n"

    def test_empty_log_writes_nothing(self, schema, tmp_path):
        assert MigrationEmitter().emit(schema, ActionLog(), tmp_path) == []
        assert not (tmp_path / "migrations").exists()

    def test_unconfigured_target_skipped(self, schema, tmp_path):
        schema.paths.pop("migrations")
        assert MigrationEmitter().emit(schema, _log_with_entity(schema), tmp_path) == []


class TestSqlSchemaEmitter:

    def test_writes_schema(self, schema, tmp_path):
        written = SqlSchemaEmitter().emit(schema, ActionLog(), tmp_path)
        assert written == [tmp_path / "sql" / "schema.sql"]
        assert "CREATE TABLE book" in written[0].read_text(encoding="utf-8")

    def test_unconfigured_target_skipped(self, schema, tmp_path):
        schema.paths = {}
        assert SqlSchemaEmitter().emit(schema, ActionLog(), tmp_path) == []


def test_default_emitters():
    assert [type(e) for e in default_emitters()] == [MigrationEmitter, SqlSchemaEmitter]

"""Tests for the action log and the migration deriver."""
import copy
import logging
from datetime import datetime

import pytest

from migrations import ActionLog, MigrationDeriver, build_migration_registry
from Schema.datamodel import Schema, Field
from Schema.adapters.postgresql_adapter import (
    PostgreSQLAdapter, CreateTable, DropTable, RenameTable, DropColumn,
)
from tests.factories import mutate


@pytest.fixture
def deriver():
    return MigrationDeriver(build_migration_registry())


def _apply(statements, layout):
    layout = copy.deepcopy(layout)
    for statement in statements:
        statement.apply(layout)
    return layout


# =============================================================================
# Action log
# =============================================================================

class TestActionLog:

    def test_empty(self):
        log = ActionLog()
        assert len(log) == 0
        assert log.started_at is None
        assert list(log) == []

    def test_order_and_start(self):
        log = ActionLog()
        schema = Schema()
        first = log.record("create-entity", {"name": "A"}, None, schema, schema, timestamp=datetime(2024, 1, 2, 3, 4, 5))
        second = log.record("drop-entity", {"entityId": "A"}, None, schema, schema)

        assert list(log) == [first, second]
        assert list(reversed(log)) == [second, first]
        assert log.started_at == datetime(2024, 1, 2, 3, 4, 5)

    def test_parameters_are_frozen_strings(self):
        log = ActionLog()
        params = {"entityId": "A", "nullable": True}
        entry = log.record("alter-field-set-type", params, None, Schema(), Schema())
        params["entityId"] = "B"
        assert dict(entry.parameters) == {"entityId": "A", "nullable": "True"}


# =============================================================================
# Deriver
# =============================================================================

class TestDeriver:

    def test_create_then_drop(self, deriver):
        schema, log = Schema(), ActionLog()
        mutate(schema, log, "create-entity", name="Foo", fields=[Field("id", "number", primary=True)])
        mutate(schema, log, "drop-entity", entityId="Foo")

        scripts = deriver.derive(log)

        assert [type(s) for s in scripts.up] == [CreateTable, DropTable]
        assert [type(s) for s in scripts.down] == [CreateTable, DropTable]
        assert all(s.table == "foo" for s in scripts.up + scripts.down)

    def test_backward_visits_entries_in_reverse(self, deriver):
        schema, log = Schema(), ActionLog()
        mutate(schema, log, "create-entity", name="Foo", fields=[Field("id", "number", primary=True)])
        mutate(schema, log, "create-entity", name="Bar", fields=[Field("id", "number", primary=True)])

        scripts = deriver.derive(log)

        assert [s.table for s in scripts.up] == ["foo", "bar"]
        assert scripts.down == (DropTable("bar"), DropTable("foo"))

    def test_snapshots_frozen_at_log_time(self, deriver):
        schema, log = Schema(), ActionLog()
        mutate(schema, log, "create-entity", name="Foo", fields=[Field("id", "number", primary=True)])
        mutate(schema, log, "alter-entity-rename", entityId="Foo", name="Bar")
        mutate(schema, log, "drop-entity", entityId="Bar")

        scripts = deriver.derive(log)

        assert [s.to_sql().split("(")[0].strip() for s in scripts.up] == [
            "CREATE TABLE foo", "ALTER TABLE foo RENAME TO bar;", "DROP TABLE bar;",
        ]
        assert [s.to_sql().split("(")[0].strip() for s in scripts.down] == [
            "CREATE TABLE bar", "ALTER TABLE bar RENAME TO foo;", "DROP TABLE foo;",
        ]

    def test_rename_to_same_table_emits_nothing(self, deriver):
        schema, log = Schema(), ActionLog()
        mutate(schema, log, "create-entity", name="Foo", fields=[Field("id", "number", primary=True)])
        mutate(schema, log, "alter-entity-rename", entityId="Foo", name="foo")

        scripts = deriver.derive(log)
        assert not any(isinstance(s, RenameTable) for s in scripts.up + scripts.down)

    def test_cascade_columns_dropped_before_table(self, deriver, schema):
        log = ActionLog()
        mutate(schema, log, "drop-entity", entityId="Author")

        scripts = deriver.derive(log)

        assert scripts.up == (DropColumn("book", "author"), DropTable("author"))
        assert isinstance(scripts.down[0], CreateTable)
        assert scripts.down[1].column.references == "author(id)"

    def test_unregistered_command_warns(self, deriver, schema, caplog):
        log = ActionLog()
        mutate(schema, log, "create-action", action_id="shop.ping", type="read", returns="void")

        with caplog.at_level(logging.WARNING, logger="migrations"):
            scripts = deriver.derive(log)

        assert scripts.empty
        messages = [r.getMessage() for r in caplog.records]
        assert "No up migration for command 'create-action'" in messages
        assert "No down migration for command 'create-action'" in messages

    def test_unregistered_command_does_not_stop_generation(self, deriver, schema, caplog):
        log = ActionLog()
        mutate(schema, log, "alter-action-rename", actionId="library.checkout", name="lend")
        mutate(schema, log, "alter-field-drop", entityId="Book", fieldId="tags")

        with caplog.at_level(logging.WARNING, logger="migrations"):
            scripts = deriver.derive(log)

        assert scripts.up == (DropColumn("book", "tags"),)
        assert len(scripts.down) == 1

    def test_set_type_to_primary_adds_key(self, deriver, schema):
        log = ActionLog()
        mutate(schema, log, "alter-field-set-type", entityId="Author", fieldId="name",
               field=Field("name", "string", primary=True))

        scripts = deriver.derive(log)

        assert scripts.up_sql().startswith("ALTER TABLE author DROP CONSTRAINT author_pkey, ")
        assert scripts.up_sql().endswith("ADD PRIMARY KEY (id, name);")
        assert scripts.down_sql().endswith("ADD PRIMARY KEY (id);")

    def test_set_type_to_reference_adds_foreign_key(self, deriver, schema):
        log = ActionLog()
        mutate(schema, log, "alter-field-set-type", entityId="Author", fieldId="name", field=Field("name", "Book"))

        scripts = deriver.derive(log)

        assert "TYPE UUID USING name::UUID" in scripts.up_sql()
        assert scripts.up_sql().endswith("ADD FOREIGN KEY (name) REFERENCES book(id);")
        assert "DROP CONSTRAINT author_name_fkey" in scripts.down_sql()

    def test_set_type_away_from_serial_restores_sequence(self, deriver, schema):
        log = ActionLog()
        mutate(schema, log, "alter-field-set-type", entityId="Author", fieldId="id",
               field=Field("id", "number", primary=True))

        scripts = deriver.derive(log)

        assert [s.table for s in scripts.up] == ["author", "book"]
        assert "ALTER COLUMN id DROP DEFAULT" in scripts.up_sql()
        assert "ALTER TABLE book ALTER COLUMN author TYPE NUMERIC" in scripts.up_sql()
        assert "CREATE SEQUENCE IF NOT EXISTS author_id_seq OWNED BY author.id;" in scripts.down_sql()
        assert "ALTER COLUMN id SET DEFAULT nextval('author_id_seq')" in scripts.down_sql()
        assert "ALTER TABLE book ALTER COLUMN author TYPE INTEGER" in scripts.down_sql()

    def test_rendered_scripts(self, deriver):
        schema, log = Schema(), ActionLog()
        mutate(schema, log, "create-entity", name="Foo", fields=[Field("id", "number", primary=True, primary_auto=True)])

        scripts = deriver.derive(log)

        assert scripts.up_sql() == "CREATE TABLE foo (\n    id SERIAL PRIMARY KEY\n);"
        assert scripts.down_sql() == "DROP TABLE foo;"


# =============================================================================
# Round-trip law
# =============================================================================

ROUND_TRIPS = [
    ("create-entity", {"name": "Shelf", "fields": [
        Field("id", "number", primary=True, primary_auto=True), Field("label", "string")]}),
    ("drop-entity", {"entityId": "Author"}),
    ("drop-entity", {"entityId": "Book"}),
    ("alter-entity-rename", {"entityId": "Book", "name": "Volume"}),
    ("alter-entity-rename", {"entityId": "Author", "name": "Writer"}),
    ("alter-entity-add-field", {"entityId": "Author", "field": Field("born", "number", nullable=True)}),
    ("alter-entity-add-field", {"entityId": "Author", "field": Field("favourite", "Book", nullable=True)}),
    ("alter-field-set-type", {"entityId": "Book", "fieldId": "tags", "field": Field("tags", "number")}),
    ("alter-field-set-type", {"entityId": "Author", "fieldId": "name", "field": Field("name", "string", nullable=True)}),
    ("alter-field-set-type", {"entityId": "Author", "fieldId": "name", "field": Field("name", "string", primary=True)}),
    ("alter-field-set-type", {"entityId": "Author", "fieldId": "name", "field": Field("name", "Book")}),
    ("alter-field-set-type", {"entityId": "Author", "fieldId": "id", "field": Field("id", "number", primary=True)}),
    ("alter-field-set-type", {"entityId": "Book", "fieldId": "id", "field": Field("id", "number", primary=True, primary_auto=True)}),
    ("alter-field-set-name", {"entityId": "Author", "fieldId": "name", "name": "fullName"}),
    ("alter-field-set-name", {"entityId": "Author", "fieldId": "id", "name": "key"}),
    ("alter-field-drop", {"entityId": "Book", "fieldId": "author"}),
]


@pytest.mark.parametrize("command, params", ROUND_TRIPS)
def test_round_trip(deriver, schema, command, params):
    log = ActionLog()
    entry = mutate(schema, log, command, **params)
    before = PostgreSQLAdapter.layout(entry.schema_before)
    after = PostgreSQLAdapter.layout(entry.schema_after)

    scripts = deriver.derive(log)

    assert scripts.up
    assert _apply(scripts.up, before) == after
    assert _apply(scripts.down, after) == before


def test_every_registered_command_is_covered():
    assert {command for command, _ in ROUND_TRIPS} == set(build_migration_registry())

"""
Datamodel Migrations - session action log and reversible migration scripts.

Every executed mutation is appended to the ActionLog as an immutable
LogEntry carrying the schema as it was right before and right after the
mutation. The MigrationDeriver replays the log through a registry of
forward / backward statement generators:

    up   - entries in log order, each generator sees the schema after its entry
    down - entries in reverse log order, each generator sees the schema before

Snapshots are frozen when the entry is logged, so a later rename or drop
never changes what an earlier entry generates.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import core
from core import MutationResult
from Schema.datamodel import Schema, Field
from Schema.adapters.postgresql_adapter import (
    PostgreSQLAdapter, Statement, DropTable, RenameTable,
    AddColumn, DropColumn, RenameColumn, AlterColumn, render_script, snake_case,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ACTION LOG
# ============================================================================

@dataclass(frozen=True)
class LogEntry:
    command: str
    timestamp: datetime
    parameters: Mapping[str, str]
    result: Optional[MutationResult]
    schema_before: Schema
    schema_after: Schema


class ActionLog:
    """Append-only, session scoped sequence of executed mutations."""

    def __init__(self):
        self._entries: List[LogEntry] = []

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def record(self, command: str, parameters: Mapping[str, object],
               result: Optional[MutationResult], schema_before: Schema, schema_after: Schema,
               timestamp: Optional[datetime] = None) -> LogEntry:
        """Freeze one executed mutation and append it."""
        entry = LogEntry(
            command=command,
            timestamp=timestamp or datetime.now(),
            parameters=MappingProxyType({k: str(v) for k, v in parameters.items()}),
            result=result,
            schema_before=schema_before,
            schema_after=schema_after,
        )
        self.append(entry)
        logger.debug("Logged %s %s", command, dict(entry.parameters))
        return entry

    @property
    def started_at(self) -> Optional[datetime]:
        return self._entries[0].timestamp if self._entries else None

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(tuple(self._entries))

    def __reversed__(self) -> Iterator[LogEntry]:
        return reversed(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> LogEntry:
        return self._entries[index]


# ============================================================================
# GENERATORS
# ============================================================================

Generator = Callable[[Schema, LogEntry], List[Statement]]

_table = PostgreSQLAdapter.table_name


@dataclass(frozen=True)
class MigrationPair:
    up: Generator
    down: Generator


# ========== create-entity ==========

def _create_entity_up(schema: Schema, entry: LogEntry) -> List[Statement]:
    return [PostgreSQLAdapter.create_table(schema, schema.find_entity(entry.result.entity.name))]


def _create_entity_down(schema: Schema, entry: LogEntry) -> List[Statement]:
    return [DropTable(_table(entry.result.entity.name))]


# ========== drop-entity ==========

def _drop_entity_up(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    statements: List[Statement] = [
        DropColumn(_table(drop.entity), snake_case(f.name))
        for drop in result.dropped_fields for f in drop.fields
    ]
    statements.append(DropTable(_table(result.entity.name)))
    return statements


def _drop_entity_down(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    statements: List[Statement] = [
        PostgreSQLAdapter.create_table(schema, schema.find_entity(result.entity.name))
    ]
    statements.extend(
        AddColumn(_table(drop.entity), PostgreSQLAdapter.describe_column(schema, f))
        for drop in result.dropped_fields for f in drop.fields
    )
    return statements


# ========== alter-entity-rename ==========

def _rename_table(old: str, new: str) -> List[Statement]:
    if _table(old) == _table(new):
        return []
    return [RenameTable(_table(old), _table(new))]


def _rename_entity_up(schema: Schema, entry: LogEntry) -> List[Statement]:
    return _rename_table(entry.result.old_name, entry.result.new_name)


def _rename_entity_down(schema: Schema, entry: LogEntry) -> List[Statement]:
    return _rename_table(entry.result.new_name, entry.result.old_name)


# ========== alter-entity-add-field ==========

def _add_field_up(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    return [AddColumn(_table(result.entity), PostgreSQLAdapter.describe_column(schema, result.field))]


def _add_field_down(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    return [DropColumn(_table(result.entity), snake_case(result.field.name))]


# ========== alter-field-set-type ==========

def _retype(source: Schema, target: Schema, entity_name: str,
            source_field: Field, target_field: Field) -> List[Statement]:
    """Alter the retyped column, then every column whose storage follows it.

    Columns referencing a key keep its storage type, so retyping a key also
    alters the referencing columns. Those that lose their foreign key are
    altered before the key itself.
    """
    describe = PostgreSQLAdapter.describe_column
    entity = target.find_entity(entity_name)
    retyped = AlterColumn(
        _table(entity_name),
        describe(source, source_field),
        describe(target, target_field),
        PostgreSQLAdapter.primary_keys(entity),
    )

    leading: List[Statement] = []
    trailing: List[Statement] = []
    for other in target.entities:
        previous = source.find_entity(other.name)
        for fld in other.fields:
            if other.name == entity_name and fld.name == target_field.name:
                continue
            old, new = describe(source, previous.get_field(fld.name)), describe(target, fld)
            if old == new:
                continue
            statement = AlterColumn(_table(other.name), old, new, PostgreSQLAdapter.primary_keys(other))
            if old.references and old.references != new.references:
                leading.append(statement)
            else:
                trailing.append(statement)
    return leading + [retyped] + trailing


def _set_type_up(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    return _retype(entry.schema_before, entry.schema_after, result.entity, result.old_field, result.new_field)


def _set_type_down(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    return _retype(entry.schema_after, entry.schema_before, result.entity, result.new_field, result.old_field)


# ========== alter-field-set-name ==========

def _rename_column(entity: str, old: str, new: str) -> List[Statement]:
    if snake_case(old) == snake_case(new):
        return []
    return [RenameColumn(_table(entity), snake_case(old), snake_case(new))]


def _set_name_up(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    return _rename_column(result.entity, result.old_field.name, result.new_name)


def _set_name_down(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    return _rename_column(result.entity, result.new_name, result.old_field.name)


# ========== alter-field-drop ==========

def _drop_field_up(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    return [DropColumn(_table(result.entity), snake_case(result.old_field.name))]


def _drop_field_down(schema: Schema, entry: LogEntry) -> List[Statement]:
    result = entry.result
    return [AddColumn(_table(result.entity), PostgreSQLAdapter.describe_column(schema, result.old_field))]


def build_migration_registry() -> Dict[str, MigrationPair]:
    """Generator pairs per command identity.

    Action mutations have no storage representation and are not registered.
    """
    return {
        core.CREATE_ENTITY: MigrationPair(_create_entity_up, _create_entity_down),
        core.DROP_ENTITY: MigrationPair(_drop_entity_up, _drop_entity_down),
        core.ALTER_ENTITY_RENAME: MigrationPair(_rename_entity_up, _rename_entity_down),
        core.ALTER_ENTITY_ADD_FIELD: MigrationPair(_add_field_up, _add_field_down),
        core.ALTER_FIELD_SET_TYPE: MigrationPair(_set_type_up, _set_type_down),
        core.ALTER_FIELD_SET_NAME: MigrationPair(_set_name_up, _set_name_down),
        core.ALTER_FIELD_DROP: MigrationPair(_drop_field_up, _drop_field_down),
    }


# ============================================================================
# DERIVER
# ============================================================================

@dataclass(frozen=True)
class MigrationScripts:
    up: Tuple[Statement, ...]
    down: Tuple[Statement, ...]

    @property
    def empty(self) -> bool:
        return not self.up and not self.down

    def up_sql(self) -> str:
        return render_script(list(self.up))

    def down_sql(self) -> str:
        return render_script(list(self.down))


class MigrationDeriver:
    """Replay an action log into a forward and a backward script."""

    def __init__(self, registry: Dict[str, MigrationPair]):
        self.registry = registry

    def _pair(self, entry: LogEntry, direction: str) -> Optional[MigrationPair]:
        pair = self.registry.get(entry.command)
        if pair is None:
            logger.warning("No %s migration for command '%s'", direction, entry.command)
        return pair

    def derive(self, log: Iterable[LogEntry]) -> MigrationScripts:
        entries = list(log)

        up: List[Statement] = []
        for entry in entries:
            pair = self._pair(entry, "up")
            if pair is not None:
                up.extend(pair.up(entry.schema_after, entry))

        down: List[Statement] = []
        for entry in reversed(entries):
            pair = self._pair(entry, "down")
            if pair is not None:
                down.extend(pair.down(entry.schema_before, entry))

        return MigrationScripts(up=tuple(up), down=tuple(down))

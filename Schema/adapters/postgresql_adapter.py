"""
PostgreSQL Adapter - Derive storage columns and DDL from the datamodel schema.

Fields become columns, entities become tables. Migration statements are small
objects that render to SQL and can also be applied to an in-memory table
layout, which is how inverse statements are checked.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from config import (
    SQL_TYPE_MAP, SQL_STRUCTURED_TYPE, SQL_AUTO_KEY_MAP, SQL_UUID_DEFAULT
)
from ..datamodel import Schema, Entity, Field


# Table name -> column name -> Column
TableLayout = Dict[str, Dict[str, 'Column']]


def snake_case(name: str) -> str:
    """Convert camelCase / PascalCase identifiers to snake_case."""
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    s = re.sub(r"[^0-9A-Za-z]+", "_", s)
    return s.strip("_").lower()


# ============================================================================
# COLUMN
# ============================================================================

@dataclass(frozen=True)
class Column:
    name: str
    sql_type: str
    not_null: bool = True
    primary_key: bool = False
    default: Optional[str] = None
    references: Optional[str] = None

    def to_sql(self, inline_primary_key: bool = True) -> str:
        parts = [self.name, self.sql_type]
        if self.primary_key and inline_primary_key:
            parts.append("PRIMARY KEY")
        elif self.not_null:
            parts.append("NOT NULL")
        if self.default:
            parts.append(f"DEFAULT {self.default}")
        if self.references:
            parts.append(f"REFERENCES {self.references}")
        return " ".join(parts)


# ============================================================================
# MIGRATION STATEMENTS
# ============================================================================

class Statement(ABC):
    """One DDL statement of a migration script."""

    @abstractmethod
    def to_sql(self) -> str:
        pass

    @abstractmethod
    def apply(self, layout: TableLayout) -> None:
        """Apply the statement to an in-memory table layout."""

    @staticmethod
    def _table(layout: TableLayout, table: str) -> Dict[str, Column]:
        if table not in layout:
            raise ValueError(f"Unknown table: {table}")
        return layout[table]


@dataclass(frozen=True)
class CreateTable(Statement):
    table: str
    columns: Tuple[Column, ...]

    def to_sql(self) -> str:
        keys = [c.name for c in self.columns if c.primary_key]
        inline = len(keys) <= 1
        lines = [f"    {c.to_sql(inline_primary_key=inline)}" for c in self.columns]
        if not inline:
            lines.append(f"    PRIMARY KEY ({', '.join(keys)})")
        return f"CREATE TABLE {self.table} (\n" + ",\n".join(lines) + "\n);"

    def apply(self, layout: TableLayout) -> None:
        if self.table in layout:
            raise ValueError(f"Table already exists: {self.table}")
        layout[self.table] = {c.name: c for c in self.columns}


@dataclass(frozen=True)
class DropTable(Statement):
    table: str

    def to_sql(self) -> str:
        return f"DROP TABLE {self.table};"

    def apply(self, layout: TableLayout) -> None:
        self._table(layout, self.table)
        del layout[self.table]


@dataclass(frozen=True)
class RenameTable(Statement):
    table: str
    new_name: str

    def to_sql(self) -> str:
        return f"ALTER TABLE {self.table} RENAME TO {self.new_name};"

    def apply(self, layout: TableLayout) -> None:
        self._table(layout, self.table)
        if self.new_name in layout and self.new_name != self.table:
            raise ValueError(f"Table already exists: {self.new_name}")
        layout[self.new_name] = layout.pop(self.table)
        _retarget(layout, f"{self.table}(", f"{self.new_name}(")


@dataclass(frozen=True)
class AddColumn(Statement):
    table: str
    column: Column

    def to_sql(self) -> str:
        return f"ALTER TABLE {self.table} ADD COLUMN {self.column.to_sql()};"

    def apply(self, layout: TableLayout) -> None:
        columns = self._table(layout, self.table)
        if self.column.name in columns:
            raise ValueError(f"Column already exists: {self.table}.{self.column.name}")
        columns[self.column.name] = self.column


@dataclass(frozen=True)
class DropColumn(Statement):
    table: str
    column: str

    def to_sql(self) -> str:
        return f"ALTER TABLE {self.table} DROP COLUMN {self.column};"

    def apply(self, layout: TableLayout) -> None:
        columns = self._table(layout, self.table)
        if self.column not in columns:
            raise ValueError(f"Unknown column: {self.table}.{self.column}")
        del columns[self.column]


@dataclass(frozen=True)
class RenameColumn(Statement):
    table: str
    column: str
    new_name: str

    def to_sql(self) -> str:
        return f"ALTER TABLE {self.table} RENAME COLUMN {self.column} TO {self.new_name};"

    def apply(self, layout: TableLayout) -> None:
        columns = self._table(layout, self.table)
        if self.column not in columns:
            raise ValueError(f"Unknown column: {self.table}.{self.column}")
        col = columns.pop(self.column)
        columns[self.new_name] = replace(col, name=self.new_name)
        _retarget(layout, f"{self.table}({self.column})", f"{self.table}({self.new_name})")


@dataclass(frozen=True)
class AlterColumn(Statement):
    """Turn ``old`` into ``new``; both describe the same column name.

    ``primary_keys`` lists the table's key columns once the statement has
    run. It is only consulted when the column joins or leaves the key.
    """
    table: str
    old: Column
    new: Column
    primary_keys: Tuple[str, ...] = ()

    @property
    def sequence(self) -> str:
        return f"{self.table}_{self.new.name}_seq"

    def to_sql(self) -> str:
        old, new = self.old, self.new
        name = new.name
        clauses = []
        if old.references and old.references != new.references:
            clauses.append(f"DROP CONSTRAINT {self.table}_{name}_fkey")
        other_keys = [k for k in self.primary_keys if k != name]
        key_changed = old.primary_key != new.primary_key
        if key_changed and (old.primary_key or other_keys):
            clauses.append(f"DROP CONSTRAINT {self.table}_pkey")

        # SERIAL is a creation shorthand, not a type
        serial = new.sql_type == "SERIAL"
        sql_type = "INTEGER" if serial else new.sql_type
        clauses.append(f"ALTER COLUMN {name} TYPE {sql_type} USING {name}::{sql_type}")
        clauses.append(f"ALTER COLUMN {name} {'SET' if new.not_null or new.primary_key else 'DROP'} NOT NULL")
        default = f"nextval('{self.sequence}')" if serial else new.default
        if default:
            clauses.append(f"ALTER COLUMN {name} SET DEFAULT {default}")
        else:
            clauses.append(f"ALTER COLUMN {name} DROP DEFAULT")

        if key_changed and (new.primary_key or other_keys):
            keys = list(self.primary_keys) if new.primary_key else other_keys
            if new.primary_key and name not in keys:
                keys.append(name)
            clauses.append(f"ADD PRIMARY KEY ({', '.join(keys)})")
        if new.references and old.references != new.references:
            clauses.append(f"ADD FOREIGN KEY ({name}) REFERENCES {new.references}")

        sql = f"ALTER TABLE {self.table} " + ", ".join(clauses) + ";"
        if serial and old.sql_type != "SERIAL":
            sql = f"CREATE SEQUENCE IF NOT EXISTS {self.sequence} OWNED BY {self.table}.{name};\n" + sql
        return sql

    def apply(self, layout: TableLayout) -> None:
        columns = self._table(layout, self.table)
        if self.old.name not in columns:
            raise ValueError(f"Unknown column: {self.table}.{self.old.name}")
        if columns[self.old.name] != self.old:
            raise ValueError(f"Column {self.table}.{self.old.name} does not match the altered definition")
        columns[self.old.name] = self.new


@dataclass(frozen=True)
class AddForeignKey(Statement):
    table: str
    column: str
    references: str

    def to_sql(self) -> str:
        return f"ALTER TABLE {self.table} ADD FOREIGN KEY ({self.column}) REFERENCES {self.references};"

    def apply(self, layout: TableLayout) -> None:
        columns = self._table(layout, self.table)
        if self.column not in columns:
            raise ValueError(f"Unknown column: {self.table}.{self.column}")
        columns[self.column] = replace(columns[self.column], references=self.references)


def _retarget(layout: TableLayout, old: str, new: str) -> None:
    """Point every reference starting with ``old`` at ``new`` instead."""
    for columns in layout.values():
        for name, col in columns.items():
            if col.references and col.references.startswith(old):
                columns[name] = replace(col, references=new + col.references[len(old):])


def render_script(statements: List[Statement]) -> str:
    return "\n\n".join(s.to_sql() for s in statements)


# ============================================================================
# ADAPTER
# ============================================================================

class PostgreSQLAdapter:
    """Adapter to describe datamodel entities as PostgreSQL tables."""

    @classmethod
    def table_name(cls, entity_name: str) -> str:
        return snake_case(entity_name)

    @classmethod
    def column_type(cls, schema: Schema, fld: Field) -> str:
        """Storage type of a field when it is the column being defined."""
        if fld.array:
            return SQL_STRUCTURED_TYPE
        if fld.primary and fld.primary_auto and fld.type in SQL_AUTO_KEY_MAP:
            return SQL_AUTO_KEY_MAP[fld.type][0]
        return cls.reference_type(schema, fld)

    @classmethod
    def reference_type(cls, schema: Schema, fld: Field, _seen: Optional[set] = None) -> str:
        """Storage type of a value of this field's type (no auto-generation)."""
        if fld.array:
            return SQL_STRUCTURED_TYPE
        if fld.primary and fld.primary_auto and fld.type in SQL_AUTO_KEY_MAP:
            return SQL_AUTO_KEY_MAP[fld.type][1]
        if fld.type in SQL_TYPE_MAP:
            return SQL_TYPE_MAP[fld.type]

        # Entity reference: follow the referenced primary key
        seen = _seen or set()
        target = schema.get_entity(fld.type)
        if target is None or target.name in seen:
            return SQL_STRUCTURED_TYPE
        pk = target.get_primary_key()
        if pk is None:
            return SQL_STRUCTURED_TYPE
        return cls.reference_type(schema, pk, seen | {target.name})

    @classmethod
    def describe_column(cls, schema: Schema, fld: Field) -> Column:
        default = None
        if fld.primary and fld.primary_auto and fld.type == "string" and not fld.array:
            default = SQL_UUID_DEFAULT

        references = None
        target = schema.get_entity(fld.type)
        if target is not None and not fld.array:
            pk = target.get_primary_key()
            if pk is not None:
                references = f"{cls.table_name(target.name)}({snake_case(pk.name)})"

        return Column(
            name=snake_case(fld.name),
            sql_type=cls.column_type(schema, fld),
            not_null=not fld.nullable,
            primary_key=fld.primary,
            default=default,
            references=references,
        )

    @classmethod
    def describe_columns(cls, schema: Schema, entity: Entity) -> Tuple[Column, ...]:
        return tuple(cls.describe_column(schema, f) for f in entity.fields)

    @classmethod
    def primary_keys(cls, entity: Entity) -> Tuple[str, ...]:
        return tuple(snake_case(f.name) for f in entity.fields if f.primary)

    @classmethod
    def create_table(cls, schema: Schema, entity: Entity) -> CreateTable:
        return CreateTable(cls.table_name(entity.name), cls.describe_columns(schema, entity))

    @classmethod
    def layout(cls, schema: Schema) -> TableLayout:
        """Table layout of the whole schema."""
        return {
            cls.table_name(e.name): {c.name: c for c in cls.describe_columns(schema, e)}
            for e in schema.entities
        }

    # ========== Export Methods ==========

    @classmethod
    def export_to_sql(cls, schema: Schema) -> str:
        """
        Export the schema to PostgreSQL DDL.

        Args:
            schema: The datamodel schema to export

        Returns:
            PostgreSQL DDL as a string
        """
        lines = []
        lines.append("-- PostgreSQL Schema (Generated by datamodel)")
        lines.append("")

        # Referenced tables come before referencing tables. References that
        # close a cycle are added once every table exists.
        created = set()
        deferred: List[Statement] = []
        for entity in cls._sort_entities_by_dependency(schema):
            table = cls.table_name(entity.name)
            columns = []
            for fld, col in zip(entity.fields, cls.describe_columns(schema, entity)):
                if col.references and fld.type != entity.name and fld.type not in created:
                    deferred.append(AddForeignKey(table, col.name, col.references))
                    col = replace(col, references=None)
                columns.append(col)
            lines.append(CreateTable(table, tuple(columns)).to_sql())
            lines.append("")
            created.add(entity.name)

        for statement in deferred:
            lines.append(statement.to_sql())
            lines.append("")

        return "\n".join(lines)

    @classmethod
    def _sort_entities_by_dependency(cls, schema: Schema) -> List[Entity]:
        """Sort entities so that referenced tables come before referencing tables."""
        dependencies = {}
        for entity in schema.entities:
            deps = set()
            for fld in entity.fields:
                if not fld.array and fld.type != entity.name and schema.get_entity(fld.type):
                    deps.add(fld.type)
            dependencies[entity.name] = deps

        # Topological sort
        sorted_names = []
        visited = set()

        def visit(name):
            if name in visited:
                return
            visited.add(name)
            for dep in sorted(dependencies.get(name, [])):
                if dep in dependencies:
                    visit(dep)
            sorted_names.append(name)

        for name in dependencies:
            visit(name)

        return [schema.get_entity(name) for name in sorted_names]

    @classmethod
    def export_to_sql_file(cls, schema: Schema, file_path: str) -> None:
        """Export to SQL file."""
        sql = cls.export_to_sql(schema)
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(sql)

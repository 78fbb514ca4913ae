"""
Downstream artifact emitters.

Each emitter regenerates one artifact from the current schema and the
session action log after a mutation. Targets whose directory is not
configured in ``schema.paths`` are skipped.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from config import MIGRATION_FILE_SUFFIX, SQL_SCHEMA_FILE
from migrations import ActionLog, MigrationDeriver, build_migration_registry
from Schema.datamodel import Schema
from Schema.adapters import PostgreSQLAdapter

logger = logging.getLogger(__name__)


class Emitter(ABC):
    """Writes one artifact under the directory configured for ``target``."""
    target: str = ""

    def output_dir(self, schema: Schema, base_dir: Path) -> Optional[Path]:
        path = schema.paths.get(self.target)
        if not path:
            logger.debug("No %s path configured, skipping", self.target)
            return None
        return Path(base_dir) / path

    @abstractmethod
    def emit(self, schema: Schema, log: ActionLog, base_dir: Path) -> List[Path]:
        """Write the artifact and return the files written."""


class MigrationEmitter(Emitter):
    """Session migration as ``<stamp>_datamodel.up.sql`` / ``.down.sql``.

    The stamp is the time of the first logged mutation, so the same pair of
    files is rewritten for the whole session.
    """
    target = "migrations"

    def __init__(self, deriver: Optional[MigrationDeriver] = None):
        self.deriver = deriver or MigrationDeriver(build_migration_registry())

    def file_names(self, log: ActionLog) -> List[str]:
        stamp = log.started_at.strftime("%Y%m%d%H%M%S")
        return [f"{stamp}{MIGRATION_FILE_SUFFIX}.up.sql", f"{stamp}{MIGRATION_FILE_SUFFIX}.down.sql"]

    def emit(self, schema, log, base_dir):
        directory = self.output_dir(schema, base_dir)
        if directory is None or not len(log):
            return []

        scripts = self.deriver.derive(log)
        directory.mkdir(parents=True, exist_ok=True)
        up_name, down_name = self.file_names(log)
        written = []
        for name, sql in ((up_name, scripts.up_sql()), (down_name, scripts.down_sql())):
            path = directory / name
            path.write_text(sql + "\n", encoding="utf-8")
            written.append(path)
        logger.info("Wrote migration %s", up_name)
        return written


class SqlSchemaEmitter(Emitter):
    """Full DDL of the current schema."""
    target = "sql"

    def emit(self, schema, log, base_dir):
        directory = self.output_dir(schema, base_dir)
        if directory is None:
            return []
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / SQL_SCHEMA_FILE
        PostgreSQLAdapter.export_to_sql_file(schema, str(path))
        return [path]


def default_emitters() -> List[Emitter]:
    return [MigrationEmitter(), SqlSchemaEmitter()]

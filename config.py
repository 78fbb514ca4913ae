"""
Datamodel Shell Configuration - Centralized path and settings management.

This module contains the file names, default output targets and type
vocabularies used by the shell, the mutator and the migration deriver.
"""

# =============================================================================
# PATH CONFIGURATION
# =============================================================================


# Schema document, looked up in the directory the shell is started in
DATAMODEL_FILE = "datamodel.json"

# prompt_toolkit command history, stored next to the schema document
HISTORY_FILE = ".datamodel_history"

# Output targets offered by the setup dialogue (target name -> default dir)
DEFAULT_PATHS = {
    "migrations": "migrations",
    "sql": "sql",
}

MIGRATION_FILE_SUFFIX = "_datamodel"
SQL_SCHEMA_FILE = "schema.sql"


# =============================================================================
# TYPE VOCABULARY
# =============================================================================

PRIMITIVE_TYPES = ("string", "number", "boolean")

# Return type marker for actions that return nothing
VOID_TYPE = "void"

ACTION_TYPES = ("create", "read", "update", "delete")


# =============================================================================
# STORAGE TYPES (PostgreSQL)
# =============================================================================

SQL_TYPE_MAP = {
    "string": "VARCHAR(255)",
    "number": "NUMERIC",
    "boolean": "BOOLEAN",
}

# Opaque structured storage for arrays and unresolvable references
SQL_STRUCTURED_TYPE = "JSONB"

# Auto-generated primary keys: (column type, type used by referencing columns)
SQL_AUTO_KEY_MAP = {
    "number": ("SERIAL", "INTEGER"),
    "string": ("UUID", "UUID"),
}

SQL_UUID_DEFAULT = "uuid_generate_v4()"

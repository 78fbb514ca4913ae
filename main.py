"""datamodel CLI - interactive shell for evolving a datamodel.json document"""
import logging
import sys
from pathlib import Path
from typing import Optional

import typer

sys.path.insert(0, str(Path(__file__).parent))

from config import DATAMODEL_FILE, DEFAULT_PATHS
from Schema.datamodel import Schema, SchemaFileError, load_schema, save_schema
from grammar.dialogues import Prompter, ConsolePrompter
from grammar.datamodel_repl import DatamodelShell

# ANSI Colors
GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"

logger = logging.getLogger(__name__)

app = typer.Typer(help="Interactive shell for evolving a datamodel.json document", add_completion=False)


def initialize_schema(path: Path, prompter: Prompter) -> Optional[Schema]:
    """Setup dialogue for a directory without a schema document.

    Returns None when the user declines to create one.
    """
    if not prompter.confirm(f"No {DATAMODEL_FILE} found, do you want to create one?", default=True):
        return None

    schema = Schema()
    migrations = prompter.text("Where should migrations be written?", default=DEFAULT_PATHS["migrations"])
    sql = prompter.text("Where should the SQL schema be written?", default=DEFAULT_PATHS["sql"])
    schema.paths = {k: v for k, v in (("migrations", migrations), ("sql", sql)) if v}

    save_schema(path, schema)
    print(f"{GREEN}Created {path}{RESET}")
    return schema


def open_schema(path: Path, prompter: Prompter) -> Optional[Schema]:
    if path.exists():
        return load_schema(path)
    return initialize_schema(path, prompter)


@app.command()
def main(
    directory: Path = typer.Argument(Path("."), help="Directory holding the datamodel.json document"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Open the datamodel shell on DIRECTORY."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    path = directory / DATAMODEL_FILE
    prompter = ConsolePrompter()
    try:
        schema = open_schema(path, prompter)
    except SchemaFileError as e:
        print(f"{RED}[ERROR] {e}{RESET}")
        raise typer.Exit(code=1)

    if schema is None:
        raise typer.Exit(code=0)

    logger.debug("Loaded %s with %d entities", path, len(schema.entities))
    DatamodelShell(schema, path, prompter=prompter).run()


if __name__ == "__main__":
    app()

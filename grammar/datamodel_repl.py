"""
Datamodel shell - interactive REPL with live completion.

Completion and validation both run the grammar resolver against the text
typed so far; a submitted command is executed, the generated artifacts are
rewritten and the schema document is saved.
"""
import logging
from pathlib import Path
from typing import List, Optional

from prompt_toolkit import prompt
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import Validator, ValidationError

from config import HISTORY_FILE
from emitters import Emitter, default_emitters
from migrations import ActionLog
from Schema.datamodel import Schema, SchemaError, save_schema
from .command_tree import build_command_tree
from .dialogues import Prompter, ConsolePrompter
from .resolver import Resolver, CommandError, ExecutionResult

logger = logging.getLogger(__name__)

# ANSI Colors
RED = "\033[91m"
RESET = "\033[0m"

UTILITY_COMMANDS = ("help", "exit")

# ============================================================================
# Style Configuration
# ============================================================================

style = Style.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


# ============================================================================
# Completion and validation
# ============================================================================

class CommandCompleter(Completer):
    """Offer full commands; each completion replaces the whole line."""

    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        for suggestion in self.resolver.suggest(text):
            yield Completion(suggestion, start_position=-len(text))


class CommandValidator(Validator):
    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    def validate(self, document):
        text = document.text
        if not text.strip() or text.strip().lower() in UTILITY_COMMANDS:
            return
        if not self.resolver.validate(text):
            raise ValidationError(message="Continue typing", cursor_position=len(text))


# ============================================================================
# REPL Implementation
# ============================================================================

def print_banner():
    """Print welcome banner with usage tips"""
    print("""
+===========================================================================+
|                    datamodel - Schema Evolution Shell                     |
|                  Interactive REPL with Auto-completion                    |
+===========================================================================+
|  TIP: Start typing and pick a command from the completion menu            |
|                                                                           |
|  Examples:                                                                |
|    create <TAB>        -> entity, action                                  |
|    alter entity <TAB>  -> existing entities                               |
|    drop <TAB>          -> entity, action                                  |
|                                                                           |
|  Type 'help' for command reference, 'exit' to quit                        |
+---------------------------------------------------------------------------+
""")


def print_help():
    """Print command reference"""
    print("""
datamodel Command Reference
===========================

Entities:
  create entity
  alter entity <entity> modify name
  alter entity <entity> modify field <field> set name|type
  alter entity <entity> modify field <field> drop
  alter entity <entity> add field
  drop entity <entity>
  describe entity <entity>

Actions:
  create action
  alter action <group.action> modify name|type
  alter action <group.action> modify arguments drop <argument>
  drop action <group.action>
  describe action <group.action>

Utility:
  help
  exit
""")


class DatamodelShell:
    """One interactive session over a loaded schema document."""

    def __init__(self, schema: Schema, schema_path: Path,
                 emitters: Optional[List[Emitter]] = None,
                 prompter: Optional[Prompter] = None):
        self.schema = schema
        self.schema_path = Path(schema_path)
        self.base_dir = self.schema_path.parent
        self.emitters = default_emitters() if emitters is None else emitters
        self.log = ActionLog()
        self.prompter = prompter or ConsolePrompter()
        self.resolver = Resolver(build_command_tree(), schema, self.log, self.prompter)

    def handle(self, text: str) -> Optional[ExecutionResult]:
        """Execute one submitted line."""
        command = text.strip()
        if not command:
            return None
        if command.lower() == "help":
            print_help()
            return None

        try:
            result = self.resolver.execute(command)
        except (SchemaError, CommandError) as e:
            print(f"{RED}{e}{RESET}")
            return None
        except (KeyboardInterrupt, EOFError):
            print(f"{RED}Cancelled{RESET}")
            return None

        if result.mutated:
            self.persist()
        return result

    def persist(self) -> bool:
        """Save the schema document, then regenerate the artifacts."""
        try:
            save_schema(self.schema_path, self.schema)
        except OSError as e:
            logger.error("Could not save %s: %s", self.schema_path, e)
            print(f"{RED}Could not save {self.schema_path}: {e}{RESET}")
            return False

        written = True
        for emitter in self.emitters:
            try:
                for path in emitter.emit(self.schema, self.log, self.base_dir):
                    logger.debug("Wrote %s", path)
            except OSError as e:
                logger.error("%s output failed: %s", emitter.target, e)
                print(f"{RED}Could not write {emitter.target} output: {e}{RESET}")
                written = False
        return written

    def run(self) -> None:
        """Main REPL loop"""
        print_banner()
        completer = CommandCompleter(self.resolver)
        validator = CommandValidator(self.resolver)
        history = FileHistory(str(self.base_dir / HISTORY_FILE))

        while True:
            try:
                user_input = prompt(
                    'datamodel> ',
                    completer=completer,
                    complete_while_typing=True,
                    validator=validator,
                    validate_while_typing=False,
                    history=history,
                    auto_suggest=AutoSuggestFromHistory(),
                    style=style,
                )
            except KeyboardInterrupt:
                continue
            except EOFError:
                print("\nGoodbye!")
                break

            if user_input.strip().lower() == "exit":
                print("Goodbye!")
                break
            self.handle(user_input)

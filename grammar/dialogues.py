"""
Command actions and the question dialogues they run.

Each action is a strategy attached to a command node. Mutating actions ask
their questions first, then hand a fully specified parameter set to the
SchemaMutator; lookups of the bound identifiers happen before any question
is asked so an unknown name aborts the command straight away.
"""
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Any, Optional, Sequence

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.validation import Validator

import core
from config import ACTION_TYPES, PRIMITIVE_TYPES, VOID_TYPE
from core import SchemaMutator, MutationResult
from Schema.datamodel import Schema, Field

# ANSI Colors
MAGENTA = "\033[95m"
BOLD = "\033[1m"
RESET = "\033[0m"


# ============================================================================
# PROMPTERS
# ============================================================================

class Prompter(ABC):
    """Asks the questions of a command dialogue."""

    @abstractmethod
    def text(self, message: str, validate: Optional[Callable[[str], bool]] = None,
             default: str = "") -> str:
        pass

    @abstractmethod
    def select(self, message: str, choices: Sequence[str], default: Optional[str] = None) -> str:
        pass

    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        pass

    @abstractmethod
    def echo(self, message: str) -> None:
        pass


class ConsolePrompter(Prompter):
    """Prompter backed by prompt_toolkit prompts."""

    def text(self, message, validate=None, default=""):
        validator = None
        if validate is not None:
            validator = Validator.from_callable(
                lambda t: validate(t.strip()),
                error_message="Please enter a valid value",
                move_cursor_to_end=True,
            )
        return prompt(f"? {message} ", validator=validator, default=default or "").strip()

    def select(self, message, choices, default=None):
        choices = list(choices)
        validator = Validator.from_callable(
            lambda t: t.strip() in choices,
            error_message=f"Choose one of: {', '.join(choices)}",
            move_cursor_to_end=True,
        )
        return prompt(
            f"? {message} ({', '.join(choices)}) ",
            completer=WordCompleter(choices),
            validator=validator,
            default=default or "",
        ).strip()

    def confirm(self, message, default=False):
        validator = Validator.from_callable(
            lambda t: t.strip().lower() in ("", "y", "yes", "n", "no"),
            error_message="Answer y or n",
        )
        answer = prompt(f"? {message} ({'Y/n' if default else 'y/N'}) ", validator=validator)
        answer = answer.strip().lower()
        if not answer:
            return default
        return answer.startswith("y")

    def echo(self, message):
        print(f"> {message}")


# ============================================================================
# QUESTIONS
# ============================================================================

def field_questions(prompter: Prompter, schema: Schema, fields: List[Field],
                    pending_entity: Optional[str] = None, current: Optional[Field] = None) -> Field:
    """Ask for a field definition.

    With ``current`` the name is kept and its settings are offered as defaults.
    ``fields`` are the fields already defined on the entity.
    """
    taken = {f.name for f in fields}
    if current is None:
        name = prompter.text("What's the name of the new field?",
                             validate=lambda t: bool(t) and t not in taken)
    else:
        name = current.name

    choices = schema.type_choices()
    if pending_entity and pending_entity not in choices:
        choices.append(pending_entity)
    type_name = prompter.select("What's the type of the new field?", choices,
                                default=current.type if current else None)
    array = prompter.confirm("Is this an array?", default=current.array if current else False)
    primary = prompter.confirm("Is it a primary key?",
                               default=not fields or bool(current and current.primary))
    primary_auto = False
    if primary:
        primary_auto = prompter.confirm("Is it auto generated?",
                                        default=current.primary_auto if current else True)
    nullable = prompter.confirm("Is it nullable?", default=current.nullable if current else False)

    return Field(name=name, type=type_name, primary=primary, primary_auto=primary_auto,
                 nullable=nullable, array=array)


def argument_questions(prompter: Prompter, schema: Schema, arguments: List[Field]) -> Field:
    taken = {a.name for a in arguments}
    name = prompter.text("What's the name of the new argument?",
                         validate=lambda t: bool(t) and t not in taken)
    type_name = prompter.select("What's the type of the new argument?", schema.type_choices())
    array = prompter.confirm("Is this an array?", default=False)
    nullable = prompter.confirm("Is it nullable?", default=False)
    return Field(name=name, type=type_name, nullable=nullable, array=array)


# ============================================================================
# COMMAND ACTIONS
# ============================================================================

class CommandAction(ABC):
    """Behaviour attached to a command node.

    ``name`` is the command identity recorded in the action log.
    """
    name: str = ""
    mutates: bool = True

    @abstractmethod
    def run(self, schema: Schema, params: Dict[str, Any], prompter: Prompter) -> Optional[MutationResult]:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class MutatingAction(CommandAction):
    """Ask the dialogue, then apply the mutation named after the action."""

    def run(self, schema, params, prompter):
        answers = self.ask(schema, params, prompter)
        result = SchemaMutator(schema).apply(self.name, {**params, **answers})
        # Scalar answers become part of the logged parameters
        params.update({k: str(v) for k, v in answers.items() if isinstance(v, (str, bool))})
        prompter.echo("OK")
        for line in result.summary():
            prompter.echo(line)
        return result

    def ask(self, schema: Schema, params: Dict[str, Any], prompter: Prompter) -> Dict[str, Any]:
        return {}


class CreateEntity(MutatingAction):
    name = core.CREATE_ENTITY

    def ask(self, schema, params, prompter):
        entity_name = prompter.text(
            "What's the name of the new entity?",
            validate=lambda t: bool(t) and t not in PRIMITIVE_TYPES and t != VOID_TYPE
            and schema.get_entity(t) is None,
        )
        prompter.echo("Now we need to add at least one field")
        fields: List[Field] = []
        while True:
            fields.append(field_questions(prompter, schema, fields, pending_entity=entity_name))
            if not prompter.confirm("Do you want to add another field?"):
                break
        return {"name": entity_name, "fields": fields}


class CreateAction(MutatingAction):
    name = core.CREATE_ACTION

    def ask(self, schema, params, prompter):
        action_id = prompter.text(
            "What's the name of the action? (use group.action notation)",
            validate=lambda t: t.count(".") == 1 and all(t.split(".")),
        )
        action_type = prompter.select("What's the type of this action?", ACTION_TYPES)
        returns = prompter.select("What's the type returned by this action?",
                                  schema.type_choices(include_void=True))
        returns_array = False
        returns_nullable = False
        if returns != VOID_TYPE:
            returns_array = prompter.confirm("Does this action return an array?")
            returns_nullable = prompter.confirm("Can this action return null?")

        arguments: List[Field] = []
        while prompter.confirm(
                f"Do you want to add a{'nother' if arguments else 'n'} argument to the action?"):
            arguments.append(argument_questions(prompter, schema, arguments))

        return {
            "action_id": action_id,
            "type": action_type,
            "returns": returns,
            "returns_array": returns_array,
            "returns_nullable": returns_nullable,
            "arguments": arguments,
        }


class DropEntity(MutatingAction):
    name = core.DROP_ENTITY


class DropAction(MutatingAction):
    name = core.DROP_ACTION


class RenameEntity(MutatingAction):
    name = core.ALTER_ENTITY_RENAME

    def ask(self, schema, params, prompter):
        schema.find_entity(params.get("entityId"))
        new_name = prompter.text(
            "What's the new name of the entity?",
            validate=lambda t: bool(t) and t not in PRIMITIVE_TYPES and t != VOID_TYPE,
        )
        return {"name": new_name}


class AddField(MutatingAction):
    name = core.ALTER_ENTITY_ADD_FIELD

    def ask(self, schema, params, prompter):
        entity = schema.find_entity(params.get("entityId"))
        fld = field_questions(prompter, schema, entity.fields, pending_entity=entity.name)
        return {"field": fld, "name": fld.name}


class SetFieldType(MutatingAction):
    name = core.ALTER_FIELD_SET_TYPE

    def ask(self, schema, params, prompter):
        entity, current = schema.find_field(params.get("entityId"), params.get("fieldId"))
        fld = field_questions(prompter, schema, entity.fields, current=current)
        return {"field": fld, "type": fld.type}


class SetFieldName(MutatingAction):
    name = core.ALTER_FIELD_SET_NAME

    def ask(self, schema, params, prompter):
        entity, current = schema.find_field(params.get("entityId"), params.get("fieldId"))
        taken = {f.name for f in entity.fields if f is not current}
        new_name = prompter.text("What's the new name for this field?",
                                 validate=lambda t: bool(t) and t not in taken)
        return {"name": new_name}


class DropField(MutatingAction):
    name = core.ALTER_FIELD_DROP


class RenameAction(MutatingAction):
    name = core.ALTER_ACTION_RENAME

    def ask(self, schema, params, prompter):
        schema.find_action(params.get("actionId"))
        new_name = prompter.text("What's the new name of the action?",
                                 validate=lambda t: bool(t) and "." not in t)
        return {"name": new_name}


class SetActionType(MutatingAction):
    name = core.ALTER_ACTION_SET_TYPE

    def ask(self, schema, params, prompter):
        action = schema.find_action(params.get("actionId"))
        action_type = prompter.select("What's the type of this action?", ACTION_TYPES,
                                      default=action.type.value)
        return {"type": action_type}


class DropArgument(MutatingAction):
    name = core.ALTER_ACTION_DROP_ARGUMENT


# ========== Read-only actions ==========

class DescribeEntity(CommandAction):
    name = "describe-entity"
    mutates = False

    def run(self, schema, params, prompter):
        entity = schema.find_entity(params.get("entityId"))
        for fld in entity.fields:
            prompter.echo(f"{MAGENTA}{fld.name}{RESET}")
            parts = [f"{BOLD}{fld.type}{'[]' if fld.array else ''}{RESET}"]
            if not fld.nullable:
                parts.append("not null")
            if fld.primary:
                parts.append("primary key")
                if fld.primary_auto:
                    parts.append("auto")
            prompter.echo("   " + " ".join(parts))
        return None


class DescribeAction(CommandAction):
    name = "describe-action"
    mutates = False

    def run(self, schema, params, prompter):
        action = schema.find_action(params.get("actionId"))
        prompter.echo(f"{MAGENTA}{action.type.value}{RESET}")
        for arg in action.arguments:
            prompter.echo(f"{MAGENTA}{arg.name}{RESET}")
            parts = [f"{BOLD}{arg.type}{'[]' if arg.array else ''}{RESET}"]
            if not arg.nullable:
                parts.append("not null")
            prompter.echo("   " + " ".join(parts))
        prompter.echo(f"{MAGENTA}=>{RESET}")
        parts = [f"{BOLD}{action.returns}{'[]' if action.returns_array else ''}{RESET}"]
        if not action.returns_void and not action.returns_nullable:
            parts.append("not null")
        prompter.echo("   " + " ".join(parts))
        return None

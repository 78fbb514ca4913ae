"""
Test helpers: scripted dialogue answers and a sample schema.
"""
from typing import Any, List, Optional

from core import SchemaMutator
from grammar.dialogues import Prompter
from migrations import ActionLog, LogEntry
from Schema.datamodel import Schema, Entity, Field, Action, ActionType


class ScriptedPrompter(Prompter):
    """Answer dialogue questions from a list, in order."""

    def __init__(self, answers: Optional[List[Any]] = None):
        self.answers = list(answers or [])
        self.questions: List[str] = []
        self.echoed: List[str] = []

    def _next(self, message: str) -> Any:
        self.questions.append(message)
        if not self.answers:
            raise AssertionError(f"No scripted answer left for: {message}")
        return self.answers.pop(0)

    def text(self, message, validate=None, default=""):
        answer = self._next(message)
        if answer is None:
            return default
        if validate is not None and not validate(answer):
            raise AssertionError(f"Answer {answer!r} rejected for: {message}")
        return answer

    def select(self, message, choices, default=None):
        answer = self._next(message)
        if answer is None:
            return default
        if answer not in choices:
            raise AssertionError(f"{answer!r} is not one of {list(choices)}")
        return answer

    def confirm(self, message, default=False):
        answer = self._next(message)
        return default if answer is None else bool(answer)

    def echo(self, message):
        self.echoed.append(message)


def sample_schema() -> Schema:
    """Two related entities and one action group.

    Book.author references Author; library.checkout takes an Author and
    returns a Book.
    """
    author = Entity("Author", [
        Field("id", "number", primary=True, primary_auto=True),
        Field("name", "string"),
    ])
    book = Entity("Book", [
        Field("id", "string", primary=True, primary_auto=True),
        Field("author", "Author"),
        Field("tags", "string", array=True, nullable=True),
    ])
    checkout = Action(
        name="checkout",
        type=ActionType.UPDATE,
        arguments=[Field("author", "Author"), Field("note", "string", nullable=True)],
        returns="Book",
    )
    return Schema(
        entities=[author, book],
        actions={"library": [checkout]},
        paths={"migrations": "migrations", "sql": "sql"},
    )


def mutate(schema: Schema, log: ActionLog, command: str, **params) -> LogEntry:
    """Apply one mutation directly and log it like the resolver does."""
    before = schema.snapshot()
    result = SchemaMutator(schema).apply(command, params)
    return log.record(command, {k: v for k, v in params.items() if isinstance(v, str)},
                      result, before, schema.snapshot())

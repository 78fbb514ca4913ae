"""
Grammar resolver - walk the command tree against free text.

The same walk serves three modes:

    SUGGEST  - completion candidates, each a full resubmittable command
    VALIDATE - True when the text names exactly one complete command
    EXECUTE  - run the command's action, logging mutations
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from migrations import ActionLog, LogEntry
from Schema.datamodel import Schema
from .command_tree import CommandNode, ParameterNode
from .dialogues import Prompter, ConsolePrompter
from .suggestions import suggest, render

logger = logging.getLogger(__name__)

WORD_RE = re.compile(r"[\w.]+")


class CommandError(Exception):
    """Execution requested for text that is not a complete command."""


class Mode(str, Enum):
    SUGGEST = "suggest"
    VALIDATE = "validate"
    EXECUTE = "execute"


@dataclass(frozen=True)
class ExecutionResult:
    command: str
    entry: Optional[LogEntry] = None

    @property
    def mutated(self) -> bool:
        return self.entry is not None


def tokenize(text: str) -> List[str]:
    return WORD_RE.findall(text)


class Resolver:
    """Resolve input text against a command tree and a live schema."""

    def __init__(self, tree: Tuple[CommandNode, ...], schema: Schema, log: ActionLog,
                 prompter: Optional[Prompter] = None):
        self.tree = tree
        self.schema = schema
        self.log = log
        self.prompter = prompter or ConsolePrompter()

    def suggest(self, text: str) -> List[str]:
        return self.resolve(text, Mode.SUGGEST)

    def validate(self, text: str) -> bool:
        return self.resolve(text, Mode.VALIDATE)

    def execute(self, text: str) -> ExecutionResult:
        return self.resolve(text, Mode.EXECUTE)

    def resolve(self, text: str, mode: Mode = Mode.SUGGEST):
        committed = bool(text) and text[-1].isspace()
        words = tokenize(text)
        known: List[str] = []
        params: Dict[str, Any] = {}
        candidates = self.tree
        last: Optional[CommandNode] = None

        while words:
            word = words.pop(0)
            node = next((n for n in candidates if n.matches(word)), None)

            if node is None:
                if mode is not Mode.SUGGEST:
                    return self._incomplete(mode, text)
                if words or committed:
                    return []
                # Unknown word still being typed
                return suggest(known, [n.token for n in candidates], word)

            known.append(word)
            last = node

            if isinstance(node, ParameterNode):
                if not words:
                    if mode is not Mode.SUGGEST:
                        return self._incomplete(mode, text)
                    return render(known, node.suggest(self.schema, params))
                value = words.pop(0)
                params[node.parameter] = value
                if mode is Mode.SUGGEST and not words and not committed:
                    return suggest(known, node.suggest(self.schema, params), value)
                known.append(value)
            elif mode is Mode.SUGGEST and not words and not committed:
                # Literal still being typed, offer it with its siblings
                siblings = [word if n is node else n.token for n in candidates]
                return suggest(known[:-1], siblings, word)

            if node.action is not None and mode is not Mode.SUGGEST:
                if words:
                    return self._incomplete(mode, text)
                if mode is Mode.VALIDATE:
                    return True
                return self._run(node, params)

            if not node.children:
                break
            candidates = node.children

        if mode is not Mode.SUGGEST:
            return self._incomplete(mode, text)
        if words:
            return []

        children = last.children if last is not None else self.tree
        if children:
            return render(known, [n.token for n in children])
        return [" ".join(known)]

    def _incomplete(self, mode: Mode, text: str):
        if mode is Mode.VALIDATE:
            return False
        raise CommandError(f"Incomplete command: '{text.strip()}'")

    def _run(self, node: CommandNode, params: Dict[str, Any]) -> ExecutionResult:
        action = node.action
        if not action.mutates:
            action.run(self.schema, params, self.prompter)
            return ExecutionResult(command=action.name)

        before = self.schema.snapshot()
        result = action.run(self.schema, params, self.prompter)
        entry = self.log.record(action.name, params, result, before, self.schema.snapshot())
        logger.info("Executed %s", action.name)
        return ExecutionResult(command=action.name, entry=entry)

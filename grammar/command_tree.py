"""
Command tree - the static grammar of the datamodel shell.

The tree is built once by build_command_tree() out of two node variants:
LiteralNode matches one of its tokens, ParameterNode additionally binds the
next input word under its parameter name. Nodes are frozen; behaviour is
attached as strategy objects (suggestion providers and command actions).
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from Schema.datamodel import Schema, SchemaError
from .dialogues import (
    CommandAction, CreateEntity, CreateAction, DropEntity, DropAction,
    RenameEntity, AddField, SetFieldType, SetFieldName, DropField,
    RenameAction, SetActionType, DropArgument, DescribeEntity, DescribeAction,
)

# Computes parameter candidates from the schema and the parameters bound so far
SuggestionProvider = Callable[[Schema, Dict[str, Any]], List[str]]


# ============================================================================
# NODES
# ============================================================================

class CommandNode:
    tokens: Tuple[str, ...]
    children: Tuple['CommandNode', ...]
    action: Optional[CommandAction]

    @property
    def token(self) -> str:
        """Token offered as completion."""
        return self.tokens[0]

    def matches(self, word: str) -> bool:
        return word in self.tokens


@dataclass(frozen=True)
class LiteralNode(CommandNode):
    tokens: Tuple[str, ...]
    children: Tuple[CommandNode, ...] = ()
    action: Optional[CommandAction] = None


@dataclass(frozen=True)
class ParameterNode(CommandNode):
    tokens: Tuple[str, ...]
    parameter: str
    suggest: SuggestionProvider
    children: Tuple[CommandNode, ...] = ()
    action: Optional[CommandAction] = None


# ============================================================================
# SUGGESTION PROVIDERS
# ============================================================================

def entity_names(schema: Schema, params: Dict[str, Any]) -> List[str]:
    return schema.entity_names()


def field_names(schema: Schema, params: Dict[str, Any]) -> List[str]:
    try:
        entity = schema.find_entity(params.get("entityId"))
    except SchemaError:
        return []
    return [f.name for f in entity.fields]


def action_ids(schema: Schema, params: Dict[str, Any]) -> List[str]:
    return schema.action_ids()


def argument_names(schema: Schema, params: Dict[str, Any]) -> List[str]:
    try:
        action = schema.find_action(params.get("actionId"))
    except SchemaError:
        return []
    return [a.name for a in action.arguments]


# ============================================================================
# TREE
# ============================================================================

def _literal(token, *children, action=None, aliases=()) -> LiteralNode:
    return LiteralNode(tokens=(token,) + tuple(aliases), children=tuple(children), action=action)


def _parameter(token, parameter, suggest, *children, action=None) -> ParameterNode:
    return ParameterNode(tokens=(token,), parameter=parameter, suggest=suggest,
                         children=tuple(children), action=action)


def _check(nodes: Tuple[CommandNode, ...], path: str = "") -> None:
    seen = set()
    for node in nodes:
        overlap = seen.intersection(node.tokens)
        if overlap:
            raise ValueError(f"Ambiguous tokens {sorted(overlap)} under '{path or '<root>'}'")
        seen.update(node.tokens)
        if isinstance(node, ParameterNode) and node.suggest is None:
            raise ValueError(f"Parameter '{node.parameter}' has no suggestion provider")
        _check(node.children, f"{path} {node.token}".strip())


def build_command_tree() -> Tuple[CommandNode, ...]:
    """Build the root set of the command grammar."""
    tree = (
        _literal(
            "create",
            _literal("entity", action=CreateEntity()),
            _literal("action", action=CreateAction()),
        ),
        _literal(
            "alter",
            _parameter(
                "entity", "entityId", entity_names,
                _literal(
                    "modify",
                    _literal("name", action=RenameEntity()),
                    _parameter(
                        "field", "fieldId", field_names,
                        _literal(
                            "set",
                            _literal("name", action=SetFieldName()),
                            _literal("type", action=SetFieldType()),
                        ),
                        _literal("drop", action=DropField()),
                    ),
                ),
                _literal("add", _literal("field", action=AddField())),
            ),
            _parameter(
                "action", "actionId", action_ids,
                _literal(
                    "modify",
                    _literal("name", action=RenameAction()),
                    _literal("type", action=SetActionType()),
                    _literal(
                        "arguments",
                        _parameter("drop", "argumentName", argument_names, action=DropArgument()),
                    ),
                ),
            ),
        ),
        _literal(
            "drop",
            _parameter("entity", "entityId", entity_names, action=DropEntity()),
            _parameter("action", "actionId", action_ids, action=DropAction()),
        ),
        _literal(
            "describe",
            _parameter("entity", "entityId", entity_names, action=DescribeEntity()),
            _parameter("action", "actionId", action_ids, action=DescribeAction()),
            aliases=("show",),
        ),
    )
    _check(tree)
    return tree

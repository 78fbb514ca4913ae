# Datamodel Schema - entities, fields and grouped remote actions
# Persisted as datamodel.json (camelCase keys on disk, snake_case in Python)

import copy
import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any, Tuple
from dataclasses import dataclass, field

from config import PRIMITIVE_TYPES, VOID_TYPE


# ============================================================================
# ERRORS
# ============================================================================

class SchemaError(Exception):
    """Lookup or integrity error raised by a command against the schema."""


class SchemaFileError(Exception):
    """The persisted schema document exists but cannot be read."""


def _quote(name: Optional[str]) -> str:
    return f"'{name}'" if name else "No name provided"


# ============================================================================
# ENUMS
# ============================================================================

class PrimitiveType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


class ActionType(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


def is_primitive(type_name: str) -> bool:
    return type_name in PRIMITIVE_TYPES


# ============================================================================
# FIELD
# ============================================================================

@dataclass
class Field:
    name: str
    type: str
    primary: bool = False
    primary_auto: bool = False
    nullable: bool = False
    array: bool = False
    validations: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "name": self.name,
            "type": self.type,
            "primary": self.primary,
            "nullable": self.nullable,
            "array": self.array,
        }
        if self.primary:
            d["primaryAuto"] = self.primary_auto
        if self.validations:
            d["validations"] = dict(self.validations)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Field':
        return cls(
            name=data.get("name", ""),
            type=data.get("type", PrimitiveType.STRING.value),
            primary=bool(data.get("primary", False)),
            primary_auto=bool(data.get("primaryAuto", False)),
            nullable=bool(data.get("nullable", False)),
            array=bool(data.get("array", False)),
            validations=dict(data.get("validations") or {}),
        )

    def copy(self) -> 'Field':
        return copy.deepcopy(self)


# ============================================================================
# ENTITY
# ============================================================================

@dataclass
class Entity:
    name: str
    fields: List[Field] = field(default_factory=list)

    def get_field(self, name: str) -> Optional[Field]:
        return next((f for f in self.fields if f.name == name), None)

    def get_primary_key(self) -> Optional[Field]:
        return next((f for f in self.fields if f.primary), None)

    def has_primary_key(self) -> bool:
        return any(f.primary for f in self.fields)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "fields": [f.to_dict() for f in self.fields]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Entity':
        return cls(
            name=data.get("name", ""),
            fields=[Field.from_dict(f) for f in data.get("fields", [])],
        )

    def copy(self) -> 'Entity':
        return copy.deepcopy(self)


# ============================================================================
# ACTION
# ============================================================================

@dataclass
class Action:
    name: str
    type: ActionType
    arguments: List[Field] = field(default_factory=list)
    returns: str = VOID_TYPE
    returns_array: bool = False
    returns_nullable: bool = False

    @property
    def returns_void(self) -> bool:
        return self.returns == VOID_TYPE

    def get_argument(self, name: str) -> Optional[Field]:
        return next((a for a in self.arguments if a.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "arguments": [a.to_dict() for a in self.arguments],
            "returns": self.returns,
            "returnsArray": self.returns_array,
            "returnsNullable": self.returns_nullable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Action':
        try:
            action_type = ActionType(data.get("type", "read"))
        except ValueError:
            action_type = ActionType.READ
        return cls(
            name=data.get("name", ""),
            type=action_type,
            arguments=[Field.from_dict(a) for a in data.get("arguments", [])],
            # Older documents omit the return type of void actions
            returns=data.get("returns") or VOID_TYPE,
            returns_array=bool(data.get("returnsArray", False)),
            returns_nullable=bool(data.get("returnsNullable", False)),
        )


def split_action_id(action_id: Optional[str]) -> Tuple[str, str]:
    """Split a dotted ``group.name`` action identifier."""
    parts = (action_id or "").split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise SchemaError(f"Invalid action identifier {_quote(action_id)}, use group.action notation")
    return parts[0], parts[1]


# ============================================================================
# SCHEMA (TOP-LEVEL)
# ============================================================================

@dataclass
class Schema:
    entities: List[Entity] = field(default_factory=list)
    actions: Dict[str, List[Action]] = field(default_factory=dict)
    paths: Dict[str, str] = field(default_factory=dict)

    # Entity lookups
    def entity_names(self) -> List[str]:
        return [e.name for e in self.entities]

    def get_entity(self, name: Optional[str]) -> Optional[Entity]:
        return next((e for e in self.entities if e.name == name), None)

    def find_entity(self, entity_id: Optional[str]) -> Entity:
        entity = self.get_entity(entity_id)
        if entity is None:
            raise SchemaError(f"No entity found with name {_quote(entity_id)}")
        return entity

    def find_entity_index(self, entity_id: Optional[str]) -> int:
        for index, entity in enumerate(self.entities):
            if entity.name == entity_id:
                return index
        raise SchemaError(f"No entity found with name {_quote(entity_id)}")

    def find_field(self, entity_id: Optional[str], field_id: Optional[str]) -> Tuple[Entity, Field]:
        entity = self.find_entity(entity_id)
        fld = entity.get_field(field_id)
        if fld is None:
            raise SchemaError(f"No field found with name {_quote(field_id)} in {_quote(entity.name)}")
        return entity, fld

    def find_field_index(self, entity_id: Optional[str], field_id: Optional[str]) -> Tuple[Entity, int]:
        entity = self.find_entity(entity_id)
        for index, fld in enumerate(entity.fields):
            if fld.name == field_id:
                return entity, index
        raise SchemaError(f"No field found with name {_quote(field_id)} in {_quote(entity.name)}")

    # Action lookups
    def action_ids(self) -> List[str]:
        return [f"{group}.{action.name}" for group, actions in self.actions.items() for action in actions]

    def find_action(self, action_id: Optional[str]) -> Action:
        return self.find_action_index(action_id)[1]

    def find_action_index(self, action_id: Optional[str]) -> Tuple[str, Action, int]:
        group, name = split_action_id(action_id)
        actions = self.actions.get(group)
        if actions is None:
            raise SchemaError(f"No action group found for action {_quote(action_id)}")
        for index, action in enumerate(actions):
            if action.name == name:
                return group, action, index
        raise SchemaError(f"No action found with name {_quote(action_id)}")

    # Type references
    def type_choices(self, include_void: bool = False) -> List[str]:
        choices = list(PRIMITIVE_TYPES)
        if include_void:
            choices.append(VOID_TYPE)
        choices.extend(self.entity_names())
        return choices

    def is_known_type(self, type_name: str) -> bool:
        return is_primitive(type_name) or self.get_entity(type_name) is not None

    def references_to(self, entity_name: str) -> List[Tuple[str, Field]]:
        """Every field or argument typed with ``entity_name``, keyed by owner.

        Owners are entity names for fields and ``group.action`` for arguments.
        """
        refs = []
        for entity in self.entities:
            refs.extend((entity.name, f) for f in entity.fields if f.type == entity_name)
        for group, actions in self.actions.items():
            for action in actions:
                refs.extend((f"{group}.{action.name}", a) for a in action.arguments if a.type == entity_name)
        return refs

    def snapshot(self) -> 'Schema':
        return copy.deepcopy(self)

    # Serialization
    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "actions": {g: [a.to_dict() for a in actions] for g, actions in self.actions.items()},
            "paths": {k: v for k, v in self.paths.items() if v},
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Schema':
        return cls(
            entities=[Entity.from_dict(e) for e in data.get("entities", [])],
            actions={g: [Action.from_dict(a) for a in actions]
                     for g, actions in (data.get("actions") or {}).items()},
            paths={k: v for k, v in (data.get("paths") or {}).items() if v},
        )


# ============================================================================
# PERSISTENCE
# ============================================================================

def load_schema(path: Path) -> Schema:
    """Read the schema document, raising SchemaFileError if it is unreadable."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SchemaFileError(f"Cannot read schema document {path}: {e}") from e
    if not isinstance(data, dict):
        raise SchemaFileError(f"Cannot read schema document {path}: expected a JSON object")
    try:
        return Schema.from_dict(data)
    except (AttributeError, TypeError) as e:
        raise SchemaFileError(f"Malformed schema document {path}: {e}") from e


def save_schema(path: Path, schema: Schema) -> None:
    Path(path).write_text(schema.to_json() + "\n", encoding="utf-8")


__all__ = [
    'SchemaError', 'SchemaFileError', 'PrimitiveType', 'ActionType', 'is_primitive',
    'Field', 'Entity', 'Action', 'Schema', 'split_action_id',
    'load_schema', 'save_schema',
]

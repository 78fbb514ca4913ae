"""
Datamodel Core - Schema mutations shared by the shell and the migration deriver.

This module contains:
- SchemaMutator: apply one named structural edit to a Schema
- MutationResult records: what each edit changed, with the pre-mutation
  snapshots needed to derive its inverse

Dialogues that collect the parameters live in grammar.dialogues; nothing in
this module does I/O.
"""
import copy
from dataclasses import dataclass
from typing import Dict, List, Any, Optional, Tuple

from config import VOID_TYPE
from Schema.datamodel import (
    Schema, Entity, Field, Action, ActionType, SchemaError,
    is_primitive, split_action_id
)


# ============================================================================
# COMMAND IDENTITIES
# ============================================================================

CREATE_ENTITY = "create-entity"
CREATE_ACTION = "create-action"
DROP_ENTITY = "drop-entity"
DROP_ACTION = "drop-action"
ALTER_ENTITY_RENAME = "alter-entity-rename"
ALTER_ENTITY_ADD_FIELD = "alter-entity-add-field"
ALTER_FIELD_SET_TYPE = "alter-field-set-type"
ALTER_FIELD_SET_NAME = "alter-field-set-name"
ALTER_FIELD_DROP = "alter-field-drop"
ALTER_ACTION_RENAME = "alter-action-rename"
ALTER_ACTION_SET_TYPE = "alter-action-set-type"
ALTER_ACTION_DROP_ARGUMENT = "alter-action-drop-argument"


# ============================================================================
# MUTATION RESULTS
# ============================================================================

@dataclass(frozen=True)
class MutationResult:
    """Base record returned by every mutation."""

    def summary(self) -> List[str]:
        return []


@dataclass(frozen=True)
class EntityCreated(MutationResult):
    entity: Entity


@dataclass(frozen=True)
class ActionCreated(MutationResult):
    group: str
    action: Action


@dataclass(frozen=True)
class DroppedFields:
    """Fields removed from one entity because their type was dropped."""
    entity: str
    fields: Tuple[Field, ...]


@dataclass(frozen=True)
class DroppedArguments:
    action_id: str
    arguments: Tuple[Field, ...]


@dataclass(frozen=True)
class EntityDropped(MutationResult):
    entity: Entity
    index: int
    dropped_fields: Tuple[DroppedFields, ...] = ()
    dropped_arguments: Tuple[DroppedArguments, ...] = ()

    def summary(self) -> List[str]:
        lines = []
        for drop in self.dropped_fields:
            lines.extend(f"Dropped field {drop.entity}.{f.name}" for f in drop.fields)
        for drop in self.dropped_arguments:
            lines.extend(f"Dropped argument {a.name} of {drop.action_id}" for a in drop.arguments)
        return lines


@dataclass(frozen=True)
class ActionDropped(MutationResult):
    group: str
    action: Action
    index: int


@dataclass(frozen=True)
class EntityRenamed(MutationResult):
    old_name: str
    new_name: str
    retyped: Tuple[str, ...] = ()

    def summary(self) -> List[str]:
        return [f"Updated reference {ref}" for ref in self.retyped]


@dataclass(frozen=True)
class FieldAdded(MutationResult):
    entity: str
    field: Field


@dataclass(frozen=True)
class FieldRetyped(MutationResult):
    entity: str
    old_field: Field
    new_field: Field


@dataclass(frozen=True)
class FieldRenamed(MutationResult):
    entity: str
    old_field: Field
    new_name: str


@dataclass(frozen=True)
class FieldDropped(MutationResult):
    entity: str
    old_field: Field
    index: int


@dataclass(frozen=True)
class ActionRenamed(MutationResult):
    group: str
    old_name: str
    new_name: str


@dataclass(frozen=True)
class ActionRetyped(MutationResult):
    action_id: str
    old_type: ActionType
    new_type: ActionType


@dataclass(frozen=True)
class ArgumentDropped(MutationResult):
    action_id: str
    argument: Field
    index: int


# ============================================================================
# SCHEMA MUTATOR
# ============================================================================

class SchemaMutator:
    """Apply named structural edits to a Schema in place."""

    def __init__(self, schema: Schema):
        self.schema = schema

    def apply(self, command: str, params: Dict[str, Any]) -> MutationResult:
        handler = getattr(self, f"_handle_{command.replace('-', '_')}", None)
        if handler is None:
            raise ValueError(f"Unknown mutation: {command}")
        return handler(params)

    # ========== Validation helpers ==========

    def _check_entity_name(self, name: Optional[str]) -> str:
        if not name:
            raise SchemaError("An entity needs a name")
        if is_primitive(name) or name == VOID_TYPE:
            raise SchemaError(f"'{name}' is a reserved type name")
        if self.schema.get_entity(name) is not None:
            raise SchemaError(f"An entity named '{name}' already exists")
        return name

    def _check_type(self, type_name: str, pending_entity: Optional[str] = None,
                    allow_void: bool = False) -> None:
        if allow_void and type_name == VOID_TYPE:
            return
        if type_name == pending_entity or self.schema.is_known_type(type_name):
            return
        raise SchemaError(f"Unknown type '{type_name}'")

    def _check_fields(self, fields: List[Field], pending_entity: Optional[str] = None,
                      existing: Tuple[str, ...] = ()) -> None:
        seen = set(existing)
        for fld in fields:
            if not fld.name:
                raise SchemaError("A field needs a name")
            if fld.name in seen:
                raise SchemaError(f"Duplicate field name '{fld.name}'")
            seen.add(fld.name)
            self._check_type(fld.type, pending_entity)

    # ========== Entity mutations ==========

    def _handle_create_entity(self, params: Dict[str, Any]) -> EntityCreated:
        name = self._check_entity_name(params.get("name"))
        fields = [f.copy() for f in params.get("fields", [])]
        if not fields:
            raise SchemaError(f"Entity '{name}' needs at least one field")
        self._check_fields(fields, pending_entity=name)

        entity = Entity(name=name, fields=fields)
        self.schema.entities.append(entity)
        return EntityCreated(entity=entity.copy())

    def _handle_drop_entity(self, params: Dict[str, Any]) -> EntityDropped:
        name = params.get("entityId")
        index = self.schema.find_entity_index(name)
        entity = self.schema.entities.pop(index)

        dropped_fields = []
        for other in self.schema.entities:
            removed = tuple(f for f in other.fields if f.type == name)
            if removed:
                other.fields = [f for f in other.fields if f.type != name]
                dropped_fields.append(DroppedFields(entity=other.name, fields=removed))

        dropped_arguments = []
        for group, actions in self.schema.actions.items():
            for action in actions:
                removed = tuple(a for a in action.arguments if a.type == name)
                if removed:
                    action.arguments = [a for a in action.arguments if a.type != name]
                    dropped_arguments.append(
                        DroppedArguments(action_id=f"{group}.{action.name}", arguments=removed))

        return EntityDropped(
            entity=entity,
            index=index,
            dropped_fields=tuple(dropped_fields),
            dropped_arguments=tuple(dropped_arguments),
        )

    def _handle_alter_entity_rename(self, params: Dict[str, Any]) -> EntityRenamed:
        old_name = params.get("entityId")
        entity = self.schema.find_entity(old_name)
        new_name = self._check_entity_name(params.get("name"))

        # Self references are reported under the new owner name
        entity.name = new_name
        retyped = []
        for owner, ref in self.schema.references_to(old_name):
            ref.type = new_name
            retyped.append(f"{owner}.{ref.name}")
        for group, actions in self.schema.actions.items():
            for action in actions:
                if action.returns == old_name:
                    action.returns = new_name
                    retyped.append(f"{group}.{action.name} (returns)")
        return EntityRenamed(old_name=old_name, new_name=new_name, retyped=tuple(retyped))

    def _handle_alter_entity_add_field(self, params: Dict[str, Any]) -> FieldAdded:
        entity = self.schema.find_entity(params.get("entityId"))
        fld = params["field"].copy()
        self._check_fields([fld], existing=tuple(f.name for f in entity.fields))
        entity.fields.append(fld)
        return FieldAdded(entity=entity.name, field=fld.copy())

    # ========== Field mutations ==========

    def _handle_alter_field_set_type(self, params: Dict[str, Any]) -> FieldRetyped:
        entity, fld = self.schema.find_field(params.get("entityId"), params.get("fieldId"))
        definition: Field = params["field"]
        self._check_type(definition.type)

        old_field = fld.copy()
        fld.type = definition.type
        fld.array = definition.array
        fld.primary = definition.primary
        fld.primary_auto = definition.primary_auto if definition.primary else False
        fld.nullable = definition.nullable
        return FieldRetyped(entity=entity.name, old_field=old_field, new_field=fld.copy())

    def _handle_alter_field_set_name(self, params: Dict[str, Any]) -> FieldRenamed:
        entity, fld = self.schema.find_field(params.get("entityId"), params.get("fieldId"))
        new_name = params.get("name")
        if not new_name:
            raise SchemaError("A field needs a name")
        if new_name != fld.name and entity.get_field(new_name) is not None:
            raise SchemaError(f"Duplicate field name '{new_name}'")

        old_field = fld.copy()
        fld.name = new_name
        return FieldRenamed(entity=entity.name, old_field=old_field, new_name=new_name)

    def _handle_alter_field_drop(self, params: Dict[str, Any]) -> FieldDropped:
        entity, index = self.schema.find_field_index(params.get("entityId"), params.get("fieldId"))
        old_field = entity.fields.pop(index)
        return FieldDropped(entity=entity.name, old_field=old_field, index=index)

    # ========== Action mutations ==========

    def _handle_create_action(self, params: Dict[str, Any]) -> ActionCreated:
        group, name = split_action_id(params.get("action_id"))
        existing = self.schema.actions.get(group, [])
        if any(a.name == name for a in existing):
            raise SchemaError(f"An action named '{group}.{name}' already exists")

        returns = params.get("returns") or VOID_TYPE
        self._check_type(returns, allow_void=True)
        arguments = [a.copy() for a in params.get("arguments", [])]
        self._check_fields(arguments)

        action = Action(
            name=name,
            type=ActionType(params.get("type", ActionType.READ)),
            arguments=arguments,
            returns=returns,
            returns_array=bool(params.get("returns_array", False)),
            returns_nullable=bool(params.get("returns_nullable", False)),
        )
        self.schema.actions.setdefault(group, []).append(action)
        return ActionCreated(group=group, action=copy.deepcopy(action))

    def _handle_drop_action(self, params: Dict[str, Any]) -> ActionDropped:
        group, action, index = self.schema.find_action_index(params.get("actionId"))
        del self.schema.actions[group][index]
        return ActionDropped(group=group, action=action, index=index)

    def _handle_alter_action_rename(self, params: Dict[str, Any]) -> ActionRenamed:
        group, action, _ = self.schema.find_action_index(params.get("actionId"))
        new_name = params.get("name")
        if not new_name or "." in new_name:
            raise SchemaError("An action name must be a single word")
        if new_name != action.name and any(a.name == new_name for a in self.schema.actions[group]):
            raise SchemaError(f"An action named '{group}.{new_name}' already exists")

        old_name = action.name
        action.name = new_name
        return ActionRenamed(group=group, old_name=old_name, new_name=new_name)

    def _handle_alter_action_set_type(self, params: Dict[str, Any]) -> ActionRetyped:
        action_id = params.get("actionId")
        action = self.schema.find_action(action_id)
        new_type = ActionType(params["type"])

        old_type = action.type
        action.type = new_type
        return ActionRetyped(action_id=action_id, old_type=old_type, new_type=new_type)

    def _handle_alter_action_drop_argument(self, params: Dict[str, Any]) -> ArgumentDropped:
        action_id = params.get("actionId")
        action = self.schema.find_action(action_id)
        name = params.get("argumentName")
        for index, argument in enumerate(action.arguments):
            if argument.name == name:
                del action.arguments[index]
                return ArgumentDropped(action_id=action_id, argument=argument, index=index)
        raise SchemaError(f"No argument found with name '{name}' in '{action_id}'")

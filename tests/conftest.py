"""
Shared pytest fixtures for the datamodel shell test suite.

Usage in tests:
    def test_something(schema, make_resolver):
        resolver = make_resolver(["Foo", "id", "number", False, True, True, False, False])
        resolver.execute("create entity")
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from grammar.command_tree import build_command_tree
from grammar.resolver import Resolver
from migrations import ActionLog
from tests.factories import ScriptedPrompter, sample_schema


@pytest.fixture
def schema():
    """Sample schema with Author, Book and the library.checkout action."""
    return sample_schema()


@pytest.fixture
def log():
    return ActionLog()


@pytest.fixture
def make_resolver(schema, log):
    """
    Build a resolver over the sample schema.

    The optional answers list feeds the dialogue of the executed command;
    the prompter is reachable as ``resolver.prompter``.
    """
    tree = build_command_tree()

    def factory(answers=None):
        return Resolver(tree, schema, log, ScriptedPrompter(answers))

    return factory


@pytest.fixture
def resolver(make_resolver):
    return make_resolver()

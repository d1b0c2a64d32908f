"""Executor loading and command line handling."""

from __future__ import annotations

import pytest

from cmdroute.actors import ConsoleActor
from cmdroute.demo import TodoCommand
from cmdroute.loader import ExecutorLoadError, load_executor_class, load_executors
from cmdroute.main import build_actor, parse_args
from conftest import DemoExecutor


def test_load_executor_class():
    assert load_executor_class("cmdroute.demo:TodoCommand") is TodoCommand
    assert load_executor_class(" conftest : DemoExecutor ") is DemoExecutor


@pytest.mark.parametrize(
    "entry, reason",
    [
        ("cmdroute.demo", "expected module:Class"),
        ("cmdroute.no_such_module:Thing", "Cannot import"),
        ("cmdroute.demo:Priority", "not a CommandExecutor subclass"),
        ("cmdroute.demo:Missing", "not a CommandExecutor subclass"),
    ],
)
def test_bad_entries_raise(entry, reason):
    with pytest.raises(ExecutorLoadError, match=reason):
        load_executor_class(entry)


async def test_load_executors_skips_bad_entries(settings, caplog):
    executors = load_executors(
        ["cmdroute.demo:TodoCommand", "broken", "cmdroute.demo:TodoCommand"], settings=settings
    )
    assert [type(executor) for executor in executors] == [TodoCommand]
    assert "Failed to load executor 'broken'" in caplog.text
    for executor in executors:
        await executor.aclose()


def test_parse_args_defaults():
    args = parse_args([])
    assert args.executors == []
    assert args.grant == []
    assert not (args.plain or args.console or args.operator or args.verbose)


def test_build_actor_from_flags():
    user = build_actor(parse_args(["--grant", "todo.*", "--operator", "--executor", "a:B"]))
    assert user.has_permission("todo.use")
    assert not user.has_permission("demo.admin")
    assert user.is_operator

    assert isinstance(build_actor(parse_args(["--console"])), ConsoleActor)

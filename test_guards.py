"""Guard checks, lock and cooldown tables."""

from __future__ import annotations

import threading
from types import SimpleNamespace

import pytest

from cmdroute.actors import ConsoleActor, LocalUser, permission_matches
from cmdroute.commands.guards import (
    CooldownTable,
    Guard,
    GuardPipeline,
    LockTable,
    check_operator,
    check_permission,
    check_target,
    lock_applies,
)
from cmdroute.commands.types import ADMITTED, LockScope, Target, UsageLimit, denied
from cmdroute.config import DEFAULT_MESSAGES

HANDLER = SimpleNamespace(name="handler")


@pytest.mark.parametrize(
    "granted, node, expected",
    [
        ("*", "a.b", True),
        ("a.*", "a.b.c", True),
        ("a.b", "a.b", True),
        ("a.b", "a.c", False),
        ("a.*", "ab.c", False),
    ],
)
def test_permission_matches(granted, node, expected):
    assert permission_matches(granted, node) is expected


def test_target_check():
    user, console = LocalUser("u"), ConsoleActor()
    assert check_target(user, Target.INTERACTIVE, DEFAULT_MESSAGES).admitted
    assert not check_target(console, Target.INTERACTIVE, DEFAULT_MESSAGES).admitted
    assert not check_target(user, Target.CONSOLE, DEFAULT_MESSAGES).admitted
    assert check_target(console, None, DEFAULT_MESSAGES).admitted


def test_permission_and_operator_checks():
    user = LocalUser("u", permissions=["x.*"])
    assert check_permission(user, None, DEFAULT_MESSAGES).admitted
    assert check_permission(user, "x.y", DEFAULT_MESSAGES).admitted
    result = check_permission(user, "z", DEFAULT_MESSAGES)
    assert "[white]z[/white]" in result.message
    assert check_operator(user, False, DEFAULT_MESSAGES).admitted
    assert not check_operator(user, True, DEFAULT_MESSAGES).admitted
    assert check_operator(ConsoleActor(), True, DEFAULT_MESSAGES).admitted


def test_lock_applies():
    user, console = LocalUser("u"), ConsoleActor()
    assert not lock_applies(user, None)
    assert not lock_applies(user, UsageLimit(scope=LockScope.NONE))
    assert lock_applies(user, UsageLimit())
    assert not lock_applies(console, UsageLimit())
    assert lock_applies(console, UsageLimit(include_console=True))


def test_lock_table_sender_and_global():
    locks = LockTable()
    locks.acquire(LockScope.SENDER, "a", "one")
    assert locks.is_locked(LockScope.SENDER, "a", "two")
    assert not locks.is_locked(LockScope.SENDER, "b", "one")
    locks.acquire(LockScope.GLOBAL, "a", "two")
    assert locks.is_locked(LockScope.GLOBAL, "b", "two")
    assert len(locks) == 2

    locks.release(LockScope.SENDER, "a", "other")  # not the holder's handler
    assert locks.running_for("a") == "one"
    locks.release(LockScope.SENDER, "a", "one")
    locks.release(LockScope.GLOBAL, "a", "two")
    assert len(locks) == 0


def test_lock_table_release_from_worker_thread():
    locks = LockTable()
    locks.acquire(LockScope.SENDER, "a", "job")
    worker = threading.Thread(target=locks.release, args=(LockScope.SENDER, "a", "job"))
    worker.start()
    worker.join()
    assert not locks.is_locked(LockScope.SENDER, "a", "job")


def test_cooldown_table_counts_down():
    cooldowns = CooldownTable()
    cooldowns.arm("a", "job", 2)
    cooldowns.arm("b", "job", 0)
    assert cooldowns.is_active("a")
    assert not cooldowns.is_active("b")
    cooldowns.tick()
    assert cooldowns.remaining("a") == 1
    cooldowns.tick()
    assert not cooldowns.is_active("a")
    assert len(cooldowns) == 0


def test_rearming_stops_the_previous_countdown():
    stopped: list[str] = []
    cooldowns = CooldownTable()
    first = cooldowns.arm("a", "job", 1)
    first.countdown = SimpleNamespace(cancel=lambda: stopped.append("first"))
    second = cooldowns.arm("a", "other", 2)
    assert stopped == ["first"]

    cooldowns.count_down("a", first)
    assert cooldowns.remaining("a") == 2
    cooldowns.count_down("a", second)
    cooldowns.count_down("a", second)
    assert not cooldowns.is_active("a")


def test_pipeline_short_circuits_in_order():
    calls: list[str] = []
    denials: list[str] = []

    def allow(name):
        def check(actor, handler):
            calls.append(name)
            return ADMITTED

        return check

    def deny(actor, handler):
        calls.append("deny")
        return denied("nope")

    pipeline = GuardPipeline(
        [
            Guard("first", allow("first"), lambda a, m: denials.append(m)),
            Guard("second", deny, lambda a, m: denials.append(f"second: {m}")),
            Guard("third", allow("third"), lambda a, m: denials.append(m)),
        ]
    )
    assert pipeline.names == ["first", "second", "third"]
    assert pipeline.run(LocalUser("u"), HANDLER) is False
    assert calls == ["first", "deny"]
    assert denials == ["second: nope"]

    assert pipeline.admits(LocalUser("u"), HANDLER, only=["first", "third"])

    pipeline.replace("second", check=allow("second"))
    assert pipeline.run(LocalUser("u"), HANDLER) is True
    with pytest.raises(KeyError):
        pipeline.replace("missing", check=allow("missing"))

"""Tests for command routing to the active prompt."""

import pytest

from sgfw_prompt.commands import (
    COMMAND_HANDLERS,
    CommandRouter,
    PromptCommand,
)
from sgfw_prompt.dialog import PromptDialog
from sgfw_prompt.manager import PromptQueueManager
from sgfw_prompt.models import PromptResult
from tests.fakes import DialogRecorder, KeybindingRegistry, wait_until


EXPECTED_COMMANDS = [
    "prompt-scope-previous",
    "prompt-scope-next",
    "prompt-rule-next",
    "prompt-rule-previous",
    "prompt-rule-allow",
    "prompt-rule-deny",
    "prompt-toggle-details",
    "prompt-toggle-tlsguard",
]


def make_router(factory=None):
    manager = PromptQueueManager(factory or DialogRecorder(), retry_interval=0.001, max_attempts=5)
    return manager, CommandRouter(manager)


# ============================================================================
# COMMAND TABLE
# ============================================================================


def test_command_set_is_fixed():
    assert [c.value for c in PromptCommand] == EXPECTED_COMMANDS


def test_every_command_has_a_handler():
    assert set(COMMAND_HANDLERS) == set(PromptCommand)


@pytest.mark.parametrize(
    "command,signal",
    [
        (PromptCommand.RULE_ALLOW, "PromptRuleAllow"),
        (PromptCommand.SCOPE_PREVIOUS, "PromptScopePrevious"),
        (PromptCommand.TOGGLE_TLSGUARD, "PromptToggleTlsguard"),
    ],
)
def test_signal_names_round_trip(command, signal):
    assert command.signal_name == signal
    assert PromptCommand.from_signal_name(signal) is command


def test_unknown_signal_name():
    with pytest.raises(ValueError):
        PromptCommand.from_signal_name("PromptExplode")


def test_handlers_call_matching_dialog_methods():
    """Each command reaches the dialog method of the same name."""
    called = []

    class Spy(PromptDialog):
        update = open = close = destroy = lambda self, *a: None

        def __getattribute__(self, name):
            if name.startswith("on_"):
                return lambda: called.append(name)
            return super().__getattribute__(name)

    spy = Spy()
    for command in PromptCommand:
        COMMAND_HANDLERS[command](spy)

    assert called == [
        "on_scope_previous",
        "on_scope_next",
        "on_rule_next",
        "on_rule_previous",
        "on_rule_allow",
        "on_rule_deny",
        "on_toggle_details",
        "on_toggle_tlsguard",
    ]


# ============================================================================
# DISPATCH
# ============================================================================


@pytest.mark.asyncio
async def test_dispatch_without_active_session_is_noop(make_request):
    manager, router = make_router()
    assert router.dispatch(PromptCommand.RULE_ALLOW) is False
    assert manager.idle


@pytest.mark.asyncio
async def test_dispatch_reaches_active_dialog(make_request):
    factory = DialogRecorder()
    manager, router = make_router(factory)
    manager.enqueue(make_request())

    assert router.dispatch("prompt-rule-allow") is True
    assert router.dispatch(PromptCommand.SCOPE_NEXT) is True
    assert factory.last.commands == ["allow", "scope-next"]


@pytest.mark.asyncio
async def test_unsupported_command_is_consumed_and_logged(make_request, log_messages):
    factory = DialogRecorder()
    manager, router = make_router(factory)
    manager.enqueue(make_request())

    assert router.dispatch(PromptCommand.TOGGLE_DETAILS) is True
    assert any("ignores prompt-toggle-details" in m for m in log_messages)


@pytest.mark.asyncio
async def test_unknown_command_is_not_handled(make_request, log_messages):
    manager, router = make_router()
    manager.enqueue(make_request())
    assert router.dispatch("prompt-self-destruct") is False
    assert any("Unknown prompt command" in m for m in log_messages)


@pytest.mark.asyncio
async def test_handler_errors_are_contained(make_request, log_messages):
    factory = DialogRecorder()
    manager, router = make_router(factory)
    manager.enqueue(make_request())

    def boom():
        raise RuntimeError("widget gone")

    factory.last.on_rule_deny = boom
    assert router.dispatch(PromptCommand.RULE_DENY) is True
    assert any("widget gone" in m for m in log_messages)


@pytest.mark.asyncio
async def test_dispatch_follows_the_current_session(make_request):
    """After a session closes, commands go to the next one, never the old one."""
    factory = DialogRecorder()
    manager, router = make_router(factory)
    manager.enqueue(make_request("first"))
    manager.enqueue(make_request("second"))
    await wait_until(lambda: manager.active_session.visible)

    factory.dialogs[0].decide(PromptResult(0, "DENY|example.com:443"))
    router.dispatch(PromptCommand.RULE_ALLOW)

    assert factory.dialogs[0].commands == []
    assert factory.dialogs[1].commands == ["allow"]


# ============================================================================
# BINDINGS
# ============================================================================


@pytest.mark.asyncio
async def test_bind_registers_every_command(make_request):
    factory = DialogRecorder()
    manager, router = make_router(factory)
    registry = KeybindingRegistry()
    router.bind(registry)

    assert registry.names == EXPECTED_COMMANDS
    assert router.bound
    assert registry.trigger("prompt-rule-allow") is False  # nothing active

    manager.enqueue(make_request())
    assert registry.trigger("prompt-rule-allow") is True
    assert factory.last.commands == ["allow"]


@pytest.mark.asyncio
async def test_unbind_is_idempotent():
    manager, router = make_router()
    registry = KeybindingRegistry()
    router.bind(registry)
    router.unbind()
    router.unbind()

    assert registry.names == []
    assert not router.bound
    assert registry.trigger("prompt-rule-allow") is False

"""Routing of external command signals (keybindings) to the active prompt."""

from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Callable, Dict, Optional, Protocol, Union

from loguru import logger

from .dialog import PromptDialog

if TYPE_CHECKING:
    from .manager import PromptQueueManager


class PromptCommand(str, Enum):
    """The fixed set of commands a prompt can receive."""

    SCOPE_PREVIOUS = "prompt-scope-previous"
    SCOPE_NEXT = "prompt-scope-next"
    RULE_NEXT = "prompt-rule-next"
    RULE_PREVIOUS = "prompt-rule-previous"
    RULE_ALLOW = "prompt-rule-allow"
    RULE_DENY = "prompt-rule-deny"
    TOGGLE_DETAILS = "prompt-toggle-details"
    TOGGLE_TLSGUARD = "prompt-toggle-tlsguard"

    @property
    def signal_name(self) -> str:
        """CamelCase form used as a bus signal member, e.g. PromptRuleAllow."""
        return "".join(part.capitalize() for part in self.value.split("-"))

    @classmethod
    def from_signal_name(cls, name: str) -> "PromptCommand":
        for command in cls:
            if command.signal_name == name:
                return command
        raise ValueError(f"Unknown command signal: {name}")


COMMAND_HANDLERS: Dict[PromptCommand, Callable[[PromptDialog], None]] = {
    PromptCommand.SCOPE_PREVIOUS: lambda dialog: dialog.on_scope_previous(),
    PromptCommand.SCOPE_NEXT: lambda dialog: dialog.on_scope_next(),
    PromptCommand.RULE_NEXT: lambda dialog: dialog.on_rule_next(),
    PromptCommand.RULE_PREVIOUS: lambda dialog: dialog.on_rule_previous(),
    PromptCommand.RULE_ALLOW: lambda dialog: dialog.on_rule_allow(),
    PromptCommand.RULE_DENY: lambda dialog: dialog.on_rule_deny(),
    PromptCommand.TOGGLE_DETAILS: lambda dialog: dialog.on_toggle_details(),
    PromptCommand.TOGGLE_TLSGUARD: lambda dialog: dialog.on_toggle_tlsguard(),
}


class KeybindingSource(Protocol):
    """Something that delivers named command signals."""

    def add_keybinding(self, name: str, callback: Callable[[], bool]) -> None:
        """Start delivering ``name`` to ``callback``."""

    def remove_keybinding(self, name: str) -> None:
        """Stop delivering ``name``."""


class CommandRouter:
    """Dispatches commands to whatever session the manager has active.

    The router keeps no session reference of its own; every dispatch reads
    ``manager.active_session`` at that moment.
    """

    def __init__(self, manager: "PromptQueueManager"):
        self._manager = manager
        self._source: Optional[KeybindingSource] = None

    @property
    def bound(self) -> bool:
        return self._source is not None

    def dispatch(self, command: Union[PromptCommand, str]) -> bool:
        """Route ``command`` to the active session.

        Returns:
            False when no session is active or the command is unknown,
            True once the command reached a session (even if it ignored it)
        """
        try:
            command = PromptCommand(command)
        except ValueError:
            logger.warning(f"Unknown prompt command: {command}")
            return False

        session = self._manager.active_session
        if session is None:
            return False

        try:
            COMMAND_HANDLERS[command](session.dialog)
        except Exception as e:
            logger.error(f"Error handling {command.value} on {session!r}: {e}")
        return True

    def bind(self, source: KeybindingSource) -> None:
        """Register every command with ``source``."""
        if self._source is not None:
            self.unbind()
        for command in PromptCommand:
            source.add_keybinding(command.value, partial(self.dispatch, command))
        self._source = source

    def unbind(self) -> None:
        """Remove the registrations made by ``bind()``. Safe to call twice."""
        if self._source is None:
            return
        for command in PromptCommand:
            try:
                self._source.remove_keybinding(command.value)
            except Exception as e:
                logger.error(f"Failed to remove keybinding {command.value}: {e}")
        self._source = None

"""Prompt dialog contract and the bundled headless dialog.

A dialog is the interactive half of a session. The session manager only
relies on the contract below:

- ``update(request)`` fills the dialog from a PromptRequest
- ``open()`` tries to take exclusive input ownership without blocking
- ``close()`` / ``destroy()`` tear it down
- the closed event, fired through ``emit_closed()``, ends the session
- ``result`` holds the decision once the user made one

Command handlers (``on_scope_previous`` and friends) default to logging
that the dialog ignores the command.
"""

import asyncio
import importlib
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from loguru import logger

from .config import Config
from .models import PromptRequest, PromptResult, RuleAction, Scope

ClosedCallback = Callable[[], None]
DialogFactory = Callable[[PromptRequest], "PromptDialog"]


class PromptDialog(ABC):
    """Base class for every prompt dialog."""

    def __init__(self):
        self.result: Optional[PromptResult] = None
        self._closed_callbacks: List[ClosedCallback] = []

    def connect_closed(self, callback: ClosedCallback) -> None:
        """Register a callback for the closed event."""
        self._closed_callbacks.append(callback)

    def emit_closed(self) -> None:
        """Fire the closed event."""
        for callback in list(self._closed_callbacks):
            callback()

    @abstractmethod
    def update(self, request: PromptRequest) -> None:
        """Populate the dialog from ``request``."""

    @abstractmethod
    def open(self) -> bool:
        """Try to become visible. Must not block; False means try again later."""

    @abstractmethod
    def close(self) -> None:
        """Hide the dialog and release input ownership."""

    @abstractmethod
    def destroy(self) -> None:
        """Free the dialog's resources."""

    # -- commands -------------------------------------------------------------

    def _unsupported(self, command: str) -> None:
        logger.warning(f"Invalid key binding: {type(self).__name__} ignores {command}")

    def on_scope_previous(self) -> None:
        self._unsupported("prompt-scope-previous")

    def on_scope_next(self) -> None:
        self._unsupported("prompt-scope-next")

    def on_rule_next(self) -> None:
        self._unsupported("prompt-rule-next")

    def on_rule_previous(self) -> None:
        self._unsupported("prompt-rule-previous")

    def on_rule_allow(self) -> None:
        self._unsupported("prompt-rule-allow")

    def on_rule_deny(self) -> None:
        self._unsupported("prompt-rule-deny")

    def on_toggle_details(self) -> None:
        self._unsupported("prompt-toggle-details")

    def on_toggle_tlsguard(self) -> None:
        self._unsupported("prompt-toggle-tlsguard")


class HeadlessDialog(PromptDialog):
    """Non-visual dialog driven entirely by commands.

    Always acquires on the first attempt. With ``auto_decide`` it answers
    with the request's suggested action on the next loop iteration; without
    it, it waits for ``prompt-rule-allow`` / ``prompt-rule-deny``.
    """

    def __init__(self, request: Optional[PromptRequest] = None, auto_decide: Optional[bool] = None):
        super().__init__()
        self.request: Optional[PromptRequest] = None
        self.auto_decide = Config.HEADLESS_AUTO_DECIDE if auto_decide is None else auto_decide
        self.scopes: List[Scope] = []
        self.targets: List[str] = []
        self.scope_index = 0
        self.target_index = 0
        self.tlsguard = False
        self.expanded = False
        self.sandboxed = False
        self.visible = False
        self._pending: Optional[asyncio.Handle] = None
        if request is not None:
            self.update(request)

    @property
    def scope(self) -> Scope:
        return self.scopes[self.scope_index]

    @property
    def target(self) -> str:
        return self.targets[self.target_index]

    def update(self, request: PromptRequest) -> None:
        self.request = request
        self.scopes = [Scope.APPLY_ONCE, Scope.APPLY_SESSION]
        if request.has_process:
            self.scopes.append(Scope.APPLY_PROCESS)
        self.scopes.extend([Scope.APPLY_FOREVER, Scope.APPLY_SYSTEM])
        self.scope_index = 0
        self.targets = [request.target]
        if request.address and request.ip and request.ip != request.address:
            self.targets.append(request.ip)
        self.target_index = 0
        self.tlsguard = request.tlsguard
        self.expanded = request.expanded
        self.sandboxed = request.is_sandboxed

    def open(self) -> bool:
        if self.visible:
            return True
        self.visible = True
        if self.request is None:
            logger.debug("Headless prompt open without a request")
        elif self.sandboxed:
            logger.debug(f"Headless prompt open for {self.request.application} (sandbox {self.request.sandbox})")
        else:
            logger.debug(f"Headless prompt open for {self.request.application}")
        if self.auto_decide and self.request is not None:
            self._schedule(self._answer_default)
        return True

    def close(self) -> None:
        self.visible = False
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def destroy(self) -> None:
        self.close()
        self._closed_callbacks.clear()

    def _schedule(self, callback: Callable[[], None]) -> None:
        if self._pending is not None:
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().call_soon(callback)

    def _answer_default(self) -> None:
        self._pending = None
        try:
            action = RuleAction(self.request.action)
        except ValueError:
            logger.warning(f"Unknown default action {self.request.action}, denying")
            action = RuleAction.DENY
        self._decide(action)

    def _decide(self, action: RuleAction) -> None:
        if self.request is None or self.result is not None:
            return
        if action == RuleAction.ALLOW and self.tlsguard:
            action = RuleAction.ALLOW_TLSONLY
        self.result = PromptResult(scope=self.scope, rule=self.request.rule_for(action, self.target))
        logger.info(f"Headless prompt decided {self.result.rule} ({self.scope.name})")
        self.emit_closed()

    def on_scope_previous(self) -> None:
        self.scope_index = (self.scope_index - 1) % len(self.scopes)

    def on_scope_next(self) -> None:
        self.scope_index = (self.scope_index + 1) % len(self.scopes)

    def on_rule_next(self) -> None:
        self.target_index = (self.target_index + 1) % len(self.targets)

    def on_rule_previous(self) -> None:
        self.target_index = (self.target_index - 1) % len(self.targets)

    def on_rule_allow(self) -> None:
        self._decide(RuleAction.ALLOW)

    def on_rule_deny(self) -> None:
        self._decide(RuleAction.DENY)

    def on_toggle_details(self) -> None:
        self.expanded = not self.expanded

    def on_toggle_tlsguard(self) -> None:
        self.tlsguard = not self.tlsguard


def load_dialog_factory(path: Optional[str] = None) -> DialogFactory:
    """Resolve a ``module:attribute`` reference to a dialog factory.

    Args:
        path: Factory reference. Defaults to Config.DIALOG_FACTORY.

    Raises:
        ValueError: If the reference is malformed or does not resolve to a callable
    """
    reference = path or Config.DIALOG_FACTORY
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Dialog factory must look like 'module:attribute', got {reference!r}")

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ValueError(f"Cannot load dialog factory {reference!r}: {e}") from e

    if not callable(factory):
        raise ValueError(f"Dialog factory {reference!r} is not callable")

    logger.debug(f"Using dialog factory {reference}")
    return factory

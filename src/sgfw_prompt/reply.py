"""Reply channels: how a decision travels back to the caller that asked for it."""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from loguru import logger

from .models import PromptResult


class ReplyChannel(ABC):
    """One-shot channel back to a single caller.

    ``deliver`` and ``fail`` share a single guard: whichever runs first wins,
    and every later call is logged and ignored. Errors raised by the
    underlying transport are logged, never propagated.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self._used = False

    @property
    def used(self) -> bool:
        """Whether a result or failure has already been sent."""
        return self._used

    def deliver(self, result: PromptResult) -> bool:
        """Send ``result`` to the caller.

        Returns:
            True if this call consumed the channel, False if it was already used
        """
        if not self._claim("result"):
            return False
        try:
            self._send_result(result)
        except Exception as e:
            logger.error(f"Failed to deliver prompt reply to {self.label or 'caller'}: {e}")
        return True

    def fail(self, message: str) -> bool:
        """Send an error to the caller instead of a result."""
        if not self._claim("error"):
            return False
        try:
            self._send_error(message)
        except Exception as e:
            logger.error(f"Failed to deliver prompt error to {self.label or 'caller'}: {e}")
        return True

    def _claim(self, kind: str) -> bool:
        if self._used:
            logger.warning(
                f"Reply channel {self.label or id(self)} already used, dropping {kind}"
            )
            return False
        self._used = True
        return True

    @abstractmethod
    def _send_result(self, result: PromptResult) -> None:
        """Transport-specific result delivery."""

    @abstractmethod
    def _send_error(self, message: str) -> None:
        """Transport-specific error delivery."""


class CallbackReply(ReplyChannel):
    """Reply channel that hands the outcome to Python callables."""

    def __init__(
        self,
        on_result: Callable[[PromptResult], None],
        on_error: Optional[Callable[[str], None]] = None,
        label: str = "",
    ):
        super().__init__(label=label)
        self._on_result = on_result
        self._on_error = on_error

    def _send_result(self, result: PromptResult) -> None:
        self._on_result(result)

    def _send_error(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)


class NullReply(ReplyChannel):
    """Reply channel for requests nobody waits on (TestPrompt)."""

    def _send_result(self, result: PromptResult) -> None:
        logger.info(f"{self.label or 'Prompt'} finished: scope={int(result.scope)} rule={result.rule!r}")

    def _send_error(self, message: str) -> None:
        logger.info(f"{self.label or 'Prompt'} failed: {message}")

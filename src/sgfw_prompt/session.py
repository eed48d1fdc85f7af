"""Prompt sessions and the bounded acquisition retry loop."""

import asyncio
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from .config import Config
from .dialog import PromptDialog
from .models import ABANDONED, PromptRequest, PromptResult


class SessionState(str, Enum):
    """Visibility of a session."""

    PENDING = "pending"
    VISIBLE = "visible"
    CLOSED = "closed"


class PromptSession:
    """The live decision unit built from one PromptRequest.

    Owns the dialog; the session manager owns the session.
    """

    def __init__(self, request: PromptRequest, dialog: PromptDialog):
        self.request = request
        self.dialog = dialog
        self.state = SessionState.PENDING

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def visible(self) -> bool:
        return self.state is SessionState.VISIBLE

    @property
    def result(self) -> PromptResult:
        """The user's decision, or the abandonment result if there is none."""
        return self.dialog.result or ABANDONED

    def try_become_active(self) -> bool:
        """Non-blocking attempt to make the dialog visible."""
        if self.state is not SessionState.PENDING:
            return self.visible
        # open() may fire the closed event itself; a closed session stays closed
        if self.dialog.open() and self.state is SessionState.PENDING:
            self.state = SessionState.VISIBLE
        return self.visible

    def teardown(self) -> None:
        """Close and destroy the dialog.

        The state flips to CLOSED first, so a closed event fired from inside
        ``close()`` sees an already finished session. Errors propagate to the
        caller.
        """
        self.state = SessionState.CLOSED
        try:
            self.dialog.close()
        finally:
            self.dialog.destroy()

    def __repr__(self) -> str:
        return f"PromptSession({self.request.application!r}, {self.state.value})"


class AcquisitionLoop:
    """Retries ``session.try_become_active()`` on a fixed interval.

    Each tick runs on the event loop via ``call_later``. The loop stops on
    the first success, or calls ``on_abandoned(session)`` once
    ``max_attempts`` attempts have failed. ``cancel()`` stops it for good.
    """

    def __init__(
        self,
        session: PromptSession,
        on_abandoned: Callable[[PromptSession], None],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        self.session = session
        self.attempts = 0
        self.interval = Config.retry_interval_seconds() if interval is None else interval
        self.max_attempts = Config.MAX_ACQUIRE_ATTEMPTS if max_attempts is None else max_attempts
        self._on_abandoned = on_abandoned
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._done = False

    @property
    def running(self) -> bool:
        return not self._done

    @property
    def scheduled(self) -> bool:
        """Whether a retry tick is pending on the event loop."""
        return self._timer is not None

    def start(self) -> None:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._schedule()

    def cancel(self) -> None:
        self._done = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self) -> None:
        self._timer = self._loop.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        self._timer = None
        if self._done or self.session.closed:
            return

        self.attempts += 1
        try:
            acquired = self.session.try_become_active()
        except Exception as e:
            logger.error(f"Error while opening prompt for {self.session.request.application}: {e}")
            acquired = False

        if self._done:
            # cancelled from inside open()
            return

        if acquired:
            self._done = True
            logger.debug(f"Prompt visible after {self.attempts} attempt(s)")
            return

        if self.attempts >= self.max_attempts:
            self._done = True
            logger.error(
                f"Failed creating dialog, {self.attempts} failed grab attempts; abandoning"
            )
            self._on_abandoned(self.session)
            return

        self._schedule()

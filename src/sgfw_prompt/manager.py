"""Prompt queue manager: one interactive session at a time, FIFO.

Every entry point runs on the event loop thread and returns without
blocking, so the queue and the active-session reference need no lock.
Waiting happens through scheduled callbacks: acquisition retry ticks and
the dialog's closed event.

Flow:
    enqueue -> activate_next -> AcquisitionLoop -> dialog visible
    dialog closed -> on_session_closed -> reply -> activate_next
"""

import asyncio
from collections import deque
from typing import Deque, Optional

from loguru import logger

from .config import Config
from .dialog import DialogFactory
from .models import ABANDONED, PromptRequest
from .session import AcquisitionLoop, PromptSession


class PromptQueueManager:
    """
    Owns the pending-request queue and the single active session.

    Guarantees:
    - Requests are serviced strictly in arrival order
    - At most one session exists at any time
    - Every request's reply channel is used exactly once, on every path
    - A failing dialog never stalls the queue
    """

    def __init__(
        self,
        dialog_factory: DialogFactory,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        retry_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        """
        Args:
            dialog_factory: Builds a dialog for a request
            loop: Event loop for retry timers. Defaults to the running loop.
            retry_interval: Seconds between acquisition attempts
            max_attempts: Acquisition attempts before a session is abandoned
        """
        self._dialog_factory = dialog_factory
        self._loop = loop
        self._retry_interval = (
            Config.retry_interval_seconds() if retry_interval is None else retry_interval
        )
        self._max_attempts = Config.MAX_ACQUIRE_ATTEMPTS if max_attempts is None else max_attempts
        self._queue: Deque[PromptRequest] = deque()
        self._active: Optional[PromptSession] = None
        self._acquisition: Optional[AcquisitionLoop] = None
        self._shut_down = False

    @property
    def active_session(self) -> Optional[PromptSession]:
        """The session currently holding the single active slot."""
        return self._active

    @property
    def pending_count(self) -> int:
        """Requests waiting behind the active session."""
        return len(self._queue)

    @property
    def idle(self) -> bool:
        return self._active is None and not self._queue

    @property
    def acquisition(self) -> Optional[AcquisitionLoop]:
        return self._acquisition

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def enqueue(self, request: PromptRequest) -> None:
        """Append ``request`` and start it right away if nothing is active."""
        if self._shut_down:
            logger.warning(f"Prompt manager shut down, abandoning request from {request.application}")
            self._reply(request)
            return

        self._queue.append(request)
        logger.debug(f"Queued prompt for {request.application} (pending: {len(self._queue)})")
        if self._active is None:
            self.activate_next()

    def activate_next(self) -> None:
        """Start a session for the head of the queue, if any.

        A request whose dialog cannot be built is abandoned and the next
        one is tried.
        """
        while self._active is None and self._queue:
            request = self._queue.popleft()
            logger.info(
                f"Creating next available dialog for {request.application} "
                f"(remaining: {len(self._queue)})"
            )
            try:
                dialog = self._dialog_factory(request)
                dialog.update(request)
            except Exception as e:
                logger.error(f"Error while creating prompt for {request.application}: {e}")
                self._reply(request)
                continue

            session = PromptSession(request, dialog)
            dialog.connect_closed(lambda session=session: self.on_session_closed(session))
            self._active = session
            self._acquisition = AcquisitionLoop(
                session,
                self.on_session_closed,
                loop=self._loop,
                interval=self._retry_interval,
                max_attempts=self._max_attempts,
            )
            self._acquisition.start()

    def on_session_closed(self, session: PromptSession) -> None:
        """Finish ``session``: tear it down, reply, and move to the next request.

        Closed events for sessions that are no longer active, or that were
        already finished, are ignored.
        """
        if session is not self._active or session.closed:
            logger.debug(f"Ignoring closed event for finished session {session!r}")
            return

        logger.info(f"Closed dialog for {session.request.application}")
        self._cancel_acquisition()

        try:
            session.teardown()
        except Exception as e:
            logger.error(f"Error unable to close/destroy prompt dialog: {e}")

        self._active = None
        self._reply(session.request, session.result)

        if self._queue:
            logger.info(f"Opening next dialogs (remaining: {len(self._queue)})")
        self.activate_next()

    def close_all(self) -> None:
        """Abandon every queued request, then force-close the active session."""
        logger.info("Closing all dialogs")
        while self._queue:
            self._reply(self._queue.popleft())
        if self._active is not None:
            self.on_session_closed(self._active)

    def shutdown(self) -> None:
        """Close everything and refuse further requests. Idempotent."""
        if self._shut_down:
            return
        self._shut_down = True
        self._cancel_acquisition()
        self.close_all()
        logger.info("Prompt manager shut down")

    def _cancel_acquisition(self) -> None:
        if self._acquisition is not None:
            self._acquisition.cancel()
            self._acquisition = None

    @staticmethod
    def _reply(request: PromptRequest, result=ABANDONED) -> None:
        if request.reply is None:
            logger.warning(f"Prompt for {request.application} has no reply channel")
            return
        request.reply.deliver(result)

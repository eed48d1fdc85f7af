"""RPC-facing prompt service: marshals bus calls into the queue manager."""

from typing import Any, Sequence

from loguru import logger

from .manager import PromptQueueManager
from .models import InvalidPromptRequest, PromptRequest, sample_request
from .reply import ReplyChannel


class PromptService:
    """Implements RequestPrompt, ClosePrompt and TestPrompt.

    Holds no state of its own; it only validates inbound arguments and
    forwards to the manager.
    """

    def __init__(self, manager: PromptQueueManager):
        self._manager = manager

    @property
    def manager(self) -> PromptQueueManager:
        return self._manager

    def request_prompt(self, args: Sequence[Any], reply: ReplyChannel) -> bool:
        """Queue a prompt built from the RequestPrompt arguments.

        The reply is deferred until the prompt's session closes. A malformed
        argument tuple is answered with an error on ``reply`` and never queued.

        Returns:
            True if the request was queued
        """
        logger.info("Requesting new dialog prompt...")
        try:
            request = PromptRequest.from_bus_args(args, reply)
        except InvalidPromptRequest as e:
            logger.error(f"Error while requesting prompt: {e}")
            reply.fail(str(e))
            return False

        logger.debug(
            f"Prompt request: {request.application} ({request.path}) -> "
            f"{request.target}:{request.port}/{request.proto} pid={request.pid}"
        )
        self._manager.enqueue(request)
        return True

    def close_prompt(self) -> None:
        """Abandon every pending and active prompt."""
        logger.info("Close prompt requested")
        self._manager.close_all()

    def test_prompt(self) -> None:
        """Queue the fixed sample request to exercise the pipeline."""
        logger.info("Test prompt requested")
        self._manager.enqueue(sample_request())

"""Pytest fixtures for the prompt service test suite."""

from typing import Callable

import pytest
from loguru import logger

from sgfw_prompt.models import PromptRequest, RuleAction
from tests.fakes import DialogRecorder, RecordingReply


# ============================================================================
# REQUEST FIXTURES
# ============================================================================


@pytest.fixture
def make_request() -> Callable[..., PromptRequest]:
    """
    Build PromptRequests with sensible defaults.

    Any field can be overridden by keyword; a fresh RecordingReply is
    attached unless ``reply`` is given.
    """

    def _make(application: str = "curl", **overrides) -> PromptRequest:
        values = dict(
            application=application,
            icon="utilities-terminal",
            path=f"/usr/bin/{application}",
            address="example.com",
            port=443,
            ip="93.184.216.34",
            origin="",
            proto="tcp",
            uid=1000,
            gid=1000,
            user="alice",
            group="alice",
            pid=4242,
            sandbox="",
            tlsguard=False,
            optstring="",
            expanded=False,
            expert=False,
            action=int(RuleAction.DENY),
        )
        values.update(overrides)
        if "reply" not in values:
            values["reply"] = RecordingReply(label=application)
        return PromptRequest(**values)

    return _make


@pytest.fixture
def bus_args():
    """A valid RequestPrompt argument tuple, in bus order."""
    return (
        "curl", "utilities-terminal", "/usr/bin/curl", "example.com", 443,
        "93.184.216.34", "", "tcp", 1000, 1000, "alice", "alice", 4242, "",
        False, "", False, False, 0,
    )


# ============================================================================
# DIALOG FIXTURES
# ============================================================================


@pytest.fixture
def dialogs() -> DialogRecorder:
    """Factory producing FakeDialogs that acquire on the first attempt."""
    return DialogRecorder()


# ============================================================================
# LOG CAPTURE
# ============================================================================


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test."""
    messages = []
    handler_id = logger.add(lambda msg: messages.append(msg.record["message"]), format="{message}")
    yield messages
    logger.remove(handler_id)

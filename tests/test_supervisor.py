"""Tests for the handler lifecycle and logging setup."""

import asyncio
import sys
from unittest.mock import MagicMock

import pytest
from loguru import logger

from sgfw_prompt.commands import PromptCommand
from sgfw_prompt.dialog import HeadlessDialog
from sgfw_prompt.models import ABANDONED
from sgfw_prompt.supervisor import PromptHandler, configure_logging, serve
from tests.fakes import DialogRecorder, KeybindingRegistry, RecordingReply


def make_handler(**kwargs):
    kwargs.setdefault("export_factory", lambda service: MagicMock())
    return PromptHandler(DialogRecorder(), **kwargs)


# ============================================================================
# LIFECYCLE
# ============================================================================


@pytest.mark.asyncio
async def test_start_exports_and_binds():
    registry = KeybindingRegistry()
    exports = []

    def export_factory(service):
        export = MagicMock()
        exports.append((service, export))
        return export

    handler = PromptHandler(DialogRecorder(), export_factory=export_factory, keybindings=registry)
    handler.start()

    assert handler.running
    assert len(exports) == 1
    service, export = exports[0]
    assert service is handler.service
    export.export.assert_called_once()
    assert registry.names == [c.value for c in PromptCommand]


@pytest.mark.asyncio
async def test_shutdown_releases_everything_once(bus_args):
    registry = KeybindingRegistry()
    export = MagicMock()
    handler = PromptHandler(DialogRecorder(), export_factory=lambda s: export, keybindings=registry)
    handler.start()

    reply = RecordingReply()
    handler.service.request_prompt(bus_args, reply)

    handler.shutdown()
    handler.shutdown()

    assert not handler.running
    assert reply.results == [ABANDONED]
    export.unexport.assert_called_once()
    assert registry.names == []
    assert handler.manager.is_shut_down


@pytest.mark.asyncio
async def test_restart_replaces_previous_instance():
    export = MagicMock()
    handler = make_handler(export_factory=lambda s: export)
    handler.start()
    first_manager = handler.manager
    handler.start()

    assert first_manager.is_shut_down
    assert handler.manager is not first_manager
    assert export.unexport.call_count == 1
    assert export.export.call_count == 2


@pytest.mark.asyncio
async def test_failed_export_cleans_up():
    registry = KeybindingRegistry()
    export = MagicMock()
    export.export.side_effect = ConnectionError("name taken")
    handler = PromptHandler(DialogRecorder(), export_factory=lambda s: export, keybindings=registry)

    with pytest.raises(ConnectionError):
        handler.start()

    assert not handler.running
    assert registry.names == []


def test_shutdown_before_start_is_noop():
    make_handler().shutdown()


def test_default_dialog_factory_from_config():
    handler = PromptHandler()
    assert handler._dialog_factory is HeadlessDialog


@pytest.mark.asyncio
async def test_serve_runs_until_signalled():
    handler = make_handler()

    task = asyncio.create_task(serve(handler))
    while not handler.running:
        await asyncio.sleep(0.001)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not handler.running


# ============================================================================
# LOGGING
# ============================================================================


def test_configure_logging_file_sink(tmp_path):
    log_file = tmp_path / "prompt.log"
    configure_logging(level="DEBUG", log_file=str(log_file))
    try:
        logger.info("hello from the prompt service")
        logger.complete()
        assert "hello from the prompt service" in log_file.read_text()
    finally:
        logger.remove()
        logger.add(sys.stderr)

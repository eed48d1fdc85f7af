"""Prompt service daemon: lifecycle of the handler and the main entry point."""

import asyncio
import signal
import sys
from typing import Any, Callable, Optional

from loguru import logger

from .commands import CommandRouter, KeybindingSource
from .config import Config
from .dialog import DialogFactory, load_dialog_factory
from .manager import PromptQueueManager
from .service import PromptService

SERVER_NAME = "FirewallPrompt"

ExportFactory = Callable[[PromptService], Any]


class PromptHandler:
    """
    Owns one running prompt service and everything it registered.

    ``start()`` builds the manager, router and service, exports the service
    and binds the commands. ``shutdown()`` releases all of it in reverse and
    is safe to call any number of times. Starting a running handler shuts
    the previous instance down first.
    """

    def __init__(
        self,
        dialog_factory: Optional[DialogFactory] = None,
        *,
        export_factory: Optional[ExportFactory] = None,
        keybindings: Optional[KeybindingSource] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._dialog_factory = dialog_factory or load_dialog_factory()
        self._export_factory = export_factory
        self._keybindings = keybindings
        self._loop = loop
        self.manager: Optional[PromptQueueManager] = None
        self.router: Optional[CommandRouter] = None
        self.service: Optional[PromptService] = None
        self._export: Optional[Any] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            self.shutdown()

        self.manager = PromptQueueManager(self._dialog_factory, loop=self._loop)
        self.service = PromptService(self.manager)
        self.router = CommandRouter(self.manager)
        self._running = True

        try:
            if self._export_factory is not None:
                self._export = self._export_factory(self.service)
                self._export.export()
            if self._keybindings is not None:
                self.router.bind(self._keybindings)
        except Exception:
            self.shutdown()
            raise

        logger.info(f"{SERVER_NAME} handler started")

    def shutdown(self) -> None:
        if not self._running:
            return
        self._running = False
        logger.info(f"{SERVER_NAME} handler exiting")

        self.manager.shutdown()
        self.router.unbind()
        if self._export is not None:
            self._export.unexport()
            self._export = None


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Replace loguru's default sink with the service's sinks."""
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>",
        level=level or Config.LOG_LEVEL,
    )

    log_file = Config.LOG_FILE if log_file is None else log_file
    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level="DEBUG",
        )


async def serve(handler: PromptHandler) -> None:
    """Run ``handler`` until SIGINT or SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    handler.start()
    try:
        await stop.wait()
    finally:
        handler.shutdown()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)


def main():
    """
    Main entry point for the prompt service.

    Configures:
    - Loguru sinks
    - asyncio on the GLib main context, so bus callbacks and retry timers
      share one thread
    - The bus export and command signal bindings
    """
    configure_logging()

    try:
        Config.validate()
        dialog_factory = load_dialog_factory()
    except ValueError as e:
        logger.error(str(e))
        sys.exit(2)

    from gi.events import GLibEventLoopPolicy

    from .bus import BusExport, BusKeybindings, get_message_bus

    asyncio.set_event_loop_policy(GLibEventLoopPolicy())

    logger.info(f"Starting {SERVER_NAME} on the {Config.BUS} bus...")
    message_bus = get_message_bus()
    handler = PromptHandler(
        dialog_factory,
        export_factory=lambda service: BusExport(service, message_bus),
        keybindings=BusKeybindings(message_bus) if Config.KEYBINDINGS_ENABLED else None,
    )

    try:
        asyncio.run(serve(handler))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)
    finally:
        message_bus.disconnect()


if __name__ == "__main__":
    main()

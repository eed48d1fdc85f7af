"""D-Bus transport for the prompt service.

dasbus provides the bus connection and name ownership. The prompt object
itself is registered directly on the Gio connection because RequestPrompt
replies are deferred: the invocation is parked in a reply channel and
answered when the prompt's session closes.

Try it with:
    busctl --user call com.subgraph.FirewallPrompt /com/subgraph/FirewallPrompt \
        com.subgraph.FirewallPrompt TestPrompt
"""

from typing import Callable, Dict, Optional

from dasbus.connection import MessageBus, SessionMessageBus, SystemMessageBus
from gi.repository import Gio, GLib
from loguru import logger

from .commands import PromptCommand
from .config import Config
from .models import PromptResult
from .reply import ReplyChannel
from .service import PromptService

# org.freedesktop.DBus.RequestName flag
NAME_FLAG_REPLACE_EXISTING = 0x2

INVALID_ARGS_ERROR = "org.freedesktop.DBus.Error.InvalidArgs"
UNKNOWN_METHOD_ERROR = "org.freedesktop.DBus.Error.UnknownMethod"

PROMPT_INTERFACE_XML = f"""
<node>
  <interface name="{Config.INTERFACE_NAME}">
    <method name="RequestPrompt">
      <arg type="s" direction="in" name="application" />
      <arg type="s" direction="in" name="icon" />
      <arg type="s" direction="in" name="path" />
      <arg type="s" direction="in" name="address" />
      <arg type="i" direction="in" name="port" />
      <arg type="s" direction="in" name="ip" />
      <arg type="s" direction="in" name="origin" />
      <arg type="s" direction="in" name="proto" />
      <arg type="i" direction="in" name="uid" />
      <arg type="i" direction="in" name="gid" />
      <arg type="s" direction="in" name="user" />
      <arg type="s" direction="in" name="group" />
      <arg type="i" direction="in" name="pid" />
      <arg type="s" direction="in" name="sandbox" />
      <arg type="b" direction="in" name="tlsguard" />
      <arg type="s" direction="in" name="optstring" />
      <arg type="b" direction="in" name="expanded" />
      <arg type="b" direction="in" name="expert" />
      <arg type="i" direction="in" name="action" />
      <arg type="i" direction="out" name="scope" />
      <arg type="s" direction="out" name="rule" />
    </method>
    <method name="ClosePrompt"/>
    <method name="TestPrompt"/>
  </interface>
</node>
"""


def get_message_bus(kind: Optional[str] = None) -> MessageBus:
    """Connect to the system or session bus."""
    kind = kind or Config.BUS
    if kind == "session":
        return SessionMessageBus()
    return SystemMessageBus()


class InvocationReply(ReplyChannel):
    """Answers a parked RequestPrompt method invocation."""

    def __init__(self, invocation: Gio.DBusMethodInvocation, label: str = ""):
        super().__init__(label=label)
        self._invocation = invocation

    def _send_result(self, result: PromptResult) -> None:
        self._invocation.return_value(GLib.Variant("(is)", result.as_tuple()))

    def _send_error(self, message: str) -> None:
        self._invocation.return_dbus_error(INVALID_ARGS_ERROR, message)


class BusExport:
    """Exports the prompt service object and owns its bus name."""

    def __init__(
        self,
        service: PromptService,
        message_bus: MessageBus,
        object_path: Optional[str] = None,
        bus_name: Optional[str] = None,
    ):
        self._service = service
        self._message_bus = message_bus
        self._object_path = object_path or Config.OBJECT_PATH
        self._bus_name = bus_name or Config.BUS_NAME
        self._registration_id: Optional[int] = None

    @property
    def exported(self) -> bool:
        return self._registration_id is not None

    def export(self) -> None:
        """Register the object and request the bus name, replacing any owner."""
        if self.exported:
            return
        node_info = Gio.DBusNodeInfo.new_for_xml(PROMPT_INTERFACE_XML)
        interface_info = node_info.lookup_interface(Config.INTERFACE_NAME)
        self._registration_id = self._message_bus.connection.register_object(
            self._object_path, interface_info, self._on_method_call, None, None
        )
        self._message_bus.register_service(self._bus_name, NAME_FLAG_REPLACE_EXISTING)
        logger.info(f"Exported {Config.INTERFACE_NAME} at {self._object_path} as {self._bus_name}")

    def unexport(self) -> None:
        """Unregister the object and release the bus name. Safe to call twice."""
        if self._registration_id is None:
            return
        try:
            self._message_bus.connection.unregister_object(self._registration_id)
        except Exception as e:
            logger.error(f"Failed to unexport {self._object_path}: {e}")
        self._registration_id = None

        try:
            self._message_bus.unregister_service(self._bus_name)
        except Exception as e:
            logger.error(f"Failed to release {self._bus_name}: {e}")
        logger.info(f"Unexported {self._object_path}")

    def _on_method_call(
        self,
        connection: Gio.DBusConnection,
        sender: str,
        object_path: str,
        interface_name: str,
        method_name: str,
        parameters: GLib.Variant,
        invocation: Gio.DBusMethodInvocation,
    ) -> None:
        if method_name == "RequestPrompt":
            reply = InvocationReply(invocation, label=sender)
            try:
                self._service.request_prompt(parameters.unpack(), reply)
            except Exception as e:
                logger.error(f"Error while requesting prompt: {e}")
                reply.fail(str(e))
            return

        if method_name == "ClosePrompt":
            handler = self._service.close_prompt
        elif method_name == "TestPrompt":
            handler = self._service.test_prompt
        else:
            invocation.return_dbus_error(UNKNOWN_METHOD_ERROR, f"No such method: {method_name}")
            return

        try:
            handler()
        except Exception as e:
            logger.error(f"Error handling {method_name}: {e}")
        invocation.return_value(None)


class BusKeybindings:
    """Keybinding source fed by no-payload bus signals.

    Each command arrives as a signal on Config.KEYBINDINGS_INTERFACE named
    by its CamelCase form, e.g. ``PromptRuleAllow``.
    """

    def __init__(self, message_bus: MessageBus, interface_name: Optional[str] = None):
        self._message_bus = message_bus
        self._interface_name = interface_name or Config.KEYBINDINGS_INTERFACE
        self._subscriptions: Dict[str, int] = {}

    def add_keybinding(self, name: str, callback: Callable[[], bool]) -> None:
        member = PromptCommand(name).signal_name

        def _on_signal(connection, sender, path, interface, signal, parameters):
            callback()

        self.remove_keybinding(name)
        self._subscriptions[name] = self._message_bus.connection.signal_subscribe(
            None,
            self._interface_name,
            member,
            None,
            None,
            Gio.DBusSignalFlags.NONE,
            _on_signal,
        )

    def remove_keybinding(self, name: str) -> None:
        subscription_id = self._subscriptions.pop(name, None)
        if subscription_id is not None:
            self._message_bus.connection.signal_unsubscribe(subscription_id)

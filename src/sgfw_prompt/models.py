"""Prompt requests, decisions, and the constants shared with the firewall daemon."""

from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Optional, Sequence

if TYPE_CHECKING:
    from .reply import ReplyChannel


class InvalidPromptRequest(ValueError):
    """Raised when inbound prompt arguments cannot form a PromptRequest."""


class Scope(IntEnum):
    """Breadth of a firewall decision, as understood by the firewall daemon."""

    APPLY_ONCE = 0
    APPLY_SESSION = 1
    APPLY_PROCESS = 2
    APPLY_FOREVER = 3
    APPLY_SYSTEM = 4


class RuleAction(IntEnum):
    """Verb of a firewall rule; also the suggested default action of a request."""

    DENY = 0
    ALLOW = 1
    ALLOW_TLSONLY = 2

    @property
    def verb(self) -> str:
        return self.name


@dataclass(frozen=True)
class PromptResult:
    """Decision returned to the caller: scope plus rule text."""

    scope: int
    rule: str

    def as_tuple(self) -> tuple:
        return (int(self.scope), self.rule)


# An empty rule fails to parse downstream and is applied as deny-once.
ABANDONED = PromptResult(scope=Scope.APPLY_ONCE, rule="")


@dataclass
class PromptRequest:
    """One inbound call awaiting a decision.

    Attributes mirror the RequestPrompt arguments in bus order. ``reply`` is
    the channel back to the caller that issued this request; it is used
    exactly once.
    """

    application: str
    icon: str
    path: str
    address: str
    port: int
    ip: str
    origin: str
    proto: str
    uid: int
    gid: int
    user: str
    group: str
    pid: int
    sandbox: str
    tlsguard: bool
    optstring: str
    expanded: bool
    expert: bool
    action: int
    reply: Optional["ReplyChannel"] = field(default=None, repr=False, compare=False)

    @property
    def has_process(self) -> bool:
        """Whether the request came with a known origin process."""
        return self.pid >= 0

    @property
    def is_sandboxed(self) -> bool:
        return self.sandbox != ""

    @property
    def target(self) -> str:
        """Host part of a rule: the address, or the ip when no name resolved."""
        return self.address or self.ip

    def rule_for(self, action: int, target: Optional[str] = None) -> str:
        """Build the rule text for ``action`` against this request's destination."""
        verb = RuleAction(action).verb
        return f"{verb}|{target or self.target}:{self.port}"

    @classmethod
    def from_bus_args(
        cls, args: Sequence[Any], reply: Optional["ReplyChannel"] = None
    ) -> "PromptRequest":
        """Build a request from the RequestPrompt argument tuple.

        Raises:
            InvalidPromptRequest: wrong argument count, a mistyped argument,
                or a port outside 0..65535.
        """
        arg_fields = [f for f in fields(cls) if f.name != "reply"]
        if len(args) != len(arg_fields):
            raise InvalidPromptRequest(
                f"RequestPrompt takes {len(arg_fields)} arguments, got {len(args)}"
            )

        values = {}
        for arg_field, value in zip(arg_fields, args):
            expected = _ARG_TYPES[arg_field.name]
            # bool is an int subclass; never accept one for the other
            if expected is int and isinstance(value, bool):
                raise InvalidPromptRequest(f"{arg_field.name} must be int, got bool")
            if not isinstance(value, expected):
                raise InvalidPromptRequest(
                    f"{arg_field.name} must be {expected.__name__}, got {type(value).__name__}"
                )
            values[arg_field.name] = value

        if not 0 <= values["port"] <= 65535:
            raise InvalidPromptRequest(f"port out of range: {values['port']}")

        return cls(**values, reply=reply)


_ARG_TYPES = {
    "application": str,
    "icon": str,
    "path": str,
    "address": str,
    "port": int,
    "ip": str,
    "origin": str,
    "proto": str,
    "uid": int,
    "gid": int,
    "user": str,
    "group": str,
    "pid": int,
    "sandbox": str,
    "tlsguard": bool,
    "optstring": str,
    "expanded": bool,
    "expert": bool,
    "action": int,
}


def sample_request(reply: Optional["ReplyChannel"] = None) -> PromptRequest:
    """Fixed request used by TestPrompt to exercise the pipeline."""
    if reply is None:
        from .reply import NullReply

        reply = NullReply(label="TestPrompt")
    return PromptRequest(
        application="Firefox",
        icon="firefox",
        path="/usr/bin/firefox-esr",
        address="242.12.111.18",
        port=443,
        ip="242.12.111.18",
        origin="",
        proto="tcp",
        uid=1000,
        gid=1000,
        user="user",
        group="user",
        pid=2342,
        sandbox="",
        tlsguard=True,
        optstring="",
        expanded=False,
        expert=False,
        action=RuleAction.ALLOW,
        reply=reply,
    )

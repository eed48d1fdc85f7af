"""Firewall prompt service - serializes network-access prompts into one dialog at a time."""

__version__ = "0.1.0"

from .manager import PromptQueueManager
from .models import ABANDONED, PromptRequest, PromptResult, RuleAction, Scope

__all__ = [
    "ABANDONED",
    "PromptQueueManager",
    "PromptRequest",
    "PromptResult",
    "RuleAction",
    "Scope",
    "__version__",
]

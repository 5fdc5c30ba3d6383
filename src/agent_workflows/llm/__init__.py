"""Model invoker sub-package – the one capability every workflow composes."""

from agent_workflows.llm.base import ModelInvoker
from agent_workflows.llm.client import ChatClient

__all__ = [
    "ModelInvoker",
    "ChatClient",
]

from .agent import run_agent
from .config import AgentConfig, MissingCredentialError
from .executor import ToolExecutor
from .history import ChatHistoryStore
from .llm import CompletionClient
from .types import AgentEvent, AgentRequest, ToolContext, ToolName, ToolResult

__all__ = [
    "AgentConfig",
    "AgentEvent",
    "AgentRequest",
    "ChatHistoryStore",
    "CompletionClient",
    "MissingCredentialError",
    "ToolContext",
    "ToolExecutor",
    "ToolName",
    "ToolResult",
    "run_agent",
]

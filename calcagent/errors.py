"""
Error kinds raised by the agent loop.

Tool errors (validation, domain, unknown tool) are raised by the tool
registry. Whether they stop the run or are returned to the model as
error tool results is decided by the `tool_error_policy` setting of
the agent. Model and configuration errors always stop the run.

When a run fails, the partial run (messages exchanged so far, state
set to 'failed') is attached to the error as `error.run`.
"""

from typing import Any


class AgentError(Exception):
    """Base class of all errors raised by calcagent."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        # set by the loop driver when the error ends a run
        self.run: Any = None


class ToolError(AgentError, ValueError):
    """A tool request could not be carried out."""


class ToolValidationError(ToolError):
    """The arguments of a tool request do not match the tool schema."""


class ToolDomainError(ToolError):
    """The tool was called with valid arguments outside its domain,
    such as a division by zero."""


class UnknownToolError(ToolError):
    """The model requested a tool that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: '{name}'")
        self.name = name


class ModelTransportError(AgentError):
    """The call to the language model failed (network, API, auth)."""


class ModelResponseError(AgentError):
    """The language model returned a message of unexpected shape."""


class IterationLimitError(AgentError):
    """The model kept requesting tools beyond the allowed number of
    decision steps."""


class ConfigurationError(AgentError):
    """Invalid configuration or missing credentials."""

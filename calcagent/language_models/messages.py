"""
Tool requests and tool results exchanged in a conversation.

The conversation itself is a list of LangChain messages. This module
extracts the tool requests from an assistant message (`AIMessage`),
builds the correlated `ToolMessage` for each result, and checks that
a conversation respects the request/result correlation.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    ToolMessage,
)

from calcagent.errors import ModelResponseError


class ToolRequest(BaseModel):
    """A tool invocation requested by the model.

    Attributes:
        id: the correlation identifier assigned by the model
        name: the requested tool
        args: the arguments, as emitted by the model
        error: set if the model emitted arguments that could not be
            parsed (in this case args is empty)
    """

    id: str = Field(min_length=1)
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    model_config = ConfigDict(frozen=True, extra='forbid')

    @classmethod
    def from_tool_call(cls, call: Mapping[str, Any]) -> 'ToolRequest':
        """Create the request from a LangChain ToolCall or
        InvalidToolCall dictionary.

        Raises:
            ModelResponseError: if the call carries no identifier
        """
        call_id = call.get('id')
        if not call_id:
            raise ModelResponseError(
                f"Tool call '{call.get('name')}' has no identifier"
            )
        args = call.get('args')
        error: str | None = None
        if call.get('type') == 'invalid_tool_call':
            error = call.get('error') or f"Malformed arguments: {args}"
            args = {}
        elif not isinstance(args, Mapping):
            error = f"Arguments are not an object: {args}"
            args = {}
        return cls(
            id=call_id,
            name=call.get('name') or "",
            args=dict(args),
            error=error,
        )


class ToolResult(BaseModel):
    """The outcome of a tool request, correlated by identifier."""

    tool_call_id: str
    name: str
    content: str
    is_error: bool = False

    model_config = ConfigDict(frozen=True, extra='forbid')

    @classmethod
    def from_value(cls, request: ToolRequest, value: object) -> 'ToolResult':
        return cls(
            tool_call_id=request.id,
            name=request.name,
            content=str(value),
        )

    @classmethod
    def from_error(
        cls, request: ToolRequest, error: Exception
    ) -> 'ToolResult':
        return cls(
            tool_call_id=request.id,
            name=request.name,
            content=f"Error: {error}",
            is_error=True,
        )

    def to_message(self) -> ToolMessage:
        return ToolMessage(
            content=self.content,
            tool_call_id=self.tool_call_id,
            name=self.name,
            status='error' if self.is_error else 'success',
        )


def tool_requests(message: BaseMessage) -> list[ToolRequest]:
    """Extract the tool requests of an assistant message, well-formed
    calls first, then the calls whose arguments could not be parsed.
    Any other kind of message contains no requests.

    Raises:
        ModelResponseError: if a call has no identifier
    """
    if not isinstance(message, AIMessage):
        return []
    calls: list[Mapping[str, Any]] = [
        *message.tool_calls,
        *message.invalid_tool_calls,
    ]
    return [ToolRequest.from_tool_call(call) for call in calls]


def has_tool_requests(message: BaseMessage) -> bool:
    return isinstance(message, AIMessage) and bool(
        message.tool_calls or message.invalid_tool_calls
    )


def _request_ids(message: AIMessage) -> set[str]:
    calls: list[Mapping[str, Any]] = [
        *message.tool_calls,
        *message.invalid_tool_calls,
    ]
    return {str(c.get('id')) for c in calls if c.get('id')}


def check_correlation(
    messages: Sequence[BaseMessage], *, allow_pending: bool = True
) -> list[str]:
    """Check that every tool result answers an outstanding request
    of the immediately preceding assistant message, and that every
    request is answered before the conversation moves on.

    Args:
        messages: the conversation
        allow_pending: if True, requests of the last assistant
            message may still be unanswered at the end of the
            conversation

    Returns:
        a list of violations, empty if the conversation is consistent
    """
    violations: list[str] = []
    outstanding: set[str] = set()
    for message in messages:
        match message:
            case ToolMessage():
                if message.tool_call_id in outstanding:
                    outstanding.remove(message.tool_call_id)
                else:
                    violations.append(
                        f"Orphan tool result: {message.tool_call_id}"
                    )
            case _:
                if outstanding:
                    violations.append(
                        "Unanswered tool requests: "
                        + ", ".join(sorted(outstanding))
                    )
                outstanding = (
                    _request_ids(message)
                    if isinstance(message, AIMessage)
                    else set()
                )
    if outstanding and not allow_pending:
        violations.append(
            "Unanswered tool requests: " + ", ".join(sorted(outstanding))
        )
    return violations


def message_text(message: BaseMessage) -> str:
    """The text content of a message. Content given as a list of
    blocks is joined."""
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        match block:
            case str():
                parts.append(block)
            case {'type': 'text', 'text': str() as text}:
                parts.append(text)
            case _:
                pass
    return "".join(parts)


def format_message(message: BaseMessage) -> str:
    """One-line representation of a message, for printing."""
    text = message_text(message)
    match message:
        case ToolMessage():
            return f"{message.type} [{message.tool_call_id}]: {text}"
        case AIMessage() if has_tool_requests(message):
            calls = ", ".join(
                f"{r.name}({', '.join(f'{k}={v}' for k, v in r.args.items())})"
                f" [{r.id}]"
                for r in tool_requests(message)
            )
            if text:
                return f"{message.type}: {text} -> {calls}"
            return f"{message.type}: -> {calls}"
        case _:
            return f"{message.type}: {text}"

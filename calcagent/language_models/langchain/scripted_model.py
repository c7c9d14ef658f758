"""
A deterministic chat model that runs offline. It is created by the
model factory for the 'Debug' source, and used in the tests.

The response depends only on the conversation it receives, never on
the number of calls made before: the step number is the count of
assistant messages already in the conversation. Replaying the same
conversation prefix always gives the same response.

If `responses` is given, the model answers with the response at the
step position. Past the end of the list (or without a list), the model
plays a minimal arithmetic assistant:

    - after a tool result, it answers with the result;
    - for a user message naming an operation and two numbers, such as
      "ADD 3 and 4", it requests the corresponding tool;
    - otherwise it answers that it cannot help.

Example:
    ```python
    model = ScriptedChatModel()
    ai = model.invoke([HumanMessage("multiply 6 by 7")])
    ai.tool_calls[0]['args']  # {'a': 6, 'b': 7}
    ```
"""

import re
from collections.abc import Callable, Sequence
from typing import Any

from pydantic import Field
from langchain_core.callbacks import CallbackManagerForLLMRun
from langchain_core.language_models import LanguageModelInput
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    ToolMessage,
)
from langchain_core.outputs import ChatGeneration, ChatResult
from langchain_core.runnables import Runnable
from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool

from ..messages import message_text

# keyword -> tool requested by the arithmetic assistant
_OPERATIONS: dict[str, str] = {
    'add': "add",
    'sum': "add",
    'plus': "add",
    'multiply': "multiply",
    'times': "multiply",
    'product': "multiply",
    'divide': "divide",
    'quotient': "divide",
}

_NUMBER = re.compile(r'-?\d+(?:\.\d+)?')
_KEYWORD = re.compile(r'\b(' + '|'.join(_OPERATIONS) + r')\b', re.IGNORECASE)


def _parse_number(token: str) -> int | float:
    return float(token) if '.' in token else int(token)


class ScriptedChatModel(BaseChatModel):
    """Offline chat model with tool calling support."""

    responses: list[AIMessage] = Field(default_factory=list)
    answer_prefix: str = "The result is"

    @property
    def _llm_type(self) -> str:
        return "scripted-chat"

    def bind_tools(
        self,
        tools: Sequence[dict[str, Any] | type | Callable[..., Any] | BaseTool],
        **kwargs: Any,
    ) -> Runnable[LanguageModelInput, BaseMessage]:
        formatted = [convert_to_openai_tool(tool) for tool in tools]
        return self.bind(tools=formatted, **kwargs)

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        step = sum(1 for m in messages if isinstance(m, AIMessage))
        if step < len(self.responses):
            message = self.responses[step].model_copy(deep=True)
        else:
            message = self._respond(messages, step)
        return ChatResult(generations=[ChatGeneration(message=message)])

    def _respond(self, messages: list[BaseMessage], step: int) -> AIMessage:
        if not messages:
            return AIMessage(content="There is nothing to compute.")

        last = messages[-1]
        if isinstance(last, ToolMessage):
            text = message_text(last)
            if last.status == 'error':
                return AIMessage(content=f"I could not compute it. {text}")
            return AIMessage(content=f"{self.answer_prefix} {text}.")

        human = [m for m in messages if isinstance(m, HumanMessage)]
        if human:
            query = message_text(human[-1])
            keyword = _KEYWORD.search(query)
            numbers = _NUMBER.findall(query)
            if keyword and len(numbers) >= 2:
                return AIMessage(
                    content="",
                    tool_calls=[
                        {
                            'name': _OPERATIONS[keyword.group(1).lower()],
                            'args': {
                                'a': _parse_number(numbers[0]),
                                'b': _parse_number(numbers[1]),
                            },
                            'id': f"call_{step}_0",
                            'type': "tool_call",
                        }
                    ],
                )

        return AIMessage(
            content="I can only add, multiply or divide two numbers."
        )

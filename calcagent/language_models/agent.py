"""
The agent loop: a language model deciding which tools to call, and a
tool registry executing the calls, until the model answers.

The loop is a LangGraph state graph with two nodes,

    deciding  --(tool requests)-->  executing
    deciding  --(no requests)---->  END
    executing ------------------->  deciding

The 'deciding' node runs the decision step (`decide`): the system
prompt and the conversation are sent to the model, which returns an
assistant message. The 'executing' node runs the execution step
(`execute`) on that message, appending one tool result per request.

A run ends in the state 'done' when the model answers without
requesting tools, or in the state 'failed' when an AgentError is
raised. The error is propagated to the caller, with the partial run
attached as `error.run`.

Example:
    ```python
    from calcagent.language_models.agent import Agent
    from calcagent.language_models.langchain.models import (
        create_model_from_spec,
    )

    agent = Agent(create_model_from_spec("OpenAI/gpt-4o"))
    run = agent.invoke("ADD 3 and 4")
    print(run.final_answer)

    # from config.toml / environment
    agent = Agent.from_settings()
    ```
"""

from collections.abc import Sequence
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict
from langchain_core.language_models import LanguageModelInput
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
)
from langchain_core.runnables import Runnable
from langgraph.errors import GraphRecursionError
from langgraph.graph import END, START, MessagesState, StateGraph

from calcagent.config.config import (
    AgentSettings,
    Settings,
    ToolErrorPolicy,
)
from calcagent.errors import (
    AgentError,
    IterationLimitError,
    ModelResponseError,
    ModelTransportError,
    ToolError,
)
from calcagent.utils.logging import LoggerBase, get_logger
from .messages import (
    ToolResult,
    check_correlation,
    has_tool_requests,
    message_text,
    tool_requests,
)
from .tools import ToolRegistry

logger: LoggerBase = get_logger(__name__)

ChatRunnable = Runnable[LanguageModelInput, BaseMessage]


class LoopState(StrEnum):
    """States of the agent loop. The first two are graph nodes."""

    DECIDING = 'deciding'
    EXECUTING = 'executing'
    DONE = 'done'
    FAILED = 'failed'


class AgentGraphState(MessagesState):
    """Graph state: the conversation and the decision steps taken"""

    steps: int


class AgentRun(BaseModel):
    """The outcome of one run of the agent loop.

    Attributes:
        messages: the conversation, including the input messages
        state: 'done' or 'failed'
        steps: the number of decision steps taken
        error: the error message of a failed run
    """

    messages: list[BaseMessage]
    state: LoopState
    steps: int = 0
    error: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def final_answer(self) -> str | None:
        """The text of the last assistant message of a completed run"""
        if self.state != LoopState.DONE or not self.messages:
            return None
        last = self.messages[-1]
        if not isinstance(last, AIMessage):
            return None
        return message_text(last)


def bind_tools(model: BaseChatModel, registry: ToolRegistry) -> ChatRunnable:
    """Declare the tools of the registry to the model."""
    return model.bind_tools(registry.declarations())


def decide(
    model: ChatRunnable,
    messages: Sequence[BaseMessage],
    system_prompt: str,
) -> AIMessage:
    """The decision step. Sends the system prompt and the conversation
    to the model, and returns its message: either an answer, or a
    message carrying tool requests.

    Args:
        model: a chat model, with the tools bound to it
        messages: the conversation
        system_prompt: the instruction prepended to the conversation

    Returns:
        the assistant message

    Raises:
        ModelTransportError: if the model call fails
        ModelResponseError: if the response is not an assistant
            message, or has tool requests without identifier
    """
    prompt: list[BaseMessage] = [
        SystemMessage(content=system_prompt),
        *messages,
    ]
    try:
        response = model.invoke(prompt)
    except AgentError:
        raise
    except Exception as e:
        raise ModelTransportError(
            f"Language model call failed: {type(e).__name__}: {e}"
        ) from e

    if not isinstance(response, AIMessage):
        raise ModelResponseError(
            "Expected an assistant message from the language model, "
            f"got {type(response).__name__}"
        )
    tool_requests(response)  # raises if not correlatable
    return response


def execute(
    message: BaseMessage,
    registry: ToolRegistry,
    *,
    policy: ToolErrorPolicy = 'report',
    logger: LoggerBase = logger,
) -> list[ToolResult]:
    """The execution step. Runs the tool requests of the message in
    order, returning one result for each.

    Args:
        message: the assistant message with the tool requests
        registry: the tools
        policy: 'report' turns tool errors (unknown tool, invalid
            arguments, domain errors) into error results, 'raise'
            propagates them
        logger: a logger for the tool calls

    Returns:
        the results, in the order of the requests

    Raises:
        ToolError: under the 'raise' policy
    """
    results: list[ToolResult] = []
    for request in tool_requests(message):
        try:
            value = registry.invoke(request)
        except ToolError as e:
            if policy == 'raise':
                raise
            logger.warning(
                f"Tool request {request.name} [{request.id}] failed: {e}"
            )
            results.append(ToolResult.from_error(request, e))
            continue
        logger.info(f"Tool {request.name} [{request.id}] -> {value}")
        results.append(ToolResult.from_value(request, value))
    return results


class Agent:
    """
    A language model wired to a tool registry through the decision
    loop.

    Args:
        model: the LangChain chat model taking the decisions
        registry: the tools (defaults to the built-in arithmetic tools)
        settings: the loop parameters (defaults to AgentSettings())
        logger: a logger for the decisions and the tool calls
    """

    def __init__(
        self,
        model: BaseChatModel,
        *,
        registry: ToolRegistry | None = None,
        settings: AgentSettings | None = None,
        logger: LoggerBase = logger,
    ) -> None:
        self.model = model
        self.registry = registry if registry is not None else ToolRegistry()
        self.settings = settings if settings is not None else AgentSettings()
        self.logger = logger
        self._bound_model: ChatRunnable = bind_tools(model, self.registry)
        self.graph = self._build_graph()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        registry: ToolRegistry | None = None,
        logger: LoggerBase = logger,
    ) -> 'Agent':
        """Create the agent and its model from a settings object,
        read from config.toml and the environment if not given."""
        from .langchain.models import create_model_from_settings

        settings = settings if settings is not None else Settings()
        return cls(
            create_model_from_settings(settings.model),
            registry=registry,
            settings=settings.agent,
            logger=logger,
        )

    # graph nodes and edges ---------------------------------------
    def _deciding(self, state: AgentGraphState) -> dict[str, Any]:
        steps = state.get('steps', 0)
        if steps >= self.settings.max_iterations:
            raise IterationLimitError(
                "The model requested tools after "
                f"{self.settings.max_iterations} decision steps"
            )
        response = decide(
            self._bound_model,
            state['messages'],
            self.settings.system_prompt,
        )
        count = len(tool_requests(response))
        if count:
            self.logger.info(
                f"Decision step {steps + 1}: {count} tool request(s)"
            )
        else:
            self.logger.info(f"Decision step {steps + 1}: final answer")
        return {'messages': [response], 'steps': steps + 1}

    def _executing(self, state: AgentGraphState) -> dict[str, Any]:
        results = execute(
            state['messages'][-1],
            self.registry,
            policy=self.settings.tool_error_policy,
            logger=self.logger,
        )
        return {'messages': [r.to_message() for r in results]}

    @staticmethod
    def _route(state: AgentGraphState) -> str:
        if has_tool_requests(state['messages'][-1]):
            return LoopState.EXECUTING.value
        return LoopState.DONE.value

    def _build_graph(self) -> Any:
        builder = StateGraph(AgentGraphState)
        builder.add_node(LoopState.DECIDING.value, self._deciding)
        builder.add_node(LoopState.EXECUTING.value, self._executing)
        builder.add_edge(START, LoopState.DECIDING.value)
        builder.add_conditional_edges(
            LoopState.DECIDING.value,
            self._route,
            {
                LoopState.EXECUTING.value: LoopState.EXECUTING.value,
                LoopState.DONE.value: END,
            },
        )
        builder.add_edge(
            LoopState.EXECUTING.value, LoopState.DECIDING.value
        )
        return builder.compile()

    # public interface --------------------------------------------
    def invoke(self, user_input: str | Sequence[BaseMessage]) -> AgentRun:
        """Run the loop on a user request.

        Args:
            user_input: the user request, or a conversation to
                continue (without system message)

        Returns:
            the completed run

        Raises:
            ValueError: for an empty or inconsistent input conversation
            AgentError: if the run fails. The partial run is
                available as the `run` attribute of the error.
        """
        if isinstance(user_input, str):
            messages: list[BaseMessage] = [HumanMessage(content=user_input)]
        else:
            messages = list(user_input)
        if not messages:
            raise ValueError("Cannot run the agent on an empty conversation")
        violations = check_correlation(messages, allow_pending=False)
        if violations:
            raise ValueError(
                "Inconsistent conversation: " + "; ".join(violations)
            )

        values: dict[str, Any] = {'messages': messages, 'steps': 0}
        # two graph steps per decision; our own limit is hit first
        config = {'recursion_limit': 2 * self.settings.max_iterations + 2}
        try:
            for values in self.graph.stream(
                values, config=config, stream_mode="values"
            ):
                pass
        except GraphRecursionError as e:
            error = IterationLimitError(f"Graph recursion limit: {e}")
            self._fail(error, values)
            raise error from e
        except AgentError as e:
            self._fail(e, values)
            raise

        return AgentRun(
            messages=list(values['messages']),
            state=LoopState.DONE,
            steps=values.get('steps', 0),
        )

    def _fail(self, error: AgentError, values: dict[str, Any]) -> None:
        error.run = AgentRun(
            messages=list(values['messages']),
            state=LoopState.FAILED,
            steps=values.get('steps', 0),
            error=str(error),
        )
        self.logger.error(f"Agent run failed: {error}")


def run_agent(
    user_input: str,
    settings: Settings | None = None,
    *,
    logger: LoggerBase = logger,
) -> AgentRun:
    """Create an agent from the settings and run it once."""
    return Agent.from_settings(settings, logger=logger).invoke(user_input)

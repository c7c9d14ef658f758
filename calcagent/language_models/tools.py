"""
The tools the model may request: their definitions and the registry
that resolves, validates and executes tool requests.

The built-in tools form a closed set,

    - "add"
    - "multiply"
    - "divide"

each taking two numbers `a` and `b`. Their definitions are created on
first lookup by a factory that dispatches over the set; any other name
is an unknown tool, unless a custom definition was registered under it.

**Example**:

    ```python
    from calcagent.language_models.tools import ToolRegistry

    registry = ToolRegistry()
    registry.lookup("add").name  # 'add'
    registry.invoke(ToolRequest(id="call_1", name="add",
                                args={'a': 3, 'b': 4}))  # 7
    ```

Custom tools are added with `register_tool`, giving a pydantic model
as the argument schema. The function receives the validated argument
object.

    ```python
    class Operand(BaseModel):
        x: float

    registry.register_tool(
        "negate", "Change the sign of a number", Operand,
        lambda args: -args.x,
    )
    ```

Errors: lookups of unknown names raise UnknownToolError, arguments not
matching the schema raise ToolValidationError, and arithmetic failures
(division by zero, overflow to a non-finite value, results too large
to write out) raise ToolDomainError, as do other failures of a custom
tool function. A tool never returns NaN or infinity.
"""

import math
from collections.abc import Callable, Iterable
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    ValidationError,
)

from calcagent.errors import (
    ToolDomainError,
    ToolError,
    ToolValidationError,
    UnknownToolError,
)
from .lazy_dict import LazyLoadingDict
from .messages import ToolRequest

# The built-in tools
ToolNames = Literal["add", "multiply", "divide"]

Number = StrictInt | StrictFloat


class BinaryOperands(BaseModel):
    """Arguments of the arithmetic tools"""

    a: Number = Field(description="first number")
    b: Number = Field(description="second number")

    model_config = ConfigDict(
        frozen=True, extra='forbid', allow_inf_nan=False
    )


class ToolDefinition(BaseModel):
    """Groups all properties that uniquely define a tool"""

    name: str = Field(pattern=r'^[a-zA-Z0-9_-]{1,64}$')
    description: str
    args_schema: type[BaseModel]
    func: Callable[[Any], object]

    model_config = ConfigDict(
        frozen=True, extra='forbid', arbitrary_types_allowed=True
    )

    def declaration(self) -> dict[str, Any]:
        """The tool declaration in OpenAI function format, accepted
        by the bind_tools method of all LangChain chat models."""
        return {
            'type': "function",
            'function': {
                'name': self.name,
                'description': self.description,
                'parameters': self.args_schema.model_json_schema(),
            },
        }


def _finite(value: int | float) -> int | float:
    if isinstance(value, float) and not math.isfinite(value):
        raise ToolDomainError(f"Result is not a finite number: {value}")
    return value


def add(args: BinaryOperands) -> int | float:
    return _finite(args.a + args.b)


def multiply(args: BinaryOperands) -> int | float:
    return _finite(args.a * args.b)


def divide(args: BinaryOperands) -> int | float:
    if args.b == 0:
        raise ToolDomainError("Division by zero is not allowed.")
    # exact integer quotients stay integers
    if isinstance(args.a, int) and isinstance(args.b, int):
        if args.a % args.b == 0:
            return args.a // args.b
    return _finite(args.a / args.b)


# The factory of the built-in tool definitions.
def _create_tool(tool_name: ToolNames) -> ToolDefinition:
    match tool_name:
        case "add":
            return ToolDefinition(
                name=tool_name,
                description="Add two numbers together",
                args_schema=BinaryOperands,
                func=add,
            )
        case "multiply":
            return ToolDefinition(
                name=tool_name,
                description="Multiply two numbers",
                args_schema=BinaryOperands,
                func=multiply,
            )
        case "divide":
            return ToolDefinition(
                name=tool_name,
                description="Divide two numbers",
                args_schema=BinaryOperands,
                func=divide,
            )
        case _:  # do not remove this
            raise UnknownToolError(tool_name)


def _format_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in err['loc']) or 'arguments'}: "
        f"{err['msg']}"
        for err in error.errors()
    )


class ToolRegistry:
    """
    The tools available to one agent.

    Args:
        tools: the built-in tools to enable. If None (default), all
            built-in tools are enabled.
    """

    def __init__(self, tools: Iterable[ToolNames] | None = None) -> None:
        self._library: LazyLoadingDict[str, ToolDefinition] = (
            LazyLoadingDict(_create_tool)  # type: ignore
        )
        names = ToolNames.__args__ if tools is None else tuple(tools)
        self._names: list[str] = []
        for name in names:
            if name not in ToolNames.__args__:
                raise UnknownToolError(name)
            if name not in self._names:
                self._names.append(name)

    def names(self) -> list[str]:
        """The names of the registered tools, in registration order"""
        return list(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def register(self, definition: ToolDefinition) -> None:
        """Register a custom tool.

        Raises:
            ValueError: if a tool with the same name is registered
        """
        if definition.name in self._names:
            raise ValueError(
                f"Tool '{definition.name}' is already registered"
            )
        if definition.name in ToolNames.__args__:
            raise ValueError(
                f"'{definition.name}' is the name of a built-in tool"
            )
        self._library[definition.name] = definition
        self._names.append(definition.name)

    def register_tool(
        self,
        name: str,
        description: str,
        args_schema: type[BaseModel],
        func: Callable[[Any], object],
    ) -> ToolDefinition:
        """Create a tool definition and register it.

        Args:
            name: the unique tool name
            description: the description shown to the model
            args_schema: a pydantic model of the arguments
            func: the function, receiving the validated arguments

        Returns:
            the registered definition
        """
        definition = ToolDefinition(
            name=name,
            description=description,
            args_schema=args_schema,
            func=func,
        )
        self.register(definition)
        return definition

    def lookup(self, name: str) -> ToolDefinition:
        """Resolve a tool by name.

        Raises:
            UnknownToolError: if no tool is registered with this name
        """
        if name not in self._names:
            raise UnknownToolError(name)
        return self._library[name]

    def definitions(self) -> list[ToolDefinition]:
        return [self.lookup(name) for name in self._names]

    def declarations(self) -> list[dict[str, Any]]:
        """Declarations of all registered tools, to bind to a model"""
        return [d.declaration() for d in self.definitions()]

    def invoke(self, request: ToolRequest) -> object:
        """Resolve the tool of the request, validate the arguments
        against its schema, and run it.

        Returns:
            the value computed by the tool

        Raises:
            UnknownToolError, ToolValidationError, ToolDomainError
        """
        tool = self.lookup(request.name)
        if request.error is not None:
            raise ToolValidationError(
                f"Invalid arguments for '{request.name}': {request.error}"
            )
        try:
            args = tool.args_schema.model_validate(request.args)
        except ValidationError as e:
            raise ToolValidationError(
                f"Invalid arguments for '{request.name}': "
                + _format_validation_error(e)
            ) from e

        try:
            value = tool.func(args)
        except ToolError:
            raise
        except ArithmeticError as e:
            raise ToolDomainError(str(e)) from e
        except Exception as e:
            raise ToolDomainError(
                f"Tool '{request.name}' failed: {type(e).__name__}: {e}"
            ) from e

        # results are sent to the model as text
        try:
            str(value)
        except ValueError as e:
            raise ToolDomainError("Result too large to represent") from e
        return value

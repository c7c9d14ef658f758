"""Test the tool registry"""

import math
import unittest

from pydantic import BaseModel

from calcagent.errors import (
    ToolDomainError,
    ToolError,
    ToolValidationError,
    UnknownToolError,
)
from calcagent.language_models.messages import ToolRequest
from calcagent.language_models.tools import (
    BinaryOperands,
    ToolDefinition,
    ToolRegistry,
    add,
    divide,
    multiply,
)


def request(name: str, **args: object) -> ToolRequest:
    return ToolRequest(id="call_1", name=name, args=args)


class TestArithmetic(unittest.TestCase):

    def test_add(self):
        self.assertEqual(add(BinaryOperands(a=3, b=4)), 7)
        self.assertIsInstance(add(BinaryOperands(a=3, b=4)), int)
        self.assertEqual(add(BinaryOperands(a=0.5, b=-2)), -1.5)

    def test_multiply(self):
        self.assertEqual(multiply(BinaryOperands(a=6, b=7)), 42)
        self.assertEqual(multiply(BinaryOperands(a=-1.5, b=2)), -3.0)

    def test_divide(self):
        self.assertEqual(divide(BinaryOperands(a=6, b=3)), 2)
        self.assertIsInstance(divide(BinaryOperands(a=6, b=3)), int)
        self.assertEqual(divide(BinaryOperands(a=7, b=2)), 3.5)
        self.assertEqual(divide(BinaryOperands(a=-9, b=3)), -3)

    def test_divide_by_zero(self):
        with self.assertRaises(ToolDomainError) as cm:
            divide(BinaryOperands(a=5, b=0))
        self.assertIn("Division by zero", str(cm.exception))
        with self.assertRaises(ToolDomainError):
            divide(BinaryOperands(a=5.0, b=0.0))

    def test_overflow_is_domain_error(self):
        with self.assertRaises(ToolDomainError):
            multiply(BinaryOperands(a=1e308, b=10.0))

    def test_operands_reject_non_finite(self):
        with self.assertRaises(ValueError):
            BinaryOperands(a=math.inf, b=1)
        with self.assertRaises(ValueError):
            BinaryOperands(a=1, b=math.nan)

    def test_operands_reject_strings_and_bools(self):
        with self.assertRaises(ValueError):
            BinaryOperands(a="3", b=4)  # type: ignore
        with self.assertRaises(ValueError):
            BinaryOperands(a=True, b=4)


class TestRegistry(unittest.TestCase):

    def test_builtin_names(self):
        registry = ToolRegistry()
        self.assertEqual(registry.names(), ["add", "multiply", "divide"])
        self.assertEqual(len(registry), 3)
        self.assertIn("divide", registry)

    def test_lookup(self):
        registry = ToolRegistry()
        tool = registry.lookup("add")
        self.assertEqual(tool.name, "add")
        self.assertEqual(tool.description, "Add two numbers together")
        # memoized
        self.assertIs(registry.lookup("add"), tool)

    def test_lookup_unknown(self):
        registry = ToolRegistry()
        with self.assertRaises(UnknownToolError) as cm:
            registry.lookup("power")
        self.assertEqual(cm.exception.name, "power")
        self.assertIn("Unknown tool", str(cm.exception))

    def test_subset(self):
        registry = ToolRegistry(["add"])
        self.assertEqual(registry.names(), ["add"])
        with self.assertRaises(UnknownToolError):
            registry.lookup("divide")

    def test_subset_invalid(self):
        with self.assertRaises(UnknownToolError):
            ToolRegistry(["add", "modulo"])  # type: ignore

    def test_declarations(self):
        registry = ToolRegistry()
        declarations = registry.declarations()
        self.assertEqual(len(declarations), 3)
        first = declarations[0]
        self.assertEqual(first['type'], "function")
        self.assertEqual(first['function']['name'], "add")
        parameters = first['function']['parameters']
        self.assertEqual(set(parameters['properties']), {'a', 'b'})
        self.assertEqual(set(parameters['required']), {'a', 'b'})


class TestInvoke(unittest.TestCase):

    registry = ToolRegistry()

    def test_invoke(self):
        self.assertEqual(self.registry.invoke(request("add", a=3, b=4)), 7)
        self.assertEqual(
            self.registry.invoke(request("multiply", a=6, b=7)), 42
        )
        self.assertEqual(
            self.registry.invoke(request("divide", a=1, b=4)), 0.25
        )

    def test_invoke_unknown(self):
        with self.assertRaises(UnknownToolError):
            self.registry.invoke(request("subtract", a=3, b=4))

    def test_invoke_missing_argument(self):
        with self.assertRaises(ToolValidationError) as cm:
            self.registry.invoke(request("add", a=3))
        self.assertIn("b", str(cm.exception))

    def test_invoke_extra_argument(self):
        with self.assertRaises(ToolValidationError):
            self.registry.invoke(request("add", a=3, b=4, c=5))

    def test_invoke_wrong_type(self):
        with self.assertRaises(ToolValidationError):
            self.registry.invoke(request("add", a="three", b=4))

    def test_invoke_unparsed_arguments(self):
        bad = ToolRequest(
            id="call_2", name="add", args={}, error="malformed JSON"
        )
        with self.assertRaises(ToolValidationError) as cm:
            self.registry.invoke(bad)
        self.assertIn("malformed JSON", str(cm.exception))

    def test_invoke_divide_by_zero(self):
        with self.assertRaises(ToolDomainError):
            self.registry.invoke(request("divide", a=3, b=0))

    def test_invoke_result_too_large(self):
        big = 10**2500
        with self.assertRaises(ToolDomainError) as cm:
            self.registry.invoke(request("multiply", a=big, b=big))
        self.assertIn("too large", str(cm.exception))

    def test_tool_errors_are_value_errors(self):
        with self.assertRaises(ValueError):
            self.registry.invoke(request("divide", a=3, b=0))
        self.assertTrue(issubclass(UnknownToolError, ToolError))


class Operand(BaseModel):
    x: float


class TestCustomTool(unittest.TestCase):

    def test_register_tool(self):
        registry = ToolRegistry()
        definition = registry.register_tool(
            "negate", "Change the sign of a number", Operand,
            lambda args: -args.x,
        )
        self.assertIsInstance(definition, ToolDefinition)
        self.assertEqual(registry.names()[-1], "negate")
        value = registry.invoke(
            ToolRequest(id="c", name="negate", args={'x': 2})
        )
        self.assertEqual(value, -2.0)

    def test_register_duplicate(self):
        registry = ToolRegistry()
        registry.register_tool("negate", "", Operand, lambda args: -args.x)
        with self.assertRaises(ValueError):
            registry.register_tool(
                "negate", "", Operand, lambda args: args.x
            )

    def test_register_builtin_name(self):
        registry = ToolRegistry(["multiply"])
        with self.assertRaises(ValueError):
            registry.register_tool("add", "", Operand, lambda args: 0)

    def test_invalid_name(self):
        with self.assertRaises(ValueError):
            ToolDefinition(
                name="two words",
                description="",
                args_schema=Operand,
                func=lambda args: 0,
            )

    def test_arithmetic_error_in_custom_tool(self):
        registry = ToolRegistry([])
        registry.register_tool(
            "inverse", "One over x", Operand, lambda args: 1 / args.x
        )
        with self.assertRaises(ToolDomainError):
            registry.invoke(
                ToolRequest(id="c", name="inverse", args={'x': 0})
            )

    def test_failure_in_custom_tool(self):
        registry = ToolRegistry([])

        def root(args: Operand) -> float:
            if args.x < 0:
                raise ValueError("negative operand")
            return args.x**0.5

        registry.register_tool("root", "Square root", Operand, root)
        with self.assertRaises(ToolDomainError) as cm:
            registry.invoke(
                ToolRequest(id="c", name="root", args={'x': -1})
            )
        self.assertIn("negative operand", str(cm.exception))
        self.assertIsInstance(cm.exception.__cause__, ValueError)


if __name__ == "__main__":
    unittest.main()

"""Test the offline scripted chat model"""

import unittest

from langchain_core.messages import (
    AIMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from calcagent.language_models.langchain.scripted_model import (
    ScriptedChatModel,
)
from calcagent.language_models.tools import ToolRegistry


class TestArithmeticAssistant(unittest.TestCase):

    model = ScriptedChatModel()

    def test_requests_add(self):
        response = self.model.invoke([HumanMessage(content="ADD 3 and 4")])
        self.assertIsInstance(response, AIMessage)
        self.assertEqual(len(response.tool_calls), 1)
        call = response.tool_calls[0]
        self.assertEqual(call['name'], "add")
        self.assertEqual(call['args'], {'a': 3, 'b': 4})
        self.assertEqual(call['id'], "call_0_0")

    def test_requests_multiply_floats(self):
        response = self.model.invoke(
            [HumanMessage(content="What is 1.5 times 4?")]
        )
        call = response.tool_calls[0]
        self.assertEqual(call['name'], "multiply")
        self.assertEqual(call['args'], {'a': 1.5, 'b': 4})

    def test_answers_tool_result(self):
        response = self.model.invoke(
            [
                HumanMessage(content="ADD 3 and 4"),
                AIMessage(
                    content="",
                    tool_calls=[
                        {
                            'name': "add",
                            'args': {'a': 3, 'b': 4},
                            'id': "call_0_0",
                            'type': "tool_call",
                        }
                    ],
                ),
                ToolMessage(content="7", tool_call_id="call_0_0"),
            ]
        )
        self.assertEqual(response.tool_calls, [])
        self.assertEqual(response.content, "The result is 7.")

    def test_answers_tool_error(self):
        response = self.model.invoke(
            [
                HumanMessage(content="divide 1 by 0"),
                AIMessage(content="", tool_calls=[]),
                ToolMessage(
                    content="Error: Division by zero is not allowed.",
                    tool_call_id="call_0_0",
                    status="error",
                ),
            ]
        )
        self.assertIn("could not compute", str(response.content))

    def test_no_operation(self):
        response = self.model.invoke([HumanMessage(content="Hello")])
        self.assertEqual(response.tool_calls, [])
        self.assertTrue(response.content)

    def test_ignores_system_message(self):
        response = self.model.invoke(
            [
                SystemMessage(content="You add numbers."),
                HumanMessage(content="sum 10 and 20"),
            ]
        )
        self.assertEqual(response.tool_calls[0]['args'], {'a': 10, 'b': 20})

    def test_deterministic(self):
        messages = [HumanMessage(content="multiply 6 by 7")]
        first = self.model.invoke(messages)
        second = self.model.invoke(messages)
        self.assertEqual(first.tool_calls, second.tool_calls)

    def test_bind_tools(self):
        bound = self.model.bind_tools(ToolRegistry().declarations())
        response = bound.invoke([HumanMessage(content="ADD 3 and 4")])
        self.assertEqual(response.tool_calls[0]['name'], "add")


class TestScript(unittest.TestCase):

    def test_scripted_responses(self):
        model = ScriptedChatModel(
            responses=[
                AIMessage(content="first"),
                AIMessage(content="second"),
            ]
        )
        first = model.invoke([HumanMessage(content="x")])
        self.assertEqual(first.content, "first")
        second = model.invoke(
            [HumanMessage(content="x"), first, HumanMessage(content="y")]
        )
        self.assertEqual(second.content, "second")
        # past the script: arithmetic assistant
        third = model.invoke(
            [
                HumanMessage(content="x"),
                first,
                HumanMessage(content="y"),
                second,
                HumanMessage(content="add 1 and 2"),
            ]
        )
        self.assertEqual(third.tool_calls[0]['name'], "add")

    def test_answer_prefix(self):
        model = ScriptedChatModel(answer_prefix="Answer:")
        response = model.invoke(
            [
                HumanMessage(content="ADD 3 and 4"),
                ToolMessage(content="7", tool_call_id="call_0_0"),
            ]
        )
        self.assertEqual(response.content, "Answer: 7.")


if __name__ == "__main__":
    unittest.main()

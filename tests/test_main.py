"""Test the command line entry point"""

import io
import os
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

from calcagent.__main__ import main
from calcagent.utils.logging import LoglistLogger


@patch("calcagent.__main__.logger", LoglistLogger())
class TestMain(unittest.TestCase):

    @patch.dict(os.environ, {"CALCAGENT_MODEL__MODEL": "Debug/scripted"})
    def test_default_query(self):
        out = io.StringIO()
        with redirect_stdout(out):
            status = main([])
        self.assertEqual(status, 0)
        lines = out.getvalue().splitlines()
        self.assertEqual(lines[0], "human: ADD 3 and 4")
        self.assertIn("add(a=3, b=4)", lines[1])
        self.assertTrue(lines[2].startswith("tool ["))
        self.assertTrue(lines[2].endswith(": 7"))
        self.assertEqual(lines[3], "ai: The result is 7.")

    @patch.dict(os.environ, {"CALCAGENT_MODEL__MODEL": "Debug/scripted"})
    def test_query(self):
        out = io.StringIO()
        with redirect_stdout(out):
            status = main(["multiply", "6", "by", "7"])
        self.assertEqual(status, 0)
        self.assertIn("ai: The result is 42.", out.getvalue())

    @patch.dict(
        os.environ,
        {
            "CALCAGENT_MODEL__MODEL": "Debug/scripted",
            "CALCAGENT_AGENT__TOOL_ERROR_POLICY": "raise",
        },
    )
    def test_failed_run(self):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            status = main(["divide", "1", "by", "0"])
        self.assertEqual(status, 1)
        self.assertIn("Division by zero", err.getvalue())
        self.assertIn("human: divide 1 by 0", out.getvalue())

    @patch.dict(
        os.environ,
        {"CALCAGENT_MODEL__MODEL": "OpenAI/gpt-4o", "OPENAI_API_KEY": ""},
    )
    def test_missing_key(self):
        err = io.StringIO()
        with redirect_stderr(err), patch(
            "calcagent.__main__.load_environment"
        ):
            status = main(["ADD", "1", "and", "2"])
        self.assertEqual(status, 1)
        self.assertIn("OPENAI_API_KEY", err.getvalue())

    def test_missing_config_file(self):
        err = io.StringIO()
        with redirect_stderr(err):
            status = main(["--config", "no_such_file.toml"])
        self.assertEqual(status, 1)

    @patch.dict(os.environ, {"CALCAGENT_MODEL__MODEL": "Debug/scripted"})
    def test_print_config(self):
        out = io.StringIO()
        with redirect_stdout(out):
            status = main(["--print-config"])
        self.assertEqual(status, 0)
        self.assertIn("[model]", out.getvalue())
        self.assertIn("Debug/scripted", out.getvalue())
        self.assertNotIn("human:", out.getvalue())

    @patch.dict(os.environ, {"CALCAGENT_MODEL__MODEL": "Debug/scripted"})
    def test_missing_provider_package(self):
        err = io.StringIO()
        with redirect_stderr(err), patch(
            "calcagent.__main__.Agent.from_settings",
            side_effect=ImportError("langchain_anthropic is not installed"),
        ):
            status = main(["ADD", "1", "and", "2"])
        self.assertEqual(status, 1)
        self.assertIn("Error: langchain_anthropic", err.getvalue())

    def test_help(self):
        out = io.StringIO()
        with redirect_stdout(out):
            status = main(["--help"])
        self.assertEqual(status, 0)
        self.assertIn("Usage", out.getvalue())


if __name__ == "__main__":
    unittest.main()

"""A language model wired to arithmetic tools through a decision loop.

    ```python
    from calcagent import Agent
    run = Agent.from_settings().invoke("ADD 3 and 4")
    ```
"""

# pyright: reportUnusedImport=false
# flake8: noqa

from .language_models.agent import Agent, AgentRun, LoopState, run_agent
from .language_models.tools import ToolRegistry, ToolDefinition
from .config import Settings

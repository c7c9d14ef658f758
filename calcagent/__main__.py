"""
Run the agent once and print the conversation.

Usage:
    python -m calcagent [--config FILE] [--quiet] [--print-config] [QUERY ...]

The query defaults to "ADD 3 and 4". The settings are read from FILE,
or from config.toml and the environment (CALCAGENT_ variables). The
API key of the model provider is read from the environment, after
loading a .env file if present.

With --print-config, the settings are printed in TOML format and the
agent is not run.
"""

import logging
import sys

from calcagent.config import (
    Settings,
    get_api_key,
    load_environment,
    load_settings,
    print_settings,
)
from calcagent.errors import AgentError
from calcagent.language_models.agent import Agent
from calcagent.language_models.messages import format_message
from calcagent.utils import logger
from calcagent.utils.logging import set_log_level

DEFAULT_QUERY = "ADD 3 and 4"

USAGE = (
    "Usage: python -m calcagent [--config FILE] [--quiet] "
    "[--print-config] [QUERY ...]"
)


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    config_file: str | None = None
    show_config = False
    words: list[str] = []
    while args:
        arg = args.pop(0)
        match arg:
            case '-h' | '--help':
                print(USAGE)
                return 0
            case '--config':
                if not args:
                    print(USAGE, file=sys.stderr)
                    return 2
                config_file = args.pop(0)
            case '--quiet':
                set_log_level(logging.WARNING)
            case '--print-config':
                show_config = True
            case _:
                words.append(arg)
    query = " ".join(words) or DEFAULT_QUERY

    load_environment()
    try:
        settings = (
            load_settings(config_file) if config_file else Settings()
        )
        if show_config:
            print_settings(settings)
            return 0
        get_api_key(settings.model)
        agent = Agent.from_settings(settings, logger=logger)
        run = agent.invoke(query)
    except AgentError as e:
        if e.run is not None:
            for message in e.run.messages:
                print(format_message(message))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (FileNotFoundError, ImportError, ValueError) as e:
        # ValueError includes pydantic validation errors of settings,
        # ImportError a missing provider package
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for message in run.messages:
        print(format_message(message))
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Logging interface for the agent loop.

The agent and the command line entry point do not talk to Python's
logging module directly. They receive a `LoggerBase` object, so that
the caller decides where the messages of a run end up:

    - `ConsoleLogger` relays to a `logging.Logger` printing to stdout
    - `LoglistLogger` keeps the messages in a list, for inspection
        after the run (this is what the tests use)
    - `ExceptionConsoleLogger` raises on errors, to stop at the first
        failure when debugging a tool set

Usage:
    ```python
    from calcagent.utils.logging import get_logger, LoglistLogger

    logger = get_logger(__name__)
    logger.info("Decision step: 1 tool request")

    capture = LoglistLogger()
    agent = Agent(model, logger=capture)
    agent.invoke("ADD 3 and 4")
    warnings = capture.get_logs(level=1)
    ```
"""

import logging
import sys
from abc import ABC, abstractmethod

LOG_FORMAT = '%(levelname)s - %(message)s'


class LoggerBase(ABC):
    """
    Abstract interface for logging functionality.
    """

    @abstractmethod
    def set_level(self, level: int) -> None:
        """Set the logging level for the logger."""
        pass

    @abstractmethod
    def get_level(self) -> int:
        """Get the current logging level"""
        pass

    @abstractmethod
    def info(self, msg: str) -> None:
        """Log an informational message."""
        pass

    @abstractmethod
    def error(self, msg: str) -> None:
        """Log an error message."""
        pass

    @abstractmethod
    def warning(self, msg: str) -> None:
        """Log a warning message."""
        pass


class ConsoleLogger(LoggerBase):
    """
    A console logger that uses logging.Logger as a delegate, printing
    to stdout.
    """

    def __init__(self, name: str | None = None) -> None:
        """
        Initialize the ConsoleLogger with a specific logger name,
        typically __name__ to use the module name
        """
        self.logger = logging.getLogger(name or "calcagent")
        self.logger.setLevel(logging.INFO)

        if not self.logger.hasHandlers():
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(handler)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)

    def get_level(self) -> int:
        return self.logger.level

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)


class LoglistLogger(LoggerBase):
    """
    Maintains a list of logged messages that can be inspected by the
    object creator.
    """

    def __init__(self) -> None:
        self.logs: list[dict[str, str]] = []

    def set_level(self, level: int) -> None:
        pass

    def get_level(self) -> int:
        return 0

    def info(self, msg: str) -> None:
        self.logs.append({'info': msg})

    def error(self, msg: str) -> None:
        self.logs.append({'error': msg})

    def warning(self, msg: str) -> None:
        self.logs.append({'warning': msg})

    def get_logs(self, level: int = 0) -> list[str]:
        """
        Returns a list of strings with the log messages.

        Args:
           level: a filter on the logs. Possible values:
                0 or less: returns all messages
                1: omit info
                2 or more: only errors
        """
        logs: list[str] = []
        for entry in self.logs:
            match entry:
                case {'info': msg}:
                    if level < 1:
                        logs.append("INFO - " + msg)
                case {'warning': msg}:
                    if level < 2:
                        logs.append("WARNING - " + msg)
                case {'error': msg}:
                    logs.append("ERROR - " + msg)
                case _:
                    logs.append(str(entry))
        return logs

    def count_logs(self, level: int = 0) -> int:
        """The number of recorded logs. Zero means there
        were no recorded logs."""
        return len(self.get_logs(level))

    def clear_logs(self) -> None:
        self.logs.clear()


class ExceptionConsoleLogger(ConsoleLogger):
    """
    A console logger that raises a RuntimeError after logging an
    error. Info and warning messages are only logged.
    """

    def error(self, msg: str) -> None:
        self.logger.error(msg)
        raise RuntimeError(f"Error: {msg}")


def get_logger(name: str) -> LoggerBase:
    """
    Get a console logger with the specified name.

    Args:
        name: The name of the logger, typically __name__ to use the
            module name

    Returns:
        A configured logger instance
    """
    return ConsoleLogger(name)


def set_log_level(level: int) -> None:
    """
    Set the log level of all the loggers of the package.

    Args:
        level: The logging level (e.g., logging.DEBUG, logging.INFO)
    """
    logging.getLogger("calcagent").setLevel(level)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith("calcagent."):
            logging.getLogger(name).setLevel(level)

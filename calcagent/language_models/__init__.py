# pyright: reportUnusedImport=false
# flake8: noqa

from .lazy_dict import LazyLoadingDict

from .messages import (
    ToolRequest,
    ToolResult,
    check_correlation,
)
from .tools import (
    ToolNames,
    ToolDefinition,
    ToolRegistry,
)

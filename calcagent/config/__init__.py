# pyright: reportUnusedImport=false
# flake8: noqa

from .config import (
    Settings,
    LanguageModelSettings,
    AgentSettings,
    ToolErrorPolicy,
    DEFAULT_SYSTEM_PROMPT,
    serialize_settings,
    export_settings,
    print_settings,
    load_settings,
    load_environment,
    get_api_key,
)

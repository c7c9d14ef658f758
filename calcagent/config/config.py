"""
Read and write the configuration of the agent.

The configuration is a pydantic settings object read, in order of
priority, from the arguments given in code, from config.toml in the
working directory, and from environment variables prefixed with
CALCAGENT_ (nested fields separated by a double underscore, as in
CALCAGENT_MODEL__TEMPERATURE=0.5).

Credentials are not part of the settings. They are read from the
conventional environment variable of the model provider (for
example OPENAI_API_KEY), after loading a .env file if one is found.
"""

import os
from pathlib import Path
from typing import Any, Literal, Self

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from calcagent.errors import ConfigurationError

# Supported model sources. These must also be handled in the match
# statement of calcagent.language_models.langchain.models
ModelSource = Literal['OpenAI', 'Anthropic', 'Mistral', 'Gemini', 'Debug']

# The two ways a failing tool request may be handled
ToolErrorPolicy = Literal['report', 'raise']

ProviderParam = str | int | float | bool | None

DEFAULT_CONFIG_FILE = "config.toml"
ENV_PREFIX = "CALCAGENT_"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant tasked with performing arithmetic "
    "on a set of inputs."
)

# Environment variables holding the credential of each source
API_KEY_VARIABLES: dict[str, str] = {
    'OpenAI': "OPENAI_API_KEY",
    'Anthropic': "ANTHROPIC_API_KEY",
    'Mistral': "MISTRAL_API_KEY",
    'Gemini': "GOOGLE_API_KEY",
}


class LanguageModelSettings(BaseModel):
    """
    Specification of the language model making the decisions.

    Attributes:
        model: model specification, 'source/model'
        temperature: float between 0.0 and 2.0
        max_tokens: max number of generated tokens
        max_retries: max number of retries of the client
        timeout: timeout when waiting for response
        provider_params: provider-specific parameters
    """

    model: str = Field(
        default="OpenAI/gpt-4o",
        description="Model specification in the form "
        + "'model_provider/model' (e.g., 'OpenAI/gpt-4o')",
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Controls randomness in model responses (0.0-2.0)",
    )
    max_tokens: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of tokens to generate",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Maximum number of retry attempts of the client",
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Request timeout in seconds"
    )
    provider_params: dict[str, ProviderParam] = Field(
        default_factory=dict,
        description="Provider-specific parameters (e.g., top_p)",
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')

    def __hash__(self) -> int:
        # provider_params is a dict, hashed as a sorted tuple
        return hash(
            (
                self.model,
                self.temperature,
                self.max_tokens,
                self.max_retries,
                self.timeout,
                tuple(sorted(self.provider_params.items())),
            )
        )

    def get_model_source(self) -> ModelSource:
        return self.model.split('/')[0]  # type: ignore

    def get_model_name(self) -> str:
        return self.model.split('/')[1]

    @field_validator('model', mode='after')
    @classmethod
    def validate_model_spec(cls, spec: str) -> str:
        cleaned_spec = spec.strip()
        if not cleaned_spec:
            raise ValueError("Model specification is empty")
        if '\n' in cleaned_spec or '\r' in cleaned_spec:
            raise ValueError(
                "Model specification cannot contain newlines or carriage"
                + " returns."
            )
        tokens = cleaned_spec.split('/')
        if len(tokens) != 2 or not tokens[1].strip():
            raise ValueError(
                "Model specification must contain the model provider and "
                + "the model name separated by a single '/'."
            )
        source = tokens[0].strip()
        if source not in ModelSource.__args__:
            raise ValueError(
                f"Invalid model provider: '{source}'. "
                + f"Must be one of {ModelSource.__args__}."
            )
        return source + '/' + tokens[1].strip()

    @model_validator(mode='after')
    def validate_provider_params(self) -> Self:
        """Validate provider-specific parameters based on the source."""
        ALLOWED_PARAMS = {
            'OpenAI': {
                'frequency_penalty',
                'presence_penalty',
                'top_p',
                'seed',
            },
            'Anthropic': {'top_p', 'top_k', 'stop_sequences'},
            'Mistral': {'top_p', 'random_seed', 'safe_mode'},
            'Gemini': {'top_p', 'top_k', 'candidate_count'},
            'Debug': {'answer_prefix'},
        }

        source: ModelSource = self.get_model_source()
        allowed = ALLOWED_PARAMS[source]
        invalid_params = set(self.provider_params.keys()) - allowed
        if invalid_params:
            raise ValueError(
                f"Invalid provider_params for {source}: "
                f"{invalid_params}. Allowed: {allowed}"
            )
        return self


class AgentSettings(BaseModel):
    """
    Behaviour of the decision loop.

    Attributes:
        system_prompt: the instruction prepended to the conversation
            at each decision step
        max_iterations: the maximum number of decision steps in a run
        tool_error_policy: 'report' returns failing tool requests to
            the model as error results, 'raise' fails the run
    """

    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        min_length=1,
        description="System instruction of the decision step",
    )
    max_iterations: int = Field(
        default=10,
        ge=1,
        description="Maximum number of decision steps in one run",
    )
    tool_error_policy: ToolErrorPolicy = Field(
        default='report',
        description="How failing tool requests are handled",
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')


class Settings(BaseSettings):
    """
    A pydantic settings object containing the configuration of the
    agent.

    Attributes:
        model: the language model of the decision step
        agent: the loop parameters
    """

    model: LanguageModelSettings = Field(
        default_factory=LanguageModelSettings,
        description="Language model of the decision step",
    )
    agent: AgentSettings = Field(
        default_factory=AgentSettings,
        description="Decision loop parameters",
    )

    model_config = SettingsConfigDict(
        toml_file=DEFAULT_CONFIG_FILE,
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        frozen=True,
        extra='forbid',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of settings sources."""
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls),
            env_settings,
        )


def serialize_settings(sets: BaseSettings) -> str:
    """Transform the settings into a string in TOML format.

    Args:
        sets: The settings object to serialize

    Returns:
        TOML formatted string representation of settings
    """
    import tomlkit

    doc = tomlkit.document()
    doc.add(tomlkit.comment("calcagent configuration file"))
    doc.add(tomlkit.nl())

    data: dict[str, Any] = sets.model_dump()
    for key, value in data.items():
        if isinstance(value, dict):
            tbl = tomlkit.table()
            for kkey, vvalue in value.items():  # type: ignore
                # None values cannot be serialized to TOML
                if vvalue is not None:
                    tbl[kkey] = vvalue
            doc[key] = tbl
        elif value is not None:
            doc[key] = value

    return str(tomlkit.dumps(doc))  # type: ignore


def export_settings(
    settings: BaseSettings, file_path: str | Path | None = None
) -> None:
    """Save settings to file in TOML format.

    Args:
        settings: A settings object to save
        file_path: The settings file path (defaults to config.toml)

    Raises:
        OSError: If file cannot be written
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w", encoding="utf-8") as f:
        f.write(serialize_settings(settings))


def print_settings(settings: BaseSettings) -> None:
    """Print settings in TOML format to stdout."""
    print(serialize_settings(settings))


def load_settings(file_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML file.

    Args:
        file_path: Path to settings file (defaults to config.toml)

    Returns:
        Loaded settings object

    Raises:
        FileNotFoundError: If settings file doesn't exist
        ConfigurationError: If settings file is invalid
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    if not file_path.exists():
        raise FileNotFoundError(f"Settings file not found: {file_path}")

    try:
        # A settings class reading from the specified file
        class FileSettings(Settings):
            model_config = SettingsConfigDict(
                toml_file=str(file_path),
                env_prefix=ENV_PREFIX,
                env_nested_delimiter="__",
                frozen=True,
                extra='forbid',
            )

        return FileSettings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings from {file_path}: "
            + format_pydantic_error_message(str(e))
        ) from e


def format_pydantic_error_message(error_message: str) -> str:
    """Filter out verbose lines from pydantic error messages."""
    lines = error_message.split('\n')
    return '\n'.join(
        line
        for line in lines
        if "For further information visit" not in line
    )


def load_environment(dotenv_path: str | Path | None = None) -> bool:
    """Load a .env file into the process environment. Variables
    already set in the environment are not overridden.

    Args:
        dotenv_path: the .env file. If None, the file is searched
            from the working directory upwards.

    Returns:
        True if a file was found and at least one variable was set.
    """
    return load_dotenv(dotenv_path)


def get_api_key(settings: LanguageModelSettings) -> str | None:
    """Read the credential of the model source from the environment.

    Args:
        settings: the language model settings

    Returns:
        the API key, or None for sources that need no credential
            (Debug).

    Raises:
        ConfigurationError: if the environment variable is not set
    """
    source = settings.get_model_source()
    if source == 'Debug':
        return None
    variable = API_KEY_VARIABLES[source]
    key = os.environ.get(variable, "").strip()
    if not key:
        raise ConfigurationError(
            f"Missing API key for {source}: set the {variable} "
            "environment variable or add it to a .env file."
        )
    return key

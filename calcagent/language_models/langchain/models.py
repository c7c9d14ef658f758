"""
This module implements creation of the LangChain chat model that
takes the decisions of the agent, from a LanguageModelSettings object.
The model objects are memoized in the repository `langchain_models`,
so that agents created from the same settings share one client.

Examples:

```python
from calcagent.config import LanguageModelSettings
from calcagent.language_models.langchain.models import (
    create_model_from_settings,
    create_model_from_spec,
)

settings = LanguageModelSettings(model="OpenAI/gpt-4o", temperature=0.0)
model = create_model_from_settings(settings)

# equivalent
model = create_model_from_spec("OpenAI/gpt-4o", temperature=0.0)

# offline model, no credentials needed
model = create_model_from_spec("Debug/scripted")
```

Note:
    Support for new model sources should be added here by extending
    the match ... case statement in _create_model_instance, and in the
    ModelSource literal of calcagent.config.

    The provider packages other than langchain-openai are optional.
    An ImportError explaining what to install is raised if they are
    missing.
"""

from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel

from ..lazy_dict import LazyLoadingDict
from calcagent.config.config import (
    LanguageModelSettings,
    ModelSource,
    ProviderParam,
)


# Factory function to create a model from its settings
def _create_model_instance(
    model: LanguageModelSettings,
) -> BaseChatModel:
    """
    Factory function to create LangChain chat models while checking
    permissible sources.
    """
    model_source: ModelSource = model.get_model_source()
    model_name: str = model.get_model_name()
    match model_source:
        case "Anthropic":
            try:
                from langchain_anthropic.chat_models import (
                    ChatAnthropic,
                )
            except ImportError as e:
                raise ImportError(
                    "Anthropic models require the "
                    "'langchain-anthropic' package. "
                    "Install it with: pip install langchain-anthropic"
                ) from e

            kwargs: dict[str, Any] = {
                "model_name": model_name,
                "temperature": model.temperature,
                "max_tokens_to_sample": model.max_tokens or 1024,
                "timeout": model.timeout,
                "max_retries": model.max_retries,
                "stop": None,
            }
            kwargs.update(model.provider_params)
            return ChatAnthropic(**kwargs)

        case "Gemini":
            try:
                from langchain_google_genai import (
                    ChatGoogleGenerativeAI,
                )
            except ImportError as e:
                raise ImportError(
                    "Gemini models require the "
                    "'langchain-google-genai' package. "
                    "Install it with: pip install "
                    "langchain-google-genai"
                ) from e

            kwargs = {
                "model": model_name,
                "temperature": model.temperature,
                "max_retries": model.max_retries,
            }
            if model.max_tokens is not None:
                kwargs["max_output_tokens"] = model.max_tokens
            if model.timeout is not None:
                kwargs["timeout"] = model.timeout
            kwargs.update(model.provider_params)
            return ChatGoogleGenerativeAI(**kwargs)

        case "Mistral":
            try:
                from langchain_mistralai.chat_models import (
                    ChatMistralAI,
                )
            except ImportError as e:
                raise ImportError(
                    "Mistral models require the 'langchain-mistralai'"
                    " package. Install it with: pip install "
                    "langchain-mistralai"
                ) from e

            kwargs = {
                "model_name": model_name,
                "temperature": model.temperature,
                "max_retries": model.max_retries,
            }
            if model.max_tokens is not None:
                kwargs["max_tokens"] = model.max_tokens
            if model.timeout is not None:
                kwargs["timeout"] = int(model.timeout)
            kwargs.update(model.provider_params)
            return ChatMistralAI(**kwargs)

        case "OpenAI":
            from langchain_openai.chat_models import ChatOpenAI

            kwargs = {
                "model": model_name,
                "temperature": model.temperature,
                "max_retries": model.max_retries,
                "use_responses_api": False,
            }
            if model.max_tokens is not None:
                kwargs["max_tokens"] = model.max_tokens
            if model.timeout is not None:
                kwargs["timeout"] = model.timeout
            kwargs.update(model.provider_params)
            return ChatOpenAI(**kwargs)

        case "Debug":
            from .scripted_model import ScriptedChatModel

            kwargs = {"name": f"Debug/{model_name}"}
            kwargs.update(model.provider_params)
            return ScriptedChatModel(**kwargs)

        case _:
            raise ValueError(
                f"Unreachable code reached: invalid source {model_source}"
            )


# Public interface----------------------------------------------
langchain_models: LazyLoadingDict[LanguageModelSettings, BaseChatModel] = (
    LazyLoadingDict(_create_model_instance)
)


def create_model_from_spec(
    model: str,
    *,
    temperature: float = 0.1,
    max_tokens: int | None = None,
    max_retries: int = 2,
    timeout: float | None = None,
    provider_params: dict[str, ProviderParam] | None = None,
) -> BaseChatModel:
    """
    Create langchain model from specifications.

    Args:
        model: the model in the form source/model, such as
            'OpenAI/gpt-4o'

    Returns:
        a Langchain chat model object.

    Raises ValidationError for invalid specifications, ImportError
    for missing provider packages.
    """
    spec = LanguageModelSettings(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        max_retries=max_retries,
        timeout=timeout,
        provider_params=provider_params or {},
    )
    return langchain_models[spec]


def create_model_from_settings(
    settings: LanguageModelSettings,
) -> BaseChatModel:
    """
    Create langchain model from a LanguageModelSettings object.

    Args:
        settings: a LanguageModelSettings object containing model
            configuration.

    Returns:
        a Langchain chat model object.
    """
    return langchain_models[settings]

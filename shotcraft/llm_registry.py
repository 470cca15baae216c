from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from shotcraft._core.environment import resolve_api_key, settings
from shotcraft._core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CompletionResponse:
    """Text of the first choice plus the untouched LiteLLM response."""

    text: str
    raw: Any = field(default=None, repr=False)

    def __str__(self) -> str:
        return self.text


class LiteLLMWrapper:
    """
    One LiteLLM-routable model with its default temperature and call kwargs.

    Example:
        >>> llm = LLMRegistry(provider='deepseek').get_llm('deepseek-chat')
        >>> llm.model
        'deepseek/deepseek-chat'
        >>> (await llm.acomplete('What is 2+2?')).text
    """

    def __init__(
        self,
        model: str,
        provider: str = 'openai',
        temperature: float = 0.0,
        api_key: Optional[str] = None,
        **kwargs,
    ):
        """
        Args:
            model: LiteLLM model name, provider prefix included.
            provider: Registry name of the provider that built the wrapper.
            temperature: Used when a call does not pass one.
            api_key: Provider key; LiteLLM reads the environment when None.
            **kwargs: Forwarded to every call (api_base, max_tokens, ...).
        """
        self.model = model
        self.provider = provider
        self.temperature = temperature
        self._api_key = api_key
        self._kwargs = kwargs

    def __repr__(self) -> str:
        return f"LiteLLMWrapper(model='{self.model}', provider='{self.provider}')"

    def _call_kwargs(self, prompt: str, overrides: Dict[str, Any]) -> Dict[str, Any]:
        call_kwargs = {
            **self._kwargs,
            'model': self.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'temperature': self.temperature,
            **overrides,
        }
        if self._api_key:
            call_kwargs['api_key'] = self._api_key
        return call_kwargs

    async def acomplete(self, prompt: str, **kwargs) -> CompletionResponse:
        """Single-message chat completion; `kwargs` override the stored defaults."""
        import litellm

        response = await litellm.acompletion(**self._call_kwargs(prompt, kwargs))
        # content is None when the model answers with a tool call
        text = response.choices[0].message.content or ''
        return CompletionResponse(text=text, raw=response)


class BaseProvider:
    """
    Maps bare model names onto one LiteLLM provider.

    Subclasses set `LITELLM_PREFIX` (routing prefix such as 'deepseek/'),
    `DEFAULT_LLM_MODEL` (used when no model is requested) and
    `API_KEY_SETTING` (settings attribute holding the key).
    """

    LITELLM_PREFIX: str = ''
    DEFAULT_LLM_MODEL: Optional[str] = None
    API_KEY_SETTING: Optional[str] = None

    def __init__(self, api_key: Optional[str] = None, **credentials):
        if self.API_KEY_SETTING:
            api_key = resolve_api_key(api_key, self.API_KEY_SETTING)
        self.api_key = api_key
        self._credentials = credentials
        if not api_key:
            logger.debug(f'No API key for {self.name}; LiteLLM will read the environment')

    @property
    def name(self) -> str:
        return self.LITELLM_PREFIX.rstrip('/') or 'openai'

    def create_llm(self, model_name: str, **kwargs) -> LiteLLMWrapper:
        if self.LITELLM_PREFIX and not model_name.startswith(self.LITELLM_PREFIX):
            model_name = self.LITELLM_PREFIX + model_name
        if settings.api_base_url:
            kwargs.setdefault('api_base', settings.api_base_url)

        return LiteLLMWrapper(
            model=model_name,
            provider=self.name,
            temperature=kwargs.pop('temperature', 0.0),
            api_key=self.api_key,
            **{**self._credentials, **kwargs},
        )


class LLMRegistry:
    """
    Registry of providers keyed by name, and a factory for their models.

    A registry built with `provider` always uses it; otherwise each
    `get_llm` call follows `settings.llm_provider`.
    """

    _registry: Dict[str, Type[BaseProvider]] = {}

    def __init__(self, provider: Optional[str] = None, **credentials):
        self._provider_instance: Optional[BaseProvider] = None
        if provider:
            self._provider_instance = self._build_provider(provider, **credentials)
            logger.debug(f"LLMRegistry locked to provider '{provider}'")

    def _build_provider(self, provider_name: str, **credentials) -> BaseProvider:
        provider_class = self._registry.get(provider_name)
        if provider_class is None:
            raise ValueError(
                f"Provider '{provider_name}' is not registered. "
                f'Available providers: {self.providers()}'
            )
        return provider_class(**credentials)

    @classmethod
    def register(cls, name: str):
        """Class decorator adding a provider under `name`."""

        def decorator(provider_class: Type[BaseProvider]):
            cls._registry[name] = provider_class
            return provider_class

        return decorator

    @classmethod
    def providers(cls) -> List[str]:
        return list(cls._registry)

    def get_llm(
        self, model_name: Optional[str] = None, provider: Optional[str] = None, **kwargs
    ) -> LiteLLMWrapper:
        """
        Build a wrapper for `model_name`.

        Args:
            model_name: Bare or prefixed model name. Defaults to the provider's
                default model, then `settings.llm_model_name`.
            provider: Use this provider for this call only.
            **kwargs: Passed to the wrapper (temperature, max_tokens, ...).
        """
        if provider or self._provider_instance is None:
            provider_instance = self._build_provider(provider or settings.llm_provider)
        else:
            provider_instance = self._provider_instance

        model_name = (
            model_name or provider_instance.DEFAULT_LLM_MODEL or settings.llm_model_name
        )
        return provider_instance.create_llm(model_name, **kwargs)


@LLMRegistry.register('openai')
class OpenAIProvider(BaseProvider):
    # LiteLLM's default route, so model names go through unprefixed
    API_KEY_SETTING = 'openai_api_key'


@LLMRegistry.register('anthropic')
class AnthropicProvider(BaseProvider):
    LITELLM_PREFIX = 'anthropic/'
    DEFAULT_LLM_MODEL = 'claude-sonnet-4-5-20250929'
    API_KEY_SETTING = 'anthropic_api_key'


@LLMRegistry.register('gemini')
class GeminiProvider(BaseProvider):
    LITELLM_PREFIX = 'gemini/'
    DEFAULT_LLM_MODEL = 'gemini-2.0-flash'
    API_KEY_SETTING = 'google_api_key'


@LLMRegistry.register('deepseek')
class DeepSeekProvider(BaseProvider):
    """DeepSeek chat models; LiteLLM routes 'deepseek/' to api.deepseek.com."""

    LITELLM_PREFIX = 'deepseek/'
    DEFAULT_LLM_MODEL = 'deepseek-chat'
    API_KEY_SETTING = 'deepseek_api_key'

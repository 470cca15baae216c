import logging
import os
from typing import Any, Optional

from dotenv import find_dotenv
from pydantic import BaseModel, Field, GetCoreSchemaHandler
from pydantic_core import CoreSchema, core_schema
from pydantic_settings import BaseSettings, SettingsConfigDict


def _resolve_dotenv_path() -> str:
    """`ENV_PATH` when it names an existing file, else the nearest `.env` upwards."""
    explicit = os.getenv('ENV_PATH')
    if explicit and os.path.exists(explicit):
        return explicit
    return find_dotenv()


dotenv_path = _resolve_dotenv_path()


class LogLevel(str):
    """A standard logging level name, upper-cased on validation."""

    VALID = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        def validate(value: str) -> str:
            level = value.upper()
            if level not in cls.VALID:
                raise ValueError(f'log_level must be one of {cls.VALID}, got {value!r}')
            return level

        return core_schema.no_info_after_validator_function(
            validate, core_schema.str_schema()
        )


class ShotcraftConfig(BaseModel):
    """
    Shape of every shotcraft setting with its default.

    `AppSettings` layers environment and `.env` loading on top; build this
    class directly to get defaults without touching the environment.
    """

    # Completion service
    llm_provider: str = Field(
        default='openai', description='Registry provider used by the default client.'
    )
    llm_model_name: str = Field(
        default='gpt-4o-mini',
        description='Model for prompt modules that do not name one.',
    )
    api_base_url: Optional[str] = Field(
        default=None, description='Base URL for proxies or OpenAI-compatible gateways.'
    )
    litellm_verbose: bool = Field(
        default=False, description='Turn on LiteLLM debug output.'
    )
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    deepseek_api_key: Optional[str] = None

    request_timeout: float = Field(
        default=60.0, gt=0, description='Seconds allowed for one completion attempt.'
    )
    max_retries: int = Field(
        default=3, ge=1, description='Attempts per completion request, first included.'
    )
    max_concurrent_requests: int = Field(
        default=8, ge=1, description='Completion requests allowed in flight at once.'
    )

    # Compiler defaults
    shot_count: int = Field(
        default=2, ge=1, description='Exemplars injected into each candidate variant.'
    )
    student_count: int = Field(
        default=3, ge=1, description='Candidate variants built per compilation.'
    )
    holdout_size: int = Field(
        default=3, ge=1, description='Trailing dataset pairs reserved for the exam.'
    )

    # Logging
    log_level: LogLevel = Field(default='INFO')
    log_use_rich: bool = Field(
        default=True, description='Log through a rich console handler.'
    )
    log_format_string: Optional[str] = Field(
        default=None, description='Format for the plain console and file handlers.'
    )
    log_file_path: Optional[str] = Field(
        default=None, description='Also append log records to this file.'
    )


class AppSettings(BaseSettings, ShotcraftConfig):
    """Settings read from environment variables (case-insensitive) and `.env`."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        validate_assignment=True,
        extra='ignore',
        env_file=dotenv_path,
        env_file_encoding='utf-8',
    )


settings = AppSettings()


def _configure_litellm() -> None:
    import litellm

    litellm.set_verbose = settings.litellm_verbose
    litellm.suppress_debug_info = not settings.litellm_verbose
    logging.getLogger('LiteLLM').setLevel(
        logging.DEBUG if settings.litellm_verbose else logging.WARNING
    )


_configure_litellm()


def resolve_api_key(api_key: Optional[str], key_name: str) -> Optional[str]:
    """
    Return `api_key` if given, else the settings attribute `key_name`.

    None is a valid result: LiteLLM then reads the provider's own
    environment variable.
    """
    if api_key:
        return api_key
    return getattr(settings, key_name.lower(), None)

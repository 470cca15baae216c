from typing import Callable, Optional, Union

from shotcraft._core.environment import settings
from shotcraft._core.logging import get_logger
from shotcraft._core.schema import RichEnum
from shotcraft.completion import CompletionClient, get_default_client
from shotcraft.templates import (
    CHAIN_OF_THOUGHT_TEMPLATE,
    GENERIC_TEMPLATE,
    QUESTION_SUFFIX,
)

logger = get_logger(__name__)


class ModuleType(str, RichEnum):
    """Selects how exemplars are formatted for a module."""

    CHAIN_OF_THOUGHT = 'cot'
    GENERIC = 'generic'


class PromptModule:
    """
    An instruction template bound to an input field, an output field and a model.

    The template only changes through `extend`, which returns a new module;
    `copy` always returns a module built on the original template, so exemplars
    injected by one variant never leak into another.

    Example:
        >>> module = ChainOfThoughtModule('question', 'answer', model='deepseek-chat')
        >>> answer = await module.run('What is the capital of France?')
    """

    type: ModuleType = ModuleType.GENERIC
    default_template: str = GENERIC_TEMPLATE

    def __init__(
        self,
        input_field: str,
        output_field: str,
        model: Optional[str] = None,
        template: Optional[str] = None,
        client: Optional[CompletionClient] = None,
    ):
        """
        Args:
            input_field: Name of the field holding the question.
            output_field: Name of the field holding the expected answer.
            model: Model identifier used by `run`. Defaults to settings.llm_model_name.
            template: Instruction text. Defaults to the class template
                rendered with the two field names.
            client: Completion client. Defaults to the shared LiteLLM client.
        """
        self.input_field = input_field
        self.output_field = output_field
        self.model = model or settings.llm_model_name
        self.base_template = (
            template
            if template is not None
            else self.default_template.format(
                input_field=input_field, output_field=output_field
            )
        )
        self.template = self.base_template
        self._client = client

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(type={self.type.value!r}, '
            f'input_field={self.input_field!r}, output_field={self.output_field!r}, '
            f'model={self.model!r})'
        )

    @property
    def client(self) -> CompletionClient:
        if self._client is None:
            self._client = get_default_client()
        return self._client

    @property
    def is_extended(self) -> bool:
        return self.template != self.base_template

    def render(self, question: str) -> str:
        """The exact prompt `run` sends for `question`."""
        return self.template + QUESTION_SUFFIX.format(
            input_field=self.input_field, question=question
        )

    async def run(self, question: str, temperature: float = 0.0) -> str:
        """
        Answer `question` with one completion request against `self.model`.

        Raises:
            GenerationError: The completion client could not produce an answer.
        """
        logger.debug(f'Running {self!r} at temperature {temperature}')
        return await self.client.complete(
            self.render(question), model=self.model, temperature=temperature
        )

    def _clone(self, template: str) -> 'PromptModule':
        clone = self.__class__.__new__(self.__class__)
        clone.input_field = self.input_field
        clone.output_field = self.output_field
        clone.model = self.model
        clone.base_template = self.base_template
        clone.template = template
        clone._client = self._client
        return clone

    def extend(self, transform: Callable[[str], str]) -> 'PromptModule':
        """Return a new module whose template is `transform(self.template)`."""
        return self._clone(transform(self.template))

    def copy(self) -> 'PromptModule':
        """Return an independent module on the original, unextended template."""
        return self._clone(self.base_template)


class ChainOfThoughtModule(PromptModule):
    """Prompt module that asks the model to reason step by step before answering."""

    type = ModuleType.CHAIN_OF_THOUGHT
    default_template = CHAIN_OF_THOUGHT_TEMPLATE


def create_module(
    module_type: Union[ModuleType, str],
    input_field: str,
    output_field: str,
    **kwargs,
) -> PromptModule:
    """Build the module class matching `module_type` ('cot' or 'generic')."""
    if not isinstance(module_type, ModuleType):
        module_type = ModuleType.from_str(module_type)
    if module_type is ModuleType.CHAIN_OF_THOUGHT:
        return ChainOfThoughtModule(input_field, output_field, **kwargs)
    return PromptModule(input_field, output_field, **kwargs)

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from shotcraft._core.error import ConfigurationError, GenerationError
from shotcraft._core.logging import get_logger
from shotcraft._core.schema import RichEnum
from shotcraft.completion import CompletionClient
from shotcraft.dataset import LabeledPair
from shotcraft.modules import ModuleType, PromptModule
from shotcraft.templates import (
    CHAIN_OF_THOUGHT_EXEMPLAR,
    GENERIC_EXEMPLAR,
    REASONING_REQUEST_TEMPLATE,
)

logger = get_logger(__name__)

REASONING_TEMPERATURE = 0.5


class ExemplarFailurePolicy(str, RichEnum):
    """What to do with a pair whose reasoning request failed."""

    PLACEHOLDER = 'placeholder'
    DROP = 'drop'


@dataclass
class Exemplar:
    """A formatted worked example derived from one pool pair."""

    source_index: int
    text: str
    reasoning: Optional[str] = None
    degraded: bool = False

    def __str__(self) -> str:
        return self.text


class ExemplarFormat(ABC):
    """Formats one labeled pair as exemplar text for a module type."""

    requires_reasoning: bool = False

    @abstractmethod
    def format(
        self, module: PromptModule, pair: LabeledPair, reasoning: Optional[str] = None
    ) -> str: ...


class ChainOfThoughtFormat(ExemplarFormat):
    requires_reasoning = True

    def format(
        self, module: PromptModule, pair: LabeledPair, reasoning: Optional[str] = None
    ) -> str:
        return CHAIN_OF_THOUGHT_EXEMPLAR.format(
            input_field=module.input_field,
            input_value=pair.get_field(module.input_field),
            reasoning=reasoning or '',
            output_field=module.output_field,
            output_value=pair.get_field(module.output_field),
        )


class GenericFormat(ExemplarFormat):
    def format(
        self, module: PromptModule, pair: LabeledPair, reasoning: Optional[str] = None
    ) -> str:
        return GENERIC_EXEMPLAR.format(
            input_field=module.input_field,
            input_value=pair.get_field(module.input_field),
            output_field=module.output_field,
            output_value=pair.get_field(module.output_field),
        )


def exemplar_format_for(module_type: ModuleType) -> ExemplarFormat:
    """Pick the exemplar format for a module type."""
    if module_type is ModuleType.CHAIN_OF_THOUGHT:
        return ChainOfThoughtFormat()
    if module_type is ModuleType.GENERIC:
        return GenericFormat()
    raise ConfigurationError(f'No exemplar format for module type {module_type!r}')


class ExemplarGenerator:
    """
    Turns the exemplar pool into formatted few-shot exemplars.

    Chain-of-thought modules get one reasoning request per pair, all issued
    concurrently; the output keeps pool order. Generic modules need no model
    call. A failed reasoning request is handled by `failure_policy`:
    PLACEHOLDER keeps the exemplar with `placeholder` as its reasoning and
    marks it degraded, DROP leaves it out.

    Args:
        client: Completion client used for reasoning requests.
        model: Model that writes the reasoning traces.
        temperature: Sampling temperature for reasoning requests.
        failure_policy: PLACEHOLDER (default) or DROP.
        placeholder: Reasoning text used for failed requests under PLACEHOLDER.
    """

    def __init__(
        self,
        client: CompletionClient,
        model: str,
        temperature: float = REASONING_TEMPERATURE,
        failure_policy: ExemplarFailurePolicy = ExemplarFailurePolicy.PLACEHOLDER,
        placeholder: str = '',
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.failure_policy = failure_policy
        self.placeholder = placeholder

    async def _request_reasoning(
        self, module: PromptModule, pair: LabeledPair, index: int
    ) -> Optional[str]:
        prompt = REASONING_REQUEST_TEMPLATE.format(
            input_field=module.input_field,
            output_field=module.output_field,
            input_value=pair.get_field(module.input_field),
            output_value=pair.get_field(module.output_field),
        )
        try:
            return await self.client.complete(
                prompt, model=self.model, temperature=self.temperature
            )
        except GenerationError as e:
            logger.warning_highlight(
                f'Reasoning request for exemplar #{index} failed ({e}); '
                f'applying {self.failure_policy.value} policy'
            )
            return None

    async def generate(
        self, pool: Sequence[LabeledPair], module: PromptModule
    ) -> List[Exemplar]:
        """
        Build one exemplar per pool pair, in pool order.

        Args:
            pool: The dataset pairs not held out for the exam.
            module: The module whose fields and type drive formatting.

        Returns:
            The exemplars; shorter than `pool` only under the DROP policy.
        """
        exemplar_format = exemplar_format_for(module.type)

        if not exemplar_format.requires_reasoning:
            return [
                Exemplar(source_index=i, text=exemplar_format.format(module, pair))
                for i, pair in enumerate(pool)
            ]

        traces = await asyncio.gather(
            *[
                self._request_reasoning(module, pair, i)
                for i, pair in enumerate(pool)
            ]
        )

        exemplars = []
        for i, (pair, trace) in enumerate(zip(pool, traces)):
            degraded = trace is None
            if degraded:
                if self.failure_policy is ExemplarFailurePolicy.DROP:
                    continue
                trace = self.placeholder
            exemplars.append(
                Exemplar(
                    source_index=i,
                    text=exemplar_format.format(module, pair, trace),
                    reasoning=trace,
                    degraded=degraded,
                )
            )

        failed = sum(1 for t in traces if t is None)
        if failed:
            logger.warning_highlight(
                f'{failed}/{len(pool)} reasoning requests failed '
                f'({self.failure_policy.value} policy)'
            )
        return exemplars

import random
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Union

from pydantic import Field

from shotcraft._core.asyncio import run_async_function
from shotcraft._core.environment import settings
from shotcraft._core.error import ConfigurationError
from shotcraft._core.logging import get_logger
from shotcraft._core.schema import RichBaseModel
from shotcraft.completion import CompletionClient, get_default_client
from shotcraft.dataset import Dataset
from shotcraft.exam import ExamResult, ExamRunner
from shotcraft.exemplars import (
    REASONING_TEMPERATURE,
    Exemplar,
    ExemplarFailurePolicy,
    ExemplarGenerator,
)
from shotcraft.modules import PromptModule
from shotcraft.selector import select_best_index
from shotcraft.variants import Variant, VariantFactory, validate_counts

logger = get_logger(__name__)


class CompilerConfig(RichBaseModel):
    """Knobs for one few-shot compilation run. Counts default to settings."""

    shot_count: int = Field(
        default_factory=lambda: settings.shot_count,
        description='Exemplars injected into each candidate variant.',
    )
    student_count: int = Field(
        default_factory=lambda: settings.student_count,
        description='Number of candidate variants.',
    )
    holdout_size: int = Field(
        default_factory=lambda: settings.holdout_size,
        description='Trailing dataset pairs reserved for the exam.',
    )
    model: Optional[str] = Field(
        default=None,
        description='Model writing reasoning traces. Defaults to the module model.',
    )
    grader_model: Optional[str] = Field(
        default=None, description='Model grading answers. Defaults to `model`.'
    )
    reasoning_temperature: float = REASONING_TEMPERATURE
    answer_temperature: float = 0.0
    grade_temperature: float = 0.0
    failure_policy: ExemplarFailurePolicy = ExemplarFailurePolicy.PLACEHOLDER
    reasoning_placeholder: str = ''

    def validate_for(self, dataset_size: int) -> None:
        """
        Check the configuration against a dataset of `dataset_size` pairs.

        Raises:
            ConfigurationError: Non-positive counts, a hold-out that does not
                fit the dataset, or more shots than pool pairs.
        """
        if self.holdout_size < 1:
            raise ConfigurationError(
                f'holdout_size must be >= 1, got {self.holdout_size}'
            )
        if self.holdout_size > dataset_size:
            raise ConfigurationError(
                f'holdout_size ({self.holdout_size}) exceeds dataset size ({dataset_size})'
            )
        validate_counts(
            self.shot_count, self.student_count, dataset_size - self.holdout_size
        )


@dataclass
class CompilationReport:
    """Everything one compilation produced, for inspection and reporting."""

    base_module: PromptModule
    best_module: PromptModule
    best_index: int
    exemplars: List[Exemplar]
    variants: List[Variant]
    exam: ExamResult
    elapsed_time: Optional[float] = None
    config: Optional[CompilerConfig] = field(default=None, repr=False)

    @property
    def scores(self) -> List[int]:
        return self.exam.scores

    @property
    def best_score(self) -> int:
        return self.exam.scores[self.best_index]


class FewShotCompiler:
    """
    Compiles a prompt module into the best few-shot variant found by sampling.

    Pipeline: generate exemplars from the pool, build `student_count`
    variants, grade every variant on the held-out tail, keep the first
    variant with the top score.

    The compiler's client serves reasoning and grading requests; each
    candidate answers through its own module's client.

    Example:
        >>> dataset = Dataset.from_json('qa.json')
        >>> compiler = FewShotCompiler(dataset, CompilerConfig(shot_count=2))
        >>> best = await compiler.compile(ChainOfThoughtModule('question', 'answer'))
    """

    def __init__(
        self,
        dataset: Union[Dataset, Iterable[Mapping]],
        config: Optional[CompilerConfig] = None,
        client: Optional[CompletionClient] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            dataset: Ordered labeled pairs; the tail is held out for the exam.
            config: Compilation settings. Defaults to `CompilerConfig()`.
            client: Client for reasoning and grading requests.
                Defaults to the shared LiteLLM client.
            rng: Random source for exemplar sampling; seed it for reproducibility.
        """
        self.dataset = dataset if isinstance(dataset, Dataset) else Dataset(dataset)
        self.config = config or CompilerConfig()
        self._client = client
        self._rng = rng or random.Random()

    @property
    def client(self) -> CompletionClient:
        if self._client is None:
            self._client = get_default_client()
        return self._client

    def _preflight(self, module: PromptModule) -> None:
        self.config.validate_for(len(self.dataset))
        self.dataset.validate_fields(module.input_field, module.output_field)

    async def compile_with_report(self, module: PromptModule) -> CompilationReport:
        """
        Run the full pipeline and keep every intermediate result.

        Raises:
            ConfigurationError: Before any request, for bad counts or missing fields.
            NoCandidateError: No variant was produced.
        """
        config = self.config
        self._preflight(module)

        pool, holdout = self.dataset.split(config.holdout_size)
        model = config.model or module.model
        grader_model = config.grader_model or model

        logger.info(
            f'🚀 Compiling {module.type.value} module: pool={len(pool)}, '
            f'holdout={len(holdout)}, shots={config.shot_count}, '
            f'students={config.student_count}'
        )
        logger.debug(config.summary())

        async with logger.async_log_operation('Few-shot compilation') as timer:
            generator = ExemplarGenerator(
                client=self.client,
                model=model,
                temperature=config.reasoning_temperature,
                failure_policy=config.failure_policy,
                placeholder=config.reasoning_placeholder,
            )
            async with logger.async_log_operation('Exemplar generation'):
                exemplars = await generator.generate(pool, module)

            factory = VariantFactory(
                shot_count=config.shot_count,
                student_count=config.student_count,
                rng=self._rng,
            )
            variants = factory.build(module, exemplars)

            runner = ExamRunner(
                client=self.client,
                grader_model=grader_model,
                answer_temperature=config.answer_temperature,
                grade_temperature=config.grade_temperature,
            )
            async with logger.async_log_operation('Exam'):
                exam = await runner.run([v.module for v in variants], holdout)

            best_index = select_best_index(exam.scores)

        if not any(exam.scores):
            logger.warning_highlight(
                'Every candidate scored 0; falling back to the first variant'
            )
        logger.success(
            f'Selected variant #{best_index} with score '
            f'{exam.scores[best_index]}/{exam.max_score}'
        )

        return CompilationReport(
            base_module=module,
            best_module=variants[best_index].module,
            best_index=best_index,
            exemplars=exemplars,
            variants=variants,
            exam=exam,
            elapsed_time=timer.elapsed_time,
            config=config,
        )

    async def compile(self, module: PromptModule) -> PromptModule:
        """Return the best-scoring variant of `module`."""
        report = await self.compile_with_report(module)
        return report.best_module

    def compile_sync(self, module: PromptModule) -> PromptModule:
        """Blocking form of `compile` for scripts and notebooks."""
        return run_async_function(self.compile, module)

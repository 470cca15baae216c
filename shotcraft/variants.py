import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from shotcraft._core.error import ConfigurationError
from shotcraft._core.logging import get_logger
from shotcraft.exemplars import Exemplar
from shotcraft.modules import PromptModule

logger = get_logger(__name__)


@dataclass
class Variant:
    """A candidate module plus the exemplars injected into it, in draw order."""

    module: PromptModule
    exemplars: List[Exemplar] = field(default_factory=list)

    @property
    def exemplar_indices(self) -> List[int]:
        return [e.source_index for e in self.exemplars]


def validate_counts(shot_count: int, student_count: int, pool_size: int) -> None:
    """
    Raises:
        ConfigurationError: Non-positive counts or more shots than pool entries.
    """
    if shot_count <= 0:
        raise ConfigurationError(f'shot_count must be > 0, got {shot_count}')
    if student_count <= 0:
        raise ConfigurationError(f'student_count must be > 0, got {student_count}')
    if shot_count > pool_size:
        raise ConfigurationError(
            f'shot_count ({shot_count}) exceeds the exemplar pool size ({pool_size})'
        )


class VariantFactory:
    """
    Builds candidate variants, each carrying its own random sample of exemplars.

    Each draw samples `shot_count` exemplars without replacement; draws are
    independent, so different variants may share exemplars.

    Args:
        shot_count: Exemplars per variant.
        student_count: Number of variants.
        rng: Random source. Pass a seeded `random.Random` for reproducible runs.

    Example:
        >>> factory = VariantFactory(shot_count=2, student_count=3, rng=random.Random(7))
        >>> variants = factory.build(module, exemplars)
    """

    def __init__(
        self,
        shot_count: int,
        student_count: int,
        rng: Optional[random.Random] = None,
    ):
        self.shot_count = shot_count
        self.student_count = student_count
        self._rng = rng or random.Random()

    def build(
        self, module: PromptModule, exemplars: Sequence[Exemplar]
    ) -> List[Variant]:
        """
        Returns:
            `student_count` variants built on fresh copies of `module`.

        Raises:
            ConfigurationError: See `validate_counts`.
        """
        validate_counts(self.shot_count, self.student_count, len(exemplars))

        variants = []
        for n in range(self.student_count):
            sample = self._rng.sample(list(exemplars), self.shot_count)
            injected = '\n'.join(e.text for e in sample)
            candidate = module.copy().extend(lambda template: template + injected)
            variants.append(Variant(module=candidate, exemplars=sample))
            logger.debug(
                f'Variant #{n} uses exemplars {[e.source_index for e in sample]}'
            )
        return variants

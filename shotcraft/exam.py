import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from shotcraft._core.error import GenerationError, GradeParseFailure
from shotcraft._core.logging import get_logger
from shotcraft.completion import CompletionClient
from shotcraft.dataset import LabeledPair
from shotcraft.modules import PromptModule
from shotcraft.templates import GRADING_TEMPLATE

logger = get_logger(__name__)

MIN_GRADE = 1
MAX_GRADE = 5

_NUMBER_PATTERN = re.compile(r'-?\d+(?:\.\d+)?')


def parse_grade(text: Optional[str], low: int = MIN_GRADE, high: int = MAX_GRADE) -> int:
    """
    Extract an integer grade from a grader reply.

    The first number in the reply is taken, so "4", "Score: 4", "4/5" and
    "4.0" all read as 4. It must be integral and within [low, high].

    Raises:
        GradeParseFailure: No number, a fractional number, or out of range.
    """
    if text is None:
        raise GradeParseFailure('Grader returned no text', raw='')

    match = _NUMBER_PATTERN.search(text.strip())
    if match is None:
        raise GradeParseFailure(f'No number in grader reply: {text!r}', raw=text)

    value = float(match.group())
    if not value.is_integer():
        raise GradeParseFailure(f'Grade {value} is not an integer', raw=text)

    grade = int(value)
    if not low <= grade <= high:
        raise GradeParseFailure(
            f'Grade {grade} outside the {low}-{high} scale', raw=text
        )
    return grade


@dataclass
class GradeRecord:
    """Outcome of one candidate answering one held-out question."""

    question_index: int
    candidate_index: int
    answer: str
    grade: int
    raw_grade: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ExamResult:
    """Per-candidate totals plus every individual grading outcome."""

    scores: List[int]
    records: List[GradeRecord] = field(default_factory=list)

    @property
    def max_score(self) -> int:
        """Upper bound on any candidate's total."""
        questions = len({r.question_index for r in self.records})
        return questions * MAX_GRADE

    @property
    def failures(self) -> List[GradeRecord]:
        return [r for r in self.records if r.error is not None]


class ExamRunner:
    """
    Scores candidate modules on the held-out pairs with a model grader.

    Questions run one after another; for each question every candidate
    answers and is graded concurrently. Anything that goes wrong for a
    single answer (generation failure, grader failure, unreadable grade)
    counts 0 for that question and is logged.

    Args:
        client: Completion client used for grading requests.
        grader_model: Model that grades answers.
        answer_temperature: Temperature for candidate answers.
        grade_temperature: Temperature for grading requests.
    """

    def __init__(
        self,
        client: CompletionClient,
        grader_model: str,
        answer_temperature: float = 0.0,
        grade_temperature: float = 0.0,
    ):
        self.client = client
        self.grader_model = grader_model
        self.answer_temperature = answer_temperature
        self.grade_temperature = grade_temperature

    async def _sit(
        self,
        candidate: PromptModule,
        candidate_index: int,
        pair: LabeledPair,
        question_index: int,
    ) -> GradeRecord:
        question = pair.get_field(candidate.input_field)
        reference = pair.get_field(candidate.output_field)
        error = None

        try:
            answer = await candidate.run(question, temperature=self.answer_temperature)
        except GenerationError as e:
            logger.warning_highlight(
                f'Candidate #{candidate_index} produced no answer for question '
                f'#{question_index}: {e}'
            )
            answer = ''
            error = f'answer failed: {e}'

        prompt = GRADING_TEMPLATE.format(
            question=question, answer=answer, reference=reference
        )
        try:
            raw_grade = await self.client.complete(
                prompt, model=self.grader_model, temperature=self.grade_temperature
            )
        except GenerationError as e:
            logger.warning_highlight(
                f'Grading failed for candidate #{candidate_index} on question '
                f'#{question_index}: {e}'
            )
            return GradeRecord(
                question_index=question_index,
                candidate_index=candidate_index,
                answer=answer,
                grade=0,
                error=f'grading failed: {e}',
            )

        try:
            grade = parse_grade(raw_grade)
        except GradeParseFailure as e:
            logger.warning_highlight(
                f'Unreadable grade for candidate #{candidate_index} on question '
                f'#{question_index}, counting 0: {e}'
            )
            grade = 0
            error = f'grade unreadable: {e}'

        return GradeRecord(
            question_index=question_index,
            candidate_index=candidate_index,
            answer=answer,
            grade=grade,
            raw_grade=raw_grade,
            error=error,
        )

    async def run(
        self, candidates: Sequence[PromptModule], holdout: Sequence[LabeledPair]
    ) -> ExamResult:
        """
        Returns:
            ExamResult whose `scores` line up with `candidates`.
        """
        scores = [0] * len(candidates)
        records: List[GradeRecord] = []

        for question_index, pair in enumerate(holdout):
            graded = await asyncio.gather(
                *[
                    self._sit(candidate, candidate_index, pair, question_index)
                    for candidate_index, candidate in enumerate(candidates)
                ]
            )
            for record in graded:
                scores[record.candidate_index] += record.grade
            records.extend(graded)
            logger.debug(
                f'Question #{question_index} grades: {[r.grade for r in graded]}'
            )

        logger.log_table(
            [{'candidate': i, 'score': s} for i, s in enumerate(scores)],
            title='Exam Scores',
            level=logging.DEBUG,
        )
        return ExamResult(scores=scores, records=records)

from typing import Sequence, TypeVar

from shotcraft._core.error import NoCandidateError

T = TypeVar('T')


def select_best_index(scores: Sequence[int]) -> int:
    """
    Index of the highest score; the earliest index wins ties.

    Raises:
        NoCandidateError: `scores` is empty.
    """
    if not scores:
        raise NoCandidateError('Cannot select from an empty list of scores')

    best_index = 0
    best_score = scores[0]
    for index in range(1, len(scores)):
        if scores[index] > best_score:
            best_score = scores[index]
            best_index = index
    return best_index


def select_best(candidates: Sequence[T], scores: Sequence[int]) -> T:
    """
    The candidate holding the highest score.

    Raises:
        NoCandidateError: `candidates` is empty.
        ValueError: `candidates` and `scores` differ in length.
    """
    if not candidates:
        raise NoCandidateError('Cannot select from an empty list of candidates')
    if len(candidates) != len(scores):
        raise ValueError(
            f'Got {len(candidates)} candidates but {len(scores)} scores'
        )
    return candidates[select_best_index(scores)]

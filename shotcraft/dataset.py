"""
Labeled pairs and the ordered datasets built from them.

A dataset's order matters: its trailing pairs are held out for the exam and
the rest feed exemplar generation.
"""

import json
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
    overload,
)

import pandas as pd

from shotcraft._core.error import ConfigurationError, MissingFieldError
from shotcraft._core.logging import get_logger

logger = get_logger(__name__)


class LabeledPair(Mapping[str, str]):
    """
    Immutable mapping from field name to text.

    Values are coerced to `str` on construction. Use `get_field` for lookups
    that must succeed; it raises MissingFieldError instead of KeyError-ing
    silently or returning None.

    Example:
        >>> pair = LabeledPair({'question': '1+1?', 'answer': '2'})
        >>> pair.get_field('answer')
        '2'
    """

    __slots__ = ('_fields',)

    def __init__(self, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        merged = {**(fields or {}), **kwargs}
        self._fields: Dict[str, str] = {str(k): str(v) for k, v in merged.items()}

    def __getitem__(self, key: str) -> str:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f'LabeledPair({self._fields!r})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LabeledPair):
            return self._fields == other._fields
        if isinstance(other, Mapping):
            return self._fields == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._fields.items())))

    def get_field(self, name: str) -> str:
        """Return the value stored under `name` or raise MissingFieldError."""
        try:
            return self._fields[name]
        except KeyError:
            raise MissingFieldError(name, self._fields.keys()) from None

    def has_fields(self, *names: str) -> bool:
        return all(name in self._fields for name in names)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._fields)


class Dataset:
    """
    Ordered sequence of labeled pairs.

    Example:
        >>> dataset = Dataset.from_csv('qa.csv')
        >>> pool, holdout = dataset.split(holdout_size=3)
    """

    def __init__(self, pairs: Optional[Iterable[Union[LabeledPair, Mapping]]] = None):
        self._pairs: List[LabeledPair] = [
            p if isinstance(p, LabeledPair) else LabeledPair(p) for p in pairs or []
        ]

    @overload
    def __getitem__(self, index: int) -> LabeledPair: ...

    @overload
    def __getitem__(self, index: slice) -> 'Dataset': ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return Dataset(self._pairs[index])
        return self._pairs[index]

    def __iter__(self) -> Iterator[LabeledPair]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __repr__(self) -> str:
        return f'Dataset(size={len(self._pairs)}, fields={self.fields})'

    @property
    def pairs(self) -> List[LabeledPair]:
        return list(self._pairs)

    @property
    def fields(self) -> List[str]:
        """Field names shared by every pair, in first-pair order."""
        if not self._pairs:
            return []
        return [
            name
            for name in self._pairs[0]
            if all(name in pair for pair in self._pairs[1:])
        ]

    def validate_fields(self, *names: str) -> None:
        """
        Check every pair holds every name.

        Raises:
            MissingFieldError: For the first pair lacking one of the names.
        """
        for index, pair in enumerate(self._pairs):
            for name in names:
                if name not in pair:
                    logger.error(f"Pair #{index} is missing field '{name}'")
                    raise MissingFieldError(name, pair.keys())

    def split(self, holdout_size: int) -> Tuple[List[LabeledPair], List[LabeledPair]]:
        """
        Split into (exemplar pool, held-out tail).

        Args:
            holdout_size: Number of trailing pairs reserved for the exam.

        Returns:
            The leading pairs and the last `holdout_size` pairs, both in order.
        """
        if holdout_size < 0:
            raise ConfigurationError(
                f'holdout_size must be >= 0, got {holdout_size}'
            )
        if holdout_size > len(self._pairs):
            raise ConfigurationError(
                f'holdout_size ({holdout_size}) exceeds dataset size ({len(self._pairs)})'
            )
        cut = len(self._pairs) - holdout_size
        return self._pairs[:cut], self._pairs[cut:]

    ###################################
    # Loaders
    ###################################
    @classmethod
    def from_records(cls, records: List[Dict[str, Any]]) -> 'Dataset':
        """Build a dataset from a list of dictionaries, dropping null values."""
        return cls(
            {k: v for k, v in record.items() if v is not None} for record in records
        )

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> 'Dataset':
        """Build a dataset from a DataFrame; NaN cells are dropped per row."""
        pairs = []
        for _, row in df.iterrows():
            pairs.append({str(k): v for k, v in row.items() if pd.notna(v)})
        dataset = cls(pairs)
        logger.debug(f'Loaded {len(dataset)} pairs with fields {dataset.fields}')
        return dataset

    @classmethod
    def from_csv(cls, path: Union[str, Path], **read_kwargs: Any) -> 'Dataset':
        """Load a CSV file; every cell is read as text."""
        df = pd.read_csv(path, dtype=str, **read_kwargs)
        return cls.from_dataframe(df)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> 'Dataset':
        """Load a JSON array of objects. Values keep their JSON text, e.g. 1 stays '1'."""
        with open(path, encoding='utf-8') as f:
            return cls.from_records(json.load(f))

    @classmethod
    def from_jsonl(cls, path: Union[str, Path]) -> 'Dataset':
        """Load one JSON object per line; blank lines are skipped."""
        with open(path, encoding='utf-8') as f:
            return cls.from_records([json.loads(line) for line in f if line.strip()])


def load_dataset(path: Union[str, Path]) -> Dataset:
    """
    Load a dataset, choosing the reader from the file suffix.

    Raises:
        ConfigurationError: For unsupported suffixes.
    """
    suffix = Path(path).suffix.lower()
    loaders = {
        '.csv': Dataset.from_csv,
        '.json': Dataset.from_json,
        '.jsonl': Dataset.from_jsonl,
    }
    if suffix not in loaders:
        raise ConfigurationError(
            f"Unsupported dataset format '{suffix}'. Expected one of {sorted(loaders)}"
        )
    dataset = loaders[suffix](path)
    logger.info(f'📂 Loaded {len(dataset)} labeled pairs from {path}')
    return dataset

from enum import Enum
from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ConfigDict

E = TypeVar('E', bound='RichEnum')


class RichBaseModel(BaseModel):
    """Pydantic base for user-facing option models; unknown keys are rejected."""

    model_config = ConfigDict(extra='forbid', validate_assignment=True)

    def to_dict(self, exclude_none: bool = True) -> Dict[str, Any]:
        return self.model_dump(mode='json', exclude_none=exclude_none)

    def summary(self) -> str:
        """One-line `name=value` rendering for log messages."""
        fields = ', '.join(f'{k}={v}' for k, v in self.to_dict().items())
        return f'{self.__class__.__name__}({fields})'


class RichEnum(Enum):
    """Enum with case-insensitive lookup by value."""

    @classmethod
    def values(cls) -> List[Any]:
        return [member.value for member in cls]

    @classmethod
    def from_str(cls: Type[E], string: str) -> E:
        """
        Raises:
            KeyError: No member has this value.
        """
        for member in cls:
            if member.value == string or (
                isinstance(string, str) and member.value == string.lower()
            ):
                return member
        raise KeyError(f"'{string}' is not one of {cls.values()} for {cls.__name__}")

    def __str__(self) -> str:
        return str(self.value)

"""
Success/failure container used by every fallible network operation.

Operations that talk to the platform return ``Result[E, T]`` instead of
raising, so callers decide whether to retry, log or give up:

    response = await client.fetch_get_response(url)
    if response.is_failure():
        logger.error("Could not fetch %s: %s", url, response.value)
        return
    html = response.value.text
"""

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

E = TypeVar("E")
T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Failure(Generic[E]):
    """Failed result carrying the error."""

    value: E

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def apply_on_success(self, func: Callable[[T], U]) -> "Failure[E]":
        """Failures pass through untouched."""
        return self


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful result carrying the payload."""

    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def apply_on_success(self, func: Callable[[T], U]) -> "Success[U]":
        """Map the payload with ``func`` and wrap the outcome again."""
        return Success(func(self.value))


Result = Union[Failure[E], Success[T]]

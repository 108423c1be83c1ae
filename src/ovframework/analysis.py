"""
Contains functionality to analyze the result of a validation process
"""
import itertools
from typing import Iterator, Optional

from .errors import ValidationError, join_path


def _extract_constraint_name(entry: tuple[str, str, str]) -> str:
    return entry[1]


def _walk(errors: list[ValidationError], parent_path: str = "") -> Iterator[tuple[str, ValidationError]]:
    for error in errors:
        path = join_path(parent_path, error.property)
        yield path, error
        yield from _walk(error.children, path)


class ValidationResult:
    """
    `ValidationManager.analyze` will return an instance of this class. It wraps the error tree of a validation run and
    provides properties for further analysis. Note that the values are calculated only if you use them.
    """

    def __init__(self, errors: list[ValidationError]):
        self._errors = errors

        self._messages_per_path: Optional[dict[str, dict[str, str]]] = None
        self._all_messages: Optional[list[tuple[str, str, str]]] = None
        self._num_errors_per_constraint: Optional[dict[str, int]] = None

    @property
    def errors(self) -> list[ValidationError]:
        """The error tree as returned by `ValidationManager.validate`"""
        return self._errors

    @property
    def valid(self) -> bool:
        """True if the validated object has no errors at all"""
        return len(self._errors) == 0

    def __bool__(self) -> bool:
        return self.valid

    @property
    def messages_per_path(self) -> dict[str, dict[str, str]]:
        """
        Maps the path of every failed property onto its violated constraints. Paths are dotted, collection elements
        are indexed, e.g. `comments[0].author`.
        """
        if self._messages_per_path is None:
            self._messages_per_path = {
                path: dict(error.constraints) for path, error in _walk(self._errors) if len(error.constraints) > 0
            }
        return self._messages_per_path

    @property
    def failed_paths(self) -> list[str]:
        """The paths of all properties which violated at least one constraint"""
        return list(self.messages_per_path.keys())

    @property
    def all_messages(self) -> list[tuple[str, str, str]]:
        """
        This is a complete list of (path, constraint name, message) triples of the whole error tree.
        It is sorted by the constraint name to enable grouping by it using itertools.
        """
        if self._all_messages is None:
            self._all_messages = sorted(
                (
                    (path, constraint_name, message)
                    for path, constraints in self.messages_per_path.items()
                    for constraint_name, message in constraints.items()
                ),
                key=_extract_constraint_name,
            )
        return self._all_messages

    @property
    def num_errors_total(self) -> int:
        """Number of violated constraints in the whole error tree"""
        return len(self.all_messages)

    @property
    def num_errors_per_constraint(self) -> dict[str, int]:
        """This is a dictionary which maps the constraint name to the number of times it got violated."""
        if self._num_errors_per_constraint is None:
            self._num_errors_per_constraint = {
                key: sum(1 for _ in values_iter)
                for key, values_iter in itertools.groupby(self.all_messages, key=_extract_constraint_name)
            }
        return self._num_errors_per_constraint

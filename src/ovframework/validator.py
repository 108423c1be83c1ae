"""
Contains the `Constraint` class which wraps a predicate function into a validation constraint and the helpers to
build the error messages of constraints.
"""
import inspect
from dataclasses import dataclass
from string import Template
from typing import Any, Callable, Optional

from .types import MessageBuilder, MessageT, Predicate

EACH_PREFIX = "each value in "


@dataclass(frozen=True)
class ValidationArguments:
    """
    Describes the situation in which a constraint is evaluated. Constraint predicates with a second parameter and
    message builders receive an instance of this class.
    """

    value: Any
    constraints: tuple[Any, ...]
    target_name: str
    object: Any
    property: str
    each: bool = False


class Constraint:
    """
    A constraint wraps a predicate function. The predicate is either called with the value only or, if it accepts a
    second positional parameter, with the value and the `ValidationArguments`. It returns a boolean or an awaitable
    of a boolean.
    """

    def __init__(
        self,
        predicate: Predicate,
        name: Optional[str] = None,
        default_message: Optional[MessageT] = None,
        validates_missing: bool = False,
    ):
        self.predicate = predicate
        self.name: str = name or predicate.__name__
        self.default_message: MessageT = default_message or "$property failed the constraint " + self.name
        self.validates_missing = validates_missing
        self.signature = inspect.signature(predicate)
        self.is_async = inspect.iscoroutinefunction(predicate)
        positional = [
            param
            for param in self.signature.parameters.values()
            if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        ]
        var_positional = any(
            param.kind == inspect.Parameter.VAR_POSITIONAL for param in self.signature.parameters.values()
        )
        if len(positional) == 0 and not var_positional:
            raise ValueError(f"The predicate of constraint {self.name} must accept the value as first parameter")
        self.takes_arguments = len(positional) >= 2 or var_positional

    def __call__(self, value: Any, arguments: ValidationArguments) -> Any:
        if self.takes_arguments:
            return self.predicate(value, arguments)
        return self.predicate(value)

    def __eq__(self, other):
        return isinstance(other, Constraint) and self.predicate == other.predicate and self.name == other.name

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.predicate) + hash(self.name)

    def __str__(self):
        return f"Constraint({self.name})"

    def __repr__(self):
        return f"Constraint({self.name!r}, is_async={self.is_async})"


def build_message(impl: Callable[[str], str]) -> MessageBuilder:
    """
    Creates a message builder from a function which receives the "each" prefix. The prefix is empty unless the
    constraint is applied to each element of a collection.
    E.g.:
    ```
    build_message(lambda each_prefix: each_prefix + "$property must be an array")
    ```
    """

    def builder(arguments: ValidationArguments) -> str:
        return impl(EACH_PREFIX if arguments.each else "")

    return builder


def replace_message_tokens(message: str, arguments: ValidationArguments) -> str:
    """
    Substitutes the tokens `$property`, `$value`, `$target`, `$each_prefix` and `$constraint1` ... `$constraintN`
    in the message. Unknown tokens are left untouched.
    """
    substitutions: dict[str, Any] = {
        "property": arguments.property,
        "target": arguments.target_name,
        "value": _stringify(arguments.value),
        "each_prefix": EACH_PREFIX if arguments.each else "",
    }
    for index, constraint_argument in enumerate(arguments.constraints, start=1):
        substitutions[f"constraint{index}"] = _stringify(constraint_argument)
    return Template(message).safe_substitute(substitutions)


def resolve_message(message: MessageT, arguments: ValidationArguments) -> str:
    """Builds the final message of a failed constraint from a template string or a message builder"""
    if callable(message):
        message = message(arguments)
    return replace_message_tokens(message, arguments)


def _stringify(value: Any) -> str:
    if isinstance(value, type):
        return value.__name__
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(str(item) for item in value)
    return str(value)

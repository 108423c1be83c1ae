"""
Contains the types used in the validation framework
"""
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine, Protocol, TypeAlias

if TYPE_CHECKING:
    from .validator import ValidationArguments


class AllowCondition(Protocol):
    """
    A protocol for the conditions of conditional whitelist declarations. It is called with the instance under
    validation and decides whether the property is allowed to exist.
    """

    def __call__(self, instance: Any) -> bool:
        ...


TargetT: TypeAlias = type | str
AsyncPredicate: TypeAlias = Callable[..., Coroutine[Any, Any, bool]]
SyncPredicate: TypeAlias = Callable[..., bool | Awaitable[bool]]
Predicate: TypeAlias = AsyncPredicate | SyncPredicate
ConditionFunction: TypeAlias = Callable[[Any, Any], bool | Awaitable[bool]]
MessageBuilder: TypeAlias = Callable[["ValidationArguments"], str]
MessageT: TypeAlias = str | MessageBuilder

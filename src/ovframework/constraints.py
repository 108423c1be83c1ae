"""
Contains functions creating the `PropertyRule`s of commonly used constraints. Pass the rules to `declare` to attach
them to a property. All functions accept the common keyword arguments:
- `each`: apply the constraint to every element of a collection instead of the collection itself
- `groups`: the validation groups of the rule
- `always`: apply the rule regardless of the requested groups
- `message`: a message template or message builder which replaces the default message
- `context`: arbitrary data which is copied into the `ValidationError` if the rule is violated
"""
import math
from numbers import Number
from typing import Any, Iterable, Optional

from frozendict import frozendict
from typeguard import TypeCheckError, check_type

from .metadata import PropertyRule, ValidationTypes
from .types import AllowCondition, ConditionFunction, MessageT, Predicate
from .utils.query_object import MISSING, required_field
from .validator import Constraint, ValidationArguments, build_message


# pylint: disable=too-many-arguments
def _rule(
    kind: str,
    constraint: Optional[Constraint] = None,
    arguments: tuple[Any, ...] = (),
    each: bool = False,
    groups: Iterable[str] = (),
    always: Optional[bool] = None,
    message: Optional[MessageT] = None,
    context: Optional[dict[str, Any]] = None,
) -> PropertyRule:
    if isinstance(groups, str):
        groups = [groups]
    return PropertyRule(
        kind=kind,
        constraint=constraint,
        arguments=arguments,
        groups=frozenset(groups),
        each=each,
        message=message,
        always=always,
        context=frozendict(context or {}),
    )


def validate_by(constraint: Constraint | Predicate, *arguments: Any, **options: Any) -> PropertyRule:
    """
    Creates a rule of a custom constraint. Plain predicate functions get wrapped into a `Constraint` named after the
    function. The `arguments` are available to the predicate (via `ValidationArguments.constraints`) and to the
    message as `$constraint1` ... `$constraintN`.
    """
    if not isinstance(constraint, Constraint):
        constraint = Constraint(constraint)
    return _rule(ValidationTypes.CUSTOM_VALIDATION, constraint, tuple(arguments), **options)


def _is_defined(value: Any) -> bool:
    return value is not None and value is not MISSING


IS_DEFINED = Constraint(
    _is_defined,
    name=ValidationTypes.IS_DEFINED.value,
    default_message=build_message(lambda each_prefix: each_prefix + "$property should not be null or undefined"),
    validates_missing=True,
)


def is_defined(**options: Any) -> PropertyRule:
    """The property must be set and not `None`. This rule is checked even if missing properties are skipped."""
    return _rule(ValidationTypes.IS_DEFINED, IS_DEFINED, **options)


def _is_set(obj: Any, value: Any) -> bool:  # pylint: disable=unused-argument
    return value is not None and value is not MISSING


def is_optional(**options: Any) -> PropertyRule:
    """Skips all other rules of the property if it is not set or `None`"""
    return _rule(ValidationTypes.CONDITIONAL_VALIDATION, arguments=(_is_set,), **options)


def validate_if(condition: ConditionFunction, **options: Any) -> PropertyRule:
    """
    Skips all other rules of the property if the condition does not hold. The condition is called with the object
    and the value of the property.
    """
    return _rule(ValidationTypes.CONDITIONAL_VALIDATION, arguments=(condition,), **options)


def allow(**options: Any) -> PropertyRule:
    """Whitelists the property without any further constraint"""
    return _rule(ValidationTypes.WHITELIST, **options)


def allow_if(condition: AllowCondition, **options: Any) -> PropertyRule:
    """
    Whitelists the property only if the condition holds. The condition is called with the validated instance on
    every validation.
    """
    return _rule(ValidationTypes.CONDITIONAL_WHITELIST, arguments=(condition,), **options)


def validate_nested(schema: Optional[str] = None, **options: Any) -> PropertyRule:
    """
    Validates the value of the property as nested object (or every element if it is a collection). If a schema name
    is given, the value is validated against the declarations of this schema (mappings are validated as objects then).
    """
    arguments: tuple[Any, ...] = (schema,) if schema is not None else ()
    return _rule(ValidationTypes.NESTED_VALIDATION, arguments=arguments, **options)


def validate_promise(**options: Any) -> PropertyRule:
    """Awaits the value of the property (if awaitable) before the other rules are checked"""
    return _rule(ValidationTypes.PROMISE_VALIDATION, **options)


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


IS_ARRAY = Constraint(
    _is_array,
    name="is_array",
    default_message=build_message(lambda each_prefix: each_prefix + "$property must be an array"),
)


def is_array(**options: Any) -> PropertyRule:
    """Checks if the value is a list or a tuple"""
    return _rule(ValidationTypes.CUSTOM_VALIDATION, IS_ARRAY, **options)


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool) and not (
        isinstance(value, float) and math.isnan(value)
    )


def _min_value(value: Any, arguments: ValidationArguments) -> bool:
    return _is_number(value) and value >= arguments.constraints[0]


def _max_value(value: Any, arguments: ValidationArguments) -> bool:
    return _is_number(value) and value <= arguments.constraints[0]


MIN_VALUE = Constraint(
    _min_value,
    name="min",
    default_message=build_message(lambda each_prefix: each_prefix + "$property must not be less than $constraint1"),
)
MAX_VALUE = Constraint(
    _max_value,
    name="max",
    default_message=build_message(lambda each_prefix: each_prefix + "$property must not be greater than $constraint1"),
)


def min_value(minimum: float, **options: Any) -> PropertyRule:
    """Checks if the value is a number greater than or equal to `minimum`"""
    return _rule(ValidationTypes.CUSTOM_VALIDATION, MIN_VALUE, (minimum,), **options)


def max_value(maximum: float, **options: Any) -> PropertyRule:
    """Checks if the value is a number less than or equal to `maximum`"""
    return _rule(ValidationTypes.CUSTOM_VALIDATION, MAX_VALUE, (maximum,), **options)


def _is_not_empty(value: Any) -> bool:
    if value is None or value is MISSING:
        return False
    if isinstance(value, (str, bytes, list, tuple, set, frozenset, dict)):
        return len(value) > 0
    return True


IS_NOT_EMPTY = Constraint(
    _is_not_empty,
    name="is_not_empty",
    default_message=build_message(lambda each_prefix: each_prefix + "$property should not be empty"),
)


def is_not_empty(**options: Any) -> PropertyRule:
    """Checks if the value is neither `None` nor an empty string or collection"""
    return _rule(ValidationTypes.CUSTOM_VALIDATION, IS_NOT_EMPTY, **options)


def _is_type(value: Any, arguments: ValidationArguments) -> bool:
    try:
        check_type(value, arguments.constraints[0])
    except TypeCheckError:
        return False
    return True


IS_TYPE = Constraint(
    _is_type,
    name="is_type",
    default_message=build_message(lambda each_prefix: each_prefix + "$property must be of type $constraint1"),
)


def is_type(expected_type: Any, **options: Any) -> PropertyRule:
    """
    Checks the value against a type hint, e.g. `str`, `list[int]` or `Optional[dict[str, float]]`.
    """
    return _rule(ValidationTypes.CUSTOM_VALIDATION, IS_TYPE, (expected_type,), **options)


def _equals_property(value: Any, arguments: ValidationArguments) -> bool:
    try:
        other = required_field(arguments.object, arguments.constraints[0], Any)
    except AttributeError:
        return False
    return value == other


EQUALS_PROPERTY = Constraint(
    _equals_property,
    name="equals_property",
    default_message="$property must match $constraint1",
)


def equals_property(attribute_path: str, **options: Any) -> PropertyRule:
    """
    Checks if the value equals the value found at the dotted `attribute_path` of the validated object, e.g. for
    password confirmations.
    """
    return _rule(ValidationTypes.CUSTOM_VALIDATION, EQUALS_PROPERTY, (attribute_path,), **options)

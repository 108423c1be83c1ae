"""
Contains the `WhitelistEnforcer` which strips (or reports) properties that carry no declaration.
"""
import inspect
import logging
from typing import Any, Callable

from .errors import ValidationError
from .metadata import ConstraintDeclaration, ValidationTypes
from .options import ValidationOptions
from .utils.query_object import delete_property, get_property, own_properties

_logger = logging.getLogger(__name__)


class WhitelistEnforcer:
    """
    A property is whitelisted if it has at least one applicable declaration which is not a conditional whitelist
    declaration, or if the condition of one of its conditional whitelist declarations holds for the instance.
    Conditions are evaluated on every run since the instance may have changed in between.
    """

    def __init__(self, options: ValidationOptions, error_factory: Callable[[Any, Any, str], ValidationError]):
        self.options = options
        self._error_factory = error_factory

    def apply(self, obj: Any, grouped: dict[str, list[ConstraintDeclaration]]) -> list[ValidationError]:
        """
        Removes all non-whitelisted properties from `obj`. If `forbid_non_whitelisted` is set the properties are
        reported as errors instead and stay untouched. Properties of immutable objects (e.g. a frozendict or a frozen
        dataclass) cannot be removed and are reported as well.
        With `stop_at_first_error` at most one error is returned.
        """
        not_allowed = [
            property_name
            for property_name in own_properties(obj)
            if not self.is_allowed(obj, grouped.get(property_name, []))
        ]
        errors: list[ValidationError] = []
        for property_name in not_allowed:
            if self.options.stop_at_first_error and len(errors) > 0:
                break
            if self.options.forbid_non_whitelisted:
                errors.append(self._create_error(obj, property_name))
                continue
            try:
                delete_property(obj, property_name)
            except (AttributeError, TypeError) as error:
                _logger.warning(
                    "Non-whitelisted property '%s' of %s cannot be removed (%r), it is reported instead",
                    property_name,
                    type(obj).__name__,
                    error,
                )
                errors.append(self._create_error(obj, property_name))
            else:
                _logger.debug("Stripped non-whitelisted property '%s' from %s", property_name, type(obj).__name__)
        return errors

    def _create_error(self, obj: Any, property_name: Any) -> ValidationError:
        error = self._error_factory(obj, get_property(obj, property_name), str(property_name))
        error.constraints[ValidationTypes.WHITELIST.value] = f"property {property_name} should not exist"
        return error

    def is_allowed(self, obj: Any, declarations: list[ConstraintDeclaration]) -> bool:
        """Decides if a property with the given declarations may exist on `obj`"""
        conditions = []
        for declaration in declarations:
            if declaration.kind != ValidationTypes.CONDITIONAL_WHITELIST:
                return True
            conditions.append(declaration)
        return any(self._condition_holds(obj, declaration) for declaration in conditions)

    @staticmethod
    def _condition_holds(obj: Any, declaration: ConstraintDeclaration) -> bool:
        condition = declaration.arguments[0]
        try:
            result = condition(obj)
        except Exception as error:  # pylint: disable=broad-except
            _logger.warning(
                "Whitelist condition of %s.%s raised %r, the property is not allowed",
                declaration.target_name,
                declaration.property_name,
                error,
            )
            return False
        if inspect.isawaitable(result):
            close = getattr(result, "close", None)
            if close is not None:
                close()
            _logger.warning(
                "Whitelist condition of %s.%s returned an awaitable, the property is not allowed",
                declaration.target_name,
                declaration.property_name,
            )
            return False
        return bool(result)

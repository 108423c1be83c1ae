"""
Contains the `ConstraintEvaluator` which executes single constraint declarations.
"""
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from .errors import AsyncConstraintError, PredicateError
from .metadata import ConstraintDeclaration
from .options import ValidationOptions
from .types import MessageT
from .utils.query_object import is_collection, iter_collection
from .validator import ValidationArguments, resolve_message

_logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")

NOT_A_COLLECTION_MESSAGE = "$property must be an array, a set or a mapping to validate each of its values"


async def gather_all(awaitables: Iterable[Awaitable[ResultT]]) -> list[ResultT]:
    """
    Runs the awaitables concurrently and returns their results in order. If one of them raises, the others are
    cancelled and awaited before the exception propagates.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class ConstraintEvaluator:
    """
    Executes constraints and condition functions. Synchronous and asynchronous predicates are handled uniformly:
    every evaluation is a coroutine which awaits the predicate only if necessary. In synchronous mode an awaitable
    predicate result raises an `AsyncConstraintError` instead.
    """

    def __init__(self, options: ValidationOptions, synchronous: bool = False):
        self.options = options
        self.synchronous = synchronous

    async def evaluate(
        self, declaration: ConstraintDeclaration, value: Any, obj: Any
    ) -> tuple[bool, Optional[str]]:
        """
        Evaluates the constraint of the declaration against the value of the property of `obj`.
        Returns whether the constraint passed and the error message if it did not.
        """
        assert declaration.constraint is not None
        arguments = ValidationArguments(
            value=value,
            constraints=declaration.arguments,
            target_name=declaration.target_name,
            object=obj,
            property=declaration.property_name,
            each=declaration.each,
        )
        if declaration.each:
            if is_collection(value):
                passed = await self._evaluate_each(declaration, value, arguments)
            else:
                return False, self.build_message(declaration, arguments, NOT_A_COLLECTION_MESSAGE)
        else:
            passed = await self._execute_constraint(declaration, value, arguments)
        if passed:
            return True, None
        return False, self.build_message(declaration, arguments)

    async def _evaluate_each(
        self, declaration: ConstraintDeclaration, value: Any, arguments: ValidationArguments
    ) -> bool:
        items = [item for _, item in iter_collection(value)]
        if self.synchronous or self.options.stop_at_first_error:
            for item in items:
                if not await self._execute_constraint(declaration, item, arguments):
                    return False
            return True
        results = await gather_all(self._execute_constraint(declaration, item, arguments) for item in items)
        return all(results)

    async def _execute_constraint(
        self, declaration: ConstraintDeclaration, value: Any, arguments: ValidationArguments
    ) -> bool:
        constraint = declaration.constraint
        assert constraint is not None
        try:
            if constraint.is_async:
                return await self._execute_async_constraint(declaration, value, arguments)
            return await self._execute_sync_constraint(declaration, value, arguments)
        except AsyncConstraintError:
            raise
        except Exception as error:  # pylint: disable=broad-except
            if self.options.surface_predicate_faults:
                raise PredicateError(constraint.name, declaration.property_name, error) from error
            _logger.warning(
                "Constraint '%s' on %s.%s raised %r, it is treated as failed",
                constraint.name,
                declaration.target_name,
                declaration.property_name,
                error,
            )
            return False

    async def _execute_sync_constraint(
        self, declaration: ConstraintDeclaration, value: Any, arguments: ValidationArguments
    ) -> bool:
        assert declaration.constraint is not None
        result = declaration.constraint(value, arguments)
        return bool(await self.settle(result, declaration.error_key))

    async def _execute_async_constraint(
        self, declaration: ConstraintDeclaration, value: Any, arguments: ValidationArguments
    ) -> bool:
        assert declaration.constraint is not None
        if self.synchronous:
            raise AsyncConstraintError(
                f"Constraint '{declaration.error_key}' on {declaration.target_name}.{declaration.property_name} "
                f"is asynchronous, use the asynchronous validation instead"
            )
        return bool(await declaration.constraint(value, arguments))

    async def settle(self, result: Any, name: str) -> Any:
        """
        Awaits the result if it is awaitable. In synchronous mode an awaitable result raises an
        `AsyncConstraintError`.
        """
        if not inspect.isawaitable(result):
            return result
        if self.synchronous:
            close: Optional[Callable[[], Any]] = getattr(result, "close", None)
            if close is not None:
                close()
            raise AsyncConstraintError(f"'{name}' returned an awaitable during synchronous validation")
        awaitable: Awaitable[Any] = result
        return await awaitable

    async def check_conditions(
        self, declarations: list[ConstraintDeclaration], value: Any, obj: Any
    ) -> tuple[bool, Optional[str]]:
        """
        Evaluates the conditions of conditional validation declarations. The property has to be validated only if
        all conditions hold. A raising condition counts as not holding and produces an error message.
        """
        for declaration in declarations:
            condition: Callable[[Any, Any], Any] = declaration.arguments[0]
            try:
                holds = await self.settle(condition(obj, value), declaration.error_key)
            except AsyncConstraintError:
                raise
            except Exception as error:  # pylint: disable=broad-except
                if self.options.surface_predicate_faults:
                    raise PredicateError(declaration.error_key, declaration.property_name, error) from error
                _logger.warning(
                    "Condition of %s.%s raised %r, the property is reported as invalid",
                    declaration.target_name,
                    declaration.property_name,
                    error,
                )
                return False, f"condition of {declaration.property_name} could not be evaluated: {error}"
            if not holds:
                return False, None
        return True, None

    def build_message(
        self,
        declaration: ConstraintDeclaration,
        arguments: ValidationArguments,
        default_message: Optional[MessageT] = None,
    ) -> str:
        """
        Builds the message of a failed declaration. A custom message of the declaration wins over the default message
        (which defaults to the default message of the constraint).
        """
        if declaration.message is not None:
            return resolve_message(declaration.message, arguments)
        if self.options.dismiss_default_messages:
            return ""
        if default_message is None:
            assert declaration.constraint is not None
            default_message = declaration.constraint.default_message
        return resolve_message(default_message, arguments)

"""
Contains the validation engine: the `ValidationExecutor` walks an object graph and evaluates the declared
constraints, the `ValidationManager` is the entry point for callers.
"""
import functools
import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

from .analysis import ValidationResult
from .errors import AsyncConstraintError, ValidationError, ValidationFailed
from .evaluation import ConstraintEvaluator, gather_all
from .metadata import ConstraintDeclaration, MetadataStore, PropertyRule, ValidationTypes, declare, get_metadata_store
from .options import ValidationOptions
from .resolver import ConstraintResolver
from .types import TargetT
from .utils.query_object import MISSING, get_property, is_collection, is_primitive, iter_collection, own_properties
from .validator import ValidationArguments
from .whitelist import WhitelistEnforcer

_logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")

UNKNOWN_VALUE_MESSAGE = "an unknown value was passed to the validate function"
NESTED_VALIDATION_MESSAGE = "nested property $property must be either object or array"


class ValidationExecutor:
    """
    Executes a single validation run. An executor holds the state of one run and must not be reused.
    In synchronous mode everything is evaluated sequentially and nothing may suspend. In asynchronous mode the
    properties of an object and the elements of a collection are evaluated concurrently; the resulting errors keep
    the declaration (respectively collection) order nonetheless.
    """

    def __init__(self, store: MetadataStore, options: ValidationOptions, synchronous: bool = False):
        self.store = store
        self.options = options
        self.synchronous = synchronous
        self.resolver = ConstraintResolver(store)
        self.evaluator = ConstraintEvaluator(options, synchronous)
        self.whitelist = WhitelistEnforcer(options, self._create_error)
        self._halted = False

    @property
    def _sequential(self) -> bool:
        return self.synchronous or self.options.stop_at_first_error

    async def execute(self, instance: Any, schema: Optional[str] = None) -> list[ValidationError]:
        """
        Validates the instance against the declarations of its class (or of the schema if provided) and returns the
        error tree. An empty list means the instance is valid.
        """
        errors = await self._execute(instance, schema, frozenset(), top_level=True)
        return _prune(errors)

    async def _execute(
        self, instance: Any, schema: Optional[str], path: frozenset[int], top_level: bool = False
    ) -> list[ValidationError]:
        target: TargetT = schema if schema is not None else type(instance)
        declarations = self.resolver.resolve(target, self.options)
        if self.synchronous:
            asynchronous = self.resolver.requires_async(declarations)
            if len(asynchronous) > 0:
                raise AsyncConstraintError(
                    f"{', '.join(d.property_name + '.' + d.error_key for d in asynchronous)} of "
                    f"{asynchronous[0].target_name} can only be validated asynchronously"
                )
        if (
            top_level
            and self.options.forbid_unknown_values
            and not self.store.has_metadata(target)
            and not isinstance(instance, Mapping)
        ):
            error = self._create_error(instance, instance, "")
            error.constraints[ValidationTypes.UNKNOWN_VALUE.value] = UNKNOWN_VALUE_MESSAGE
            self._record(error)
            return [error]
        _logger.debug("Validating %s with %d declarations", _target_name(target), len(declarations))
        path = path | {id(instance)}
        grouped = self.resolver.group_by_property(declarations)
        errors: list[ValidationError] = []
        if self.options.whitelist:
            for error in self.whitelist.apply(instance, grouped):
                self._record(error)
                errors.append(error)
        factories = [
            functools.partial(self._validate_property, instance, property_name, property_declarations, path)
            for property_name, property_declarations in grouped.items()
        ]
        if not self.options.whitelist:
            # undeclared properties are only descended into if they hold objects with declarations
            factories.extend(
                functools.partial(self._validate_property, instance, property_name, [], path)
                for property_name in own_properties(instance)
                if isinstance(property_name, str) and property_name not in grouped
            )
        errors.extend(await self._run_all(factories))
        return errors

    async def _run_all(self, factories: list[Callable[[], Coroutine[Any, Any, ResultT]]]) -> list[ResultT]:
        """Runs one coroutine per factory, either sequentially or concurrently, and returns the results in order"""
        if self._sequential:
            results: list[ResultT] = []
            for factory in factories:
                if self._halted:
                    break
                results.append(await factory())
            return results
        return await gather_all(factory() for factory in factories)

    # pylint: disable=too-many-return-statements
    async def _validate_property(
        self, obj: Any, property_name: str, declarations: list[ConstraintDeclaration], path: frozenset[int]
    ) -> ValidationError:
        value = get_property(obj, property_name)
        error = self._create_error(obj, value, property_name)
        if self._halted:
            return error
        promises = [d for d in declarations if d.kind == ValidationTypes.PROMISE_VALIDATION]
        conditions = [d for d in declarations if d.kind == ValidationTypes.CONDITIONAL_VALIDATION]
        nested = [d for d in declarations if d.kind == ValidationTypes.NESTED_VALIDATION]
        constraints = [d for d in declarations if d.constraint is not None]
        defined = [d for d in constraints if d.constraint is not None and d.constraint.validates_missing]
        others = [d for d in constraints if d not in defined]

        if len(promises) > 0:
            try:
                value = await self.evaluator.settle(value, promises[0].error_key)
            except AsyncConstraintError:
                raise
            except Exception as promise_error:  # pylint: disable=broad-except
                _logger.warning("Awaiting %s.%s raised %r", promises[0].target_name, property_name, promise_error)
                error.constraints[promises[0].error_key] = f"{property_name} could not be resolved: {promise_error}"
                self._record(error)
                return error
            if self.options.validation_error.value:
                error.value = value

        if len(conditions) > 0:
            can_validate, message = await self.evaluator.check_conditions(conditions, value, obj)
            if message is not None:
                error.constraints[ValidationTypes.CONDITIONAL_VALIDATION.value] = message
                self._record(error)
            if not can_validate:
                return error

        await self._run_constraints(obj, value, defined, error)
        if self._halted or self._skips(value):
            return error
        await self._run_constraints(obj, value, others, error)
        if len(nested) > 0 or not is_primitive(value):
            await self._nest(value, nested[0] if len(nested) > 0 else None, error, path)
        return error

    def _skips(self, value: Any) -> bool:
        if value is MISSING:
            return self.options.skip_undefined_properties or self.options.skip_missing_properties
        if value is None:
            return self.options.skip_null_properties or self.options.skip_missing_properties
        return False

    async def _run_constraints(
        self, obj: Any, value: Any, declarations: list[ConstraintDeclaration], error: ValidationError
    ) -> None:
        if len(declarations) == 0:
            return
        if self._sequential:
            for declaration in declarations:
                if self._halted:
                    return
                passed, message = await self.evaluator.evaluate(declaration, value, obj)
                if not passed:
                    self._add_failure(error, declaration, message)
            return
        outcomes = await gather_all(self.evaluator.evaluate(declaration, value, obj) for declaration in declarations)
        for declaration, (passed, message) in zip(declarations, outcomes):
            if not passed:
                self._add_failure(error, declaration, message)

    async def _nest(
        self,
        value: Any,
        declaration: Optional[ConstraintDeclaration],
        error: ValidationError,
        path: frozenset[int],
    ) -> None:
        """
        Validates a nested value and attaches the resulting errors as children of `error`.
        Without an explicit nested declaration only instances of classes with declarations are descended into
        (directly or as elements of collections).
        """
        if value is MISSING or self._halted:
            return
        schema: Optional[str] = None
        if declaration is not None and len(declaration.arguments) > 0:
            schema = declaration.arguments[0]
        if declaration is None:
            if is_primitive(value):
                return
            if self.store.has_metadata(type(value)):
                error.children.extend(await self._descend(value, None, path))
            elif is_collection(value):
                error.children.extend(await self._nest_elements(value, None, path))
            return
        if (schema is not None and isinstance(value, Mapping)) or (
            not is_primitive(value) and not is_collection(value)
        ):
            error.children.extend(await self._descend(value, schema, path))
        elif is_collection(value):
            error.children.extend(await self._nest_elements(value, declaration, path))
        else:
            arguments = ValidationArguments(
                value=value,
                constraints=declaration.arguments,
                target_name=declaration.target_name,
                object=error.target,
                property=error.property,
            )
            error.constraints[declaration.error_key] = self.evaluator.build_message(
                declaration, arguments, NESTED_VALIDATION_MESSAGE
            )
            self._record(error)

    async def _nest_elements(
        self, collection: Any, declaration: Optional[ConstraintDeclaration], path: frozenset[int]
    ) -> list[ValidationError]:
        if id(collection) in path:
            _logger.debug("Skipping %s which is already being validated", type(collection).__name__)
            return []
        path = path | {id(collection)}
        return await self._run_all(
            [
                functools.partial(self._nest_element, collection, key, item, declaration, path)
                for key, item in iter_collection(collection)
            ]
        )

    async def _nest_element(
        self,
        collection: Any,
        key: str,
        item: Any,
        declaration: Optional[ConstraintDeclaration],
        path: frozenset[int],
    ) -> ValidationError:
        element_error = self._create_error(collection, item, key)
        if not self._skips(item):
            await self._nest(item, declaration, element_error, path)
        return element_error

    async def _descend(self, value: Any, schema: Optional[str], path: frozenset[int]) -> list[ValidationError]:
        if id(value) in path:
            _logger.debug("Skipping %s which is already being validated", type(value).__name__)
            return []
        return await self._execute(value, schema, path)

    def _add_failure(self, error: ValidationError, declaration: ConstraintDeclaration, message: Optional[str]) -> None:
        error.constraints[declaration.error_key] = message or ""
        if len(declaration.context) > 0:
            error.contexts[declaration.error_key] = dict(declaration.context)
        self._record(error)

    def _record(self, error: ValidationError) -> None:
        if self.options.stop_at_first_error and not error.is_empty():
            self._halted = True

    def _create_error(self, obj: Any, value: Any, property_name: str) -> ValidationError:
        error_options = self.options.validation_error
        return ValidationError(
            property=property_name,
            target=obj if error_options.target else None,
            value=(None if value is MISSING else value) if error_options.value else None,
        )


def _prune(errors: list[ValidationError]) -> list[ValidationError]:
    """Removes all errors which neither carry constraints nor (after pruning) children"""
    result: list[ValidationError] = []
    for error in errors:
        error.children = _prune(error.children)
        if len(error.constraints) > 0 or len(error.children) > 0:
            result.append(error)
    return result


def _target_name(target: TargetT) -> str:
    return target if isinstance(target, str) else target.__name__


def run_synchronously(coroutine: Coroutine[Any, Any, ResultT]) -> ResultT:
    """
    Drives a coroutine which is expected to complete without ever suspending. If it suspends, it gets closed and an
    `AsyncConstraintError` is raised. This never awaits silently.
    """
    try:
        coroutine.send(None)
    except StopIteration as stop:
        return stop.value
    coroutine.close()
    raise AsyncConstraintError("The validation had to wait for an asynchronous result, use the asynchronous validation")


class ValidationManager:
    """
    This class is the entry point of the framework. It validates objects against the declarations of a metadata
    store (defaults to the process-wide store).
    E.g.:
    ```
    manager = ValidationManager(ValidationOptions(whitelist=True))
    manager.register(Post, "title", is_defined())
    errors = await manager.validate(post)
    ```
    """

    def __init__(self, options: Optional[ValidationOptions] = None, store: Optional[MetadataStore] = None):
        self.options = options if options is not None else ValidationOptions()
        self.store = store if store is not None else get_metadata_store()

    def register(self, target: TargetT, property_name: str, *rules: PropertyRule) -> list[ConstraintDeclaration]:
        """Registers the rules for the property of the target in the store of this manager"""
        return declare(target, property_name, *rules, store=self.store)

    def _effective_options(self, options: Optional[ValidationOptions], overrides: dict[str, Any]) -> ValidationOptions:
        base = options if options is not None else self.options
        return base.merge(**overrides)

    async def validate(
        self,
        instance: Any,
        options: Optional[ValidationOptions] = None,
        schema: Optional[str] = None,
        **overrides: Any,
    ) -> list[ValidationError]:
        """
        Validates the instance and returns the error tree. The list is empty if the instance is valid. This never
        raises because of invalid data, only because of misuse.
        Keyword arguments override single fields of the options.
        """
        executor = ValidationExecutor(self.store, self._effective_options(options, overrides))
        return await executor.execute(instance, schema)

    def validate_sync(
        self,
        instance: Any,
        options: Optional[ValidationOptions] = None,
        schema: Optional[str] = None,
        **overrides: Any,
    ) -> list[ValidationError]:
        """
        Same as `validate` but without an event loop. Raises an `AsyncConstraintError` if any applicable constraint
        is asynchronous.
        """
        executor = ValidationExecutor(self.store, self._effective_options(options, overrides), synchronous=True)
        return run_synchronously(executor.execute(instance, schema))

    async def validate_or_reject(
        self,
        instance: Any,
        options: Optional[ValidationOptions] = None,
        schema: Optional[str] = None,
        **overrides: Any,
    ) -> None:
        """Validates the instance and raises a `ValidationFailed` error if it is invalid"""
        errors = await self.validate(instance, options, schema, **overrides)
        if len(errors) > 0:
            raise ValidationFailed(errors)

    def validate_or_reject_sync(
        self,
        instance: Any,
        options: Optional[ValidationOptions] = None,
        schema: Optional[str] = None,
        **overrides: Any,
    ) -> None:
        """Synchronous version of `validate_or_reject`"""
        errors = self.validate_sync(instance, options, schema, **overrides)
        if len(errors) > 0:
            raise ValidationFailed(errors)

    async def analyze(
        self,
        instance: Any,
        options: Optional[ValidationOptions] = None,
        schema: Optional[str] = None,
        **overrides: Any,
    ) -> ValidationResult:
        """Validates the instance and wraps the errors into a `ValidationResult` for further analysis"""
        return ValidationResult(await self.validate(instance, options, schema, **overrides))


def _default_manager() -> ValidationManager:
    return ValidationManager(store=get_metadata_store())


def validate(
    instance: Any, options: Optional[ValidationOptions] = None, **kwargs: Any
) -> Awaitable[list[ValidationError]]:
    """Validates the instance against the process-wide metadata store"""
    return _default_manager().validate(instance, options, **kwargs)


def validate_sync(instance: Any, options: Optional[ValidationOptions] = None, **kwargs: Any) -> list[ValidationError]:
    """Synchronously validates the instance against the process-wide metadata store"""
    return _default_manager().validate_sync(instance, options, **kwargs)


def validate_or_reject(instance: Any, options: Optional[ValidationOptions] = None, **kwargs: Any) -> Awaitable[None]:
    """Validates the instance against the process-wide metadata store and raises `ValidationFailed` if invalid"""
    return _default_manager().validate_or_reject(instance, options, **kwargs)


def validate_or_reject_sync(instance: Any, options: Optional[ValidationOptions] = None, **kwargs: Any) -> None:
    """Synchronous version of `validate_or_reject`"""
    _default_manager().validate_or_reject_sync(instance, options, **kwargs)


def analyze(instance: Any, options: Optional[ValidationOptions] = None, **kwargs: Any) -> Awaitable[ValidationResult]:
    """Validates the instance against the process-wide metadata store and wraps the errors for further analysis"""
    return _default_manager().analyze(instance, options, **kwargs)

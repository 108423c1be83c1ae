"""
Contains the constraint declarations and the store which maps classes (or schema names) onto their declarations.
"""
import inspect
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Iterable, Optional

from frozendict import frozendict

from .errors import MetadataError
from .types import MessageT, TargetT
from .validator import Constraint

_logger = logging.getLogger(__name__)


class ValidationTypes(str, Enum):
    """
    The declaration kinds which are handled by the validation engine itself. All other kinds are custom constraints
    and are named after their constraint.
    """

    CUSTOM_VALIDATION = "custom_validation"
    NESTED_VALIDATION = "nested_validation"
    PROMISE_VALIDATION = "promise_validation"
    CONDITIONAL_VALIDATION = "conditional_validation"
    WHITELIST = "whitelist"
    CONDITIONAL_WHITELIST = "conditional_whitelist"
    IS_DEFINED = "is_defined"
    UNKNOWN_VALUE = "unknown_value"

    def __str__(self):
        return self.value


WHITELIST_KINDS: Final[frozenset[str]] = frozenset(
    {ValidationTypes.WHITELIST.value, ValidationTypes.CONDITIONAL_WHITELIST.value}
)


class InheritanceMode(Enum):
    """
    Defines how declarations of ancestor classes are combined with the declarations of a subclass.
    """

    APPEND = "append"
    """Ancestor declarations come first, all declarations are kept"""
    OVERRIDE = "override"
    """A subclass declaration replaces the ancestor declarations with the same error key on the same property"""


@dataclass(frozen=True)
class PropertyRule:
    """
    A declaration which is not yet bound to a target and a property. Use `declare` to register rules.
    """

    kind: str
    constraint: Optional[Constraint] = None
    arguments: tuple[Any, ...] = ()
    groups: frozenset[str] = frozenset()
    each: bool = False
    message: Optional[MessageT] = None
    always: Optional[bool] = None
    context: frozendict[str, Any] = field(default_factory=frozendict)

    def bind(self, target: TargetT, property_name: str) -> "ConstraintDeclaration":
        """Creates the declaration of this rule for the given target and property"""
        return ConstraintDeclaration(
            target=target,
            property_name=property_name,
            kind=self.kind,
            constraint=self.constraint,
            arguments=self.arguments,
            groups=self.groups,
            each=self.each,
            message=self.message,
            always=self.always,
            context=self.context,
        )


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True)
class ConstraintDeclaration:
    """
    A constraint declared on a property of a target. The target is either a class or the name of a schema.
    """

    target: TargetT
    property_name: str
    kind: str
    constraint: Optional[Constraint] = None
    arguments: tuple[Any, ...] = ()
    groups: frozenset[str] = frozenset()
    each: bool = False
    message: Optional[MessageT] = None
    always: Optional[bool] = None
    context: frozendict[str, Any] = field(default_factory=frozendict)

    def __post_init__(self):
        # kinds are compared and hashed as plain strings
        object.__setattr__(self, "kind", str(self.kind))
        if not isinstance(self.groups, frozenset):
            object.__setattr__(self, "groups", frozenset(self.groups))
        if not isinstance(self.context, frozendict):
            object.__setattr__(self, "context", frozendict(self.context))

    @property
    def error_key(self) -> str:
        """The key under which a failure of this declaration shows up in `ValidationError.constraints`"""
        if self.constraint is not None and self.kind == ValidationTypes.CUSTOM_VALIDATION:
            return self.constraint.name
        return self.kind

    @property
    def is_async(self) -> bool:
        """True if the constraint of this declaration has to be awaited"""
        return self.constraint is not None and self.constraint.is_async

    @property
    def target_name(self) -> str:
        """Name of the target class or the schema name"""
        return self.target if isinstance(self.target, str) else self.target.__name__


class MetadataStore:
    """
    Maps targets onto their ordered constraint declarations. Writes replace the per-target lists instead of mutating
    them, therefore concurrent reads need no synchronization.
    """

    def __init__(self, inheritance: InheritanceMode = InheritanceMode.APPEND):
        self.inheritance = inheritance
        self._declarations: dict[TargetT, tuple[ConstraintDeclaration, ...]] = {}
        self._lock = threading.Lock()

    def register(self, declaration: ConstraintDeclaration) -> None:
        """
        Registers a declaration. Registering an identical declaration twice has no effect.
        """
        self._check_declaration(declaration)
        with self._lock:
            existing = self._declarations.get(declaration.target, ())
            if declaration in existing:
                return
            if declaration.kind in WHITELIST_KINDS:
                for other in existing:
                    if other.property_name == declaration.property_name and other.kind == declaration.kind:
                        raise MetadataError(
                            f"{declaration.target_name}.{declaration.property_name} already has a "
                            f"'{declaration.kind}' declaration"
                        )
            self._declarations[declaration.target] = (*existing, declaration)
        _logger.debug(
            "Registered '%s' on %s.%s", declaration.error_key, declaration.target_name, declaration.property_name
        )

    @staticmethod
    def _check_declaration(declaration: ConstraintDeclaration) -> None:
        if not declaration.property_name:
            raise MetadataError("A declaration needs a property name")
        if declaration.kind in (ValidationTypes.CONDITIONAL_WHITELIST, ValidationTypes.CONDITIONAL_VALIDATION):
            if len(declaration.arguments) == 0 or not callable(declaration.arguments[0]):
                raise MetadataError(f"'{declaration.kind}' needs a condition function as first argument")
            if declaration.each:
                raise MetadataError(f"'{declaration.kind}' cannot be applied to each element")
        if declaration.kind == ValidationTypes.CONDITIONAL_WHITELIST and inspect.iscoroutinefunction(
            declaration.arguments[0]
        ):
            raise MetadataError("The condition of a conditional whitelist declaration must be synchronous")
        if declaration.kind in (ValidationTypes.CUSTOM_VALIDATION, ValidationTypes.IS_DEFINED):
            if declaration.constraint is None:
                raise MetadataError(f"'{declaration.kind}' declarations need a constraint")

    def get_constraints_for(self, target: TargetT) -> tuple[ConstraintDeclaration, ...]:
        """
        Returns the declarations of the target including the ones declared on its ancestors. The declarations of the
        ancestors come first. Unknown targets have no declarations.
        """
        if isinstance(target, str):
            return self._declarations.get(target, ())
        result: list[ConstraintDeclaration] = []
        for klass in reversed(target.__mro__):
            if klass is object:
                continue
            own = self._declarations.get(klass, ())
            if len(own) == 0:
                continue
            if self.inheritance == InheritanceMode.OVERRIDE:
                overridden = {(declaration.property_name, declaration.error_key) for declaration in own}
                result = [
                    declaration
                    for declaration in result
                    if (declaration.property_name, declaration.error_key) not in overridden
                ]
            result.extend(own)
        return tuple(result)

    def has_metadata(self, target: TargetT) -> bool:
        """True if there is at least one declaration for the target or one of its ancestors"""
        if isinstance(target, str):
            return target in self._declarations
        return any(klass in self._declarations for klass in target.__mro__)

    def targets(self) -> list[TargetT]:
        """All targets with own declarations"""
        return list(self._declarations.keys())


_STORE: Optional[MetadataStore] = None
_STORE_LOCK: Final[threading.Lock] = threading.Lock()


def get_metadata_store() -> MetadataStore:
    """Returns the process-wide metadata store. It is created on first access."""
    global _STORE  # pylint: disable=global-statement
    if _STORE is None:
        with _STORE_LOCK:
            if _STORE is None:
                _STORE = MetadataStore()
    return _STORE


def declare(
    target: TargetT, property_name: str, *rules: PropertyRule, store: Optional[MetadataStore] = None
) -> list[ConstraintDeclaration]:
    """
    Binds the rules to the property of the target and registers them in the given store (defaults to the
    process-wide store). Returns the registered declarations.
    E.g.:
    ```
    declare(Post, "title", is_defined(), is_type(str))
    declare(Post, "views", min_value(0, groups={"create"}))
    ```
    """
    store = store if store is not None else get_metadata_store()
    declarations = [rule.bind(target, property_name) for rule in rules]
    for declaration in declarations:
        store.register(declaration)
    return declarations


def declare_all(
    target: TargetT, rules_per_property: dict[str, Iterable[PropertyRule]], store: Optional[MetadataStore] = None
) -> list[ConstraintDeclaration]:
    """Calls `declare` for every property of the mapping in mapping order"""
    declarations: list[ConstraintDeclaration] = []
    for property_name, rules in rules_per_property.items():
        declarations.extend(declare(target, property_name, *rules, store=store))
    return declarations

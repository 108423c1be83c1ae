"""
Contains the error records produced by a validation run and the exceptions raised by the framework.
"""
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ValidationError:
    """
    Describes why a single property failed the validation. The errors form a tree: `children` contains the errors
    of nested objects or of collection elements (in this case `property` is the position or key of the element).
    A node with children but without constraints is only a carrier for the errors of its nested values.
    """

    property: str
    target: Any = None
    value: Any = None
    constraints: dict[str, str] = field(default_factory=dict)
    children: list["ValidationError"] = field(default_factory=list)
    contexts: dict[str, Any] = field(default_factory=dict)

    def is_empty(self) -> bool:
        """True if neither this node nor any of its children carry a constraint violation"""
        return len(self.constraints) == 0 and all(child.is_empty() for child in self.children)

    def to_string(self, has_parent: bool = False, parent_path: str = "") -> str:
        """
        Renders the error tree in a human readable way. `parent_path` is the property path of the parent error and is
        used to print the full path of nested properties.
        """
        if has_parent:
            header = ""
        elif self.target is None:
            header = "An object has failed the validation:\n"
        else:
            header = f"An instance of {type(self.target).__name__} has failed the validation:\n"
        property_path = join_path(parent_path, self.property)
        lines = [header] if header else []
        if len(self.constraints) > 0:
            lines.append(
                f" - property {property_path} has failed the following constraints: "
                f"{', '.join(self.constraints.keys())}\n"
            )
        for child in self.children:
            lines.append(child.to_string(has_parent=True, parent_path=property_path))
        return "".join(lines)

    def __str__(self):
        return self.to_string()


def join_path(parent_path: str, property_name: str) -> str:
    if not parent_path:
        return property_name
    if property_name.isdigit():
        return f"{parent_path}[{property_name}]"
    return f"{parent_path}.{property_name}"


class FrameworkError(Exception):
    """
    Base class of all exceptions raised by the framework. Note that constraint violations are never raised, they are
    returned as `ValidationError` records.
    """


class MetadataError(FrameworkError, ValueError):
    """
    Raised if a constraint declaration is invalid and cannot be registered.
    """


class AsyncConstraintError(FrameworkError, RuntimeError):
    """
    Raised by the synchronous validation if an applicable constraint has to be evaluated asynchronously.
    """


class PredicateError(FrameworkError, RuntimeError):
    """
    Raised if a constraint predicate raised an exception and the options demand to surface such faults.
    """

    def __init__(self, constraint_name: str, property_name: str, error: Exception):
        super().__init__(f"Constraint '{constraint_name}' on property '{property_name}' raised {error!r}")
        self.constraint_name = constraint_name
        self.property_name = property_name
        self.error = error


class ValidationFailed(FrameworkError):
    """
    Raised by `validate_or_reject` if the validated object is invalid. The error tree is available via `errors`.
    """

    def __init__(self, errors: list[ValidationError], message: Optional[str] = None):
        super().__init__(message or "".join(str(error) for error in errors))
        self.errors = errors

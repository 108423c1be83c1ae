"""
Contains the options which control a validation run
"""
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class ValidationErrorOptions:
    """
    Controls which information is copied into the `ValidationError` records.
    """

    target: bool = True
    value: bool = True


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True)
class ValidationOptions:
    """
    The options of a validation run. Instances are immutable, use `merge` to derive modified options.
    """

    skip_missing_properties: bool = False
    """Skip the constraints of properties which are either not set or `None`"""
    skip_null_properties: bool = False
    """Skip the constraints of properties which are `None`"""
    skip_undefined_properties: bool = False
    """Skip the constraints of properties which are not set on the instance"""
    whitelist: bool = False
    """Remove (or report, see `forbid_non_whitelisted`) properties without any declaration"""
    forbid_non_whitelisted: bool = False
    """Report non-whitelisted properties as errors instead of removing them"""
    forbid_unknown_values: bool = False
    """Reject top-level objects whose class (or schema) has no declarations at all"""
    groups: Optional[frozenset[str]] = None
    """Only run declarations of these groups (plus the ones marked as `always`)"""
    strict_groups: bool = False
    """If no groups are given, ignore all declarations which have groups"""
    always: bool = False
    """Default for the `always` flag of declarations without groups"""
    dismiss_default_messages: bool = False
    """Use empty messages for constraints without a custom message"""
    validation_error: ValidationErrorOptions = field(default_factory=ValidationErrorOptions)
    stop_at_first_error: bool = False
    """Stop the whole run as soon as the first error got recorded"""
    surface_predicate_faults: bool = False
    """Raise a `PredicateError` if a constraint predicate raises instead of recording a failed constraint"""

    def __post_init__(self):
        if self.groups is not None and not isinstance(self.groups, frozenset):
            groups: Any = self.groups
            if isinstance(groups, str):
                groups = [groups]
            object.__setattr__(self, "groups", frozenset(groups))

    def merge(self, **overrides: Any) -> "ValidationOptions":
        """
        Returns a copy of these options with the provided fields replaced. `None` values of the overrides are ignored
        except for `groups`.
        """
        relevant = {key: value for key, value in overrides.items() if value is not None or key == "groups"}
        if len(relevant) == 0:
            return self
        return dataclasses.replace(self, **relevant)

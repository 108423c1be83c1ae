"""
Contains the `ConstraintResolver` which selects the declarations applying to a validation run.
"""
from typing import Iterable

from .metadata import ConstraintDeclaration, MetadataStore
from .options import ValidationOptions
from .types import TargetT


class ConstraintResolver:
    """
    Resolves the declarations of a target which apply to a validation run with the given options. The order of the
    resolved declarations is the order of registration (ancestors first).
    """

    def __init__(self, store: MetadataStore):
        self.store = store

    def resolve(self, target: TargetT, options: ValidationOptions) -> tuple[ConstraintDeclaration, ...]:
        """
        Returns the group filtered and de-duplicated declarations of the target.
        """
        resolved: list[ConstraintDeclaration] = []
        for declaration in self.store.get_constraints_for(target):
            if declaration in resolved:
                continue
            if self.is_applicable(declaration, options):
                resolved.append(declaration)
        return tuple(resolved)

    @staticmethod
    def is_applicable(declaration: ConstraintDeclaration, options: ValidationOptions) -> bool:
        """
        Decides if the declaration applies given the groups of the options:
        - declarations marked as `always` apply in any case
        - declarations without groups and without an explicit `always` flag inherit `options.always`
        - with `strict_groups` and without requested groups, declarations with groups are excluded
        - if groups are requested, only declarations sharing at least one of them apply
        """
        if declaration.always is not None:
            if declaration.always:
                return True
        elif len(declaration.groups) == 0 and options.always:
            return True
        if options.strict_groups and not options.groups and len(declaration.groups) > 0:
            return False
        if options.groups:
            return len(declaration.groups & options.groups) > 0
        return True

    @staticmethod
    def group_by_property(
        declarations: Iterable[ConstraintDeclaration],
    ) -> dict[str, list[ConstraintDeclaration]]:
        """Groups the declarations by their property name. The properties keep the order of their first declaration."""
        grouped: dict[str, list[ConstraintDeclaration]] = {}
        for declaration in declarations:
            grouped.setdefault(declaration.property_name, []).append(declaration)
        return grouped

    @staticmethod
    def requires_async(declarations: Iterable[ConstraintDeclaration]) -> list[ConstraintDeclaration]:
        """Returns the declarations whose constraints can only be evaluated asynchronously"""
        return [declaration for declaration in declarations if declaration.is_async]

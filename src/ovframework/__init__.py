"""
This package validates object graphs against constraints which are declared once per class (or schema) and property.
It collects the violations in an error tree and optionally strips properties without declarations.
"""

from .analysis import ValidationResult
from .constraints import (
    allow,
    allow_if,
    equals_property,
    is_array,
    is_defined,
    is_not_empty,
    is_optional,
    is_type,
    max_value,
    min_value,
    validate_by,
    validate_if,
    validate_nested,
    validate_promise,
)
from .errors import (
    AsyncConstraintError,
    FrameworkError,
    MetadataError,
    PredicateError,
    ValidationError,
    ValidationFailed,
)
from .execution import (
    ValidationExecutor,
    ValidationManager,
    analyze,
    validate,
    validate_or_reject,
    validate_or_reject_sync,
    validate_sync,
)
from .metadata import (
    ConstraintDeclaration,
    InheritanceMode,
    MetadataStore,
    PropertyRule,
    ValidationTypes,
    declare,
    declare_all,
    get_metadata_store,
)
from .options import ValidationErrorOptions, ValidationOptions
from .resolver import ConstraintResolver
from .utils import MISSING
from .validator import Constraint, ValidationArguments, build_message

"""
Contains utility functions to access the properties of validated objects.
"""
from .query_object import (
    MISSING,
    delete_property,
    get_property,
    is_collection,
    is_primitive,
    iter_collection,
    optional_field,
    own_properties,
    required_field,
)

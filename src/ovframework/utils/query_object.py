"""
Contains utility functions to access the properties of the validated objects. Objects are either mappings (the keys
are the properties) or regular instances (the instance attributes are the properties).
"""
from collections.abc import Mapping, MutableMapping
from typing import Any, Iterator, Optional, TypeVar, overload

from typeguard import TypeCheckError, check_type

AttrT = TypeVar("AttrT")

PRIMITIVE_TYPES = (str, bytes, bytearray, int, float, complex, bool, type(None))
SEQUENCE_TYPES = (list, tuple, set, frozenset)


class _Missing:
    """The value of properties which are not set on an instance"""

    _instance: Optional["_Missing"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "MISSING"

    def __str__(self):
        return "undefined"


MISSING: Any = _Missing()


def own_properties(obj: Any) -> list[Any]:
    """
    Returns the names of the properties which are set on the object itself. These are the keys of a mapping, the
    instance attributes and the set slots of other objects. Class attributes are not included.
    """
    if isinstance(obj, Mapping):
        return list(obj.keys())
    names: list[Any] = []
    instance_dict = getattr(obj, "__dict__", None)
    if isinstance(instance_dict, dict):
        names.extend(name for name in instance_dict if not name.startswith("__"))
    for klass in type(obj).__mro__:
        slots = getattr(klass, "__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot in ("__dict__", "__weakref__") or slot in names:
                continue
            if hasattr(obj, slot):
                names.append(slot)
    return names


def get_property(obj: Any, property_name: str) -> Any:
    """Returns the value of the property or `MISSING` if it is not set"""
    if isinstance(obj, Mapping):
        return obj.get(property_name, MISSING)
    return getattr(obj, property_name, MISSING)


def delete_property(obj: Any, property_name: str) -> None:
    """Removes the property from the object"""
    if isinstance(obj, MutableMapping):
        del obj[property_name]
    else:
        delattr(obj, property_name)


def is_primitive(value: Any) -> bool:
    """True for values which can't contain properties"""
    return value is MISSING or isinstance(value, PRIMITIVE_TYPES)


def is_collection(value: Any) -> bool:
    """True for lists, tuples, sets and mappings. Strings are not considered to be collections."""
    return isinstance(value, (*SEQUENCE_TYPES, Mapping))


def iter_collection(value: Any) -> Iterator[tuple[str, Any]]:
    """
    Iterates over the elements of a collection together with their position (or their key for mappings) as string
    """
    if isinstance(value, Mapping):
        return ((str(key), item) for key, item in value.items())
    return ((str(index), item) for index, item in enumerate(value))


@overload
def required_field(obj: Any, attribute_path: str, attribute_type: type[AttrT]) -> AttrT:
    ...


@overload
def required_field(obj: Any, attribute_path: str, attribute_type: Any) -> Any:
    ...


def required_field(obj: Any, attribute_path: str, attribute_type: Any) -> Any:
    """
    Tries to query the `obj` with the provided dotted `attribute_path`. Every path segment is looked up as key on
    mappings and as attribute on other objects. If it is not existent, an AttributeError will be raised.
    If the attribute is found, the type will be checked and TypeError will be raised if the type doesn't match the
    value.
    """
    current_obj: Any = obj
    splitted_path = attribute_path.split(".")
    for index, attr_name in enumerate(splitted_path):
        current_obj = get_property(current_obj, attr_name)
        if current_obj is MISSING:
            current_path = ".".join(splitted_path[0 : index + 1])
            raise AttributeError(f"{current_path}: Not found")
    try:
        check_type(current_obj, attribute_type)
    except TypeCheckError as error:
        raise TypeCheckError(f"{attribute_path}: {error}") from error
    return current_obj


def optional_field(obj: Any, attribute_path: str, attribute_type: type[AttrT]) -> Optional[AttrT]:
    """
    Tries to query the `obj` with the provided `attribute_path`. If it is not existent, `None` will be returned.
    If the attribute is found, the type will be checked and TypeError will be raised if the type doesn't match the
    value.
    """
    try:
        return required_field(obj, attribute_path, attribute_type)
    except (AttributeError, TypeError, TypeCheckError):
        return None

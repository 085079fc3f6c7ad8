from datetime import timedelta, datetime
from typing import TypeVar, Any, Type, Optional, Union, List, Callable

import attrs
import cattrs
from cattrs import override
from cattrs.gen import make_dict_unstructure_fn
from dateutil.parser import isoparse

from tflib.durations import parse_duration, duration_str
from tflib.logger import log
from tflib.types import Json, JsonElement
from tflib.utils import utc_str

AnyT = TypeVar("AnyT")

# the global converter instance
__converter = cattrs.Converter()

# ignore all private attributes
__converter.register_unstructure_hook_factory(
    attrs.has,
    lambda cls: make_dict_unstructure_fn(
        cls,
        __converter,
        _cattrs_omit_if_default=False,
        **{a.name: override(omit=True) for a in attrs.fields(cls) if a.name.startswith("_")},
    ),
)


# allow timedelta either as number of seconds or as duration string
def timedelta_from_json(js: Any) -> timedelta:
    if isinstance(js, str):
        return parse_duration(js)
    elif isinstance(js, (int, float)):
        return timedelta(seconds=js)
    else:
        raise ValueError(f"Cannot convert {js} to timedelta")


def register_json(
    cls: Type[AnyT],
    to_json_fn: Optional[Callable[[AnyT], JsonElement]] = None,
    from_json_fn: Optional[Callable[[Any], AnyT]] = None,
) -> None:
    """
    Register a json marshaller/unmarshaller for the given class.
    :param cls: the class to register
    :param to_json_fn: the function to convert the class to json
    :param from_json_fn: the function to convert json to the class
    """
    log.trace("Register json structure hooks for class %s", cls.__name__)  # type: ignore
    if from_json_fn is not None:
        __converter.register_structure_hook(cls, lambda obj, _: from_json_fn(obj))  # type: ignore
    if to_json_fn is not None:
        __converter.register_unstructure_hook(cls, to_json_fn)


# Register some default types not covered in cattrs
register_json(datetime, utc_str, isoparse)
register_json(timedelta, duration_str, timedelta_from_json)


def to_json(node: Any) -> Json:
    """
    Use this method, if the given node is known as complex object,
    so the result will be a json object.
    """
    return __converter.unstructure(node)  # type: ignore


def from_json(js: JsonElement, clazz: Type[AnyT]) -> AnyT:
    """
    Loads a json object into a python object.
    :param js: the json object to load.
    :param clazz: the type of the python object.
    :return: the loaded python object.
    """
    try:
        return __converter.structure(js, clazz)
    except Exception as e:
        log.debug(f"Can not deserialize json into class {clazz.__name__}: {js}. Error: {e}")
        raise


def value_in_path(element: JsonElement, path_or_name: Union[List[str], str]) -> Optional[Any]:
    """
    Access a value in a json object by a defined path.
    {"a": {"b": {"c": 1}}} -> value_in_path({"a": {"b": {"c": 1}}}, ["a", "b", "c"]) -> 1
    The path can be defined as a list of strings or as a string with dots as separator.
    """
    path = path_or_name if isinstance(path_or_name, list) else path_or_name.split(".")
    at = len(path)

    def at_idx(current: JsonElement, idx: int) -> Optional[Any]:
        if at == idx:
            return current
        elif current is None or not isinstance(current, dict) or path[idx] not in current:
            return None
        else:
            return at_idx(current[path[idx]], idx + 1)

    return at_idx(element, 0)


def without_none_values(js: Json) -> Json:
    """
    Drop all top level properties without value. Boto rejects explicit None parameters.
    """
    return {k: v for k, v in js.items() if v is not None}

import ipaddress
import re
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Union
from urllib.parse import urlparse

from attrs import define, field

from tflib.diagnostics import Diagnostics
from tflib.types import Json

# A validator gets the value and the attribute path and returns a list of error messages.
Validator = Callable[[Any, str], List[str]]


class AttrType(Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    LIST = "list"
    SET = "set"
    MAP = "map"


@define
class Attribute:
    """
    Declaration of a single attribute of a resource or data source.

    Lists with a dictionary as `elem` are nested blocks.
    Lists, sets and maps with an AttrType as `elem` hold scalar values: validators are applied to every element.
    """

    type: AttrType
    required: bool = False
    optional: bool = False
    computed: bool = False
    force_new: bool = False
    sensitive: bool = False
    max_items: Optional[int] = None
    exactly_one_of: List[str] = field(factory=list)
    validators: List[Validator] = field(factory=list)
    elem: Union[None, AttrType, Dict[str, "Attribute"]] = None
    description: Optional[str] = None

    @property
    def is_block(self) -> bool:
        return self.type == AttrType.LIST and isinstance(self.elem, dict)

    @property
    def computed_only(self) -> bool:
        return self.computed and not self.optional and not self.required

    def zero_value(self) -> Any:
        return ZeroValues[self.type]()

    def normalize(self, value: Any) -> Any:
        """
        Bring a value into the canonical form used in the attribute store.
        Absent values become the zero value, sets become sorted lists, blocks are normalized recursively.
        """
        if value is None:
            return self.zero_value()
        if self.type == AttrType.SET:
            return sorted(set(value))
        if self.is_block:
            assert isinstance(self.elem, dict)
            return [normalize_block(self.elem, block) for block in value if block is not None]
        if self.type in (AttrType.LIST, AttrType.MAP):
            return list(value) if self.type == AttrType.LIST else dict(value)
        return value


Schema = Dict[str, Attribute]

ZeroValues: Dict[AttrType, Callable[[], Any]] = {
    AttrType.STRING: str,
    AttrType.BOOL: bool,
    AttrType.INT: int,
    AttrType.FLOAT: float,
    AttrType.LIST: list,
    AttrType.SET: list,
    AttrType.MAP: dict,
}

ScalarTypes: Dict[AttrType, Any] = {
    AttrType.STRING: str,
    AttrType.BOOL: bool,
    AttrType.INT: int,
    AttrType.FLOAT: (int, float),
}


def normalize_block(schema: Schema, block: Json) -> Json:
    return {name: attr.normalize(block.get(name)) for name, attr in schema.items()}


def is_zero(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, list, tuple, set, frozenset, dict)):
        return len(value) == 0
    if isinstance(value, (int, float)):
        return value == 0
    return False


# ----------------------------- validators -----------------------------


def string_len_between(min_len: int, max_len: int) -> Validator:
    def validate(value: Any, path: str) -> List[str]:
        if isinstance(value, str) and not (min_len <= len(value) <= max_len):
            return [f"expected length of {path} to be in the range ({min_len} - {max_len}), got {value}"]
        return []

    return validate


def string_match(pattern: str, message: str) -> Validator:
    regex = re.compile(pattern)

    def validate(value: Any, path: str) -> List[str]:
        if isinstance(value, str) and not regex.search(value):
            return [f"invalid value for {path} ({message})"]
        return []

    return validate


def is_url_with_https() -> Validator:
    def validate(value: Any, path: str) -> List[str]:
        if not isinstance(value, str):
            return []
        if value == "":
            return [f"expected {path} to have a url with schema of: \"https\", got {value}"]
        try:
            parsed = urlparse(value)
        except ValueError as e:
            return [f"expected {path} to be a valid url, got {value}: {e}"]
        if not parsed.netloc:
            return [f"expected {path} to have a host, got {value}"]
        if parsed.scheme != "https":
            return [f"expected {path} to have a url with schema of: \"https\", got {value}"]
        return []

    return validate


def is_cidr() -> Validator:
    def validate(value: Any, path: str) -> List[str]:
        if not isinstance(value, str):
            return []
        try:
            if "/" not in value:
                raise ValueError("missing prefix length")
            ipaddress.ip_network(value, strict=False)
        except ValueError:
            return [f"expected {path} to contain a valid CIDR, got: {value}"]
        return []

    return validate


# ----------------------------- validation -----------------------------


def validate_config(schema: Schema, config: Optional[Json]) -> Diagnostics:
    """
    Check a user supplied configuration against the schema.
    All problems are reported, validation does not stop at the first error.
    """
    diagnostics = Diagnostics()
    for path, message in _validate_block(schema, config or {}, ""):
        diagnostics.append_error(message, attribute=path)
    return diagnostics


def _validate_block(schema: Schema, block: Json, prefix: str) -> List[Any]:
    problems: List[Any] = []
    seen_groups: Set[str] = set()

    def present(name: str) -> bool:
        return not is_zero(block.get(name))

    for name in block:
        if name not in schema:
            problems.append((prefix + name, f'An argument named "{name}" is not expected here.'))

    for name, attr in schema.items():
        path = prefix + name
        value = block.get(name)
        if attr.computed_only and value is not None:
            problems.append((path, f'Value for unconfigurable attribute "{name}" can not be set.'))
            continue
        if attr.required and not present(name):
            problems.append((path, f'The argument "{name}" is required, but no definition was found.'))
            continue
        if attr.exactly_one_of:
            group = ",".join(sorted(attr.exactly_one_of))
            if group not in seen_groups:
                seen_groups.add(group)
                defined = [n for n in attr.exactly_one_of if present(n)]
                if len(defined) != 1:
                    specified = ",".join(defined) if defined else "none"
                    problems.append(
                        (path, f'"{name}": only one of `{group}` can be specified, but `{specified}` were specified.')
                    )
        if value is not None:
            problems.extend(_validate_value(attr, value, path))
    return problems


def _validate_value(attr: Attribute, value: Any, path: str) -> List[Any]:
    problems: List[Any] = []
    if attr.type in ScalarTypes:
        if not _has_scalar_type(attr.type, value):
            return [(path, f"{path}: expected type {attr.type.value}, got {type(value).__name__}")]
        for validator in attr.validators:
            problems.extend((path, msg) for msg in validator(value, path))
    elif attr.type == AttrType.MAP:
        if not isinstance(value, dict):
            return [(path, f"{path}: expected type map, got {type(value).__name__}")]
        for k, v in value.items():
            if not isinstance(v, str):
                problems.append((f"{path}.{k}", f"{path}.{k}: expected type string, got {type(v).__name__}"))
    else:
        if not isinstance(value, (list, tuple, set, frozenset)):
            return [(path, f"{path}: expected type {attr.type.value}, got {type(value).__name__}")]
        if attr.max_items is not None and len(value) > attr.max_items:
            message = f"{path}: attribute supports {attr.max_items} item maximum, config has {len(value)} declared"
            problems.append((path, message))
        for idx, elem in enumerate(value):
            elem_path = f"{path}.{idx}"
            if isinstance(attr.elem, dict):
                if not isinstance(elem, dict):
                    problems.append((elem_path, f"{elem_path}: expected a block, got {type(elem).__name__}"))
                else:
                    problems.extend(_validate_block(attr.elem, elem, elem_path + "."))
            elif isinstance(attr.elem, AttrType):
                if not _has_scalar_type(attr.elem, elem):
                    message = f"{elem_path}: expected type {attr.elem.value}, got {type(elem).__name__}"
                    problems.append((elem_path, message))
                    continue
                for validator in attr.validators:
                    problems.extend((elem_path, msg) for msg in validator(elem, elem_path))
    return problems


def _has_scalar_type(kind: AttrType, value: Any) -> bool:
    if kind in (AttrType.INT, AttrType.FLOAT) and isinstance(value, bool):
        return False
    expected = ScalarTypes.get(kind)
    return expected is None or isinstance(value, expected)

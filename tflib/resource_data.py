import logging
from copy import deepcopy
from typing import Any, Dict, List, Optional, Tuple

from tflib.schema import Attribute, Schema, is_zero
from tflib.types import Json

log = logging.getLogger("tf." + __name__)


class ResourceData:
    """
    Attribute store handed to resource and data source callbacks.

    The store is built from the user configuration and the prior state:
    configured values win, computed attributes fall back to the prior state.
    All values are kept in normalized form (see Attribute.normalize), so absent
    values read as the zero value of their type.

    Nested values are addressed with dotted paths: `oidc_config.0.client_secret`.
    """

    def __init__(
        self,
        schema: Schema,
        config: Optional[Json] = None,
        state: Optional[Json] = None,
        *,
        id: Optional[str] = None,  # noqa: A002
        is_new_resource: bool = False,
    ) -> None:
        self.schema = schema
        prior = state or {}
        self._id: str = id if id is not None else prior.get("id", "")
        self._is_new_resource = is_new_resource
        self._prior = {name: attr.normalize(prior.get(name)) for name, attr in schema.items()}
        if config is None:
            self._attributes = deepcopy(self._prior)
        else:
            self._attributes = _merge_config(schema, config, self._prior)

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: str) -> None:
        """Setting an empty id marks the resource as gone."""
        self._id = value

    def is_new_resource(self) -> bool:
        return self._is_new_resource

    def mark_new_resource(self) -> None:
        self._is_new_resource = True

    def get(self, path: str) -> Any:
        return self._lookup(self._attributes, path)

    def get_ok(self, path: str) -> Tuple[Any, bool]:
        value = self.get(path)
        return value, not is_zero(value)

    def get_change(self, path: str) -> Tuple[Any, Any]:
        return self._lookup(self._prior, path), self.get(path)

    def has_change(self, path: str) -> bool:
        old, new = self.get_change(path)
        return bool(old != new)

    def set(self, name: str, value: Any) -> None:
        attr = self.schema.get(name)
        if attr is None:
            raise KeyError(f"Invalid address to set: {name}")
        self._attributes[name] = attr.normalize(value)

    def state(self) -> Optional[Json]:
        """
        The new state after the callback ran.
        None if the id has been cleared, which removes the resource from state.
        """
        if not self._id:
            return None
        return {"id": self._id, **deepcopy(self._attributes)}

    def _lookup(self, values: Dict[str, Any], path: str) -> Any:
        parts = path.split(".")
        current: Any = values
        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                return self._zero_at(parts)
        return current

    def _zero_at(self, parts: List[str]) -> Any:
        schema: Optional[Schema] = self.schema
        attr: Optional[Attribute] = None
        for part in parts:
            if part.isdigit():
                continue
            if schema is None or part not in schema:
                return None
            attr = schema[part]
            schema = attr.elem if isinstance(attr.elem, dict) else None
        if attr is None:
            return None
        # an index into a block resolves to the whole element
        if parts[-1].isdigit() and isinstance(attr.elem, dict):
            return {}
        if parts[-1].isdigit():
            return None
        return attr.zero_value()

    def __repr__(self) -> str:
        return f"ResourceData(id={self._id!r})"


def _merge_config(schema: Schema, config: Json, prior: Json) -> Json:
    """
    Normalized configuration: computed attributes left out of the config take the prior value.
    Applies to nested blocks as well, which are matched with the prior blocks by position.
    """
    result: Json = {}
    for name, attr in schema.items():
        value = config.get(name)
        if value is None and attr.computed:
            result[name] = deepcopy(prior[name]) if name in prior else attr.zero_value()
        elif value is not None and attr.is_block and isinstance(attr.elem, dict):
            prior_blocks = prior.get(name) or []
            blocks = [block for block in value if block is not None]
            result[name] = [
                _merge_config(attr.elem, block, prior_blocks[idx] if idx < len(prior_blocks) else {})
                for idx, block in enumerate(blocks)
            ]
        else:
            result[name] = attr.normalize(value)
    return result

from typing import Dict, List, Optional, Iterable, Callable

from attrs import define, field

from tflib.types import Json

AwsTagKeyPrefix = "aws:"


@define
class IgnoreTagsConfig:
    keys: List[str] = field(factory=list, metadata={"description": "Tag keys that are never managed."})
    key_prefixes: List[str] = field(
        factory=list,
        metadata={"description": "Tags with a key that starts with one of these prefixes are never managed."},
    )

    def is_ignored(self, key: str) -> bool:
        return key in self.keys or any(key.startswith(prefix) for prefix in self.key_prefixes)


class KeyValueTags(Dict[str, str]):
    """
    A tag set: mapping of tag key to tag value.
    All operations return new tag sets and leave the receiver untouched.
    """

    @staticmethod
    def new(tags: Optional[Dict[str, Optional[str]]] = None) -> "KeyValueTags":
        return KeyValueTags({k: v if v is not None else "" for k, v in (tags or {}).items()})

    @staticmethod
    def from_api(tag_set: Optional[Iterable[Json]]) -> "KeyValueTags":
        """Tags in the shape of the AWS API: [{"Key": ..., "Value": ...}]"""
        return KeyValueTags({t["Key"]: t.get("Value") or "" for t in tag_set or [] if "Key" in t})

    def to_api(self) -> List[Json]:
        return [{"Key": k, "Value": v} for k, v in sorted(self.items())]

    def filter(self, fn: Callable[[str, str], bool]) -> "KeyValueTags":
        return KeyValueTags({k: v for k, v in self.items() if fn(k, v)})

    def ignore(self, other: Dict[str, str]) -> "KeyValueTags":
        """Drop all keys that are defined in other."""
        return self.filter(lambda k, _: k not in other)

    def ignore_aws(self) -> "KeyValueTags":
        return self.filter(lambda k, _: not k.startswith(AwsTagKeyPrefix))

    def ignore_config(self, config: Optional[IgnoreTagsConfig]) -> "KeyValueTags":
        if config is None:
            return KeyValueTags(self)
        return self.filter(lambda k, _: not config.is_ignored(k))

    def merge(self, other: Dict[str, str]) -> "KeyValueTags":
        """Values of other win on conflict."""
        return KeyValueTags({**self, **other})

    def map(self) -> Dict[str, str]:
        return dict(self)

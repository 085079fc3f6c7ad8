from typing import List

from tflib.diagnostics import Diagnostics
from tflib.schema import (
    AttrType,
    Attribute,
    Schema,
    is_cidr,
    is_url_with_https,
    is_zero,
    normalize_block,
    string_len_between,
    string_match,
    validate_config,
)

schema: Schema = {
    "name": Attribute(
        AttrType.STRING,
        required=True,
        validators=[string_len_between(1, 5), string_match(r"^[a-z]+$", "only lower case letters")],
    ),
    "id": Attribute(AttrType.STRING, computed=True),
    "count": Attribute(AttrType.INT, optional=True),
    "labels": Attribute(AttrType.MAP, optional=True, elem=AttrType.STRING),
    "first": Attribute(
        AttrType.LIST,
        optional=True,
        max_items=1,
        exactly_one_of=["first", "second"],
        elem={"url": Attribute(AttrType.STRING, required=True, validators=[is_url_with_https()])},
    ),
    "second": Attribute(
        AttrType.LIST,
        optional=True,
        max_items=1,
        exactly_one_of=["first", "second"],
        elem={
            "cidrs": Attribute(AttrType.SET, required=True, max_items=2, elem=AttrType.STRING, validators=[is_cidr()])
        },
    ),
}


def messages(diagnostics: Diagnostics) -> List[str]:
    return [d.summary for d in diagnostics]


def test_valid_config() -> None:
    config = {"name": "abc", "count": 3, "first": [{"url": "https://example.com/a"}], "labels": {"a": "b"}}
    assert validate_config(schema, config) == []


def test_required_and_unknown() -> None:
    result = validate_config(schema, {"second": [{"cidrs": ["10.0.0.0/8"]}], "bla": 1})
    assert result.has_error()
    assert 'An argument named "bla" is not expected here.' in messages(result)
    assert 'The argument "name" is required, but no definition was found.' in messages(result)
    assert {d.attribute for d in result} == {"bla", "name"}


def test_computed_only_can_not_be_set() -> None:
    result = validate_config(schema, {"name": "abc", "id": "x", "first": [{"url": "https://a.b"}]})
    assert messages(result) == ['Value for unconfigurable attribute "id" can not be set.']


def test_exactly_one_of() -> None:
    none_defined = validate_config(schema, {"name": "abc"})
    assert len(none_defined) == 1
    assert "only one of `first,second` can be specified, but `none` were specified." in none_defined[0].summary
    both = {"name": "abc", "first": [{"url": "https://a.b"}], "second": [{"cidrs": ["10.0.0.0/8"]}]}
    assert "but `first,second` were specified" in validate_config(schema, both)[0].summary


def test_validators() -> None:
    result = validate_config(schema, {"name": "ABCDEFG", "first": [{"url": "http://example.com"}]})
    assert set(messages(result)) == {
        "expected length of name to be in the range (1 - 5), got ABCDEFG",
        "invalid value for name (only lower case letters)",
        'expected first.0.url to have a url with schema of: "https", got http://example.com',
    }


def test_nested_sets_and_max_items() -> None:
    config = {"name": "abc", "second": [{"cidrs": ["10.0.0.0/8", "foo", "1.2.3.4"]}]}
    assert set(messages(validate_config(schema, config))) == {
        "second.0.cidrs: attribute supports 2 item maximum, config has 3 declared",
        "expected second.0.cidrs.1 to contain a valid CIDR, got: foo",
        "expected second.0.cidrs.2 to contain a valid CIDR, got: 1.2.3.4",
    }
    two_blocks = {"name": "abc", "first": [{"url": "https://a.b"}, {"url": "https://c.d"}]}
    assert messages(validate_config(schema, two_blocks)) == [
        "first: attribute supports 1 item maximum, config has 2 declared"
    ]


def test_types() -> None:
    result = validate_config(schema, {"name": 12, "count": True, "labels": {"a": 1}, "first": [{"url": "https://a.b"}]})
    assert set(messages(result)) == {
        "name: expected type string, got int",
        "count: expected type int, got bool",
        "labels.a: expected type string, got int",
    }


def test_normalize() -> None:
    block = normalize_block(schema, {"name": "abc", "second": [{"cidrs": ["b", "a", "b"]}]})
    assert block == {
        "name": "abc",
        "id": "",
        "count": 0,
        "labels": {},
        "first": [],
        "second": [{"cidrs": ["a", "b"]}],
    }


def test_is_zero() -> None:
    for zero in [None, "", 0, 0.0, False, [], {}, set()]:
        assert is_zero(zero)
    for value in ["a", 1, True, [0], {"a": None}]:
        assert not is_zero(value)

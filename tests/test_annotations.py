import pytest

from multiarch.annotations import decode, encode
from multiarch.errors import DecodeError, InitializerError


def test_decode_two_level_mapping():
    raw = '{"arm":{"worker":"myrepo/worker:arm"},"aarch64":{"worker":"myrepo/worker:aarch64"}}'
    assert decode(raw) == {
        "arm": {"worker": "myrepo/worker:arm"},
        "aarch64": {"worker": "myrepo/worker:aarch64"},
    }


def test_decode_empty_object():
    assert decode("{}") == {}


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "not json",
        '{"arm": ',
        '["arm"]',
        '{"arm": "worker:arm"}',
        '{"arm": {"worker": 1}}',
        '{"arm": {"worker": null}}',
        '{"arm": {"worker": ["a"]}}',
    ],
)
def test_decode_rejects_malformed(raw):
    with pytest.raises(DecodeError) as exc:
        decode(raw)
    assert exc.value.raw == raw
    assert isinstance(exc.value, InitializerError)


def test_decode_is_case_sensitive():
    table = decode('{"ARM": {"A": "x"}}')
    assert "arm" not in table
    assert table["ARM"]["A"] == "x"


def test_encode_then_decode_is_stable():
    table = {"arm": {"b": "2", "a": "1"}, "aarch64": {"a": "3"}}
    raw = encode(table)
    assert decode(raw) == table
    assert encode(decode(raw)) == raw

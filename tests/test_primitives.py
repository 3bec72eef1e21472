"""
Tests for the primitive codec set.
"""

import pytest

from marshaller_rt import Heap, MarshalError, NULL
from marshaller_rt.primitives import CODECS, PRIMITIVE_KINDS, is_primitive, wrap_integer


@pytest.fixture
def heap():
    return Heap()


def round_trip(heap, kind, value):
    codec = CODECS[kind]
    address = codec.unmarshal(heap, kind, value)
    assert address != NULL
    return codec.marshal(heap, kind, address)


class TestKinds:
    """Tests for the fixed kind set"""

    def test_every_kind_has_a_codec(self):
        assert set(CODECS) == set(PRIMITIVE_KINDS)

    def test_is_primitive_is_exact(self):
        assert is_primitive("long long")
        assert is_primitive("string")
        assert not is_primitive("longlong")
        assert not is_primitive("Point")
        assert not is_primitive("unsigned int")

    def test_wrap_integer(self):
        assert wrap_integer(127, 8) == 127
        assert wrap_integer(128, 8) == -128
        assert wrap_integer(-129, 8) == 127
        assert wrap_integer(2 ** 63, 64) == -(2 ** 63)


class TestIntegers:
    """Tests for integer kinds"""

    def test_round_trip(self, heap):
        assert round_trip(heap, "int", -42) == -42
        assert round_trip(heap, "long long", 2 ** 62) == 2 ** 62

    def test_narrowing(self, heap):
        assert round_trip(heap, "char", 300) == 44
        assert round_trip(heap, "short", 70000) == 4464
        assert round_trip(heap, "int", 2 ** 31) == -(2 ** 31)

    def test_real_is_truncated(self, heap):
        assert round_trip(heap, "int", 3.9) == 3
        assert round_trip(heap, "int", -3.9) == -3

    def test_allocates_kind_width(self, heap):
        address = CODECS["short"].unmarshal(heap, "short", 1)
        assert heap.size_of(address) == 2

    @pytest.mark.parametrize("value", ["1", True, None, [1], {"a": 1}, float("inf"), float("nan")])
    def test_rejected_variants(self, heap, value):
        assert CODECS["int"].unmarshal(heap, "int", value) == NULL
        assert heap.live_count == 0

    def test_marshal_is_integer(self, heap):
        value = round_trip(heap, "long", 7)
        assert type(value) is int


class TestReals:
    """Tests for float and double"""

    def test_round_trip(self, heap):
        assert round_trip(heap, "double", 2.5) == 2.5
        assert round_trip(heap, "float", 0.5) == 0.5

    def test_integer_accepted(self, heap):
        value = round_trip(heap, "double", 3)
        assert value == 3.0
        assert type(value) is float

    def test_float_precision(self, heap):
        assert round_trip(heap, "float", 0.1) == pytest.approx(0.1, rel=1e-6)

    @pytest.mark.parametrize("value", ["1.0", False, None, []])
    def test_rejected_variants(self, heap, value):
        assert CODECS["double"].unmarshal(heap, "double", value) == NULL

    def test_integer_too_large_for_double(self, heap):
        assert CODECS["double"].unmarshal(heap, "double", 10 ** 400) == NULL


class TestBool:
    """Tests for bool"""

    def test_round_trip(self, heap):
        assert round_trip(heap, "bool", True) is True
        assert round_trip(heap, "bool", False) is False

    @pytest.mark.parametrize("value", [0, 1, "true", None])
    def test_only_json_booleans(self, heap, value):
        assert CODECS["bool"].unmarshal(heap, "bool", value) == NULL


class TestStrings:
    """Tests for NUL-terminated UTF-8 strings"""

    def test_round_trip(self, heap):
        assert round_trip(heap, "string", "hello") == "hello"
        assert round_trip(heap, "string", "") == ""
        assert round_trip(heap, "string", "snow ☃ man") == "snow ☃ man"

    def test_stored_as_utf8(self, heap):
        address = CODECS["string"].unmarshal(heap, "string", "é")
        assert heap.load_string(address) == b"\xc3\xa9"

    def test_embedded_nul_rejected(self, heap):
        assert CODECS["string"].unmarshal(heap, "string", "a\0b") == NULL

    def test_lone_surrogate_rejected(self, heap):
        assert CODECS["string"].unmarshal(heap, "string", "\ud800") == NULL

    @pytest.mark.parametrize("value", [1, True, None, ["a"]])
    def test_rejected_variants(self, heap, value):
        assert CODECS["string"].unmarshal(heap, "string", value) == NULL

    def test_invalid_utf8_fails_marshal(self, heap):
        address = heap.new_string(b"\xff\xfe")
        with pytest.raises(MarshalError, match="UTF-8"):
            CODECS["string"].marshal(heap, "string", address)

"""
Primitive Codec Set

Built-in marshal/unmarshal for the fixed primitive kinds:
- char, short, int, long, long long -> JSON integer
- float, double                     -> JSON real
- bool                              -> JSON boolean
- string (NUL-terminated UTF-8)     -> JSON string

Unmarshal allocates exactly one value on the heap and returns its address, or
NULL when the JSON variant does not fit the kind. Numeric kinds accept both
JSON integers and reals: reals are truncated toward zero for integer kinds and
integers wrap to the target width, as a C assignment would.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict

from marshaller_rt.errors import MarshalError
from marshaller_rt.heap import Heap, NULL


INTEGER_KINDS = ("char", "short", "int", "long", "long long")
REAL_KINDS = ("float", "double")
PRIMITIVE_KINDS = INTEGER_KINDS + REAL_KINDS + ("bool", "string")

INTEGER_BITS = {
    "char": 8,
    "short": 16,
    "int": 32,
    "long": 64,
    "long long": 64,
}


def is_primitive(type_name: str) -> bool:
    return type_name in PRIMITIVE_KINDS


def is_json_integer(value) -> bool:
    # bool is an int subclass but never a JSON number
    return isinstance(value, int) and not isinstance(value, bool)


def wrap_integer(number: int, bits: int) -> int:
    """Two's complement narrowing of an arbitrary int to a signed width."""
    mask = (1 << bits) - 1
    number &= mask
    if number >> (bits - 1):
        number -= 1 << bits
    return number


# ============================================================================
# Marshal
# ============================================================================

def marshal_integer(heap: Heap, kind: str, address: int) -> int:
    return int(heap.load(kind, address))


def marshal_real(heap: Heap, kind: str, address: int) -> float:
    return float(heap.load(kind, address))


def marshal_bool(heap: Heap, kind: str, address: int) -> bool:
    return bool(heap.load(kind, address))


def marshal_string(heap: Heap, kind: str, address: int) -> str:
    data = heap.load_string(address)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MarshalError(f"string at {address:#x} is not valid UTF-8: {e}")


# ============================================================================
# Unmarshal
# ============================================================================

def unmarshal_integer(heap: Heap, kind: str, value) -> int:
    if is_json_integer(value):
        number = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return NULL
        number = int(value)
    else:
        return NULL
    return heap.new(kind, wrap_integer(number, INTEGER_BITS[kind]))


def unmarshal_real(heap: Heap, kind: str, value) -> int:
    if not (is_json_integer(value) or isinstance(value, float)):
        return NULL
    try:
        number = float(value)
    except OverflowError:
        return NULL
    return heap.new(kind, number)


def unmarshal_bool(heap: Heap, kind: str, value) -> int:
    if not isinstance(value, bool):
        return NULL
    return heap.new(kind, value)


def unmarshal_string(heap: Heap, kind: str, value) -> int:
    if not isinstance(value, str) or "\0" in value:
        return NULL
    try:
        data = value.encode("utf-8")
    except UnicodeEncodeError:
        # lone surrogates from \udXXX escapes
        return NULL
    return heap.new_string(data)


@dataclass(frozen=True)
class PrimitiveCodec:
    """Marshal/unmarshal pair for one primitive kind"""
    kind: str
    marshal: Callable[[Heap, str, int], Any]
    unmarshal: Callable[[Heap, str, Any], int]


CODECS: Dict[str, PrimitiveCodec] = {}

for _kind in INTEGER_KINDS:
    CODECS[_kind] = PrimitiveCodec(_kind, marshal_integer, unmarshal_integer)
for _kind in REAL_KINDS:
    CODECS[_kind] = PrimitiveCodec(_kind, marshal_real, unmarshal_real)
CODECS["bool"] = PrimitiveCodec("bool", marshal_bool, unmarshal_bool)
CODECS["string"] = PrimitiveCodec("string", marshal_string, unmarshal_string)

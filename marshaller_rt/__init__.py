"""
Marshaller Runtime Package

Runtime support for generated JSON marshallers.

Package Structure:
    marshaller_rt/
    ├── __init__.py      # Package exports and module-level API (this file)
    ├── errors.py        # MarshallerPanic, HeapError, MarshalError, NestingError, panic()
    ├── heap.py          # Heap: allocation tracking and typed memory access
    ├── registry.py      # Registry of record marshallers
    ├── primitives.py    # Primitive codec set
    ├── dispatch.py      # Dispatcher, top-level marshal/unmarshal, active dispatcher
    ├── loader.py        # Loading generated modules into a dispatcher
    └── diagnostics.py   # Trace output and heap/registry dumps

The module-level functions below operate on the active dispatcher.
"""

from marshaller_rt.errors import (
    MarshallerError, MarshallerPanic, HeapError, MarshalError, NestingError, panic,
)
from marshaller_rt.heap import Heap, NULL, POINTER_SIZE
from marshaller_rt.registry import Registry, RegistryEntry
from marshaller_rt.primitives import PRIMITIVE_KINDS, is_primitive
from marshaller_rt.dispatch import Dispatcher, current, default, using
from marshaller_rt.loader import load_generated, load_file

# Bumped whenever generated code and the runtime stop agreeing on helper
# names or primitive widths
ABI_VERSION = 1


def marshal(type_name: str, address: int):
    return current().marshal(type_name, address)


def marshal_array(type_name: str, address: int):
    return current().marshal_array(type_name, address)


def unmarshal(type_name: str, text) -> int:
    return current().unmarshal(type_name, text)


def unmarshal_array(type_name: str, text) -> int:
    return current().unmarshal_array(type_name, text)


def free(type_name: str, address: int):
    current().free(type_name, address)


def free_array(type_name: str, address: int):
    current().free_array(type_name, address)


__all__ = [
    'ABI_VERSION',
    'MarshallerError',
    'MarshallerPanic',
    'HeapError',
    'MarshalError',
    'NestingError',
    'panic',
    'Heap',
    'NULL',
    'POINTER_SIZE',
    'Registry',
    'RegistryEntry',
    'PRIMITIVE_KINDS',
    'is_primitive',
    'Dispatcher',
    'current',
    'default',
    'using',
    'load_generated',
    'load_file',
    'marshal',
    'marshal_array',
    'unmarshal',
    'unmarshal_array',
    'free',
    'free_array',
]

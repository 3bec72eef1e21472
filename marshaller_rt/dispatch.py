"""
Marshaller Dispatcher

The single recursion point shared by generated code and the runtime:
- marshal_value / marshal_array_value: heap -> JSON tree
- unmarshal_value / unmarshal_array_value: JSON tree -> new heap value
- free_value / free_array: release owned data

A type name is either a primitive kind (handled by primitives.CODECS) or a
record name looked up in the registry. An unknown record name is fatal.

Top-level entry points (marshal, marshal_array, unmarshal, unmarshal_array)
add JSON text parsing/printing and turn recoverable failures into None (for
marshal) or NULL (for unmarshal).

Generated modules bind to the *active* dispatcher when they are loaded, see
current() and using(). The active dispatcher is tracked per thread (per
context), so loading into a private dispatcher does not affect dispatch
elsewhere.

Unmarshal nesting is capped at max_depth records and arrays per thread; a
deeper value fails with NestingError, after the generated code has released
every partial record on the way out.
"""

import json
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional, Sequence

from marshaller_rt.diagnostics import (
    TRACE_DISPATCH, TRACE_FAILURES, TRACE_REGISTRATION,
    default_trace_level, trace,
)
from marshaller_rt.errors import MarshalError, MarshallerPanic, NestingError
from marshaller_rt.heap import Heap, NULL
from marshaller_rt.primitives import CODECS
from marshaller_rt.registry import Registry, RegistryEntry


# Records and arrays open on the stack at once during unmarshal. Each level
# costs a few interpreter frames, so this stays well under the recursion limit.
MAX_NESTING_DEPTH = 200


def stringify(value) -> str:
    """Compact JSON text; non-finite reals are a marshal failure."""
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False,
                          allow_nan=False)
    except ValueError as e:
        raise MarshalError(str(e))


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def parse(text) -> Any:
    """Parse JSON text. Raises ValueError on malformed input."""
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except RecursionError:
        raise ValueError("JSON nesting too deep")


class Dispatcher:
    """Runtime engine: registry, heap and the dispatch triad."""

    def __init__(self, registry: Optional[Registry] = None,
                 heap: Optional[Heap] = None, trace_level: Optional[int] = None,
                 max_depth: int = MAX_NESTING_DEPTH):
        self.registry = registry if registry is not None else Registry()
        self.heap = heap if heap is not None else Heap()
        self.trace_level = default_trace_level() if trace_level is None else trace_level
        self.max_depth = max_depth
        self._nesting = threading.local()

    def trace(self, level: int, message: str):
        trace(self.trace_level, level, message)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_marshaller(self, names: Sequence[str], size: int, marshal,
                            unmarshal, free):
        """Entry point called by generated self-registration routines."""
        self.trace(TRACE_REGISTRATION, f"register {', '.join(names)} (size {size})")
        self.registry.register(names, size, marshal, unmarshal, free)

    def _lookup(self, type_name: str) -> RegistryEntry:
        entry = self.registry.lookup(type_name)
        if entry is None:
            raise MarshallerPanic(type_name, "unknown type")
        return entry

    def _descend(self, type_name: str):
        depth = getattr(self._nesting, "depth", 0)
        if depth >= self.max_depth:
            raise NestingError(type_name, self.max_depth)
        self._nesting.depth = depth + 1

    def _ascend(self):
        self._nesting.depth -= 1

    def invalid_input(self, type_name: str, field: Optional[str] = None) -> int:
        """Report an unmarshal failure and return the failure marker."""
        if field is None:
            self.trace(TRACE_FAILURES, f"unmarshal {type_name}: invalid input")
        else:
            self.trace(TRACE_FAILURES, f"unmarshal {type_name}: invalid input for field '{field}'")
        return NULL

    # ------------------------------------------------------------------
    # Marshal
    # ------------------------------------------------------------------

    def marshal_value(self, type_name: str, address: int) -> Any:
        if not address:
            return None
        self.trace(TRACE_DISPATCH, f"marshal {type_name} at {address:#x}")
        codec = CODECS.get(type_name)
        if codec is not None:
            return codec.marshal(self.heap, type_name, address)
        return self._lookup(type_name).marshal(address)

    def marshal_array_value(self, type_name: str, address: int) -> Any:
        if not address:
            return None
        return [self.marshal_value(type_name, element)
                for element in self.heap.array_items(address)]

    # ------------------------------------------------------------------
    # Unmarshal
    # ------------------------------------------------------------------

    def unmarshal_value(self, type_name: str, value: Any) -> int:
        if value is None:
            return NULL
        self.trace(TRACE_DISPATCH, f"unmarshal {type_name}")
        codec = CODECS.get(type_name)
        if codec is not None:
            address = codec.unmarshal(self.heap, type_name, value)
            if not address:
                return self.invalid_input(type_name)
            return address
        entry = self._lookup(type_name)
        self._descend(type_name)
        try:
            return entry.unmarshal(value)
        finally:
            self._ascend()

    def unmarshal_array_value(self, type_name: str, value: Any) -> int:
        if not isinstance(value, list):
            if value is None:
                return NULL
            return self.invalid_input(f"{type_name}[]")
        # a failing element is stored inline as NULL
        elements = []
        self._descend(f"{type_name}[]")
        try:
            for item in value:
                elements.append(self.unmarshal_value(type_name, item))
        except BaseException:
            for element in elements:
                self.free_value(type_name, element, True)
            raise
        finally:
            self._ascend()
        return self.heap.new_array(elements)

    # ------------------------------------------------------------------
    # Free
    # ------------------------------------------------------------------

    def free_value(self, type_name: str, address: int, owns_allocation: bool):
        if not address:
            return
        if type_name in CODECS:
            if owns_allocation:
                self.heap.free(address)
            return
        self._lookup(type_name).free(address, owns_allocation)

    def free_array(self, type_name: str, address: int):
        if not address:
            return
        if type_name not in CODECS:
            self._lookup(type_name)
        # every slot, so elements after an inline NULL are not leaked
        for element in self.heap.array_slots(address):
            if element:
                self.free_value(type_name, element, True)
        self.heap.free(address)

    # ------------------------------------------------------------------
    # Top-level entry points
    # ------------------------------------------------------------------

    def marshal(self, type_name: str, address: int) -> Optional[str]:
        """Marshal to JSON text, None on failure."""
        try:
            return stringify(self.marshal_value(type_name, address))
        except MarshalError as e:
            self.trace(TRACE_FAILURES, f"marshal {type_name}: {e}")
            return None
        except RecursionError:
            self.trace(TRACE_FAILURES, f"marshal {type_name}: reference cycle or nesting too deep")
            return None

    def marshal_array(self, type_name: str, address: int) -> Optional[str]:
        """Marshal a null-terminated array to JSON text, None on failure."""
        try:
            return stringify(self.marshal_array_value(type_name, address))
        except MarshalError as e:
            self.trace(TRACE_FAILURES, f"marshal {type_name}[]: {e}")
            return None
        except RecursionError:
            self.trace(TRACE_FAILURES, f"marshal {type_name}[]: reference cycle or nesting too deep")
            return None

    def unmarshal(self, type_name: str, text) -> int:
        """Unmarshal JSON text into a new value, NULL on failure or JSON null."""
        try:
            value = parse(text)
        except ValueError as e:
            self.trace(TRACE_FAILURES, f"unmarshal {type_name}: {e}")
            return NULL
        if isinstance(value, list):
            return self.invalid_input(type_name)
        try:
            return self.unmarshal_value(type_name, value)
        except (NestingError, RecursionError) as e:
            self.trace(TRACE_FAILURES, f"unmarshal {type_name}: {e}")
            return NULL

    def unmarshal_array(self, type_name: str, text) -> int:
        """Unmarshal a JSON array into a new null-terminated array."""
        try:
            value = parse(text)
        except ValueError as e:
            self.trace(TRACE_FAILURES, f"unmarshal {type_name}[]: {e}")
            return NULL
        try:
            return self.unmarshal_array_value(type_name, value)
        except (NestingError, RecursionError) as e:
            self.trace(TRACE_FAILURES, f"unmarshal {type_name}[]: {e}")
            return NULL

    def free(self, type_name: str, address: int):
        """Release a value and everything it owns."""
        self.free_value(type_name, address, True)


# ============================================================================
# Active dispatcher
# ============================================================================

_default_dispatcher = Dispatcher()

# Per context, so using() in one thread or task leaves the others alone
_active_dispatcher = ContextVar(
    "marshaller_active_dispatcher", default=_default_dispatcher)


def default() -> Dispatcher:
    return _default_dispatcher


def current() -> Dispatcher:
    """The dispatcher generated modules bind to when they are loaded."""
    return _active_dispatcher.get()


@contextmanager
def using(dispatcher: Dispatcher) -> Iterator[Dispatcher]:
    """Make dispatcher the active one in the calling context for the block."""
    token = _active_dispatcher.set(dispatcher)
    try:
        yield dispatcher
    finally:
        _active_dispatcher.reset(token)

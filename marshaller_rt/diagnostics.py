"""
Marshaller Diagnostics Module

Provides debugging output for the runtime:
- trace: Conditional trace output gated by a trace level
- dump_stats: Print heap allocation statistics
- dump_heap: Print every live block
- dump_registry: Print registered marshallers

Trace levels:
    0 = off (default)
    1 = failures (invalid input, marshal failures)
    2 = registration
    3 = every dispatch

The level comes from the runtime (Dispatcher(trace_level=...)) and defaults to
the MARSHALLER_TRACE environment variable.
"""

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marshaller_rt.heap import Heap
    from marshaller_rt.registry import Registry


TRACE_OFF = 0
TRACE_FAILURES = 1
TRACE_REGISTRATION = 2
TRACE_DISPATCH = 3


def default_trace_level() -> int:
    """Trace level from MARSHALLER_TRACE, 0 when unset or malformed."""
    value = os.environ.get("MARSHALLER_TRACE", "")
    try:
        return max(0, int(value))
    except ValueError:
        return TRACE_OFF


def trace(current_level: int, level: int, message: str):
    """Print message if the current trace level is high enough"""
    if current_level >= level:
        print(f"[MARSHAL:TRACE] {message}", file=sys.stderr)


def dump_stats(heap: 'Heap', stream=None):
    """Print current heap statistics"""
    stream = stream or sys.stderr
    print("[MARSHAL:STATS] === Heap Statistics ===", file=stream)
    print(f"[MARSHAL:STATS] total_allocations: {heap.total_allocations}, "
          f"total_bytes: {heap.total_bytes}", file=stream)
    print(f"[MARSHAL:STATS] total_frees: {heap.total_frees}", file=stream)
    print(f"[MARSHAL:STATS] live_blocks: {heap.live_count}, "
          f"live_bytes: {heap.live_bytes}", file=stream)


def dump_heap(heap: 'Heap', stream=None):
    """Print all live blocks"""
    stream = stream or sys.stderr
    print("[MARSHAL:HEAP] === Live Blocks ===", file=stream)
    for address in heap.live_addresses():
        print(f"[MARSHAL:HEAP] {address:#x} size={heap.size_of(address)}", file=stream)


def dump_registry(registry: 'Registry', stream=None):
    """Print registered marshallers in registration order"""
    stream = stream or sys.stderr
    print("[MARSHAL:REGISTRY] === Registered Types ===", file=stream)
    for entry in registry.entries():
        print(f"[MARSHAL:REGISTRY] {entry.name} size={entry.size}", file=stream)

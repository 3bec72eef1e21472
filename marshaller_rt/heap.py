"""
Marshaller Heap

Byte-addressable storage for records and the primitive values they point to.
Every allocation made by unmarshalling (and by host code that builds records
by hand) comes from a Heap, and every free releases a block back to it.

Heap Design:
- Blocks are zero-filled ctypes buffers; an address is the buffer's real
  address, so generated code can do plain pointer arithmetic on it
- Address 0 is reserved as NULL
- Every load/store is bounds checked against the live block it falls in;
  touching freed or foreign memory is a HeapError instead of a crash
- Freeing an address that is not a live block (double free) is a HeapError
- Primitive widths are fixed (LP64) so layouts do not depend on the host
"""

import bisect
import ctypes
import threading
from typing import Dict, Iterable, List, Optional

from marshaller_rt.errors import HeapError


NULL = 0
POINTER_SIZE = 8

# Primitive kind -> ctypes scalar used to load/store it
SCALAR_TYPES = {
    "char": ctypes.c_int8,
    "short": ctypes.c_int16,
    "int": ctypes.c_int32,
    "long": ctypes.c_int64,
    "long long": ctypes.c_int64,
    "float": ctypes.c_float,
    "double": ctypes.c_double,
    "bool": ctypes.c_bool,
}

_POINTER_CTYPE = ctypes.c_uint64


class Heap:
    """Tracks live blocks and provides typed access to their bytes."""

    def __init__(self):
        self._blocks: Dict[int, ctypes.Array] = {}
        self._bases: List[int] = []
        self._lock = threading.Lock()

        # Statistics (reported by diagnostics.dump_stats)
        self.total_allocations = 0
        self.total_frees = 0
        self.total_bytes = 0

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def alloc(self, size: int) -> int:
        """Allocate a zero-filled block and return its address."""
        if size < 0:
            raise HeapError("alloc", f"negative allocation size {size}")
        block = (ctypes.c_char * max(size, 1))()
        address = ctypes.addressof(block)
        with self._lock:
            self._blocks[address] = block
            bisect.insort(self._bases, address)
            self.total_allocations += 1
            self.total_bytes += len(block)
        return address

    def free(self, address: int):
        """Release a block. Freeing NULL is a no-op."""
        if not address:
            return
        with self._lock:
            if address not in self._blocks:
                raise HeapError(hex(address), "free of address that is not a live allocation")
            del self._blocks[address]
            self._bases.pop(bisect.bisect_left(self._bases, address))
            self.total_frees += 1

    def is_live(self, address: int) -> bool:
        return address in self._blocks

    def size_of(self, address: int) -> int:
        """Size of the live block starting at address."""
        block = self._blocks.get(address)
        if block is None:
            raise HeapError(hex(address), "not a live allocation")
        return len(block)

    @property
    def live_count(self) -> int:
        return len(self._blocks)

    @property
    def live_bytes(self) -> int:
        with self._lock:
            return sum(len(block) for block in self._blocks.values())

    def live_addresses(self) -> List[int]:
        with self._lock:
            return list(self._bases)

    def _remaining(self, address: int) -> int:
        """Bytes available from address to the end of its block."""
        if not address:
            raise HeapError("NULL", "dereference of null pointer")
        with self._lock:
            index = bisect.bisect_right(self._bases, address) - 1
            if index < 0:
                raise HeapError(hex(address), "address outside any live allocation")
            base = self._bases[index]
            end = base + len(self._blocks[base])
        if address >= end:
            raise HeapError(hex(address), "address outside any live allocation")
        return end - address

    def _check(self, address: int, width: int):
        if self._remaining(address) < width:
            raise HeapError(hex(address), f"access of {width} bytes crosses the end of the allocation")

    # ------------------------------------------------------------------
    # Typed access
    # ------------------------------------------------------------------

    def load(self, kind: str, address: int):
        ctype = SCALAR_TYPES[kind]
        self._check(address, ctypes.sizeof(ctype))
        return ctype.from_address(address).value

    def store(self, kind: str, address: int, value):
        # ctypes integers wrap silently, which is the narrowing we want
        ctype = SCALAR_TYPES[kind]
        self._check(address, ctypes.sizeof(ctype))
        ctype.from_address(address).value = value

    def load_pointer(self, address: int) -> int:
        self._check(address, POINTER_SIZE)
        return _POINTER_CTYPE.from_address(address).value

    def store_pointer(self, address: int, value: Optional[int]):
        self._check(address, POINTER_SIZE)
        _POINTER_CTYPE.from_address(address).value = value or NULL

    def copy(self, destination: int, source: int, size: int):
        """memcpy between two live regions."""
        if size <= 0:
            return
        self._check(destination, size)
        self._check(source, size)
        ctypes.memmove(destination, source, size)

    def new(self, kind: str, value) -> int:
        """Allocate a single primitive value."""
        address = self.alloc(ctypes.sizeof(SCALAR_TYPES[kind]))
        self.store(kind, address, value)
        return address

    # ------------------------------------------------------------------
    # Strings (NUL-terminated byte buffers)
    # ------------------------------------------------------------------

    def new_string(self, data: bytes) -> int:
        if b"\0" in data:
            raise ValueError("string data contains NUL")
        address = self.alloc(len(data) + 1)
        ctypes.memmove(address, data, len(data))
        return address

    def load_string(self, address: int) -> bytes:
        remaining = self._remaining(address)
        raw = ctypes.string_at(address, remaining)
        end = raw.find(b"\0")
        if end < 0:
            raise HeapError(hex(address), "unterminated string")
        return raw[:end]

    # ------------------------------------------------------------------
    # Null-terminated pointer arrays
    # ------------------------------------------------------------------

    def new_array(self, pointers: Iterable[int]) -> int:
        """Allocate len(pointers) + 1 slots; the last one is the NULL sentinel."""
        pointers = list(pointers)
        address = self.alloc(POINTER_SIZE * (len(pointers) + 1))
        for i, pointer in enumerate(pointers):
            self.store_pointer(address + i * POINTER_SIZE, pointer)
        return address

    def array_items(self, address: int) -> List[int]:
        """Element pointers up to (not including) the sentinel."""
        items = []
        slots = self._remaining(address) // POINTER_SIZE
        for i in range(slots):
            pointer = self.load_pointer(address + i * POINTER_SIZE)
            if pointer == NULL:
                return items
            items.append(pointer)
        raise HeapError(hex(address), "array without NULL sentinel")

    def array_slots(self, address: int) -> List[int]:
        """Every slot of the array allocation, sentinel excluded, nulls included."""
        slots = self._remaining(address) // POINTER_SIZE
        return [self.load_pointer(address + i * POINTER_SIZE) for i in range(slots - 1)]

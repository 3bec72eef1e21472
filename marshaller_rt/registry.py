"""
Marshaller Type Registry

Maps record type names to the marshal/unmarshal/free functions generated for
them. One entry is appended per name (primary name and aliases share the same
functions and size). Entries only hold function references, resolved when a
dispatch happens, so generated modules may register in any order.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from marshaller_rt.errors import MarshallerPanic


MarshalFn = Callable[[int], Any]
UnmarshalFn = Callable[[Any], int]
FreeFn = Callable[[int, bool], None]


@dataclass(frozen=True)
class RegistryEntry:
    """Size and dispatch functions registered for one type name"""
    name: str
    size: int
    marshal: MarshalFn
    unmarshal: UnmarshalFn
    free: FreeFn


class Registry:
    """Append-only table of record marshallers.

    Registration is serialized by a lock; lookups read the table without
    locking since entries are never removed or replaced.
    """

    def __init__(self):
        self._entries: Dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def register(self, names: Sequence[str], size: int, marshal: MarshalFn,
                 unmarshal: UnmarshalFn, free: FreeFn):
        """Register one entry per name. A name already present is fatal."""
        if isinstance(names, str):
            names = [names]
        if not names:
            raise MarshallerPanic("register", "no names given")
        with self._lock:
            seen = set()
            for name in names:
                if name in self._entries or name in seen:
                    raise MarshallerPanic(name, "marshaller for name already present")
                seen.add(name)
            for name in names:
                self._entries[name] = RegistryEntry(
                    name=name,
                    size=size,
                    marshal=marshal,
                    unmarshal=unmarshal,
                    free=free,
                )

    def lookup(self, name: str) -> Optional[RegistryEntry]:
        return self._entries.get(name)

    def entries(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

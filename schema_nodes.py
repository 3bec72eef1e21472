"""
Marshaller Schema Node Definitions

Passive description of the record types the code generator works from. The
schema parser (or any other extractor) produces these; the generator only
reads them.
"""

from dataclasses import dataclass, field
from typing import List, Set


# ============================================================================
# Primitive kinds
# ============================================================================

INTEGER_KINDS = ("char", "short", "int", "long", "long long")
REAL_KINDS = ("float", "double")
PRIMITIVE_KINDS = INTEGER_KINDS + REAL_KINDS + ("bool", "string")


class SchemaError(Exception):
    """Invalid record schema"""
    pass


# ============================================================================
# Type Nodes
# ============================================================================

@dataclass(frozen=True)
class FieldType:
    base_type: str  # primitive kind or record name
    is_pointer: bool = False
    is_array: bool = False

    @property
    def is_primitive(self) -> bool:
        return self.base_type in PRIMITIVE_KINDS

    @property
    def is_string(self) -> bool:
        return self.base_type == "string"

    @property
    def is_embedded(self) -> bool:
        """Stored by value inside the record (no separate heap allocation)"""
        return not (self.is_array or self.is_pointer or self.is_string)

    @property
    def is_embedded_record(self) -> bool:
        return self.is_embedded and not self.is_primitive

    def __repr__(self):
        text = self.base_type
        if self.is_pointer:
            text += "*"
        if self.is_array:
            text += "[]"
        return text


@dataclass
class Field:
    name: str
    type: FieldType


@dataclass
class Record:
    names: List[str]  # primary name first, then aliases
    fields: List[Field] = field(default_factory=list)
    line: int = 0

    @property
    def name(self) -> str:
        return self.names[0]

    @property
    def suffix(self) -> str:
        """Primary name usable inside identifiers ("struct Point" -> "struct_Point")"""
        return self.names[0].replace(" ", "_")

    @property
    def location(self) -> str:
        """Name for diagnostics, with the declaration line when known"""
        if self.line:
            return f"{self.name} (line {self.line})"
        return self.name

    def validate(self):
        """Check the invariants the generator relies on."""
        if not self.names or not all(self.names):
            raise SchemaError("record without a name")
        if not self.suffix.isidentifier():
            raise SchemaError(f"{self.location}: record name cannot be used in an identifier")
        for name in self.names:
            # primitive kinds are dispatched before the registry is consulted
            if name in PRIMITIVE_KINDS:
                raise SchemaError(f"{self.location}: name '{name}' is a primitive kind")
        seen: Set[str] = set()
        for f in self.fields:
            if not f.name.isidentifier():
                raise SchemaError(f"{self.location}: invalid field name '{f.name}'")
            if f.name in seen:
                raise SchemaError(f"{self.location}: duplicate field '{f.name}'")
            seen.add(f.name)
            if f.type.is_string and f.type.is_pointer and not f.type.is_array:
                raise SchemaError(f"{self.location}: field '{f.name}': pointer to string is not representable")


@dataclass
class SourceUnit:
    """Records declared by one input (a file, or <stdin>)"""
    name: str
    records: List[Record] = field(default_factory=list)


def all_records(units: List[SourceUnit]) -> List[Record]:
    return [record for unit in units for record in unit.records]


def validate_units(units: List[SourceUnit]):
    """Validate every record and reject names declared twice across inputs."""
    names: Set[str] = set()
    for record in all_records(units):
        record.validate()
        for name in record.names:
            if name in names:
                raise SchemaError(f"type '{name}' declared more than once ({record.location})")
            names.add(name)

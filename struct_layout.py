"""
Record Layout

Computes the C layout of every record (size, alignment, field offsets) from
LLVM IR types, the way the compiler would for sizeof/offsetof:

    char -> i8       short -> i16     int -> i32
    long -> i64      long long -> i64
    float -> float   double -> double bool -> i8
    string, pointers, arrays -> i8*   (one pointer slot)
    embedded record -> its literal struct type

Natural alignment, trailing padding to the struct alignment (LP64).

Also renders the layouts as an LLVM module of identified struct types for
debugging (--emit-ir).
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from llvmlite import ir, binding

from schema_nodes import FieldType, Record, SchemaError


POINTER_SIZE = 8

i8 = ir.IntType(8)
i8_ptr = i8.as_pointer()

PRIMITIVE_LLVM_TYPES: Dict[str, ir.Type] = {
    "char": ir.IntType(8),
    "short": ir.IntType(16),
    "int": ir.IntType(32),
    "long": ir.IntType(64),
    "long long": ir.IntType(64),
    "float": ir.FloatType(),
    "double": ir.DoubleType(),
    "bool": ir.IntType(8),
    "string": i8_ptr,
}


def type_size(llvm_type: ir.Type) -> int:
    """ABI size of an LLVM type in bytes"""
    if isinstance(llvm_type, ir.IntType):
        return max(1, llvm_type.width // 8)
    elif isinstance(llvm_type, ir.DoubleType):
        return 8
    elif isinstance(llvm_type, ir.FloatType):
        return 4
    elif isinstance(llvm_type, ir.PointerType):
        return POINTER_SIZE
    elif isinstance(llvm_type, ir.LiteralStructType):
        offsets = element_offsets(llvm_type)
        if not offsets:
            return 0
        end = offsets[-1] + type_size(llvm_type.elements[-1])
        return align_to(end, type_alignment(llvm_type))
    raise SchemaError(f"no layout for LLVM type {llvm_type}")


def type_alignment(llvm_type: ir.Type) -> int:
    """ABI alignment of an LLVM type in bytes"""
    if isinstance(llvm_type, ir.LiteralStructType):
        return max((type_alignment(e) for e in llvm_type.elements), default=1)
    return type_size(llvm_type)


def align_to(offset: int, alignment: int) -> int:
    return (offset + alignment - 1) // alignment * alignment


def element_offsets(struct_type: ir.LiteralStructType) -> List[int]:
    offsets = []
    offset = 0
    for element in struct_type.elements:
        offset = align_to(offset, type_alignment(element))
        offsets.append(offset)
        offset += type_size(element)
    return offsets


@dataclass
class RecordLayout:
    """Storage layout of one record"""
    record: Record
    llvm_type: ir.LiteralStructType
    size: int
    alignment: int
    offsets: Dict[str, int] = field(default_factory=dict)


class LayoutEngine:
    """Resolves record names and computes layouts for a set of records."""

    def __init__(self, records: List[Record]):
        self.records: Dict[str, Record] = {}
        for record in records:
            for name in record.names:
                self.records[name] = record
        self._layouts: Dict[str, RecordLayout] = {}
        self._resolving: Set[str] = set()

    def is_record(self, type_name: str) -> bool:
        return type_name in self.records

    def field_llvm_type(self, field_type: FieldType) -> ir.Type:
        """LLVM type of the storage slot a field occupies"""
        if field_type.is_array or field_type.is_pointer:
            return i8_ptr
        if field_type.is_primitive:
            return PRIMITIVE_LLVM_TYPES[field_type.base_type]
        return self.layout(field_type.base_type).llvm_type

    def layout(self, type_name: str) -> RecordLayout:
        record = self.records.get(type_name)
        if record is None:
            raise SchemaError(f"unknown type '{type_name}' embedded by value")

        primary = record.name
        if primary in self._layouts:
            return self._layouts[primary]
        if primary in self._resolving:
            raise SchemaError(f"record '{primary}' contains itself by value")

        self._resolving.add(primary)
        try:
            elements = [self.field_llvm_type(f.type) for f in record.fields]
        finally:
            self._resolving.discard(primary)

        struct_type = ir.LiteralStructType(elements)
        offsets = element_offsets(struct_type)
        result = RecordLayout(
            record=record,
            llvm_type=struct_type,
            size=type_size(struct_type),
            alignment=type_alignment(struct_type),
            offsets={f.name: offset for f, offset in zip(record.fields, offsets)},
        )
        self._layouts[primary] = result
        return result

    def emit_ir(self, module_name: str = "marshaller_layouts") -> str:
        """LLVM module declaring one identified struct per record."""
        for record in self.records.values():
            self.layout(record.name)

        context = ir.Context()
        module = ir.Module(name=module_name, context=context)
        module.triple = binding.get_default_triple()

        identified: Dict[str, ir.IdentifiedStructType] = {}
        ordered = []
        for record in self.records.values():
            if record.name not in identified:
                identified[record.name] = context.get_identified_type(f"struct.{record.suffix}")
                ordered.append(record)

        for record in ordered:
            elements = []
            for f in record.fields:
                if f.type.is_embedded_record:
                    elements.append(identified[self.records[f.type.base_type].name])
                else:
                    elements.append(self.field_llvm_type(f.type))
            identified[record.name].set_body(*elements)
        return str(module)

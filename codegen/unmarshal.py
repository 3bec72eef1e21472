"""
Unmarshal Function Generator

Emits unmarshal_<name>(v). Input must be a JSON object; storage is allocated
zero-filled and each field is converted in declaration order (a missing key
is JSON null):
- array fields:          *field = unmarshal_array_value(elem, v[name])
- pointer/string fields: *field = unmarshal_value(type, v[name])
- embedded fields:       the value is required; it is copied into the record
                         and the temporary's own block released

A missing required value frees the partial record and returns the failure
marker, so nothing stays allocated. An exception raised while converting a
field (nesting too deep, a panic) frees the partial record before it
propagates.
"""
from typing import TYPE_CHECKING

from codegen.common import py_str
from struct_layout import type_size

if TYPE_CHECKING:
    from codegen.core import CodeGenerator
    from schema_nodes import Record, Field
    from struct_layout import RecordLayout


class UnmarshalGenerator:
    """Generates JSON -> record functions."""

    def __init__(self, codegen: 'CodeGenerator'):
        """Initialize with reference to parent CodeGenerator instance."""
        self.codegen = codegen

    def emit(self, line: str = "", level: int = 0):
        self.codegen.emit(line, level)

    def generate(self, record: 'Record', layout: 'RecordLayout') -> str:
        name = f"unmarshal_{record.suffix}"
        free_name = f"free_{record.suffix}"
        record_name = py_str(record.name)

        self.emit()
        self.emit(f"def {name}(v):")
        self.emit("if not isinstance(v, dict):", 1)
        self.emit(f"return _rt.invalid_input({record_name})", 2)
        self.emit(f"d = _heap.alloc(SIZEOF_{record.suffix})", 1)

        if record.fields:
            self.emit("try:", 1)
            for f in record.fields:
                self.generate_field(record, f, layout.offsets[f.name], free_name)
            self.emit("except BaseException:", 1)
            self.emit(f"{free_name}(d, True)", 2)
            self.emit("raise", 2)

        self.emit("return d", 1)
        self.emit()
        return name

    def generate_field(self, record: 'Record', f: 'Field', offset: int, free_name: str):
        type_name = py_str(f.type.base_type)
        value = f"v.get({py_str(f.name)})"
        self.emit(f"# {f.name}: {f.type!r}", 2)
        if f.type.is_array:
            self.emit(f"_heap.store_pointer(d + {offset}, _rt.unmarshal_array_value({type_name}, {value}))", 2)
        elif f.type.is_pointer or f.type.is_string:
            self.emit(f"_heap.store_pointer(d + {offset}, _rt.unmarshal_value({type_name}, {value}))", 2)
        else:
            self.generate_embedded(record, f, offset, free_name)

    def generate_embedded(self, record: 'Record', f: 'Field', offset: int, free_name: str):
        size = type_size(self.codegen.layouts.field_llvm_type(f.type))
        self.emit(f"tmp = _rt.unmarshal_value({py_str(f.type.base_type)}, v.get({py_str(f.name)}))", 2)
        self.emit("if not tmp:", 2)
        self.emit(f"{free_name}(d, True)", 3)
        self.emit(f"return _rt.invalid_input({py_str(record.name)}, {py_str(f.name)})", 3)
        self.emit(f"_heap.copy(d + {offset}, tmp, {size})", 2)
        # nested owned data now belongs to the copy
        self.emit("_heap.free(tmp)", 2)

"""
Free Function Generator

Emits free_<name>(d, owns_allocation):
- array fields:            free_array(elem, *field)
- pointer/string fields:   free_value(type, *field, True)
- embedded record fields:  free_value(type, &field, False), part of our block
- embedded primitives:     nothing, released with the record's block
The record's own block is released only when owns_allocation is set.
"""
from typing import TYPE_CHECKING

from codegen.common import py_str

if TYPE_CHECKING:
    from codegen.core import CodeGenerator
    from schema_nodes import Record
    from struct_layout import RecordLayout


class FreeGenerator:
    """Generates ownership-aware free functions."""

    def __init__(self, codegen: 'CodeGenerator'):
        self.codegen = codegen

    def emit(self, line: str = "", level: int = 0):
        self.codegen.emit(line, level)

    def generate(self, record: 'Record', layout: 'RecordLayout') -> str:
        name = f"free_{record.suffix}"
        self.emit()
        self.emit(f"def {name}(d, owns_allocation):")
        self.emit("if not d:", 1)
        self.emit("return", 2)

        for f in record.fields:
            offset = layout.offsets[f.name]
            type_name = py_str(f.type.base_type)
            if f.type.is_array:
                self.emit(f"_rt.free_array({type_name}, _heap.load_pointer(d + {offset}))", 1)
            elif f.type.is_pointer or f.type.is_string:
                self.emit(f"_rt.free_value({type_name}, _heap.load_pointer(d + {offset}), True)", 1)
            elif not f.type.is_primitive:
                self.emit(f"_rt.free_value({type_name}, d + {offset}, False)", 1)

        self.emit("if owns_allocation:", 1)
        self.emit("_heap.free(d)", 2)
        self.emit()
        return name

"""
Marshal Function Generator

Emits marshal_<name>(d): a null record is JSON null, otherwise a dict with one
entry per field in declaration order:
- array fields:          marshal_array_value(elem, *field)
- pointer/string fields: marshal_value(type, *field)
- embedded fields:       marshal_value(type, &field)
"""
from typing import TYPE_CHECKING

from codegen.common import py_str

if TYPE_CHECKING:
    from codegen.core import CodeGenerator
    from schema_nodes import Record, Field
    from struct_layout import RecordLayout


class MarshalGenerator:
    """Generates record -> JSON functions."""

    def __init__(self, codegen: 'CodeGenerator'):
        """Initialize with reference to parent CodeGenerator instance."""
        self.codegen = codegen

    def emit(self, line: str = "", level: int = 0):
        self.codegen.emit(line, level)

    def generate(self, record: 'Record', layout: 'RecordLayout') -> str:
        name = f"marshal_{record.suffix}"
        self.emit()
        self.emit(f"def {name}(d):")
        self.emit("if not d:", 1)
        self.emit("return None", 2)
        if not record.fields:
            self.emit("return {}", 1)
            self.emit()
            return name

        self.emit("return {", 1)
        for f in record.fields:
            value = self.field_value(f, layout.offsets[f.name])
            self.emit(f"{py_str(f.name)}: {value},", 2)
        self.emit("}", 1)
        self.emit()
        return name

    def field_value(self, f: 'Field', offset: int) -> str:
        type_name = py_str(f.type.base_type)
        if f.type.is_array:
            return f"_rt.marshal_array_value({type_name}, _heap.load_pointer(d + {offset}))"
        if f.type.is_pointer or f.type.is_string:
            return f"_rt.marshal_value({type_name}, _heap.load_pointer(d + {offset}))"
        return f"_rt.marshal_value({type_name}, d + {offset})"

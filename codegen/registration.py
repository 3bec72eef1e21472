"""
Registration Generator

Emits the layout constants of a record, its register_<name>() routine, and
the postamble that runs every routine once at module load.
"""
from typing import TYPE_CHECKING, Dict, List

from codegen.common import py_str

if TYPE_CHECKING:
    from codegen.core import CodeGenerator
    from schema_nodes import Record
    from struct_layout import RecordLayout


class RegistrationGenerator:
    """Generates layout constants and self-registration."""

    def __init__(self, codegen: 'CodeGenerator'):
        self.codegen = codegen

    def emit(self, line: str = "", level: int = 0):
        self.codegen.emit(line, level)

    def generate_layout(self, record: 'Record', layout: 'RecordLayout'):
        self.emit(f"SIZEOF_{record.suffix} = {layout.size}")
        if not record.fields:
            self.emit(f"OFFSETOF_{record.suffix} = {{}}")
            self.emit()
            return
        self.emit(f"OFFSETOF_{record.suffix} = {{")
        for f in record.fields:
            self.emit(f"{py_str(f.name)}: {layout.offsets[f.name]},", 1)
        self.emit("}")
        self.emit()

    def generate(self, record: 'Record', functions: Dict[str, str]) -> str:
        name = f"register_{record.suffix}"
        names = ", ".join(py_str(n) for n in record.names)
        self.emit()
        self.emit(f"def {name}():")
        self.emit("register_marshaller(", 1)
        self.emit(f"[{names}],", 2)
        self.emit(f"SIZEOF_{record.suffix},", 2)
        self.emit(f"{functions['marshal']},", 2)
        self.emit(f"{functions['unmarshal']},", 2)
        self.emit(f"{functions['free']},", 2)
        self.emit(")", 1)
        self.emit()
        return name

    def generate_postamble(self, records: List['Record']):
        self.emit()
        self.emit("# " + "=" * 76)
        self.emit("# Self-registration")
        self.emit("# " + "=" * 76)
        self.emit()
        for record in records:
            self.emit(f"{self.codegen.record_functions[record.name]['register']}()")

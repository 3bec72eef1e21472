"""
Marshaller Code Generator

Generates a Python module of JSON marshallers from record schemas.
Per record it emits:
- a layout block (SIZEOF_<name>, OFFSETOF_<name>)
- marshal_<name>(d)                     record -> JSON tree
- unmarshal_<name>(v)                   JSON tree -> new record (0 on failure)
- free_<name>(d, owns_allocation)       release owned data
- register_<name>()                     self-registration routine

The module preamble binds the runtime entry points the generated code relies
on (register_marshaller and panic) and the postamble runs every registration
routine once, when the module is loaded.
"""

from typing import Dict, List, Optional

from schema_nodes import Record, SchemaError, SourceUnit, all_records, validate_units
from struct_layout import LayoutEngine, RecordLayout

from codegen.common import INDENT
from codegen.marshal import MarshalGenerator
from codegen.unmarshal import UnmarshalGenerator
from codegen.free import FreeGenerator
from codegen.registration import RegistrationGenerator


# Must match marshaller_rt.ABI_VERSION
RUNTIME_ABI_VERSION = 1


class CodeGenerator:
    """Generates marshaller source from a sequence of source units"""

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.lines: List[str] = []
        self.warnings: List[str] = []
        self.layouts: Optional[LayoutEngine] = None

        # Function names emitted per record primary name
        self.record_functions: Dict[str, Dict[str, str]] = {}

        self.marshal = MarshalGenerator(self)
        self.unmarshal = UnmarshalGenerator(self)
        self.free = FreeGenerator(self)
        self.registration = RegistrationGenerator(self)

    def emit(self, line: str = "", level: int = 0):
        self.lines.append(INDENT * level + line if line else "")

    def generate(self, units: List[SourceUnit]) -> str:
        """Generate the marshaller module for all units, in order"""
        validate_units(units)
        records = all_records(units)
        self._check_suffixes(records)

        self.lines = []
        self.warnings = []
        self.record_functions = {}
        self.layouts = LayoutEngine(records)

        # Layouts first so schema errors surface before any output
        for record in records:
            self.layouts.layout(record.name)
        self._check_references(records)

        self.generate_preamble(units)
        for unit in units:
            self.generate_unit(unit)
        self.registration.generate_postamble(records)

        return "\n".join(self.lines).rstrip("\n") + "\n"

    def _check_suffixes(self, records: List[Record]):
        seen: Dict[str, str] = {}
        for record in records:
            other = seen.get(record.suffix)
            if other is not None:
                raise SchemaError(f"records '{other}' and '{record.name}' generate the same function names")
            seen[record.suffix] = record.name

    def _check_references(self, records: List[Record]):
        """Pointer and array references may name types registered elsewhere."""
        for record in records:
            for f in record.fields:
                if f.type.is_primitive or self.layouts.is_record(f.type.base_type):
                    continue
                message = (f"{record.name}.{f.name}: type '{f.type.base_type}' "
                           f"is not declared in the inputs")
                if self.strict:
                    raise SchemaError(message)
                self.warnings.append(message)

    def layout(self, record: Record) -> RecordLayout:
        return self.layouts.layout(record.name)

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def generate_preamble(self, units: List[SourceUnit]):
        self.emit('"""')
        self.emit("Generated JSON marshallers.")
        self.emit()
        self.emit("Sources:")
        for unit in units:
            self.emit(unit.name, 1)
        self.emit()
        self.emit("Generated by marshallerc. Do not edit.")
        self.emit('"""')
        self.emit()
        self.emit("import marshaller_rt")
        self.emit("from marshaller_rt import panic")
        self.emit()
        self.emit(f"if marshaller_rt.ABI_VERSION != {RUNTIME_ABI_VERSION}:")
        self.emit(f'panic(__name__, "generated for marshaller runtime ABI {RUNTIME_ABI_VERSION}")', 1)
        self.emit()
        self.emit("_rt = marshaller_rt.current()")
        self.emit("_heap = _rt.heap")
        self.emit("register_marshaller = _rt.register_marshaller")
        self.emit()

    def generate_unit(self, unit: SourceUnit):
        self.emit()
        self.emit("# " + "=" * 76)
        self.emit(f"# file: {unit.name}")
        self.emit("# " + "=" * 76)
        for record in unit.records:
            self.generate_record(record)

    def generate_record(self, record: Record):
        layout = self.layout(record)
        self.emit()
        self.emit(f"# struct: {record.name}")
        self.emit()
        self.registration.generate_layout(record, layout)

        functions = {
            "marshal": self.marshal.generate(record, layout),
            "unmarshal": self.unmarshal.generate(record, layout),
            "free": self.free.generate(record, layout),
        }
        functions["register"] = self.registration.generate(record, functions)
        self.record_functions[record.name] = functions

    def emit_ir(self, units: List[SourceUnit]) -> str:
        """LLVM IR view of the record layouts"""
        validate_units(units)
        return LayoutEngine(all_records(units)).emit_ir()

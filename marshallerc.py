#!/usr/bin/env python3
"""
Marshaller Compiler

Generates Python JSON marshallers from C-style struct declarations.

Usage:
    python marshallerc.py [files...] [-o output] [--emit-ir] [--emit-schema] [--strict]

Examples:
    python marshallerc.py shapes.h                   # Print marshallers to stdout
    python marshallerc.py shapes.h -o shapes_json.py # Write marshallers to a file
    python marshallerc.py a.h b.h -o both.py         # Several inputs, one module
    python marshallerc.py < shapes.h                 # Read declarations from stdin
    python marshallerc.py shapes.h --emit-ir         # Print record layouts as LLVM IR
    python marshallerc.py shapes.h --emit-schema     # Print parsed schemas
"""

import sys
import argparse
from typing import List

from schema_nodes import SchemaError, SourceUnit
from schema_parser import SchemaSyntaxError, parse_file, parse_source
from codegen import CodeGenerator


MAX_FILES = 10

EXIT_SCHEMA_ERROR = 1
EXIT_INTERNAL_ERROR = 2
EXIT_PANIC = 3


class UsageError(Exception):
    """Malformed command line"""
    pass


class ArgumentParser(argparse.ArgumentParser):
    """argparse with usage errors reported as a panic (exit 3)"""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_PANIC, f"panic: {message}\n")


def print_schema(units: List[SourceUnit]):
    """Pretty print parsed schemas (for debugging)"""
    for unit in units:
        print(f"Unit {unit.name}")
        for record in unit.records:
            aliases = f" (aliases: {', '.join(record.names[1:])})" if len(record.names) > 1 else ""
            print(f"  Record {record.name}{aliases}")
            for f in record.fields:
                print(f"    {f.name}: {f.type!r}")


def read_units(files: List[str]) -> List[SourceUnit]:
    """Parse every input file, or stdin when there are none."""
    if len(files) > MAX_FILES:
        raise UsageError(f"file limit reached ({MAX_FILES} input files)")
    if not files:
        return [parse_source(sys.stdin.read(), "<stdin>")]

    return [parse_file(path) for path in files]


def compile_marshallers(files: List[str], output_path: str = None,
                        emit_ir: bool = False, emit_schema: bool = False,
                        strict: bool = False):
    """
    Generate marshallers for declaration files.

    Args:
        files: Declaration files (stdin when empty)
        output_path: Output file (default: stdout)
        emit_ir: Print record layouts as LLVM IR instead of marshallers
        emit_schema: Print the parsed schemas instead of marshallers
        strict: Treat references to undeclared record types as errors
    """
    units = read_units(files)

    if emit_schema:
        print_schema(units)
        return

    codegen = CodeGenerator(strict=strict)
    if emit_ir:
        result = codegen.emit_ir(units)
    else:
        result = codegen.generate(units)
        for warning in codegen.warnings:
            print(f"Warning: {warning}", file=sys.stderr)

    if output_path is None:
        sys.stdout.write(result)
    else:
        with open(output_path, 'w') as f:
            f.write(result)


def main(argv=None):
    parser = ArgumentParser(
        description="Marshaller Compiler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s shapes.h                      Print marshallers to stdout
  %(prog)s shapes.h -o shapes_json.py    Write marshallers to a file
  %(prog)s < shapes.h                    Read declarations from stdin
  %(prog)s shapes.h --emit-ir            Print record layouts as LLVM IR
  %(prog)s shapes.h --emit-schema        Print parsed schemas
        """
    )

    parser.add_argument("files", nargs="*", help="Declaration files (default: stdin)")
    parser.add_argument("-o", "--output", help="Output file (default: stdout)")
    parser.add_argument("--emit-ir", action="store_true",
                        help="Print record layouts as LLVM IR")
    parser.add_argument("--emit-schema", action="store_true",
                        help="Print parsed schemas")
    parser.add_argument("--strict", action="store_true",
                        help="Fail on references to record types not declared in the inputs")

    args = parser.parse_args(argv)

    try:
        compile_marshallers(
            args.files,
            args.output,
            emit_ir=args.emit_ir,
            emit_schema=args.emit_schema,
            strict=args.strict,
        )
    except SchemaSyntaxError as e:
        print(f"Syntax error: {e}", file=sys.stderr)
        sys.exit(EXIT_SCHEMA_ERROR)
    except SchemaError as e:
        print(f"Schema error: {e}", file=sys.stderr)
        sys.exit(EXIT_SCHEMA_ERROR)
    except UsageError as e:
        print(f"panic: {e}", file=sys.stderr)
        sys.exit(EXIT_PANIC)
    except OSError as e:
        print(f"panic: {e.filename or 'io'}: {e.strerror or e}", file=sys.stderr)
        sys.exit(EXIT_PANIC)
    except Exception as e:
        print(f"Internal compiler error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(EXIT_INTERNAL_ERROR)


if __name__ == "__main__":
    main()

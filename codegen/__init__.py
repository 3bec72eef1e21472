"""
Marshaller Code Generator Package

This package generates Python marshaller modules from record schemas.

Package structure:
    codegen/
    ├── __init__.py      # Package exports (this file)
    ├── core.py          # CodeGenerator: preamble, per-unit and per-record driver
    ├── common.py        # Shared emission helpers
    ├── marshal.py       # marshal_<name> functions
    ├── unmarshal.py     # unmarshal_<name> functions
    ├── free.py          # free_<name> functions
    └── registration.py  # layout constants, register_<name>, postamble
"""

from codegen.core import CodeGenerator, RUNTIME_ABI_VERSION

__all__ = ['CodeGenerator', 'RUNTIME_ABI_VERSION']

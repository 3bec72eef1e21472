"""
Loader for generated marshaller modules

Executes generated source as a fresh module while a dispatcher is active, so
the module binds to that dispatcher and its self-registration routines fill
that dispatcher's registry. Modules imported the ordinary way bind to the
default dispatcher instead.
"""

import sys
import types
from pathlib import Path
from typing import Optional

from marshaller_rt.dispatch import Dispatcher, current, using


def load_generated(source: str, module_name: str = "marshallers",
                   dispatcher: Optional[Dispatcher] = None,
                   filename: Optional[str] = None) -> types.ModuleType:
    """Execute generated source and return the resulting module.

    The module is not inserted into sys.modules; keep a reference to it for
    as long as its marshallers are registered.
    """
    if dispatcher is None:
        dispatcher = current()
    module = types.ModuleType(module_name)
    module.__file__ = filename or f"<{module_name}>"
    code = compile(source, module.__file__, "exec")
    with using(dispatcher):
        exec(code, module.__dict__)
    return module


def load_file(path, dispatcher: Optional[Dispatcher] = None,
              register: bool = False) -> types.ModuleType:
    """Load a generated module from disk, optionally publishing it in sys.modules."""
    path = Path(path)
    module = load_generated(path.read_text(), path.stem, dispatcher, str(path))
    if register:
        sys.modules[path.stem] = module
    return module

"""
Pytest configuration and fixtures for marshaller tests.

Provides reusable fixtures for:
- A fresh runtime dispatcher per test (own registry and heap)
- Generating and loading marshallers from declaration source
- Running the marshallerc command line
"""

import pytest
import subprocess
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from codegen import CodeGenerator
from marshaller_rt import Dispatcher, load_generated
from schema_parser import parse_source


SHAPES = """
typedef struct Point {
    int x;
    int y;
} Point;

struct Line {
    Point* a;
    Point* b;
};

struct Polygon {
    char* name;
    Point* corners[];
    struct Point origin;
    bool closed;
    double weight;
};
"""


SAMPLE = """
struct Sample {
    char c;
    short s;
    int i;
    long l;
    long long ll;
    float f;
    double d;
    bool b;
    char* text;
    int* maybe;
};
"""


class CompilerResult:
    """Result of running marshallerc."""

    def __init__(self, returncode: int, stdout: str, stderr: str):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def success(self) -> bool:
        return self.returncode == 0


@pytest.fixture
def compiler_root():
    """Path to compiler root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def dispatcher():
    """Dispatcher with its own registry and heap, tracing off."""
    return Dispatcher(trace_level=0)


@pytest.fixture
def load_records(dispatcher):
    """
    Fixture that returns a function to generate and load marshallers.

    Usage:
        module = load_records(SHAPES)
        address = dispatcher.unmarshal("Point", '{"x": 1, "y": 2}')
    """
    modules = []

    def _load(declarations: str, source: str = "test.h"):
        unit = parse_source(declarations, source)
        generated = CodeGenerator().generate([unit])
        module = load_generated(generated, "test_marshallers", dispatcher=dispatcher)
        modules.append(module)
        return module

    return _load


@pytest.fixture
def shapes(load_records):
    """Marshallers for Point, Line and Polygon."""
    return load_records(SHAPES, "shapes.h")


@pytest.fixture
def sample(load_records):
    """Marshallers for a record holding every primitive kind."""
    return load_records(SAMPLE, "sample.h")


@pytest.fixture
def run_compiler(compiler_root):
    """
    Fixture that returns a function to run marshallerc.

    Usage:
        result = run_compiler(["shapes.h", "-o", "out.py"])
        assert result.success
    """
    def _run(args, stdin: str = None, cwd=None) -> CompilerResult:
        marshallerc = os.path.join(compiler_root, "marshallerc.py")
        result = subprocess.run(
            [sys.executable, marshallerc] + list(args),
            input=stdin,
            capture_output=True,
            text=True,
            cwd=cwd or compiler_root
        )
        return CompilerResult(result.returncode, result.stdout, result.stderr)

    return _run

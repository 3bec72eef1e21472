"""
Shared helpers for the generator submodules.
"""
import json


INDENT = "    "


def py_str(text: str) -> str:
    """Python string literal for text"""
    return json.dumps(text)

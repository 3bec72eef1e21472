"""
Marshaller Runtime Errors

Two tiers of failure:
- MarshallerPanic: programmer/configuration errors (unknown type, duplicate
  registration, bad heap address). Never caught by the runtime.
- MarshalError: recoverable marshal failure, turned into a None result by the
  top-level entry points. Unmarshal failures are reported as the null pointer.
- NestingError: input nested past the unmarshal depth limit, unwound through
  the generated code (which frees partial records) and turned into the null
  pointer by the top-level entry points.
"""


class MarshallerError(Exception):
    """Base exception for marshaller runtime errors"""
    pass


class MarshallerPanic(MarshallerError):
    """Fatal error identifying the offending name and the reason"""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"panic: marshaller ({name}): {reason}")


class HeapError(MarshallerPanic):
    """Invalid heap address, out of bounds access or double free"""
    pass


class MarshalError(MarshallerError):
    """A value could not be converted to JSON"""
    pass


class NestingError(MarshallerError):
    """A JSON value nests deeper than the dispatcher will unmarshal"""

    def __init__(self, type_name: str, limit: int):
        self.type_name = type_name
        self.limit = limit
        super().__init__(f"{type_name}: nesting deeper than {limit} levels")


def panic(name: str, reason: str):
    """Report a fatal marshaller error for name."""
    raise MarshallerPanic(name, reason)

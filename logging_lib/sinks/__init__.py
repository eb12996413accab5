"""Log sinks."""

from .memory import InMemorySink
from .stdout import StdoutSink

__all__ = ["InMemorySink", "StdoutSink"]

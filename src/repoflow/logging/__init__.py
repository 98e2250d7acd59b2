"""repoflow logging -- logging port and its structlog / stdlib adapters."""

from repoflow.logging.port import LoggingPort
from repoflow.logging.stdlib_adapter import StdlibLoggingAdapter
from repoflow.logging.structlog_adapter import StructlogAdapter

__all__ = ["LoggingPort", "StdlibLoggingAdapter", "StructlogAdapter"]

"""Observability - failure sinks and logging setup."""

from .logging import FailureSink, LogSink, configure_logging, emit

__all__ = ["FailureSink", "LogSink", "configure_logging", "emit"]

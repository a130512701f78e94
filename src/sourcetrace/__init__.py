"""Decorate JavaScript stack traces with original source locations."""

from sourcetrace.stacktrace import (
    SourceFrame,
    StackFrame,
    StackTraceDecorator,
    format_source_frame,
    parse_frame_line,
)

__all__ = [
    "SourceFrame",
    "StackFrame",
    "StackTraceDecorator",
    "format_source_frame",
    "parse_frame_line",
]

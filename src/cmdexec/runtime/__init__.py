"""Runtime module for subprocess execution.

This module provides context-bound process execution with per-stream routing
and reliable termination of the child's process group.
"""

from __future__ import annotations

from .process_runner import ProcessResult, ProcessRunner, ProcessSpec, Sink, Stream

__all__ = [
    "ProcessResult",
    "ProcessRunner",
    "ProcessSpec",
    "Sink",
    "Stream",
]
